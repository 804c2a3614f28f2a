"""Configuration management for tg-feeds."""

import os
from dataclasses import dataclass


@dataclass
class FetcherConfig:
    """Configuration for reading t.me pages."""

    base_url: str = "https://t.me"
    timeout: int = 30
    user_agent: str = "tg-feeds/1.0 (Telegram channel to RSS mirror)"


@dataclass
class StoreConfig:
    """Configuration for the DynamoDB store."""

    table_name: str = "tg-feeds"
    region: str = "us-east-1"
    endpoint_url: str | None = None


@dataclass
class ServerConfig:
    """Configuration for the local development server."""

    host: str = "127.0.0.1"
    port: int = 4567


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Main configuration manager."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.feeds_table = os.getenv("FEEDS_TABLE", "tg-feeds")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )
        self.dynamodb_endpoint_url = os.getenv("DYNAMODB_ENDPOINT_URL") or None
        self.telegram_base_url = os.getenv("TELEGRAM_BASE_URL", "https://t.me").rstrip("/")
        self.fetch_timeout = _int_from_env("FETCH_TIMEOUT", 30)
        self.host = os.getenv("HOST", "127.0.0.1")
        self.port = _int_from_env("PORT", 4567)
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.enable_metrics = _bool_from_env("ENABLE_METRICS", True)

        if not 0 < self.port < 65536:
            raise ValueError(f"PORT must be between 1 and 65535, got {self.port}")
        if self.fetch_timeout <= 0:
            raise ValueError(f"FETCH_TIMEOUT must be positive, got {self.fetch_timeout}")

    def get_fetcher_config(self) -> FetcherConfig:
        """Get t.me fetcher configuration."""
        return FetcherConfig(base_url=self.telegram_base_url, timeout=self.fetch_timeout)

    def get_store_config(self) -> StoreConfig:
        """Get DynamoDB store configuration."""
        return StoreConfig(
            table_name=self.feeds_table,
            region=self.aws_region,
            endpoint_url=self.dynamodb_endpoint_url,
        )

    def get_server_config(self) -> ServerConfig:
        """Get local server configuration."""
        return ServerConfig(host=self.host, port=self.port)

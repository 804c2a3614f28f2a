"""Unit tests for configuration management."""

import os
from unittest.mock import patch

import pytest

from tg_feeds.config import Config


class TestConfigUnit:
    """Unit tests for Config class."""

    def test_defaults_when_no_env_vars(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config()

        assert config.feeds_table == "tg-feeds"
        assert config.aws_region == "us-east-1"
        assert config.dynamodb_endpoint_url is None
        assert config.port == 4567
        assert config.host == "127.0.0.1"
        assert config.fetch_timeout == 30
        assert config.telegram_base_url == "https://t.me"
        assert config.enable_metrics is True

    def test_env_overrides(self):
        env = {
            "FEEDS_TABLE": "feeds-prod",
            "CURRENT_AWS_REGION": "eu-south-1",
            "AWS_DEFAULT_REGION": "us-west-2",
            "DYNAMODB_ENDPOINT_URL": "http://localhost:8000",
            "PORT": "8080",
            "HOST": "0.0.0.0",
            "FETCH_TIMEOUT": "5",
            "TELEGRAM_BASE_URL": "https://mirror.example/",
            "ENABLE_METRICS": "no",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config()

        assert config.get_store_config().table_name == "feeds-prod"
        assert config.get_store_config().region == "eu-south-1"
        assert config.get_store_config().endpoint_url == "http://localhost:8000"
        assert config.get_server_config().port == 8080
        assert config.get_server_config().host == "0.0.0.0"
        assert config.get_fetcher_config().timeout == 5
        assert config.get_fetcher_config().base_url == "https://mirror.example"
        assert config.enable_metrics is False

    def test_region_falls_back_to_default_region(self):
        with patch.dict(os.environ, {"AWS_DEFAULT_REGION": "us-west-2"}, clear=True):
            assert Config().aws_region == "us-west-2"

    def test_invalid_port_is_rejected(self):
        with patch.dict(os.environ, {"PORT": "http"}, clear=True):
            with pytest.raises(ValueError, match="PORT"):
                Config()

    def test_out_of_range_port_is_rejected(self):
        with patch.dict(os.environ, {"PORT": "70000"}, clear=True):
            with pytest.raises(ValueError, match="PORT"):
                Config()

    def test_non_positive_timeout_is_rejected(self):
        with patch.dict(os.environ, {"FETCH_TIMEOUT": "0"}, clear=True):
            with pytest.raises(ValueError, match="FETCH_TIMEOUT"):
                Config()

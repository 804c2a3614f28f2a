"""Reads channel listings and single messages from t.me."""

from abc import ABC, abstractmethod
from datetime import UTC, datetime

import requests
from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from .config import FetcherConfig
from .errors import (
    ChannelParseError,
    ItemFetchError,
    ItemParseError,
    ItemUnavailableError,
    RemoteUnreachableError,
)
from .logging_config import create_execution_logger
from .models import ChannelHead, Item, make_header


class Fetcher(ABC):
    """Remote reads used by the synchronizer."""

    @abstractmethod
    def fetch_channel_head(self, channel_name: str) -> ChannelHead:
        """Return channel metadata and the newest visible message id.

        Raises:
            ChannelFetchError: If the listing cannot be read or has no messages
        """

    @abstractmethod
    def fetch_item(self, channel_name: str, item_id: int) -> Item:
        """Return a single message.

        Raises:
            ItemFetchError: If the message is unavailable or cannot be parsed
        """


class TelegramWebFetcher(Fetcher):
    """Scrapes the public t.me web preview pages."""

    def __init__(
        self, config: FetcherConfig | None = None, execution_id: str | None = None
    ):
        """Initialize the fetcher.

        Args:
            config: Base URL, timeout and user agent
            execution_id: Execution ID for logging context
        """
        self.config = config or FetcherConfig()
        self.logger = create_execution_logger("fetcher", execution_id)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.config.user_agent})

    def channel_url(self, channel_name: str) -> str:
        return f"{self.config.base_url}/s/{channel_name}"

    def item_url(self, channel_name: str, item_id: int) -> str:
        return f"{self.config.base_url}/{channel_name}/{item_id}?embed=1&mode=tme"

    def fetch_channel_head(self, channel_name: str) -> ChannelHead:
        url = self.channel_url(channel_name)
        try:
            html = self._get(url)
        except requests.RequestException as e:
            self.logger.error(
                f"Failed to download channel page {url}: {e}",
                channel_name=channel_name,
                error=str(e),
            )
            raise RemoteUnreachableError(f"Failed to download {url}: {e}") from e

        soup = BeautifulSoup(html, "html.parser")
        head_id = self.parse_head_id(soup, channel_name)
        if head_id is None:
            self.logger.error(
                "Channel page has no messages", channel_name=channel_name
            )
            raise ChannelParseError(f"Can't parse channel page {url}")

        title = ""
        for node in soup.select(".tgme_channel_info_header_title"):
            span = node.find("span")
            title = span.get_text() if span else node.get_text()

        description = ""
        for node in soup.select(".tgme_channel_info_description"):
            description = node.get_text()

        self.logger.info(
            "Fetched channel head",
            channel_name=channel_name,
            head_id=head_id,
        )
        return ChannelHead(
            name=channel_name,
            title=title.strip(),
            description=description.strip(),
            link=url,
            head_id=head_id,
        )

    def parse_head_id(self, soup: BeautifulSoup, channel_name: str) -> int | None:
        """Return the highest message id among "<channel>/<id>" markers."""
        head_id = None
        for node in soup.select(".tgme_widget_message[data-post]"):
            marker = node.get("data-post", "")
            _, _, raw_id = marker.rpartition("/")
            try:
                current = int(raw_id)
            except ValueError:
                self.logger.debug(
                    f"Ignoring malformed message marker {marker!r}",
                    channel_name=channel_name,
                )
                continue
            if head_id is None or current > head_id:
                head_id = current
        return head_id

    def fetch_item(self, channel_name: str, item_id: int) -> Item:
        url = self.item_url(channel_name, item_id)
        try:
            html = self._get(url)
        except requests.RequestException as e:
            raise ItemFetchError(f"Failed to download {url}: {e}", item_id) from e

        soup = BeautifulSoup(html, "html.parser")

        error_message = ""
        for node in soup.select(".tgme_widget_message_error"):
            error_message = node.get_text().strip()
        if error_message:
            raise ItemUnavailableError(error_message, item_id)

        text = ""
        for node in soup.select(".tgme_widget_message_text.js-message_text"):
            text = node.get_text()

        created_at = self.parse_created_at(soup, item_id)

        content = f'{text}\n\n<a href="{url}">[link]</a>'
        return Item(
            header=make_header(text),
            content=content,
            link=url,
            created_at=created_at,
            remote_id=item_id,
        )

    def parse_created_at(self, soup: BeautifulSoup, item_id: int) -> datetime:
        """Resolve the single creation timestamp of a message page.

        Raises:
            ItemParseError: If there is no timestamp, an unparsable one, or
                more than one distinct value
        """
        found = set()
        for node in soup.select(".tgme_widget_message_date time[datetime]"):
            raw = node["datetime"]
            try:
                value = date_parser.isoparse(raw)
            except (ValueError, OverflowError) as e:
                raise ItemParseError(f"Invalid timestamp {raw!r}: {e}", item_id) from e
            if value.tzinfo is None:
                value = value.replace(tzinfo=UTC)
            found.add(value)

        if not found:
            raise ItemParseError("Message has no timestamp", item_id)
        if len(found) > 1:
            raise ItemParseError(
                f"Message has {len(found)} conflicting timestamps", item_id
            )
        return found.pop()

    def _get(self, url: str) -> str:
        self.logger.debug("Downloading page", url=url)
        response = self.session.get(url, timeout=self.config.timeout)
        response.raise_for_status()
        return response.text

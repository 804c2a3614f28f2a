"""Data models for tg-feeds."""

from dataclasses import dataclass, field
from datetime import datetime

MAX_FEED_ITEMS = 20
HEADER_LENGTH = 100


@dataclass
class ChannelHead:
    """Channel metadata and newest message id read from the listing page."""

    name: str
    title: str
    description: str
    link: str
    head_id: int


@dataclass
class Channel:
    """A mirrored channel as kept in the store."""

    name: str
    title: str
    link: str
    description: str
    cursor: int | None = None  # None until the first stale sync completes
    channel_id: str | None = None

    @property
    def is_persisted(self) -> bool:
        return self.channel_id is not None


@dataclass
class Item:
    """A single channel message."""

    header: str
    content: str
    link: str
    created_at: datetime
    remote_id: int


@dataclass
class SyncReport:
    """Counters describing what a single sync did."""

    channel_name: str
    fresh: bool = False
    fetch_attempts: int = 0
    items_fetched: int = 0
    items_skipped: int = 0
    duplicates_dropped: int = 0
    items_returned: int = 0
    skipped_ids: list[int] = field(default_factory=list)


@dataclass
class SyncResult:
    """Channel plus the ordered items to publish, newest first."""

    channel: Channel
    items: list[Item]
    report: SyncReport


def make_header(text: str) -> str:
    """Build the feed title for a message body.

    Bodies longer than HEADER_LENGTH characters get their first
    HEADER_LENGTH characters, space-trimmed, followed by "...".
    Shorter bodies get an empty header.
    """
    if len(text) > HEADER_LENGTH:
        return text[:HEADER_LENGTH].strip(" ") + "..."
    return ""

"""Incremental synchronization of a channel into the store."""

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from .errors import ItemAppendError, ItemFetchError, StoreError
from .fetcher import Fetcher
from .logging_config import ExecutionLogger, create_execution_logger
from .models import MAX_FEED_ITEMS, Channel, ChannelHead, Item, SyncReport, SyncResult
from .store import Store


class SyncObserver:
    """Hooks for the decisions a sync makes. The default ignores them all."""

    def on_fresh(self, channel: Channel, head_id: int) -> None:
        pass

    def on_item_skipped(self, channel_name: str, item_id: int, error: Exception) -> None:
        pass

    def on_duplicate_dropped(
        self, channel_name: str, item_id: int, created_at: datetime
    ) -> None:
        pass

    def on_cursor_advanced(self, channel: Channel, head_id: int) -> None:
        pass


class ChannelLocks:
    """One lock per channel name, dropped once nobody holds or waits for it."""

    def __init__(self):
        self._guard = threading.Lock()
        # name -> [lock, number of holders and waiters]
        self._locks: dict[str, list] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, channel_name: str):
        with self._guard:
            entry = self._locks.setdefault(channel_name, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[channel_name]


# Shared by every Synchronizer in the process
default_locks = ChannelLocks()


class Synchronizer:
    """Brings the stored copy of a channel up to date with t.me."""

    def __init__(
        self,
        fetcher: Fetcher,
        store: Store,
        logger: ExecutionLogger | None = None,
        observer: SyncObserver | None = None,
        locks: ChannelLocks | None = None,
        max_items: int = MAX_FEED_ITEMS,
    ):
        self.fetcher = fetcher
        self.store = store
        self.logger = logger or create_execution_logger("synchronizer")
        self.observer = observer or SyncObserver()
        self.locks = default_locks if locks is None else locks
        self.max_items = max_items

    def sync(self, channel_name: str) -> SyncResult:
        """Synchronize one channel and return the items to publish.

        Raises:
            ChannelFetchError: If the channel listing cannot be read
            StoreError: If a store read or the cursor update fails
            ItemAppendError: If the walked items cannot be persisted; the
                cursor has already been advanced at that point
        """
        with self.locks.hold(channel_name):
            return self._sync(channel_name)

    def _sync(self, channel_name: str) -> SyncResult:
        report = SyncReport(channel_name=channel_name)

        head = self.fetcher.fetch_channel_head(channel_name)
        channel = self._load_channel(head)

        if channel.cursor is not None and channel.cursor >= head.head_id:
            if channel.cursor > head.head_id:
                self.logger.warning(
                    f"Remote head {head.head_id} is behind cursor {channel.cursor}, "
                    "serving cached items",
                    channel_name=channel_name,
                )
            self.logger.info(
                "Channel is fresh", channel_name=channel_name, head_id=head.head_id
            )
            self.observer.on_fresh(channel, head.head_id)
            items = self.store.list_recent_items(channel.channel_id, self.max_items)
            report.fresh = True
            report.items_returned = len(items)
            return SyncResult(channel=channel, items=items, report=report)

        self.logger.info(
            "Channel is stale",
            channel_name=channel_name,
            head_id=head.head_id,
            cursor=channel.cursor,
        )
        collected = self._walk(channel_name, head.head_id, channel.cursor or 0, report)

        if not channel.is_persisted:
            self.logger.warning(
                "Channel record unavailable, returning items without persisting",
                channel_name=channel_name,
            )
            report.items_returned = len(collected)
            return SyncResult(channel=channel, items=collected, report=report)

        self.store.update_cursor(channel.channel_id, head.head_id)
        channel = replace(channel, cursor=head.head_id)
        self.observer.on_cursor_advanced(channel, head.head_id)
        self.logger.info(
            "Cursor advanced", channel_name=channel_name, head_id=head.head_id
        )

        try:
            persisted = self.store.append_items(channel.channel_id, collected)
        except StoreError as e:
            self.logger.error(
                f"Can't save items: {e}", channel_name=channel_name, error=str(e)
            )
            raise ItemAppendError(
                f"Failed to save {len(collected)} items for {channel_name}",
                channel=channel,
            ) from e

        report.items_returned = len(persisted)
        return SyncResult(channel=channel, items=persisted, report=report)

    def _load_channel(self, head: ChannelHead) -> Channel:
        channel = self.store.get_channel(head.name)
        if channel is not None:
            return channel

        new_channel = Channel(
            name=head.name,
            title=head.title,
            link=head.link,
            description=head.description,
            cursor=None,
        )
        try:
            return self.store.create_channel(new_channel)
        except StoreError as e:
            self.logger.error(
                f"Can't create channel record: {e}",
                channel_name=head.name,
                error=str(e),
            )
            return new_channel

    def _walk(
        self, channel_name: str, head_id: int, floor: int, report: SyncReport
    ) -> list[Item]:
        """Collect items from head_id downwards, stopping above floor."""
        collected: list[Item] = []
        candidate = head_id

        while candidate > floor and candidate > 0 and len(collected) < self.max_items:
            item = self._attempt(channel_name, candidate, report)
            if item is not None:
                report.items_fetched += 1
                if collected and item.created_at == collected[-1].created_at:
                    report.duplicates_dropped += 1
                    self.logger.info(
                        "Dropped item with duplicated timestamp",
                        channel_name=channel_name,
                        item_id=candidate,
                    )
                    self.observer.on_duplicate_dropped(
                        channel_name, candidate, item.created_at
                    )
                else:
                    collected.append(item)
            candidate -= 1

        return collected

    def _attempt(self, channel_name: str, item_id: int, report: SyncReport) -> Item | None:
        report.fetch_attempts += 1
        self.logger.debug(
            "Downloading item", channel_name=channel_name, item_id=item_id
        )
        try:
            return self.fetcher.fetch_item(channel_name, item_id)
        except ItemFetchError as e:
            report.items_skipped += 1
            report.skipped_ids.append(item_id)
            self.logger.log_item_skipped(channel_name, item_id, str(e))
            self.observer.on_item_skipped(channel_name, item_id, e)
            return None

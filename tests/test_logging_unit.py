"""Unit tests for structured logging."""

import json
import logging
from io import StringIO

from tests.fakes import FakeFetcher, FakeStore, make_item
from tg_feeds.logging_config import StructuredFormatter, create_execution_logger
from tg_feeds.sync import ChannelLocks, Synchronizer


def capture(logger_name="tg_feeds"):
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger(logger_name)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return stream, handler, logger


class TestStructuredLogging:
    """JSON records carry execution context."""

    def test_record_includes_context(self):
        stream, handler, logger = capture()
        try:
            create_execution_logger("synchronizer", "exec-1").info(
                "Channel is fresh", channel_name="lexfridman", head_id=293
            )
        finally:
            logger.removeHandler(handler)

        entry = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert entry["message"] == "Channel is fresh"
        assert entry["level"] == "INFO"
        assert entry["execution_id"] == "exec-1"
        assert entry["component"] == "synchronizer"
        assert entry["channel_name"] == "lexfridman"
        assert entry["logger"] == "tg_feeds.synchronizer"

    def test_every_keyword_context_is_emitted(self):
        stream, handler, logger = capture()
        try:
            execution = create_execution_logger("store", "exec-3")
            execution.log_execution_start()
            execution.info(
                "Items appended",
                channel_id="CHANNEL#lexfridman",
                items_count=2,
                url="https://t.me/s/lexfridman",
                host="127.0.0.1",
                port=4567,
            )
            execution.error("Request failed", error_type="StoreError")
            execution.log_execution_end(success=False)
        finally:
            logger.removeHandler(handler)

        entries = [json.loads(line) for line in stream.getvalue().splitlines()]
        appended, failed, ended = entries[-3:]
        assert appended["channel_id"] == "CHANNEL#lexfridman"
        assert appended["items_count"] == 2
        assert appended["url"] == "https://t.me/s/lexfridman"
        assert appended["host"] == "127.0.0.1"
        assert appended["port"] == 4567
        assert failed["error_type"] == "StoreError"
        assert ended["execution_success"] is False
        assert ended["execution_duration_seconds"] >= 0
        assert "execution_end" in ended
        assert "msg" not in appended
        assert "args" not in appended

    def test_generated_execution_id(self):
        logger = create_execution_logger("fetcher")

        assert logger.execution_id.startswith("exec_")

    def test_decision_trail_is_logged(self):
        items = {3: make_item(3), 1: make_item(1)}
        fetcher = FakeFetcher(head_id=3, items=items)
        synchronizer = Synchronizer(
            fetcher,
            FakeStore(),
            logger=create_execution_logger("synchronizer", "exec-2"),
            locks=ChannelLocks(),
        )

        stream, handler, logger = capture()
        try:
            synchronizer.sync("testchannel")
        finally:
            logger.removeHandler(handler)

        entries = [json.loads(line) for line in stream.getvalue().splitlines()]
        messages = [entry["message"] for entry in entries]
        assert "Channel is stale" in messages
        assert "Cursor advanced" in messages
        skipped = [entry for entry in entries if entry["message"].startswith("Skipped item")]
        assert len(skipped) == 1
        assert skipped[0]["item_id"] == 2
        assert skipped[0]["level"] == "WARNING"

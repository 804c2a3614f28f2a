"""Channel and item persistence backed by DynamoDB."""

from abc import ABC, abstractmethod
from datetime import UTC, datetime

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .config import StoreConfig
from .errors import StoreError
from .logging_config import create_execution_logger
from .models import Channel, Item

CHANNEL_SK = "CHANNEL"
ITEM_PREFIX = "ITEM#"


class Store(ABC):
    """Persistence used by the synchronizer."""

    @abstractmethod
    def get_channel(self, name: str) -> Channel | None:
        """Return the stored channel or None when it was never seen."""

    @abstractmethod
    def create_channel(self, channel: Channel) -> Channel:
        """Persist a new channel and return it with its channel_id set."""

    @abstractmethod
    def update_cursor(self, channel_id: str, cursor: int) -> None:
        """Advance the channel cursor. A lower value never replaces a higher one."""

    @abstractmethod
    def list_recent_items(self, channel_id: str, limit: int) -> list[Item]:
        """Return up to limit items, newest created_at first."""

    @abstractmethod
    def append_items(self, channel_id: str, items: list[Item]) -> list[Item]:
        """Persist all items or none of them."""


def channel_key(name: str) -> str:
    return f"CHANNEL#{name}"


def item_sort_key(item: Item) -> str:
    """Sort key ordering items by creation time, then message id."""
    return f"{ITEM_PREFIX}{format_timestamp(item.created_at)}#{item.remote_id:012d}"


def format_timestamp(value: datetime) -> str:
    # Fixed-width UTC text so lexical order matches time order
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class DynamoDBStore(Store):
    """Single-table DynamoDB store.

    Channels live under ``pk=CHANNEL#<name>, sk=CHANNEL``; their items share
    the partition with ``sk=ITEM#<created_at>#<remote_id>`` so a descending
    query on the partition returns the newest items first.
    """

    def __init__(self, config: StoreConfig, execution_id: str | None = None):
        """Initialize the store.

        Args:
            config: Table name, region and optional endpoint
            execution_id: Execution ID for logging context
        """
        self.config = config
        self.table_name = config.table_name
        self.logger = create_execution_logger("store", execution_id)
        self.dynamodb = boto3.resource(
            "dynamodb", region_name=config.region, endpoint_url=config.endpoint_url
        )
        self.table = self.dynamodb.Table(config.table_name)
        self.client = boto3.client(
            "dynamodb", region_name=config.region, endpoint_url=config.endpoint_url
        )
        self.serializer = TypeSerializer()

        self.logger.debug(
            "Store initialized", table_name=config.table_name, aws_region=config.region
        )

    def get_channel(self, name: str) -> Channel | None:
        try:
            response = self.table.get_item(
                Key={"pk": channel_key(name), "sk": CHANNEL_SK}
            )
        except ClientError as e:
            self.logger.error(
                f"Error reading channel {name}: {e}", channel_name=name, error=str(e)
            )
            raise StoreError(f"Failed to read channel {name}") from e

        record = response.get("Item")
        if record is None:
            return None
        return self._channel_from_record(record)

    def create_channel(self, channel: Channel) -> Channel:
        record = {
            "pk": channel_key(channel.name),
            "sk": CHANNEL_SK,
            "name": channel.name,
            "title": channel.title,
            "link": channel.link,
            "description": channel.description,
            "created_at": format_timestamp(datetime.now(UTC)),
        }
        if channel.cursor is not None:
            record["cursor"] = channel.cursor

        try:
            self.table.put_item(
                Item=record, ConditionExpression="attribute_not_exists(pk)"
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                self.logger.info(
                    "Channel created concurrently, using stored record",
                    channel_name=channel.name,
                )
                existing = self.get_channel(channel.name)
                if existing is not None:
                    return existing
            self.logger.error(
                f"Error creating channel {channel.name}: {e}",
                channel_name=channel.name,
                error=str(e),
            )
            raise StoreError(f"Failed to create channel {channel.name}") from e

        self.logger.info("Created channel", channel_name=channel.name)
        return self._channel_from_record(record)

    def update_cursor(self, channel_id: str, cursor: int) -> None:
        try:
            self.table.update_item(
                Key={"pk": channel_id, "sk": CHANNEL_SK},
                UpdateExpression="SET #cursor = :cursor",
                ConditionExpression=(
                    "attribute_exists(pk) AND "
                    "(attribute_not_exists(#cursor) OR #cursor <= :cursor)"
                ),
                ExpressionAttributeNames={"#cursor": "cursor"},
                ExpressionAttributeValues={":cursor": cursor},
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                self.logger.warning(
                    "Cursor not advanced, stored value is higher or channel is missing",
                    channel_id=channel_id,
                    cursor=cursor,
                )
                return
            self.logger.error(
                f"Error updating cursor for {channel_id}: {e}",
                channel_id=channel_id,
                error=str(e),
            )
            raise StoreError(f"Failed to update cursor for {channel_id}") from e

        self.logger.debug("Cursor updated", channel_id=channel_id, cursor=cursor)

    def list_recent_items(self, channel_id: str, limit: int) -> list[Item]:
        if limit <= 0:
            return []
        try:
            response = self.table.query(
                KeyConditionExpression=Key("pk").eq(channel_id)
                & Key("sk").begins_with(ITEM_PREFIX),
                ScanIndexForward=False,
                Limit=limit,
            )
        except ClientError as e:
            self.logger.error(
                f"Error listing items for {channel_id}: {e}",
                channel_id=channel_id,
                error=str(e),
            )
            raise StoreError(f"Failed to list items for {channel_id}") from e

        return [self._item_from_record(record) for record in response.get("Items", [])]

    def append_items(self, channel_id: str, items: list[Item]) -> list[Item]:
        if not items:
            return []

        transact_items = []
        for item in items:
            if item.created_at is None:
                raise ValueError(f"Item {item.link} has no creation timestamp")
            record = {
                "pk": channel_id,
                "sk": item_sort_key(item),
                "header": item.header,
                "content": item.content,
                "link": item.link,
                "created_at": format_timestamp(item.created_at),
                "remote_id": item.remote_id,
            }
            transact_items.append(
                {
                    "Put": {
                        "TableName": self.table_name,
                        "Item": {
                            key: self.serializer.serialize(value)
                            for key, value in record.items()
                        },
                    }
                }
            )

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            self.logger.error(
                f"Error appending {len(items)} items for {channel_id}: {e}",
                channel_id=channel_id,
                error=str(e),
            )
            raise StoreError(f"Failed to append items for {channel_id}") from e

        self.logger.info(
            f"Appended {len(items)} items", channel_id=channel_id, items_count=len(items)
        )
        return list(items)

    def _channel_from_record(self, record: dict) -> Channel:
        cursor = record.get("cursor")
        return Channel(
            name=record["name"],
            title=record.get("title", ""),
            link=record.get("link", ""),
            description=record.get("description", ""),
            cursor=int(cursor) if cursor is not None else None,
            channel_id=record["pk"],
        )

    def _item_from_record(self, record: dict) -> Item:
        return Item(
            header=record.get("header", ""),
            content=record["content"],
            link=record["link"],
            created_at=datetime.fromisoformat(record["created_at"]),
            remote_id=int(record["remote_id"]),
        )

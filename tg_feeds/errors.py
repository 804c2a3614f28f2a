"""Exception hierarchy for tg-feeds."""


class TgFeedsError(Exception):
    """Base class for all tg-feeds errors."""


class FetchError(TgFeedsError):
    """A read from t.me failed."""


class ChannelFetchError(FetchError):
    """The channel listing page could not be read. Fatal to a sync."""


class RemoteUnreachableError(ChannelFetchError):
    """The listing page request failed or returned a non-2xx status."""


class ChannelParseError(ChannelFetchError):
    """The listing page did not expose any message markers."""


class ItemFetchError(FetchError):
    """A single message could not be read. The walk skips it."""

    def __init__(self, message: str, item_id: int | None = None):
        super().__init__(message)
        self.item_id = item_id


class ItemUnavailableError(ItemFetchError):
    """t.me marked the message as removed or unavailable."""


class ItemParseError(ItemFetchError):
    """The message page had no single unambiguous timestamp."""


class StoreError(TgFeedsError):
    """A DynamoDB read or write failed."""


class ItemAppendError(StoreError):
    """Appending the walked items failed after the cursor was advanced."""

    def __init__(self, message: str, channel=None):
        super().__init__(message)
        self.channel = channel

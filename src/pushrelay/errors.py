"""Exceptions raised by pushrelay."""


class RelayError(Exception):
    """Base class for pushrelay errors."""


class ConfigError(RelayError):
    """Configuration file is unreadable, incomplete or invalid."""


class BusUnavailableError(RelayError):
    """The message bus could not be reached at startup."""


class SubscribeError(RelayError):
    """Subscribing to a topic failed.

    Fatal for the consumer bound to that topic only.
    """

    def __init__(self, topic: str, cause: Exception) -> None:
        self.topic = topic
        self.cause = cause
        super().__init__(f"subscribe to {topic!r} failed: {cause}")


class SlotReleaseError(RelayError):
    """An admission slot was released more than once."""

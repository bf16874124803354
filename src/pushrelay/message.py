"""Message received from the bus."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Message:
    """A payload that arrived on a topic.

    Attributes:
        topic: Channel the message was published on.
        payload: Raw message body.
    """

    topic: str
    payload: bytes

    @property
    def text(self) -> str:
        """Payload decoded as UTF-8, invalid bytes replaced."""
        return self.payload.decode("utf-8", errors="replace")

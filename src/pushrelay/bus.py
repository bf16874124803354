"""Redis pub/sub subscriber."""

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

import anyio
from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from pushrelay.errors import SubscribeError
from pushrelay.message import Message

DATA_FRAME_TYPES = ("message", "pmessage")
RECONNECT_DELAY = 0.1
MAX_RECONNECT_DELAY = 5.0


class Subscription(Protocol):
    """Feed of messages for one topic."""

    def __aiter__(self) -> AsyncIterator[Message]: ...

    async def close(self) -> None: ...


class Subscriber(Protocol):
    """Source of subscriptions."""

    async def subscribe(self, topic: str) -> Subscription: ...


class RedisSubscription:
    """Messages published on one Redis channel.

    A lost connection does not end the feed: the pub/sub connection is
    re-established, and the channel resubscribed, after a backoff that grows
    from ``reconnect_delay`` up to ``max_reconnect_delay``. Messages
    published while disconnected are lost. Iteration ends once the
    subscription is closed.
    """

    def __init__(
        self,
        topic: str,
        pubsub: PubSub,
        logger: logging.Logger | None = None,
        *,
        reconnect_delay: float = RECONNECT_DELAY,
        max_reconnect_delay: float = MAX_RECONNECT_DELAY,
    ) -> None:
        self.topic = topic
        self._pubsub = pubsub
        self._log = logger or logging.getLogger("pushrelay.bus")
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._closed = False

    def __aiter__(self) -> AsyncIterator[Message]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[Message]:
        delay = self._reconnect_delay
        while not self._closed:
            try:
                async for frame in self._pubsub.listen():
                    if self._closed:
                        return
                    delay = self._reconnect_delay
                    if frame.get("type") not in DATA_FRAME_TYPES:
                        continue
                    yield Message(topic=self.topic, payload=_as_bytes(frame["data"]))
                return
            except (RedisConnectionError, RedisTimeoutError) as e:
                if self._closed:
                    return
                self._log.warning(
                    "[%s] Connection to redis lost, resubscribing in %.1fs - %s",
                    self.topic,
                    delay,
                    e,
                )
            await anyio.sleep(delay)
            delay = min(delay * 2, self._max_reconnect_delay)

    async def close(self) -> None:
        """Unsubscribe and release the pub/sub connection."""
        if self._closed:
            return
        self._closed = True
        await self._pubsub.aclose()


class RedisSubscriber:
    """Subscribes to Redis channels on a shared client.

    Each subscription gets its own pub/sub connection from the client's
    pool. The subscriber never publishes.
    """

    def __init__(self, redis: Redis, logger: logging.Logger | None = None) -> None:
        self._redis = redis
        self._log = logger or logging.getLogger("pushrelay.bus")

    async def subscribe(self, topic: str) -> RedisSubscription:
        """Subscribe to a channel.

        Raises SubscribeError if the SUBSCRIBE command fails.
        """
        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(topic)
        except (RedisError, OSError) as e:
            await pubsub.aclose()
            raise SubscribeError(topic, e) from e

        self._log.debug("[%s] SUBSCRIBE sent", topic)
        return RedisSubscription(topic, pubsub, self._log)


def _as_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    return str(data).encode()

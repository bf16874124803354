"""Relay service: owns the shared clients and supervises consumers."""

import logging
from types import TracebackType

import anyio
import httpx
from redis.asyncio import Redis
from redis.exceptions import RedisError

from pushrelay.bus import RedisSubscriber, Subscriber
from pushrelay.clients import build_http_client, build_redis_client
from pushrelay.config import ChannelConfig, RelayConfig
from pushrelay.consumer import TopicConsumer
from pushrelay.errors import BusUnavailableError, SubscribeError


class RelayService:
    """Runs one TopicConsumer per configured channel.

    The Redis connection and the HTTP client are created once and shared
    by all consumers. Consumers fail independently: a consumer that cannot
    subscribe or that crashes is logged and the others keep running.

    Example:
        config = load_config("config.toml")
        async with RelayService(config, logger) as service:
            await service.run()
    """

    def __init__(
        self,
        config: RelayConfig,
        logger: logging.Logger | None = None,
        *,
        redis: Redis | None = None,
        http_client: httpx.AsyncClient | None = None,
        subscriber: Subscriber | None = None,
    ) -> None:
        self._config = config
        self._log = logger or logging.getLogger("pushrelay.service")
        if redis is None:
            redis = build_redis_client(config.database)
        if http_client is None:
            http_client = build_http_client(
                config.http_client,
                [channel.api_endpoint for channel in config.channels],
            )
        self._redis = redis
        self._http_client = http_client
        self._subscriber = subscriber or RedisSubscriber(redis, self._log)
        self._consumers: list[TopicConsumer] = []

    @property
    def consumers(self) -> list[TopicConsumer]:
        return list(self._consumers)

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client

    async def ping(self) -> None:
        """Check that the bus is reachable.

        Raises BusUnavailableError if it is not.
        """
        try:
            await self._redis.ping()
        except (RedisError, OSError) as e:
            self._log.critical(
                "Failed to connect redis %s - %s",
                self._config.database.redis_addr,
                e,
            )
            msg = f"redis at {self._config.database.redis_addr} is unreachable"
            raise BusUnavailableError(msg) from e

    def new_consumer(self, channel: ChannelConfig) -> TopicConsumer:
        """Create a consumer bound to the shared clients."""
        return TopicConsumer(channel, self._subscriber, self._http_client, self._log)

    def add_consumer(self, consumer: TopicConsumer) -> None:
        self._consumers.append(consumer)

    async def run(self) -> None:
        """Ping the bus, then run every consumer until all of them exit.

        Raises BusUnavailableError before any consumer is created if the bus
        is unreachable. In normal operation this never returns.
        """
        await self.ping()

        if not self._consumers:
            for channel in self._config.channels:
                self.add_consumer(self.new_consumer(channel))

        async with anyio.create_task_group() as tg:
            for consumer in self._consumers:
                tg.start_soon(
                    self._supervise, consumer, name=f"consume:{consumer.topic}"
                )

        self._log.warning("All consumers stopped")

    async def _supervise(self, consumer: TopicConsumer) -> None:
        try:
            await consumer.run()
        except SubscribeError as e:
            self._log.critical(
                "[%s] Subscribe channel failed, consumer stopped - %s",
                consumer.topic,
                e.cause,
            )
        except Exception:
            self._log.exception("[%s] Consumer crashed", consumer.topic)
        else:
            self._log.warning("[%s] Consumer stopped", consumer.topic)

    async def close(self) -> None:
        """Close the HTTP client and the bus connection."""
        await self._http_client.aclose()
        await self._redis.aclose()

    async def __aenter__(self) -> "RelayService":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

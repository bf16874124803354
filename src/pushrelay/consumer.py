"""Topic consumer: pulls messages off one topic and fans them out."""

import logging
from enum import Enum

import anyio
import httpx

from pushrelay.bus import Subscriber
from pushrelay.config import ChannelConfig
from pushrelay.delivery import deliver
from pushrelay.gate import AdmissionGate, Slot
from pushrelay.message import Message


class ConsumerState(Enum):
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    RECEIVING = "receiving"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


class TopicConsumer:
    """Relays every message of one topic to the topic's endpoint.

    Messages are pulled one at a time. Each message takes a slot from the
    consumer's AdmissionGate before its delivery is started, so at most
    ``channel.concurrency`` deliveries run at once. When the gate is full
    the pull loop waits, which leaves buffering to the bus client.

    Deliveries run concurrently with the pull loop, so they may complete in
    a different order than the messages were received.
    """

    def __init__(
        self,
        channel: ChannelConfig,
        subscriber: Subscriber,
        http_client: httpx.AsyncClient,
        logger: logging.Logger | None = None,
    ) -> None:
        self._channel = channel
        self._subscriber = subscriber
        self._http_client = http_client
        self._log = logger or logging.getLogger("pushrelay.consumer")
        self._gate = AdmissionGate(channel.concurrency)
        self._state = ConsumerState.IDLE

    @property
    def topic(self) -> str:
        return self._channel.name

    @property
    def endpoint(self) -> str:
        return self._channel.api_endpoint

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    @property
    def state(self) -> ConsumerState:
        return self._state

    async def run(self) -> None:
        """Subscribe and relay messages until the feed closes.

        Raises SubscribeError if the subscription cannot be established.
        Returns once the feed has closed and the deliveries already started
        have finished.
        """
        try:
            subscription = await self._subscriber.subscribe(self.topic)
        except BaseException:
            self._state = ConsumerState.CLOSED
            raise

        self._state = ConsumerState.SUBSCRIBED
        self._log.info("[%s] Subscribe channel success", self.topic)

        try:
            async with anyio.create_task_group() as tg:
                self._log.info("[%s] Start receiving message", self.topic)
                self._state = ConsumerState.RECEIVING
                async for message in subscription:
                    self._state = ConsumerState.DISPATCHING
                    slot = await self._gate.acquire()
                    tg.start_soon(
                        self._deliver, message, slot, name=f"deliver:{self.topic}"
                    )
                    self._state = ConsumerState.RECEIVING
                self._log.info("[%s] Subscription feed closed", self.topic)
        finally:
            self._state = ConsumerState.CLOSED
            with anyio.CancelScope(shield=True):
                await subscription.close()

    async def _deliver(self, message: Message, slot: Slot) -> None:
        # An unexpected error drops this message only; the slot is already
        # released by deliver().
        try:
            await deliver(self._http_client, message, self.endpoint, slot, self._log)
        except Exception:
            self._log.exception("[%s] delivery failed - %s", self.topic, message.text)

    def __repr__(self) -> str:
        return (
            f"TopicConsumer(topic={self.topic!r}, endpoint={self.endpoint!r}, "
            f"state={self._state.value})"
        )

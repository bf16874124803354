"""pushrelay: relay Redis pub/sub messages to HTTP endpoints."""

from pushrelay.bus import RedisSubscriber, RedisSubscription, Subscriber, Subscription
from pushrelay.config import (
    ChannelConfig,
    DatabaseConfig,
    HTTPClientConfig,
    LoggerConfig,
    RelayConfig,
    load_config,
)
from pushrelay.consumer import ConsumerState, TopicConsumer
from pushrelay.delivery import DeliveryOutcome, ResponseEnvelope, deliver
from pushrelay.errors import (
    BusUnavailableError,
    ConfigError,
    RelayError,
    SlotReleaseError,
    SubscribeError,
)
from pushrelay.gate import AdmissionGate, Slot
from pushrelay.message import Message
from pushrelay.service import RelayService

__version__ = "0.1.0"

__all__ = [
    "AdmissionGate",
    "BusUnavailableError",
    "ChannelConfig",
    "ConfigError",
    "ConsumerState",
    "DatabaseConfig",
    "DeliveryOutcome",
    "HTTPClientConfig",
    "LoggerConfig",
    "Message",
    "RedisSubscriber",
    "RedisSubscription",
    "RelayConfig",
    "RelayError",
    "RelayService",
    "ResponseEnvelope",
    "Slot",
    "SlotReleaseError",
    "SubscribeError",
    "Subscriber",
    "Subscription",
    "TopicConsumer",
    "deliver",
    "load_config",
]

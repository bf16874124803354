"""Delivery of one message to its downstream endpoint."""

import logging
from enum import Enum
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from pushrelay.gate import Slot
from pushrelay.message import Message

FORM_FIELD = "message"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
SUCCESS_CODE = 0


class DeliveryOutcome(Enum):
    """How a delivery ended."""

    SUCCESS = "success"
    TRANSPORT_ERROR = "transport_error"
    READ_ERROR = "read_error"
    PARSE_ERROR = "parse_error"
    REJECTED = "rejected"


class ResponseEnvelope(BaseModel):
    """Body returned by the downstream endpoint.

    ``code == 0`` means the message was accepted; any other value is a
    rejection explained by ``message``. Unknown fields are ignored and
    missing fields take their zero value.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    code: StrictInt = SUCCESS_CODE
    message: StrictStr = ""

    @property
    def accepted(self) -> bool:
        return self.code == SUCCESS_CODE


async def deliver(
    client: httpx.AsyncClient,
    message: Message,
    endpoint: str,
    slot: Slot,
    logger: logging.Logger | None = None,
) -> DeliveryOutcome:
    """POST a message to ``endpoint`` and classify the response.

    The raw payload bytes are sent form-encoded in a single ``message``
    field. Every failure is logged and reported through the returned
    outcome; the message is not retried. ``slot`` is released before
    returning, on every path.
    """
    log = logger or logging.getLogger("pushrelay.delivery")
    topic = message.topic

    with slot:
        log.debug("[%s] %s", topic, message.text)

        try:
            request = client.build_request(
                "POST",
                endpoint,
                content=urlencode({FORM_FIELD: message.payload}),
                headers={"Content-Type": FORM_CONTENT_TYPE},
            )
            response = await client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.error(
                "[%s] http post failed - %s - %s", topic, _describe(e), message.text
            )
            return DeliveryOutcome.TRANSPORT_ERROR

        try:
            try:
                body = await response.aread()
            except httpx.HTTPError as e:
                log.error(
                    "[%s] read response body failed (HTTP %d, %s) - %s",
                    topic,
                    response.status_code,
                    _describe(e),
                    message.text,
                )
                return DeliveryOutcome.READ_ERROR

            try:
                envelope = ResponseEnvelope.model_validate_json(body)
            except ValidationError as e:
                log.error(
                    "[%s] parse json response failed (HTTP %d) - %s %r",
                    topic,
                    response.status_code,
                    _first_error(e),
                    body,
                )
                return DeliveryOutcome.PARSE_ERROR
        finally:
            await response.aclose()

        if not envelope.accepted:
            log.error(
                "[%s] json response tells error - %s (code %d, HTTP %d) - %s",
                topic,
                envelope.message,
                envelope.code,
                response.status_code,
                message.text,
            )
            return DeliveryOutcome.REJECTED

        return DeliveryOutcome.SUCCESS


def _describe(exc: Exception) -> str:
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]

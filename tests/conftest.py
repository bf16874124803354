"""Shared fixtures for pushrelay tests."""

import logging

import pytest
from fakes import FakeSubscriber


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def logger() -> logging.Logger:
    log = logging.getLogger("tests.pushrelay")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def subscriber() -> FakeSubscriber:
    return FakeSubscriber()

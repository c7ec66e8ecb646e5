"""Shared fixtures for console.text client tests."""

from unittest.mock import AsyncMock

import pytest

from console_text.client import ConsoleTextClient
from console_text.core.config import ClientConfig
from console_text.models import ApiResponse


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    """Transport double whose send succeeds unless told otherwise."""
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=ApiResponse(success=True, message_id="msg_1"))
    return mock


@pytest.fixture
def make_client(clock, transport):
    """Build clients wired to the fake clock and transport.

    The drain task is not started; tests run cycles with ``process_queue``.
    """

    def _make(**fields) -> ConsoleTextClient:
        config = ClientConfig(
            api_key=fields.pop("api_key", "ct_test_key"),
            project_id=fields.pop("project_id", "test-project"),
            environment=fields.pop("environment", "test"),
            **fields,
        )
        return ConsoleTextClient(
            config,
            transport=transport,
            clock=clock,
            autostart=False,
        )

    return _make

"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from obsws import ConnectConfig, Connection, MockTransport


@pytest.fixture
def transport() -> MockTransport:
    """Mock transport with a successful handshake already queued."""
    mock = MockTransport()
    mock.script_handshake(obs_websocket_version="5.4.2")
    return mock


@pytest.fixture
def connect(transport: MockTransport) -> Callable[..., Awaitable[Connection]]:
    """Open a READY connection over the mock transport.

    Keyword arguments are passed to ConnectConfig.
    """

    async def _connect(**options: Any) -> Connection:
        return await Connection.open(ConnectConfig(**options), transport_factory=transport.factory)

    return _connect

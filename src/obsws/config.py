"""Connection configuration.

Values can be given explicitly or read from the environment:

    OBS_HOST             Host name (default: localhost)
    OBS_PORT             Port (default: 4455)
    OBS_PASSWORD         Password for the authentication challenge
    OBS_TLS              "1", "true" or "yes" to connect with wss://
    OBS_CONNECT_TIMEOUT  Seconds allowed for socket open + handshake
    OBS_VERIFY_VERSIONS  "1", "true" or "yes" to check the server build after connecting
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from .protocol.opcodes import EventSubscription

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 4455
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_BROADCAST_CAPACITY = 100

_TRUTHY = ("1", "true", "yes")


@dataclass(frozen=True)
class ConnectConfig:
    """Configuration consumed by Connection."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    password: str | None = None
    tls: bool = False

    # Covers socket open plus the whole handshake
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    # Default per-request timeout; None waits until reply or disconnect
    request_timeout: float | None = None

    event_subscriptions: EventSubscription = EventSubscription.ALL
    # Per-subscriber event buffer before the oldest events are dropped
    broadcast_capacity: int = DEFAULT_BROADCAST_CAPACITY
    # Check OBS Studio and obs-websocket versions with GetVersion after READY
    verify_versions: bool = False

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must not be empty")
        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.broadcast_capacity < 1:
            raise ValueError("broadcast_capacity must be at least 1")

    @property
    def url(self) -> str:
        scheme = "wss" if self.tls else "ws"
        return f"{scheme}://{self.host}:{self.port}"

    @classmethod
    def from_env(cls, **overrides: Any) -> ConnectConfig:
        """Build a config from OBS_* environment variables.

        Explicit keyword overrides win over the environment; overrides set
        to None are ignored so CLI options can be passed through unchanged.
        """
        values: dict[str, Any] = {}
        if host := os.getenv("OBS_HOST"):
            values["host"] = host
        if port := os.getenv("OBS_PORT"):
            try:
                values["port"] = int(port)
            except ValueError:
                raise ValueError(f"OBS_PORT is not an integer: {port!r}") from None
        if password := os.getenv("OBS_PASSWORD"):
            values["password"] = password
        if tls := os.getenv("OBS_TLS"):
            values["tls"] = tls.lower() in _TRUTHY
        if timeout := os.getenv("OBS_CONNECT_TIMEOUT"):
            try:
                values["connect_timeout"] = float(timeout)
            except ValueError:
                raise ValueError(f"OBS_CONNECT_TIMEOUT is not a number: {timeout!r}") from None
        if verify := os.getenv("OBS_VERIFY_VERSIONS"):
            values["verify_versions"] = verify.lower() in _TRUTHY

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise TypeError(f"Unknown config option: {key}")
            if value is not None:
                values[key] = value

        return cls(**values)

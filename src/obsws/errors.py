"""Exception hierarchy for the obs-websocket client.

Errors fall into a few families:
- ConnectError: anything that keeps a connection from reaching READY
- RequestError: a single request could not be completed
- Disconnected: the uniform failure delivered to every waiter at teardown
- MalformedFrame / SerializeError / DeserializeError: data problems
"""

from __future__ import annotations

from typing import Any


class ObsWebSocketError(Exception):
    """Base class for all errors raised by this package."""


# =============================================================================
# Connect errors
# =============================================================================


class ConnectError(ObsWebSocketError):
    """The connection attempt failed before reaching READY."""


class TransportConnectError(ConnectError):
    """The underlying socket could not be opened."""


class HandshakeError(ConnectError):
    """The remote sent something unexpected during the handshake."""


class HandshakeTimeout(ConnectError):
    """The handshake did not complete within the connect timeout."""


class AuthenticationRequired(ConnectError):
    """The remote asked for authentication but no password was configured."""


class AuthenticationFailed(ConnectError):
    """The remote rejected the authentication response."""


class VersionMismatch(ConnectError):
    """The remote's RPC version is outside the supported range."""

    def __init__(
        self,
        message: str,
        requested: int | None = None,
        negotiated: int | None = None,
    ) -> None:
        super().__init__(message)
        self.requested = requested
        self.negotiated = negotiated


class ServerVersionMismatch(VersionMismatch):
    """OBS Studio or obs-websocket reported an unsupported build version."""

    def __init__(self, message: str, component: str, found: str, required: str) -> None:
        super().__init__(message)
        self.component = component
        self.found = found
        self.required = required


# =============================================================================
# Request errors
# =============================================================================


class RequestError(ObsWebSocketError):
    """A request could not be completed."""


class NotConnected(RequestError):
    """The operation requires a READY connection."""


class RequestFailed(RequestError):
    """The remote answered a request with a non-success status."""

    def __init__(self, code: int, message: str | None = None, request_type: str | None = None):
        detail = f": {message}" if message else ""
        super().__init__(f"{request_type or 'request'} failed with status {int(code)}{detail}")
        self.code = code
        self.message = message
        self.request_type = request_type


class RequestCancelled(RequestError):
    """The caller abandoned the wait for a response."""


# =============================================================================
# Disconnection and data errors
# =============================================================================


class Disconnected(ObsWebSocketError):
    """The connection closed while the operation was outstanding.

    Every pending request receives its own instance at teardown. `code` and
    `reason` carry the remote's close frame when there was one.
    """

    def __init__(
        self,
        message: str = "connection closed",
        code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.reason = reason


class MalformedFrame(ObsWebSocketError):
    """An inbound frame could not be decoded."""

    def __init__(self, message: str, raw: Any = None) -> None:
        super().__init__(message)
        self.raw = raw


class SerializeError(ObsWebSocketError):
    """An outbound payload could not be serialized to JSON."""


class DeserializeError(ObsWebSocketError):
    """A response payload did not match the expected typed shape."""


class DuplicateRequestId(ObsWebSocketError):
    """A request id was registered twice on the same connection."""


class TransportClosed(Exception):
    """Raised by transports when the socket is closed.

    This is a transport-level signal; the connection converts it into
    Disconnected or a ConnectError subclass depending on the state.
    """

    def __init__(self, code: int | None = None, reason: str = "") -> None:
        super().__init__(f"transport closed (code={code}, reason={reason!r})")
        self.code = code
        self.reason = reason

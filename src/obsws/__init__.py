"""obsws - async client for the obs-websocket remote-control protocol.

Two layers:
- Connection: one session with the remote; request() and subscribe()
- ObsClient: typed request groups (general, scenes, streaming, recording)

Transports:
- WebSocketTransport: real socket over `websockets`
- MockTransport: in-memory, for testing without I/O
"""

from .broadcast import EventBroadcaster, Lagged, Subscription
from .client import GeneralAPI, ObsClient, RecordingAPI, ScenesAPI, StreamingAPI
from .config import ConnectConfig
from .connection import Connection, State
from .errors import (
    AuthenticationFailed,
    AuthenticationRequired,
    ConnectError,
    DeserializeError,
    Disconnected,
    DuplicateRequestId,
    HandshakeError,
    HandshakeTimeout,
    MalformedFrame,
    NotConnected,
    ObsWebSocketError,
    RequestCancelled,
    RequestError,
    RequestFailed,
    SerializeError,
    ServerVersionMismatch,
    TransportClosed,
    TransportConnectError,
    VersionMismatch,
)
from .handshake import (
    HandshakeNegotiator,
    HandshakeResult,
    check_server_versions,
    create_auth_response,
)
from .pending import PendingRequestTable
from .protocol import CloseCode, Event, EventSubscription, OpCode, StatusCode
from .transport import FrameTransport, MockTransport, WebSocketTransport

__all__ = [
    # Client
    "Connection",
    "State",
    "ObsClient",
    "GeneralAPI",
    "ScenesAPI",
    "StreamingAPI",
    "RecordingAPI",
    "ConnectConfig",
    # Events
    "Event",
    "EventBroadcaster",
    "EventSubscription",
    "Lagged",
    "Subscription",
    # Protocol internals
    "CloseCode",
    "HandshakeNegotiator",
    "HandshakeResult",
    "OpCode",
    "PendingRequestTable",
    "StatusCode",
    "create_auth_response",
    "check_server_versions",
    # Transports
    "FrameTransport",
    "MockTransport",
    "WebSocketTransport",
    # Errors
    "ObsWebSocketError",
    "ConnectError",
    "TransportConnectError",
    "HandshakeError",
    "HandshakeTimeout",
    "AuthenticationRequired",
    "AuthenticationFailed",
    "VersionMismatch",
    "ServerVersionMismatch",
    "RequestError",
    "NotConnected",
    "RequestFailed",
    "RequestCancelled",
    "Disconnected",
    "MalformedFrame",
    "SerializeError",
    "DeserializeError",
    "DuplicateRequestId",
    "TransportClosed",
]

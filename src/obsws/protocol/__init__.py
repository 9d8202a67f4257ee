"""Wire protocol: operation codes, message bodies and the frame codec."""

from .frames import (
    SERVER_STOPPING,
    Authentication,
    Event,
    EventMessage,
    Frame,
    Hello,
    Identified,
    Identify,
    Reidentify,
    RequestMessage,
    RequestResponse,
    RequestStatus,
    decode,
    encode,
    parse_body,
)
from .opcodes import CloseCode, EventSubscription, OpCode, StatusCode

__all__ = [
    "SERVER_STOPPING",
    "Authentication",
    "CloseCode",
    "Event",
    "EventMessage",
    "EventSubscription",
    "Frame",
    "Hello",
    "Identified",
    "Identify",
    "OpCode",
    "Reidentify",
    "RequestMessage",
    "RequestResponse",
    "RequestStatus",
    "StatusCode",
    "decode",
    "encode",
    "parse_body",
]

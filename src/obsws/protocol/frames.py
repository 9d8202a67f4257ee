"""Frame codec for the obs-websocket wire format.

Every frame is a JSON text message of the shape:

    {"op": 6, "d": {"requestType": "GetVersion", "requestId": "1"}}

The codec only deals with the envelope. Bodies are validated separately with
the pydantic models below, so a higher layer decides which body it expects.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticSerializationError

from ..errors import MalformedFrame, SerializeError
from .opcodes import EventSubscription, OpCode, StatusCode

# Plain-text notice some servers send right before closing the socket.
SERVER_STOPPING = "Server stopping"

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Frame:
    """A decoded frame: operation code plus its (unvalidated) data object."""

    op: OpCode
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_closing(self) -> bool:
        return self.op is OpCode.CLOSING


# =============================================================================
# Message bodies
# =============================================================================


class WireModel(BaseModel):
    """Base for frame bodies: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Authentication(WireModel):
    """Authentication challenge advertised in the greeting."""

    challenge: str
    salt: str


class Hello(WireModel):
    """First frame sent by the remote after the socket opens."""

    obs_web_socket_version: str = ""
    rpc_version: int
    authentication: Authentication | None = None


class Identify(WireModel):
    """Client reply to Hello."""

    rpc_version: int
    authentication: str | None = None
    event_subscriptions: int | None = None


class Identified(WireModel):
    """Remote acknowledgement of Identify or Reidentify."""

    negotiated_rpc_version: int


class Reidentify(WireModel):
    """Update session parameters after identification."""

    event_subscriptions: int | None = None


class RequestMessage(WireModel):
    """A single request sent by the client."""

    request_type: str
    request_id: str
    request_data: dict[str, Any] | None = None


class RequestStatus(WireModel):
    """Outcome of a request as reported by the remote."""

    result: bool
    code: int
    comment: str | None = None

    @property
    def status_code(self) -> StatusCode | int:
        return StatusCode.lookup(self.code)


class RequestResponse(WireModel):
    """Reply to a single request, correlated by request_id."""

    request_type: str = ""
    request_id: str
    request_status: RequestStatus
    response_data: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return self.request_status.result


class EventMessage(WireModel):
    """Body of an Event frame."""

    event_type: str
    event_intent: int
    event_data: dict[str, Any] | None = None


class Event(BaseModel):
    """A server notification as delivered to subscribers.

    Example:
        Event(event_type="CurrentProgramSceneChanged",
              intent=EventSubscription.SCENES,
              data={"sceneName": "Intro"})
    """

    model_config = ConfigDict(frozen=True)

    event_type: str
    intent: int = 0
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def category(self) -> EventSubscription:
        """Subscription category this event belongs to."""
        return EventSubscription(self.intent)

    @classmethod
    def from_message(cls, message: EventMessage) -> Event:
        return cls(
            event_type=message.event_type,
            intent=message.event_intent,
            data=message.event_data or {},
        )


# =============================================================================
# Codec
# =============================================================================


def encode(op: OpCode, payload: Mapping[str, Any] | BaseModel | None = None) -> str:
    """Serialize an operation and its payload into a text frame.

    Raises:
        SerializeError: If the operation cannot go on the wire or the payload
            is not JSON-serializable.
    """
    if op is OpCode.CLOSING:
        raise SerializeError("CLOSING is a synthetic operation and cannot be encoded")

    try:
        if isinstance(payload, BaseModel):
            data: dict[str, Any] = payload.model_dump(
                by_alias=True, exclude_none=True, mode="json"
            )
        else:
            data = dict(payload or {})
        return json.dumps({"op": int(op), "d": data})
    except (TypeError, ValueError, PydanticSerializationError) as e:
        raise SerializeError(f"Payload for op {op.name} is not JSON-serializable: {e}") from e


def decode(text: str | bytes) -> Frame:
    """Parse a text frame into its operation and data object.

    The plain-text server-stopping notice decodes to a synthetic CLOSING frame
    rather than a parse failure.

    Raises:
        MalformedFrame: If the frame is not a JSON object with a known
            integer `op` and an object-valued `d`.
    """
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedFrame("Frame is not valid UTF-8", raw=text) from e

    if text.strip() == SERVER_STOPPING:
        return Frame(OpCode.CLOSING)

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedFrame(f"Frame is not valid JSON: {e}", raw=text) from e

    if not isinstance(raw, dict):
        raise MalformedFrame("Frame is not a JSON object", raw=text)

    op = raw.get("op")
    if isinstance(op, bool) or not isinstance(op, int):
        raise MalformedFrame("Frame has no integer 'op' field", raw=text)
    try:
        opcode = OpCode(op)
    except ValueError:
        raise MalformedFrame(f"Unknown op code: {op}", raw=text) from None
    if opcode is OpCode.CLOSING:
        raise MalformedFrame(f"Unknown op code: {op}", raw=text)

    data = raw.get("d")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrame("Frame 'd' field is not an object", raw=text)

    return Frame(opcode, data)


def parse_body(frame: Frame, model: type[M]) -> M:
    """Validate a frame's data object against a body model.

    Raises:
        MalformedFrame: If the data does not match the model.
    """
    try:
        return model.model_validate(frame.data)
    except ValidationError as e:
        raise MalformedFrame(
            f"Invalid {model.__name__} body in op {frame.op.name}: {e.error_count()} error(s)",
            raw=frame.data,
        ) from e

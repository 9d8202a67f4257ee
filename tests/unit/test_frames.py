"""Unit tests for the frame codec.

Tests cover:
- Encoding bodies with camelCase aliases
- Decoding the envelope and rejecting malformed frames
- The plain-text server-stopping notice
- Body validation with parse_body
"""

from __future__ import annotations

import json

import pytest

from obsws.errors import MalformedFrame, SerializeError
from obsws.protocol import (
    Event,
    EventMessage,
    EventSubscription,
    Frame,
    Identify,
    OpCode,
    RequestResponse,
    StatusCode,
    decode,
    encode,
    parse_body,
)

# =============================================================================
# encode
# =============================================================================


class TestEncode:
    """Tests for encode()."""

    def test_encode_model_uses_camel_case(self) -> None:
        """Pydantic bodies are written with their wire names."""
        text = encode(OpCode.IDENTIFY, Identify(rpc_version=1, event_subscriptions=33))

        assert json.loads(text) == {"op": 1, "d": {"rpcVersion": 1, "eventSubscriptions": 33}}

    def test_encode_model_omits_unset_optionals(self) -> None:
        """None fields are left out rather than sent as null."""
        data = json.loads(encode(OpCode.IDENTIFY, Identify(rpc_version=1)))["d"]

        assert "authentication" not in data
        assert "eventSubscriptions" not in data

    def test_encode_mapping(self) -> None:
        """Plain mappings are written as-is."""
        text = encode(OpCode.REQUEST, {"requestType": "GetVersion", "requestId": "7"})

        assert json.loads(text) == {
            "op": 6,
            "d": {"requestType": "GetVersion", "requestId": "7"},
        }

    def test_encode_without_payload(self) -> None:
        """A missing payload becomes an empty data object."""
        assert json.loads(encode(OpCode.REIDENTIFY)) == {"op": 3, "d": {}}

    def test_encode_closing_rejected(self) -> None:
        """The synthetic CLOSING operation never goes on the wire."""
        with pytest.raises(SerializeError):
            encode(OpCode.CLOSING)

    def test_encode_unserializable_payload(self) -> None:
        """Values json cannot represent raise SerializeError."""
        with pytest.raises(SerializeError, match="REQUEST"):
            encode(OpCode.REQUEST, {"requestData": {"value": object()}})


# =============================================================================
# decode
# =============================================================================


class TestDecode:
    """Tests for decode()."""

    def test_decode_request_response(self) -> None:
        """A well-formed frame decodes to its op and data."""
        frame = decode('{"op": 7, "d": {"requestId": "1"}}')

        assert frame == Frame(OpCode.REQUEST_RESPONSE, {"requestId": "1"})

    def test_decode_bytes(self) -> None:
        """UTF-8 bytes are accepted."""
        frame = decode('{"op": 5, "d": {"eventType": "ExitStarted"}}'.encode())

        assert frame.op is OpCode.EVENT
        assert frame.data["eventType"] == "ExitStarted"

    def test_decode_missing_data_is_empty(self) -> None:
        """Frames without a `d` field (or with null) get an empty data object."""
        assert decode('{"op": 2}').data == {}
        assert decode('{"op": 2, "d": null}').data == {}

    def test_decode_server_stopping(self) -> None:
        """The plain-text notice becomes a synthetic CLOSING frame."""
        frame = decode("Server stopping")

        assert frame.op is OpCode.CLOSING
        assert frame.is_closing

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[1, 2, 3]",
            '{"d": {}}',
            '{"op": "7", "d": {}}',
            '{"op": true, "d": {}}',
            '{"op": 4, "d": {}}',
            '{"op": -1, "d": {}}',
            '{"op": 7, "d": [1]}',
        ],
    )
    def test_decode_malformed(self, text: str) -> None:
        """Anything but a JSON object with a known op and object data is rejected."""
        with pytest.raises(MalformedFrame):
            decode(text)

    def test_decode_invalid_utf8(self) -> None:
        """Undecodable bytes are rejected and kept on the error."""
        with pytest.raises(MalformedFrame) as exc_info:
            decode(b"\xff\xfe")

        assert exc_info.value.raw == b"\xff\xfe"


# =============================================================================
# Bodies
# =============================================================================


class TestBodies:
    """Tests for body models and parse_body()."""

    def test_parse_request_response(self) -> None:
        """RequestResponse bodies expose status helpers."""
        frame = decode(
            json.dumps(
                {
                    "op": 7,
                    "d": {
                        "requestType": "GetStats",
                        "requestId": "3",
                        "requestStatus": {"result": False, "code": 207, "comment": "busy"},
                    },
                }
            )
        )

        response = parse_body(frame, RequestResponse)

        assert response.request_id == "3"
        assert response.ok is False
        assert response.request_status.status_code is StatusCode.NOT_READY
        assert response.response_data is None

    def test_unknown_status_code_kept_as_int(self) -> None:
        """Codes missing from StatusCode are preserved as plain integers."""
        assert StatusCode.lookup(999) == 999
        assert StatusCode.lookup(100) is StatusCode.SUCCESS

    def test_parse_body_invalid(self) -> None:
        """Bodies missing required fields raise MalformedFrame."""
        frame = Frame(OpCode.REQUEST_RESPONSE, {"requestType": "GetStats"})

        with pytest.raises(MalformedFrame, match="RequestResponse"):
            parse_body(frame, RequestResponse)

    def test_event_from_message(self) -> None:
        """Events carry type, intent and data."""
        message = parse_body(
            Frame(
                OpCode.EVENT,
                {
                    "eventType": "CurrentProgramSceneChanged",
                    "eventIntent": 4,
                    "eventData": {"sceneName": "Intro"},
                },
            ),
            EventMessage,
        )

        event = Event.from_message(message)

        assert event.event_type == "CurrentProgramSceneChanged"
        assert event.category is EventSubscription.SCENES
        assert event.data == {"sceneName": "Intro"}

    def test_event_without_data(self) -> None:
        """Missing event data becomes an empty dict."""
        message = EventMessage(event_type="ExitStarted", event_intent=1)

        assert Event.from_message(message).data == {}


class TestEventSubscription:
    """Tests for the subscription bitmask."""

    def test_all_excludes_high_volume(self) -> None:
        """ALL covers the regular categories only."""
        assert EventSubscription.SCENES in EventSubscription.ALL
        assert EventSubscription.INPUT_VOLUME_METERS not in EventSubscription.ALL

    def test_from_names(self) -> None:
        """Category names combine into a mask."""
        mask = EventSubscription.from_names(["scenes", "Scene-Items"])

        assert mask == EventSubscription.SCENES | EventSubscription.SCENE_ITEMS

    def test_from_names_unknown(self) -> None:
        """Unknown names raise ValueError."""
        with pytest.raises(ValueError, match="bogus"):
            EventSubscription.from_names(["bogus"])

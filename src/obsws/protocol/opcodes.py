"""Numeric vocabulary of the obs-websocket protocol.

Operation codes, event subscription bits, request status codes and the
close codes the remote uses when it terminates a session.
"""

from __future__ import annotations

from enum import IntEnum, IntFlag


class OpCode(IntEnum):
    """Frame operation codes (the `op` field of every frame)."""

    HELLO = 0  # remote -> client: greeting, version and optional challenge
    IDENTIFY = 1  # client -> remote: handshake response
    IDENTIFIED = 2  # remote -> client: handshake (or re-identify) acknowledged
    REIDENTIFY = 3  # client -> remote: update session parameters
    EVENT = 5  # remote -> client: notification
    REQUEST = 6  # client -> remote: single request
    REQUEST_RESPONSE = 7  # remote -> client: reply to a request
    REQUEST_BATCH = 8  # client -> remote: not used by this client
    REQUEST_BATCH_RESPONSE = 9  # remote -> client: not used by this client

    # Never on the wire. Produced by the codec for the plain-text close notice.
    CLOSING = -1


class EventSubscription(IntFlag):
    """Bitmask of event categories a session wants delivered.

    ALL covers every regular category. The high-volume categories must be
    requested explicitly.
    """

    NONE = 0
    GENERAL = 1 << 0
    CONFIG = 1 << 1
    SCENES = 1 << 2
    INPUTS = 1 << 3
    TRANSITIONS = 1 << 4
    FILTERS = 1 << 5
    OUTPUTS = 1 << 6
    SCENE_ITEMS = 1 << 7
    MEDIA_INPUTS = 1 << 8
    VENDORS = 1 << 9
    UI = 1 << 10

    ALL = (
        GENERAL
        | CONFIG
        | SCENES
        | INPUTS
        | TRANSITIONS
        | FILTERS
        | OUTPUTS
        | SCENE_ITEMS
        | MEDIA_INPUTS
        | VENDORS
        | UI
    )

    # High-volume events
    INPUT_VOLUME_METERS = 1 << 16
    INPUT_ACTIVE_STATE_CHANGED = 1 << 17
    INPUT_SHOW_STATE_CHANGED = 1 << 18
    SCENE_ITEM_TRANSFORM_CHANGED = 1 << 19

    @classmethod
    def from_names(cls, names: list[str] | tuple[str, ...]) -> EventSubscription:
        """Build a mask from category names such as ``["scenes", "inputs"]``."""
        mask = cls.NONE
        for name in names:
            key = name.strip().upper().replace("-", "_")
            try:
                mask |= cls[key]
            except KeyError:
                raise ValueError(f"Unknown event category: {name}") from None
        return mask


class StatusCode(IntEnum):
    """Request status codes reported in RequestResponse frames."""

    UNKNOWN = 0
    NO_ERROR = 10
    SUCCESS = 100

    MISSING_REQUEST_TYPE = 203
    UNKNOWN_REQUEST_TYPE = 204
    GENERIC_ERROR = 205
    UNSUPPORTED_REQUEST_BATCH_EXECUTION_TYPE = 206
    NOT_READY = 207

    MISSING_REQUEST_FIELD = 300
    MISSING_REQUEST_DATA = 301

    INVALID_REQUEST_FIELD = 400
    INVALID_REQUEST_FIELD_TYPE = 401
    REQUEST_FIELD_OUT_OF_RANGE = 402
    REQUEST_FIELD_EMPTY = 403
    TOO_MANY_REQUEST_FIELDS = 404

    OUTPUT_RUNNING = 500
    OUTPUT_NOT_RUNNING = 501
    OUTPUT_PAUSED = 502
    OUTPUT_NOT_PAUSED = 503
    OUTPUT_DISABLED = 504
    STUDIO_MODE_ACTIVE = 505
    STUDIO_MODE_NOT_ACTIVE = 506

    RESOURCE_NOT_FOUND = 600
    RESOURCE_ALREADY_EXISTS = 601
    INVALID_RESOURCE_TYPE = 602
    NOT_ENOUGH_RESOURCES = 603
    INVALID_RESOURCE_STATE = 604
    INVALID_INPUT_KIND = 605
    RESOURCE_NOT_CONFIGURABLE = 606
    INVALID_FILTER_KIND = 607

    RESOURCE_CREATION_FAILED = 700
    RESOURCE_ACTION_FAILED = 701
    REQUEST_PROCESSING_FAILED = 702
    CANNOT_ACT = 703

    @classmethod
    def lookup(cls, code: int) -> StatusCode | int:
        """Map a raw code to a member, keeping unknown codes as plain ints."""
        try:
            return cls(code)
        except ValueError:
            return code


class CloseCode(IntEnum):
    """Close codes the remote sends when it terminates the socket."""

    DONT_CLOSE = 0
    UNKNOWN_REASON = 4000
    MESSAGE_DECODE_ERROR = 4002
    MISSING_DATA_FIELD = 4003
    INVALID_DATA_FIELD_TYPE = 4004
    INVALID_DATA_FIELD_VALUE = 4005
    UNKNOWN_OP_CODE = 4006
    NOT_IDENTIFIED = 4007
    ALREADY_IDENTIFIED = 4008
    AUTHENTICATION_FAILED = 4009
    UNSUPPORTED_RPC_VERSION = 4010
    SESSION_INVALIDATED = 4011
    UNSUPPORTED_FEATURE = 4012

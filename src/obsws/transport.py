"""Socket transports that carry text frames.

Architecture:
- FrameTransport is the PROTOCOL the connection talks to
- WebSocketTransport is the real implementation over `websockets`
- MockTransport is an in-memory implementation for tests

A transport never interprets frames. It moves text in both directions and
raises TransportClosed once the socket is gone.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .config import ConnectConfig
from .errors import TransportClosed, TransportConnectError
from .protocol.frames import Frame, decode
from .protocol.opcodes import OpCode, StatusCode

logger = logging.getLogger(__name__)

TransportFactory = Callable[[ConnectConfig], Awaitable["FrameTransport"]]


@runtime_checkable
class FrameTransport(Protocol):
    """Protocol for frame transports.

    - send: write one text frame (callers serialize access)
    - recv: read the next frame; raises TransportClosed after close
    - close: close the socket; safe to call more than once
    """

    async def send(self, text: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self) -> None: ...


class WebSocketTransport:
    """Transport over a WebSocket connection (ws:// or wss://)."""

    def __init__(self, websocket: Any):
        self._ws = websocket  # websockets ClientConnection

    @classmethod
    async def open(cls, config: ConnectConfig) -> WebSocketTransport:
        """Open a WebSocket to the configured host and port.

        Raises:
            TransportConnectError: If the socket or the HTTP upgrade fails
        """
        logger.debug(f"Opening WebSocket to {config.url}")
        try:
            websocket = await websockets.connect(
                config.url,
                open_timeout=config.connect_timeout,
                max_size=None,
                ping_interval=30,
                ping_timeout=10,
            )
        except (OSError, WebSocketException) as e:
            raise TransportConnectError(f"Failed to connect to {config.url}: {e}") from e

        return cls(websocket)

    async def send(self, text: str) -> None:
        try:
            await self._ws.send(text)
        except ConnectionClosed as e:
            raise _closed_from(e) from e

    async def recv(self) -> str | bytes:
        try:
            return await self._ws.recv()
        except ConnectionClosed as e:
            raise _closed_from(e) from e

    async def close(self) -> None:
        await self._ws.close()


def _closed_from(exc: ConnectionClosed) -> TransportClosed:
    """Convert a websockets ConnectionClosed into TransportClosed."""
    rcvd = exc.rcvd
    if rcvd is None:
        return TransportClosed(None, "")
    return TransportClosed(rcvd.code, rcvd.reason)


class MockTransport:
    """In-memory transport for testing.

    Records every frame the client sends and lets tests inject inbound
    frames or a remote close. No actual I/O.

    Usage:
        transport = MockTransport()
        transport.script_handshake()
        transport.set_response("GetVersion", {"obsVersion": "30.0.0"})

        conn = Connection(ConnectConfig(), transport_factory=transport.factory)
        await conn.connect()
        assert transport.sent_frames[0].op == OpCode.IDENTIFY
    """

    def __init__(self, *, acknowledge_reidentify: bool = True) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.acknowledge_reidentify = acknowledge_reidentify
        self._inbound: asyncio.Queue[str | bytes | TransportClosed] = asyncio.Queue()
        self._close_error: TransportClosed | None = None
        self._responses: dict[str, dict[str, Any]] = {}
        self._negotiated_rpc_version = 1

    @property
    def sent_frames(self) -> list[Frame]:
        """Decoded copies of every frame sent so far."""
        return [decode(text) for text in self.sent]

    async def factory(self, config: ConnectConfig) -> MockTransport:
        """Transport factory handing out this instance."""
        return self

    # -- scripting ------------------------------------------------------------

    def inject(self, text: str | bytes) -> None:
        """Queue a raw inbound frame."""
        self._inbound.put_nowait(text)

    def inject_frame(self, op: OpCode, data: dict[str, Any] | None = None) -> None:
        """Queue an inbound frame built from an op code and data object."""
        self.inject(json.dumps({"op": int(op), "d": data or {}}))

    def inject_close(self, code: int | None = 1000, reason: str = "") -> None:
        """Simulate the remote closing the socket."""
        self._inbound.put_nowait(TransportClosed(code, reason))

    def script_handshake(
        self,
        *,
        rpc_version: int = 1,
        negotiated_rpc_version: int | None = None,
        challenge: str | None = None,
        salt: str | None = None,
        obs_websocket_version: str = "5.0.0",
    ) -> None:
        """Queue a Hello and, unless overridden, the matching Identified."""
        hello: dict[str, Any] = {
            "obsWebSocketVersion": obs_websocket_version,
            "rpcVersion": rpc_version,
        }
        if challenge is not None and salt is not None:
            hello["authentication"] = {"challenge": challenge, "salt": salt}
        self.inject_frame(OpCode.HELLO, hello)

        negotiated = rpc_version if negotiated_rpc_version is None else negotiated_rpc_version
        self._negotiated_rpc_version = negotiated
        self.inject_frame(OpCode.IDENTIFIED, {"negotiatedRpcVersion": negotiated})

    def set_response(
        self,
        request_type: str,
        data: dict[str, Any] | None = None,
        *,
        code: int = StatusCode.SUCCESS,
        comment: str | None = None,
    ) -> None:
        """Answer every future request of this type with a canned response."""
        status: dict[str, Any] = {"result": code == StatusCode.SUCCESS, "code": int(code)}
        if comment is not None:
            status["comment"] = comment
        self._responses[request_type] = {"requestStatus": status, "responseData": data}

    def respond(
        self,
        request_id: str,
        data: dict[str, Any] | None = None,
        *,
        request_type: str = "",
        code: int = StatusCode.SUCCESS,
        comment: str | None = None,
    ) -> None:
        """Queue a RequestResponse for a specific request id."""
        status: dict[str, Any] = {"result": code == StatusCode.SUCCESS, "code": int(code)}
        if comment is not None:
            status["comment"] = comment
        body: dict[str, Any] = {
            "requestType": request_type,
            "requestId": request_id,
            "requestStatus": status,
        }
        if data is not None:
            body["responseData"] = data
        self.inject_frame(OpCode.REQUEST_RESPONSE, body)

    def emit_event(self, event_type: str, intent: int, data: dict[str, Any] | None = None) -> None:
        """Queue an Event frame."""
        body: dict[str, Any] = {"eventType": event_type, "eventIntent": int(intent)}
        if data is not None:
            body["eventData"] = data
        self.inject_frame(OpCode.EVENT, body)

    async def wait_for_sent(self, count: int, timeout: float = 1.0) -> list[Frame]:
        """Wait until at least `count` frames were sent, then return them decoded."""

        async def _poll() -> None:
            while len(self.sent) < count:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(_poll(), timeout=timeout)
        return self.sent_frames

    # -- FrameTransport -------------------------------------------------------

    async def send(self, text: str) -> None:
        if self.closed:
            raise self._close_error or TransportClosed(1000, "closed")
        self.sent.append(text)
        self._auto_reply(decode(text))

    async def recv(self) -> str | bytes:
        if self._close_error is not None:
            raise self._close_error
        item = await self._inbound.get()
        if isinstance(item, TransportClosed):
            self._close_error = item
            self.closed = True
            raise item
        return item

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._inbound.put_nowait(TransportClosed(1000, "client closed"))

    def _auto_reply(self, frame: Frame) -> None:
        if frame.op is OpCode.REQUEST:
            request_type = frame.data.get("requestType", "")
            canned = self._responses.get(request_type)
            if canned is not None:
                body = {
                    "requestType": request_type,
                    "requestId": frame.data.get("requestId"),
                    **canned,
                }
                if body.get("responseData") is None:
                    body.pop("responseData")
                self.inject_frame(OpCode.REQUEST_RESPONSE, body)
        elif frame.op is OpCode.REIDENTIFY and self.acknowledge_reidentify:
            self.inject_frame(
                OpCode.IDENTIFIED, {"negotiatedRpcVersion": self._negotiated_rpc_version}
            )

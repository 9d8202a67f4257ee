"""Connection session: state machine, dispatch loop and request primitive.

Lifecycle:

    DISCONNECTED --connect()--> CONNECTING --Identify sent--> AWAITING_IDENTIFY_ACK
        --Identified--> READY --socket closed | disconnect()--> DISCONNECTED

A single dispatch task is the only reader of the socket while READY. It
routes replies to the pending request table and notifications to the event
broadcaster. Any number of tasks may call request() or subscribe()
concurrently; writes go through one lock so frames never interleave.

When the socket goes away every pending request fails with Disconnected and
every subscription ends. Nothing reconnects automatically.

Usage:
    async with Connection(ConnectConfig(password="secret")) as conn:
        version = await conn.request("GetVersion")
        async with conn.subscribe() as events:
            async for event in events:
                print(event.event_type)
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from collections import deque
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import ValidationError

from .broadcast import EventBroadcaster, Subscription
from .config import ConnectConfig
from .errors import (
    ConnectError,
    Disconnected,
    HandshakeError,
    HandshakeTimeout,
    MalformedFrame,
    NotConnected,
    RequestCancelled,
    RequestError,
    RequestFailed,
    TransportClosed,
)
from .handshake import HandshakeNegotiator, HandshakeResult, check_server_versions
from .pending import PendingRequestTable
from .protocol.frames import (
    Event,
    EventMessage,
    Frame,
    Identified,
    Reidentify,
    RequestMessage,
    RequestResponse,
    decode,
    encode,
    parse_body,
)
from .protocol.opcodes import EventSubscription, OpCode
from .responses import Version
from .transport import FrameTransport, TransportFactory, WebSocketTransport

logger = logging.getLogger(__name__)


class State(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_IDENTIFY_ACK = "awaiting_identify_ack"
    READY = "ready"


class Connection:
    """One session with an obs-websocket server.

    All state lives on the instance; independent connections never share
    anything.
    """

    def __init__(
        self,
        config: ConnectConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ):
        self.config = config or ConnectConfig()
        self._transport_factory = transport_factory or WebSocketTransport.open
        self._state = State.DISCONNECTED
        self._transport: FrameTransport | None = None
        self._pending: PendingRequestTable | None = None
        self._broadcaster: EventBroadcaster | None = None
        self._reidentify_waiters: deque[asyncio.Future[Identified]] = deque()
        self._dispatch_task: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._ids = itertools.count(1)  # unique for the lifetime of this object
        self._event_subscriptions = self.config.event_subscriptions
        self._handshake: HandshakeResult | None = None
        self._closing = False

        self.close_code: int | None = None
        self.close_reason: str | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> State:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is State.READY

    @property
    def rpc_version(self) -> int | None:
        """RPC version negotiated during the last successful handshake."""
        return self._handshake.rpc_version if self._handshake else None

    @property
    def obs_websocket_version(self) -> str | None:
        return self._handshake.obs_websocket_version if self._handshake else None

    @property
    def event_subscriptions(self) -> EventSubscription:
        return self._event_subscriptions

    @property
    def pending_count(self) -> int:
        return len(self._pending) if self._pending is not None else 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @classmethod
    async def open(
        cls,
        config: ConnectConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> Connection:
        """Create a connection and bring it to READY."""
        connection = cls(config, transport_factory=transport_factory)
        await connection.connect()
        return connection

    async def connect(self) -> None:
        """Open the socket and run the handshake.

        Raises:
            ConnectError: If the connection is not DISCONNECTED, the socket
                cannot be opened, or the handshake fails or times out.
            ServerVersionMismatch: If verify_versions is set and the server
                build is unsupported. The connection is closed first.
        """
        if self._state is not State.DISCONNECTED:
            raise ConnectError(f"Cannot connect while {self._state.value}")

        self._state = State.CONNECTING
        self._closing = False
        self.close_code = None
        self.close_reason = None
        logger.info(f"Connecting to {self.config.url}")

        try:
            transport, result = await asyncio.wait_for(
                self._open_and_handshake(),
                timeout=self.config.connect_timeout,
            )
            if self._closing:
                raise HandshakeError("Connection attempt aborted by disconnect()")
        except TimeoutError as e:
            await self._abort_connect()
            raise HandshakeTimeout(
                f"Handshake with {self.config.url} did not complete "
                f"within {self.config.connect_timeout}s"
            ) from e
        except BaseException:
            await self._abort_connect()
            raise

        pending = PendingRequestTable()
        broadcaster = EventBroadcaster(self.config.broadcast_capacity)
        self._handshake = result
        self._pending = pending
        self._broadcaster = broadcaster
        self._reidentify_waiters = deque()
        self._state = State.READY
        self._dispatch_task = asyncio.create_task(
            self._dispatch_loop(transport, pending, broadcaster), name="obsws-dispatch"
        )

        logger.info(
            f"Connected to {self.config.url} "
            f"(obs-websocket {result.obs_websocket_version or '?'}, rpc {result.rpc_version})"
        )

        if self.config.verify_versions:
            try:
                await self._verify_versions()
            except BaseException:
                await self.disconnect()
                raise

    async def disconnect(self) -> None:
        """Close the connection. Idempotent and safe to call in any state.

        Pending requests fail with Disconnected and subscriptions end, exactly
        as if the remote had closed the socket.
        """
        self._closing = True

        if self._state in (State.CONNECTING, State.AWAITING_IDENTIFY_ACK):
            # connect() owns cleanup; closing the socket makes the handshake fail
            if self._transport is not None:
                await self._close_transport(self._transport)
            return

        task = self._dispatch_task
        if self._transport is not None:
            await self._close_transport(self._transport)
        if task is not None and task is not asyncio.current_task():
            await asyncio.shield(task)

    async def __aenter__(self) -> Connection:
        if self._state is State.DISCONNECTED:
            await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    async def _open_and_handshake(self) -> tuple[FrameTransport, HandshakeResult]:
        transport = await self._transport_factory(self.config)
        self._transport = transport
        if self._closing:
            raise HandshakeError("Connection attempt aborted by disconnect()")

        negotiator = HandshakeNegotiator(
            transport,
            password=self.config.password,
            event_subscriptions=self._event_subscriptions,
        )
        hello = await negotiator.receive_greeting()
        await negotiator.send_identify(hello)
        self._state = State.AWAITING_IDENTIFY_ACK
        identified = await negotiator.receive_identified()

        return transport, HandshakeResult(
            rpc_version=identified.negotiated_rpc_version,
            obs_websocket_version=hello.obs_web_socket_version,
            authenticated=hello.authentication is not None,
        )

    async def _verify_versions(self) -> None:
        """Check the server build against the minimum supported versions.

        Raises:
            ServerVersionMismatch: If OBS Studio or obs-websocket is too old or too new
            HandshakeError: If GetVersion could not be answered
        """
        try:
            payload = await self.request("GetVersion", timeout=self.config.connect_timeout)
            version = Version.model_validate(payload)
        except ValidationError as e:
            raise HandshakeError("Invalid GetVersion reply while verifying versions") from e
        except (RequestError, Disconnected) as e:
            raise HandshakeError(f"Could not verify server versions: {e}") from e

        check_server_versions(version.obs_version, version.obs_web_socket_version)
        logger.debug(
            f"Server versions OK (OBS {version.obs_version}, "
            f"obs-websocket {version.obs_web_socket_version})"
        )

    async def _abort_connect(self) -> None:
        self._state = State.DISCONNECTED
        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_transport(transport)

    @staticmethod
    async def _close_transport(transport: FrameTransport) -> None:
        try:
            await transport.close()
        except (OSError, TransportClosed) as e:
            logger.debug(f"Error while closing transport: {e}")

    # =========================================================================
    # Requests and subscriptions
    # =========================================================================

    async def request(
        self,
        request_type: str,
        data: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a request and wait for its matching response.

        Args:
            request_type: Remote command name, e.g. "GetVersion"
            data: Optional request payload
            timeout: Seconds to wait for the reply (default: config.request_timeout)

        Returns:
            The response payload ({} when the remote sent none)

        Raises:
            NotConnected: If the connection is not READY
            RequestFailed: If the remote reported a non-success status
            RequestCancelled: If the timeout expired first
            Disconnected: If the connection closed before the reply arrived
        """
        pending = self._require_ready()

        request_id = str(next(self._ids))
        message = RequestMessage(
            request_type=request_type,
            request_id=request_id,
            request_data=dict(data) if data is not None else None,
        )
        text = encode(OpCode.REQUEST, message)

        slot = pending.register(request_id)
        try:
            await self._send(text)
            wait = timeout if timeout is not None else self.config.request_timeout
            try:
                response: RequestResponse = await asyncio.wait_for(slot, timeout=wait)
            except TimeoutError as e:
                raise RequestCancelled(f"{request_type} timed out after {wait}s") from e
        finally:
            # A slot failed at teardown while the send was blocked is never awaited
            if slot.done() and not slot.cancelled():
                slot.exception()
            # No-op when already resolved; removes the slot if the caller gave up
            pending.cancel(request_id)

        if not response.ok:
            status = response.request_status
            raise RequestFailed(status.status_code, status.comment, request_type)
        return response.response_data or {}

    def subscribe(self) -> Subscription:
        """Attach a new event subscription.

        Raises:
            NotConnected: If the connection is not READY
        """
        if self._state is not State.READY or self._broadcaster is None:
            raise NotConnected(f"Cannot subscribe while {self._state.value}")
        return self._broadcaster.subscribe()

    async def set_event_subscriptions(
        self,
        subscriptions: EventSubscription,
        *,
        timeout: float | None = None,
    ) -> None:
        """Change which event categories the remote sends.

        Local filtering switches to the new mask immediately; the call returns
        once the remote acknowledged the change.
        """
        self._require_ready()
        mask = EventSubscription(subscriptions)
        text = encode(OpCode.REIDENTIFY, Reidentify(event_subscriptions=int(mask)))

        waiter: asyncio.Future[Identified] = asyncio.get_running_loop().create_future()
        # Teardown swaps in a fresh queue, so remember the one this waiter joined
        waiters = self._reidentify_waiters
        waiters.append(waiter)
        self._event_subscriptions = mask
        try:
            await self._send(text)
        except BaseException:
            if waiter in waiters:
                waiters.remove(waiter)
            if waiter.done() and not waiter.cancelled():
                waiter.exception()
            raise

        # A waiter that times out stays queued so its late ack is consumed in order
        wait = timeout if timeout is not None else self.config.request_timeout
        try:
            await asyncio.wait_for(waiter, timeout=wait)
        except TimeoutError as e:
            raise RequestCancelled(f"Reidentify timed out after {wait}s") from e
        logger.debug(f"Event subscriptions set to {mask!r}")

    def _require_ready(self) -> PendingRequestTable:
        if self._state is not State.READY or self._pending is None:
            raise NotConnected(f"Not connected (state: {self._state.value})")
        return self._pending

    async def _send(self, text: str) -> None:
        transport = self._transport
        if transport is None:
            raise NotConnected("Not connected")
        async with self._send_lock:
            # Teardown may have run while this call waited for the lock
            if self._transport is not transport:
                raise Disconnected(
                    "connection closed while sending", self.close_code, self.close_reason
                )
            logger.debug(f"-> {text[:500]}")
            try:
                await transport.send(text)
            except TransportClosed as e:
                raise Disconnected("connection closed while sending", e.code, e.reason) from e

    # =========================================================================
    # Dispatch loop
    # =========================================================================

    async def _dispatch_loop(
        self,
        transport: FrameTransport,
        pending: PendingRequestTable,
        broadcaster: EventBroadcaster,
    ) -> None:
        """Read frames until the socket closes, then tear everything down."""
        code: int | None = None
        reason: str | None = None

        try:
            while True:
                try:
                    text = await transport.recv()
                except TransportClosed as e:
                    code, reason = e.code, e.reason
                    break

                try:
                    frame = decode(text)
                except MalformedFrame as e:
                    logger.warning(f"Dropping malformed frame: {e}")
                    continue

                if frame.is_closing:
                    logger.info("Remote is shutting down")
                    reason = "server stopping"
                    break

                try:
                    self._route(frame, pending, broadcaster)
                except MalformedFrame as e:
                    logger.warning(f"Dropping malformed frame: {e}")
        except Exception:
            logger.exception("Dispatch loop failed")
        finally:
            await self._teardown(code, reason)

    def _route(
        self,
        frame: Frame,
        pending: PendingRequestTable,
        broadcaster: EventBroadcaster,
    ) -> None:
        logger.debug(f"<- {frame.op.name} {frame.data}")

        if frame.op is OpCode.REQUEST_RESPONSE:
            response = parse_body(frame, RequestResponse)
            pending.resolve(response.request_id, response)

        elif frame.op is OpCode.EVENT:
            event = Event.from_message(parse_body(frame, EventMessage))
            if not event.intent & self._event_subscriptions:
                logger.debug(f"Filtered out {event.event_type} (intent {event.intent})")
                return
            broadcaster.publish(event)

        elif frame.op is OpCode.IDENTIFIED:
            identified = parse_body(frame, Identified)
            if not self._reidentify_waiters:
                logger.debug("Ignoring unsolicited Identified frame")
                return
            waiter = self._reidentify_waiters.popleft()
            # A waiter that gave up still consumes its ack
            if not waiter.done():
                waiter.set_result(identified)

        else:
            logger.debug(f"Ignoring {frame.op.name} frame")

    async def _teardown(self, code: int | None, reason: str | None) -> None:
        """Leave READY: fail pending work, end subscriptions, release the socket."""
        self._state = State.DISCONNECTED
        self.close_code = code
        self.close_reason = reason

        by_client = self._closing
        detail = f"code {code}" + (f", {reason}" if reason else "")
        if by_client:
            logger.info(f"Disconnected from {self.config.url} ({detail})")
        else:
            logger.warning(f"Connection to {self.config.url} lost ({detail})")

        error = Disconnected(
            "connection closed by client" if by_client else "connection closed by remote",
            code,
            reason,
        )
        if self._pending is not None:
            failed = self._pending.fail_all(error)
            if failed:
                logger.debug(f"Failed {failed} pending request(s)")

        waiters, self._reidentify_waiters = self._reidentify_waiters, deque()
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(copy.copy(error))

        if self._broadcaster is not None:
            self._broadcaster.close_all()

        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_transport(transport)

"""Connect-time handshake with the remote.

Sequence:
1. Remote sends Hello (RPC version + optional authentication challenge)
2. Client answers with Identify (RPC version, event subscriptions, auth)
3. Remote confirms with Identified (negotiated RPC version)

Failures before Identified are fatal to the connection attempt. The overall
timeout is applied by the caller around the whole sequence.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel

from .errors import (
    AuthenticationFailed,
    AuthenticationRequired,
    ConnectError,
    HandshakeError,
    MalformedFrame,
    ServerVersionMismatch,
    TransportClosed,
    VersionMismatch,
)
from .protocol.frames import Frame, Hello, Identified, Identify, decode, encode, parse_body
from .protocol.opcodes import CloseCode, EventSubscription, OpCode
from .transport import FrameTransport

logger = logging.getLogger(__name__)

# RPC versions this client can speak
SUPPORTED_RPC_VERSIONS = range(1, 2)

# Server builds accepted by check_server_versions()
MIN_OBS_STUDIO_VERSION = (27, 0, 0)
OBS_WEBSOCKET_MAJOR_VERSION = 5

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class HandshakeResult:
    """Outcome of a successful handshake."""

    rpc_version: int
    obs_websocket_version: str
    authenticated: bool


def create_auth_response(challenge: str, salt: str, password: str) -> str:
    """Compute the authentication string for a challenge.

    base64(sha256(base64(sha256(password + salt)) + challenge))
    """
    secret = base64.b64encode(hashlib.sha256((password + salt).encode("utf-8")).digest())
    digest = hashlib.sha256(secret + challenge.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def parse_version(text: str) -> tuple[int, ...] | None:
    """Parse "30.0.2" or "30.1.0-rc1" into (30, 0, 2); None if unparseable."""
    release = text.strip().split("-", 1)[0]
    parts = release.split(".")
    if not all(part.isdigit() for part in parts):
        return None
    return tuple(int(part) for part in parts)


def check_server_versions(obs_version: str, obs_websocket_version: str) -> None:
    """Check the versions reported by GetVersion against what this client supports.

    OBS Studio must be at least MIN_OBS_STUDIO_VERSION and obs-websocket must
    be a release of major version OBS_WEBSOCKET_MAJOR_VERSION.

    Raises:
        ServerVersionMismatch: If either version is unsupported or unparseable
    """
    obs_required = ">=" + ".".join(str(n) for n in MIN_OBS_STUDIO_VERSION)
    found = parse_version(obs_version)
    if found is None or found < MIN_OBS_STUDIO_VERSION:
        raise ServerVersionMismatch(
            f"OBS Studio {obs_version!r} is not supported (requires {obs_required})",
            component="obs-studio",
            found=obs_version,
            required=obs_required,
        )

    major = OBS_WEBSOCKET_MAJOR_VERSION
    websocket_required = f">={major}.0.0, <{major + 1}.0.0"
    found = parse_version(obs_websocket_version)
    if found is None or found[0] != major:
        raise ServerVersionMismatch(
            f"obs-websocket {obs_websocket_version!r} is not supported "
            f"(requires {websocket_required})",
            component="obs-websocket",
            found=obs_websocket_version,
            required=websocket_required,
        )


class HandshakeNegotiator:
    """Drives the Hello / Identify / Identified exchange on a fresh transport.

    The steps are exposed individually so the connection can track its state
    between them; run() performs the whole sequence.
    """

    def __init__(
        self,
        transport: FrameTransport,
        *,
        password: str | None = None,
        event_subscriptions: EventSubscription = EventSubscription.ALL,
        rpc_versions: range = SUPPORTED_RPC_VERSIONS,
    ):
        self._transport = transport
        self._password = password
        self._event_subscriptions = event_subscriptions
        self._rpc_versions = rpc_versions
        self._requested_version: int | None = None
        self._authenticated = False

    async def run(self) -> HandshakeResult:
        """Perform the complete handshake."""
        hello = await self.receive_greeting()
        await self.send_identify(hello)
        identified = await self.receive_identified()
        return HandshakeResult(
            rpc_version=identified.negotiated_rpc_version,
            obs_websocket_version=hello.obs_web_socket_version,
            authenticated=self._authenticated,
        )

    async def receive_greeting(self) -> Hello:
        """Read the Hello frame and check the advertised RPC version.

        Raises:
            VersionMismatch: If the advertised version is not supported
            HandshakeError: On any other frame or a closed socket
        """
        frame = await self._read_frame(OpCode.HELLO)
        hello = self._parse(frame, Hello)
        logger.debug(
            f"Hello from obs-websocket {hello.obs_web_socket_version or '?'} "
            f"(rpc {hello.rpc_version}, auth={'yes' if hello.authentication else 'no'})"
        )

        if hello.rpc_version not in self._rpc_versions:
            raise VersionMismatch(
                f"Remote RPC version {hello.rpc_version} is not supported "
                f"(supported: {self._rpc_versions.start}-{self._rpc_versions.stop - 1})",
                negotiated=hello.rpc_version,
            )
        return hello

    async def send_identify(self, hello: Hello) -> None:
        """Answer the greeting, authenticating if it carried a challenge.

        Raises:
            AuthenticationRequired: If a challenge is present without a password
        """
        authentication: str | None = None
        if hello.authentication is not None:
            if self._password is None:
                raise AuthenticationRequired(
                    "Remote requires authentication but no password was configured"
                )
            authentication = create_auth_response(
                hello.authentication.challenge,
                hello.authentication.salt,
                self._password,
            )
            self._authenticated = True

        self._requested_version = hello.rpc_version
        identify = Identify(
            rpc_version=hello.rpc_version,
            authentication=authentication,
            event_subscriptions=int(self._event_subscriptions),
        )
        try:
            await self._transport.send(encode(OpCode.IDENTIFY, identify))
        except TransportClosed as e:
            raise self._closed_error(e) from e

    async def receive_identified(self) -> Identified:
        """Read the Identified frame and validate the negotiated version.

        Raises:
            AuthenticationFailed: If the remote closed the socket over bad credentials
            VersionMismatch: If the negotiated version differs from the requested one
            HandshakeError: On any other frame or a closed socket
        """
        frame = await self._read_frame(OpCode.IDENTIFIED)
        identified = self._parse(frame, Identified)
        negotiated = identified.negotiated_rpc_version

        if negotiated not in self._rpc_versions or (
            self._requested_version is not None and negotiated != self._requested_version
        ):
            raise VersionMismatch(
                f"RPC version {self._requested_version} requested, "
                f"but remote negotiated version {negotiated}",
                requested=self._requested_version,
                negotiated=negotiated,
            )

        logger.debug(f"Identified with rpc version {negotiated}")
        return identified

    async def _read_frame(self, expected: OpCode) -> Frame:
        try:
            text = await self._transport.recv()
        except TransportClosed as e:
            raise self._closed_error(e) from e

        try:
            frame = decode(text)
        except MalformedFrame as e:
            raise HandshakeError(f"Malformed frame while waiting for {expected.name}: {e}") from e

        if frame.is_closing:
            raise HandshakeError(f"Remote is shutting down (waiting for {expected.name})")
        if frame.op is not expected:
            raise HandshakeError(f"Expected {expected.name} frame, got {frame.op.name}")
        return frame

    @staticmethod
    def _parse(frame: Frame, model: type[M]) -> M:
        try:
            return parse_body(frame, model)
        except MalformedFrame as e:
            raise HandshakeError(str(e)) from e

    @staticmethod
    def _closed_error(error: TransportClosed) -> ConnectError:
        """Map the remote's close code to the matching connect error."""
        detail = f" ({error.reason})" if error.reason else ""
        if error.code == CloseCode.AUTHENTICATION_FAILED:
            return AuthenticationFailed(f"Remote rejected the authentication{detail}")
        if error.code == CloseCode.UNSUPPORTED_RPC_VERSION:
            return VersionMismatch(f"Remote does not support the requested RPC version{detail}")
        return HandshakeError(f"Connection closed during handshake (code {error.code}){detail}")

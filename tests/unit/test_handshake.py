"""Unit tests for the handshake negotiator.

Tests the Hello / Identify / Identified exchange against MockTransport:
- Version checks before and after Identify
- Authentication challenge handling
- Close-code mapping during the handshake
"""

from __future__ import annotations

import pytest

from obsws.errors import (
    AuthenticationFailed,
    AuthenticationRequired,
    HandshakeError,
    ServerVersionMismatch,
    VersionMismatch,
)
from obsws.handshake import (
    HandshakeNegotiator,
    check_server_versions,
    create_auth_response,
    parse_version,
)
from obsws.protocol import EventSubscription, OpCode
from obsws.transport import MockTransport

CHALLENGE = "+IxH4CnCiqpX1rM9scsNynZzbOe4KhDeYcTNS3PDaeY="
SALT = "lM1GncleQOaCu9lT1yeUZhFYnqhsLLP1G5lAGo3ixaI="
# Published example for password "supersecretpassword"
AUTH_RESPONSE = "1Ct943GAT+6YQUUX47Ia/ncufilbe6+oD6lY+5kaCu4="


class TestAuthResponse:
    """Tests for create_auth_response()."""

    def test_auth_response(self) -> None:
        """The response is base64(sha256(base64(sha256(password + salt)) + challenge))."""
        assert create_auth_response(CHALLENGE, SALT, "supersecretpassword") == AUTH_RESPONSE

    def test_auth_response_depends_on_password(self) -> None:
        """Different passwords give different responses."""
        assert create_auth_response(CHALLENGE, SALT, "a") != create_auth_response(
            CHALLENGE, SALT, "b"
        )


class TestHandshakeNegotiator:
    """Tests for HandshakeNegotiator.run() and its steps."""

    @pytest.mark.asyncio
    async def test_handshake_without_auth(self) -> None:
        """Hello without challenge is answered with a plain Identify."""
        transport = MockTransport()
        transport.script_handshake(obs_websocket_version="5.1.0")

        result = await HandshakeNegotiator(
            transport, event_subscriptions=EventSubscription.SCENES
        ).run()

        assert result.rpc_version == 1
        assert result.obs_websocket_version == "5.1.0"
        assert result.authenticated is False

        (identify,) = transport.sent_frames
        assert identify.op is OpCode.IDENTIFY
        assert identify.data == {"rpcVersion": 1, "eventSubscriptions": 4}

    @pytest.mark.asyncio
    async def test_handshake_with_auth(self) -> None:
        """A challenge is answered with the computed authentication string."""
        transport = MockTransport()
        transport.script_handshake(challenge=CHALLENGE, salt=SALT)

        result = await HandshakeNegotiator(transport, password="supersecretpassword").run()

        assert result.authenticated is True
        assert transport.sent_frames[0].data["authentication"] == AUTH_RESPONSE

    @pytest.mark.asyncio
    async def test_challenge_without_password(self) -> None:
        """A challenge with no configured password fails before Identify is sent."""
        transport = MockTransport()
        transport.script_handshake(challenge=CHALLENGE, salt=SALT)

        with pytest.raises(AuthenticationRequired):
            await HandshakeNegotiator(transport).run()

        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_authentication_rejected(self) -> None:
        """Close code 4009 after Identify maps to AuthenticationFailed."""
        transport = MockTransport()
        transport.inject_frame(
            OpCode.HELLO,
            {"rpcVersion": 1, "authentication": {"challenge": CHALLENGE, "salt": SALT}},
        )
        transport.inject_close(4009, "Authentication failed.")

        with pytest.raises(AuthenticationFailed, match="Authentication failed"):
            await HandshakeNegotiator(transport, password="wrong").run()

    @pytest.mark.asyncio
    async def test_unsupported_greeting_version(self) -> None:
        """An unsupported advertised version fails before Identify is sent."""
        transport = MockTransport()
        transport.script_handshake(rpc_version=2)

        with pytest.raises(VersionMismatch) as exc_info:
            await HandshakeNegotiator(transport).run()

        assert exc_info.value.negotiated == 2
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_negotiated_version_differs(self) -> None:
        """An Identified with a different version than requested is rejected."""
        transport = MockTransport()
        transport.script_handshake(rpc_version=1, negotiated_rpc_version=2)

        with pytest.raises(VersionMismatch) as exc_info:
            await HandshakeNegotiator(transport).run()

        assert exc_info.value.requested == 1
        assert exc_info.value.negotiated == 2

    @pytest.mark.asyncio
    async def test_unsupported_version_close_code(self) -> None:
        """Close code 4010 maps to VersionMismatch."""
        transport = MockTransport()
        transport.inject_frame(OpCode.HELLO, {"rpcVersion": 1})
        transport.inject_close(4010)

        with pytest.raises(VersionMismatch):
            await HandshakeNegotiator(transport).run()

    @pytest.mark.asyncio
    async def test_unexpected_frame(self) -> None:
        """Any frame other than the expected one fails the handshake."""
        transport = MockTransport()
        transport.emit_event("ExitStarted", EventSubscription.GENERAL)

        with pytest.raises(HandshakeError, match="Expected HELLO"):
            await HandshakeNegotiator(transport).run()

    @pytest.mark.asyncio
    async def test_malformed_greeting(self) -> None:
        """Undecodable or invalid greetings fail the handshake."""
        transport = MockTransport()
        transport.inject("garbage")

        with pytest.raises(HandshakeError, match="Malformed"):
            await HandshakeNegotiator(transport).run()

        transport = MockTransport()
        transport.inject_frame(OpCode.HELLO, {"obsWebSocketVersion": "5.0.0"})

        with pytest.raises(HandshakeError):
            await HandshakeNegotiator(transport).run()

    @pytest.mark.asyncio
    async def test_server_stopping_during_handshake(self) -> None:
        """The server-stopping notice aborts the handshake."""
        transport = MockTransport()
        transport.inject("Server stopping")

        with pytest.raises(HandshakeError, match="shutting down"):
            await HandshakeNegotiator(transport).run()

    @pytest.mark.asyncio
    async def test_plain_close(self) -> None:
        """Other close codes surface as HandshakeError."""
        transport = MockTransport()
        transport.inject_close(1001, "going away")

        with pytest.raises(HandshakeError, match="1001"):
            await HandshakeNegotiator(transport).run()


# =============================================================================
# Server versions
# =============================================================================


class TestServerVersions:
    """Tests for check_server_versions() and parse_version()."""

    def test_parse_version(self) -> None:
        assert parse_version("30.0.2") == (30, 0, 2)
        assert parse_version("30.1.0-rc1") == (30, 1, 0)
        assert parse_version("") is None
        assert parse_version("v5") is None

    @pytest.mark.parametrize(
        "obs_version, websocket_version",
        [("27.0.0", "5.0.0"), ("30.0.2", "5.3.4"), ("31.0.0-beta1", "5.5.0")],
    )
    def test_supported(self, obs_version: str, websocket_version: str) -> None:
        check_server_versions(obs_version, websocket_version)

    def test_obs_studio_too_old(self) -> None:
        """OBS Studio before 27 is rejected with the found and required versions."""
        with pytest.raises(ServerVersionMismatch) as exc_info:
            check_server_versions("26.1.2", "5.0.0")

        error = exc_info.value
        assert isinstance(error, VersionMismatch)
        assert error.component == "obs-studio"
        assert error.found == "26.1.2"
        assert error.required == ">=27.0.0"

    @pytest.mark.parametrize("websocket_version", ["4.9.1", "6.0.0", "unknown"])
    def test_obs_websocket_unsupported(self, websocket_version: str) -> None:
        """obs-websocket must be a 5.x release."""
        with pytest.raises(ServerVersionMismatch) as exc_info:
            check_server_versions("30.0.0", websocket_version)

        assert exc_info.value.component == "obs-websocket"
        assert exc_info.value.found == websocket_version
        assert exc_info.value.required == ">=5.0.0, <6.0.0"

"""Unit tests for the obsws command line.

Commands run through click's CliRunner against MockTransport, injected
through the click context object.
"""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from obsws.cli import main
from obsws.protocol import EventSubscription, StatusCode
from obsws.transport import MockTransport


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OBS_HOST",
        "OBS_PORT",
        "OBS_PASSWORD",
        "OBS_TLS",
        "OBS_CONNECT_TIMEOUT",
        "OBS_VERIFY_VERSIONS",
    ):
        monkeypatch.delenv(name, raising=False)


def _invoke(runner: CliRunner, transport: MockTransport, *args: str):
    return runner.invoke(main, list(args), obj={"transport_factory": transport.factory})


class TestVersionCommand:
    """Tests for `obsws version`."""

    def test_version(self, runner: CliRunner, transport: MockTransport) -> None:
        transport.set_response(
            "GetVersion",
            {
                "obsVersion": "30.0.2",
                "obsWebSocketVersion": "5.3.4",
                "rpcVersion": 1,
                "platformDescription": "Ubuntu 22.04",
            },
        )

        result = _invoke(runner, transport, "version")

        assert result.exit_code == 0, result.output
        assert "30.0.2" in result.output
        assert "5.3.4" in result.output
        assert "Ubuntu 22.04" in result.output

    def test_version_json(self, runner: CliRunner, transport: MockTransport) -> None:
        transport.set_response(
            "GetVersion",
            {"obsVersion": "30.0.2", "obsWebSocketVersion": "5.3.4", "rpcVersion": 1},
        )

        result = _invoke(runner, transport, "version", "--json")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["obsVersion"] == "30.0.2"


class TestRequestCommand:
    """Tests for `obsws request`."""

    def test_request_with_data(self, runner: CliRunner, transport: MockTransport) -> None:
        """DATA_JSON is sent as requestData and the response printed as JSON."""
        transport.set_response("GetInputMute", {"inputMuted": True})

        result = _invoke(runner, transport, "request", "GetInputMute", '{"inputName": "Mic"}')

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"inputMuted": True}
        assert transport.sent_frames[1].data["requestData"] == {"inputName": "Mic"}

    def test_request_failure_exits_1(self, runner: CliRunner, transport: MockTransport) -> None:
        transport.set_response("StartStream", code=StatusCode.OUTPUT_RUNNING, comment="running")

        result = _invoke(runner, transport, "request", "StartStream")

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "500" in result.output

    def test_invalid_json(self, runner: CliRunner, transport: MockTransport) -> None:
        result = _invoke(runner, transport, "request", "GetInputMute", "{nope")

        assert result.exit_code == 2
        assert transport.sent == []

    def test_non_object_json(self, runner: CliRunner, transport: MockTransport) -> None:
        result = _invoke(runner, transport, "request", "GetInputMute", "[1]")

        assert result.exit_code == 2

    def test_connect_failure_exits_1(self, runner: CliRunner) -> None:
        transport = MockTransport()
        transport.inject_close(4009, "Authentication failed.")

        result = _invoke(runner, transport, "--password", "wrong", "request", "GetVersion")

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_verify_versions_rejects_old_server(
        self, runner: CliRunner, transport: MockTransport
    ) -> None:
        """--verify-versions fails the command when OBS Studio is too old."""
        transport.set_response(
            "GetVersion",
            {"obsVersion": "26.1.0", "obsWebSocketVersion": "5.0.0", "rpcVersion": 1},
        )

        result = _invoke(runner, transport, "--verify-versions", "request", "GetStats")

        assert result.exit_code == 1
        assert ">=27.0.0" in result.output
        assert all(frame.data.get("requestType") != "GetStats" for frame in transport.sent_frames)


class TestEventsCommand:
    """Tests for `obsws events`."""

    def test_events_filtered_by_category(self, runner: CliRunner, transport: MockTransport) -> None:
        """Only events of the chosen categories are printed, one JSON object per line."""
        transport.emit_event("InputMuteStateChanged", EventSubscription.INPUTS)
        transport.emit_event("SceneCreated", EventSubscription.SCENES, {"sceneName": "Intro"})

        result = _invoke(runner, transport, "events", "--category", "scenes", "--count", "1")

        assert result.exit_code == 0, result.output
        lines = [json.loads(line) for line in result.output.splitlines() if line.startswith("{")]
        assert lines == [
            {
                "eventType": "SceneCreated",
                "eventIntent": int(EventSubscription.SCENES),
                "eventData": {"sceneName": "Intro"},
            }
        ]
        identify = transport.sent_frames[0]
        assert identify.data["eventSubscriptions"] == int(EventSubscription.SCENES)

    def test_events_end_on_remote_close(self, runner: CliRunner, transport: MockTransport) -> None:
        """The command finishes cleanly when the remote closes the socket."""
        transport.emit_event("ExitStarted", EventSubscription.GENERAL)
        transport.inject_close(1001, "going away")

        result = _invoke(runner, transport, "events")

        assert result.exit_code == 0, result.output
        assert '"ExitStarted"' in result.output

    def test_unknown_category(self, runner: CliRunner, transport: MockTransport) -> None:
        result = _invoke(runner, transport, "events", "--category", "bogus")

        assert result.exit_code == 2

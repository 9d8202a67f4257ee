"""High-level client with typed request groups.

Wraps a Connection and converts response payloads into pydantic models.

Usage:
    async with await ObsClient.connect(ConnectConfig(password="secret")) as obs:
        version = await obs.general.get_version()
        scenes = await obs.scenes.list()
        await obs.scenes.set_current_program_scene(scenes.scenes[0].scene_name)

        async with obs.events() as events:
            async for event in events:
                print(event.event_type, event.data)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .broadcast import Subscription
from .config import ConnectConfig
from .connection import Connection
from .errors import DeserializeError
from .responses import (
    CurrentProgramScene,
    OutputActive,
    OutputPath,
    RecordStatus,
    SceneList,
    Stats,
    StreamStatus,
    VendorResponse,
    Version,
)
from .transport import TransportFactory

R = TypeVar("R", bound=BaseModel)


@dataclass
class GeneralAPI:
    """General requests."""

    _client: ObsClient

    async def get_version(self) -> Version:
        """Get version information about the remote and its plugin."""
        return await self._client._call("GetVersion", model=Version)

    async def get_stats(self) -> Stats:
        """Get render, output and session statistics."""
        return await self._client._call("GetStats", model=Stats)

    async def broadcast_custom_message(self, data: Mapping[str, Any]) -> None:
        """Broadcast a CustomEvent to all subscribed sessions."""
        await self._client._call("BroadcastCustomEvent", {"eventData": dict(data)})

    async def call_vendor_request(
        self,
        vendor_name: str,
        request_type: str,
        data: Mapping[str, Any] | None = None,
    ) -> VendorResponse:
        """Call a request registered by a third-party vendor.

        Args:
            vendor_name: Name of the vendor that registered the request
            request_type: Vendor request type
            data: Optional payload passed to the vendor
        """
        params: dict[str, Any] = {"vendorName": vendor_name, "requestType": request_type}
        if data is not None:
            params["requestData"] = dict(data)
        return await self._client._call("CallVendorRequest", params, model=VendorResponse)


@dataclass
class ScenesAPI:
    """Scene requests."""

    _client: ObsClient

    async def list(self) -> SceneList:
        return await self._client._call("GetSceneList", model=SceneList)

    async def current_program_scene(self) -> CurrentProgramScene:
        return await self._client._call("GetCurrentProgramScene", model=CurrentProgramScene)

    async def set_current_program_scene(self, name: str) -> None:
        """Switch the program output to another scene."""
        await self._client._call("SetCurrentProgramScene", {"sceneName": name})


@dataclass
class StreamingAPI:
    """Stream output requests."""

    _client: ObsClient

    async def status(self) -> StreamStatus:
        return await self._client._call("GetStreamStatus", model=StreamStatus)

    async def start(self) -> None:
        await self._client._call("StartStream")

    async def stop(self) -> None:
        await self._client._call("StopStream")

    async def toggle(self) -> bool:
        """Toggle the stream output. Returns whether it is now active."""
        result = await self._client._call("ToggleStream", model=OutputActive)
        return result.output_active


@dataclass
class RecordingAPI:
    """Record output requests."""

    _client: ObsClient

    async def status(self) -> RecordStatus:
        return await self._client._call("GetRecordStatus", model=RecordStatus)

    async def start(self) -> None:
        await self._client._call("StartRecord")

    async def stop(self) -> str:
        """Stop recording. Returns the path of the written file."""
        result = await self._client._call("StopRecord", model=OutputPath)
        return result.output_path


@dataclass
class ObsClient:
    """Typed client on top of a Connection.

    Usage:
        # Connect from config
        obs = await ObsClient.connect(ConnectConfig.from_env())

        # Wrap an existing connection
        obs = ObsClient(connection)

        # Testing
        transport = MockTransport()
        transport.script_handshake()
        transport.set_response("GetVersion", {...})
        obs = await ObsClient.connect(config, transport_factory=transport.factory)
    """

    _connection: Connection
    _owns_connection: bool = field(default=True)

    @classmethod
    async def connect(
        cls,
        config: ConnectConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> ObsClient:
        """Open a connection and wrap it."""
        connection = await Connection.open(config, transport_factory=transport_factory)
        return cls(connection)

    @property
    def connection(self) -> Connection:
        """Access the underlying connection."""
        return self._connection

    @property
    def general(self) -> GeneralAPI:
        return GeneralAPI(_client=self)

    @property
    def scenes(self) -> ScenesAPI:
        return ScenesAPI(_client=self)

    @property
    def streaming(self) -> StreamingAPI:
        return StreamingAPI(_client=self)

    @property
    def recording(self) -> RecordingAPI:
        return RecordingAPI(_client=self)

    @property
    def is_connected(self) -> bool:
        return self._connection.is_ready

    def events(self) -> Subscription:
        """Subscribe to server events."""
        return self._connection.subscribe()

    async def request(
        self,
        request_type: str,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send an untyped request and return the raw response payload."""
        return await self._connection.request(request_type, data)

    async def disconnect(self) -> None:
        if self._owns_connection:
            await self._connection.disconnect()

    async def __aenter__(self) -> ObsClient:
        if not self._connection.is_ready:
            await self._connection.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    async def _call(
        self,
        request_type: str,
        data: Mapping[str, Any] | None = None,
        *,
        model: type[R] | None = None,
    ) -> Any:
        payload = await self._connection.request(request_type, data)
        if model is None:
            return payload
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise DeserializeError(
                f"Unexpected {request_type} response: {e.error_count()} invalid field(s)"
            ) from e

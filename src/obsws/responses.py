"""Typed response payloads for the high-level client."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ResponseModel(BaseModel):
    """Base for response payloads: camelCase on the wire, unknown keys ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Version(ResponseModel):
    """Response of GetVersion."""

    obs_version: str
    obs_web_socket_version: str
    rpc_version: int
    available_requests: list[str] = Field(default_factory=list)
    supported_image_formats: list[str] = Field(default_factory=list)
    platform: str = ""
    platform_description: str = ""


class Stats(ResponseModel):
    """Response of GetStats."""

    cpu_usage: float
    memory_usage: float
    available_disk_space: float
    active_fps: float
    average_frame_render_time: float
    render_skipped_frames: int
    render_total_frames: int
    output_skipped_frames: int
    output_total_frames: int
    web_socket_session_incoming_messages: int
    web_socket_session_outgoing_messages: int


class VendorResponse(ResponseModel):
    """Response of CallVendorRequest."""

    vendor_name: str
    request_type: str
    response_data: dict[str, Any] = Field(default_factory=dict)


class Scene(ResponseModel):
    scene_name: str
    scene_index: int
    scene_uuid: str | None = None


class SceneList(ResponseModel):
    """Response of GetSceneList."""

    current_program_scene_name: str | None = None
    current_preview_scene_name: str | None = None
    scenes: list[Scene] = Field(default_factory=list)


class CurrentProgramScene(ResponseModel):
    current_program_scene_name: str
    current_program_scene_uuid: str | None = None


class StreamStatus(ResponseModel):
    """Response of GetStreamStatus. Durations are in milliseconds."""

    output_active: bool
    output_reconnecting: bool = False
    output_timecode: str = "00:00:00.000"
    output_duration: int = 0
    output_congestion: float = 0.0
    output_bytes: int = 0
    output_skipped_frames: int = 0
    output_total_frames: int = 0


class RecordStatus(ResponseModel):
    """Response of GetRecordStatus. Durations are in milliseconds."""

    output_active: bool
    output_paused: bool = False
    output_timecode: str = "00:00:00.000"
    output_duration: int = 0
    output_bytes: int = 0


class OutputActive(ResponseModel):
    """Response of the Toggle* output requests."""

    output_active: bool


class OutputPath(ResponseModel):
    """Response of StopRecord."""

    output_path: str

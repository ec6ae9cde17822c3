"""Pydantic models for the Stream (conversion job) entity."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from streambridge.models.enums import StreamQuality, StreamStatus

_RTMP_SCHEMES = ("rtmp://", "rtmps://")


class Stream(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str = Field(..., pattern=r"^strm_[a-f0-9]{16}$")
    name: str
    source_url: str
    quality: StreamQuality
    status: StreamStatus
    is_active: bool
    output_hls_path: str | None = None
    output_dash_path: str | None = None
    duration_seconds: int = 0
    file_size_bytes: int = 0
    created_at: datetime
    started_at: datetime | None = None
    stopped_at: datetime | None = None


class StreamCreate(BaseModel):
    """Request body for starting a stream (server generates ID, paths and timestamps)."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, max_length=200)
    source_url: str = Field(..., min_length=1, max_length=2000)
    quality: StreamQuality = StreamQuality.P720

    @field_validator("source_url")
    @classmethod
    def _require_rtmp(cls, value: str) -> str:
        value = value.strip()
        if any(ord(ch) < 32 or ord(ch) == 127 for ch in value):
            raise ValueError("source_url must not contain control characters")
        if not value.lower().startswith(_RTMP_SCHEMES):
            raise ValueError("source_url must be an rtmp:// or rtmps:// URL")
        return value


class ServerStats(BaseModel):
    """Usage summary. ``bandwidth_estimate`` is derived from the active count, not measured."""

    model_config = ConfigDict(extra="forbid")

    total_jobs: int
    active_jobs: int
    storage_used_bytes: int
    bandwidth_estimate: float
    live_processes: int


class SweepResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    examined: int
    deleted: int
    file_failures: int

from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional

from typing_extensions import Literal

from pydantic import BaseModel, Field, field_validator, model_serializer

from .models import (
    DEFAULT_ROUNDING_ENABLED,
    DEFAULT_ROUNDING_GRANULARITY,
    SegmentDisplay,
    SegmentField,
    Tag,
    TimeSegment,
    TimeTrackerState,
)


def _serialize_datetime(value: Optional[dt.datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


class SnapshotDocument(BaseModel):
    """Persisted key/value document: tag names and rounding settings."""

    tag_names: List[str] = Field(default_factory=list)
    minute_rounding_scale: float = DEFAULT_ROUNDING_GRANULARITY
    is_rounding_on: bool = DEFAULT_ROUNDING_ENABLED
    is_dark_mode: bool = False


class SegmentDisplayResponse(BaseModel):
    start_hour: str
    start_minute: str
    end_hour: str
    end_minute: str

    @classmethod
    def from_display(cls, display: SegmentDisplay) -> "SegmentDisplayResponse":
        return cls(
            start_hour=display.start_hour,
            start_minute=display.start_minute,
            end_hour=display.end_hour,
            end_minute=display.end_minute,
        )


class TimeSegmentResponse(BaseModel):
    id: str
    start_time: Optional[dt.datetime]
    end_time: Optional[dt.datetime]
    duration_hours: float
    is_open: bool
    display: SegmentDisplayResponse

    @classmethod
    def from_segment(cls, segment: TimeSegment) -> "TimeSegmentResponse":
        return cls(
            id=segment.id,
            start_time=segment.start_time,
            end_time=segment.end_time,
            duration_hours=segment.duration_hours,
            is_open=segment.is_open,
            display=SegmentDisplayResponse.from_display(segment.display_fields),
        )

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start_time": _serialize_datetime(self.start_time),
            "end_time": _serialize_datetime(self.end_time),
            "duration_hours": self.duration_hours,
            "is_open": self.is_open,
            "display": self.display.model_dump(),
        }


class TagResponse(BaseModel):
    id: str
    name: str
    is_running: bool
    total_hours: float
    segments: List[TimeSegmentResponse] = Field(default_factory=list)

    @classmethod
    def from_tag(cls, tag: Tag) -> "TagResponse":
        return cls(
            id=tag.id,
            name=tag.name,
            is_running=tag.is_running,
            total_hours=tag.total_hours,
            segments=[TimeSegmentResponse.from_segment(segment) for segment in tag.segments],
        )


class TrackerStateResponse(BaseModel):
    tags: List[TagResponse]
    rounding_enabled: bool
    rounding_granularity_hours: float
    pending_tag_name: str
    is_dark_mode: bool

    @classmethod
    def from_state(cls, state: TimeTrackerState, *, is_dark_mode: bool) -> "TrackerStateResponse":
        return cls(
            tags=[TagResponse.from_tag(tag) for tag in state.tags],
            rounding_enabled=state.rounding_enabled,
            rounding_granularity_hours=state.rounding_granularity_hours,
            pending_tag_name=state.pending_tag_name,
            is_dark_mode=is_dark_mode,
        )


class CommandResultResponse(BaseModel):
    command: str
    applied: bool
    detail: Optional[str] = None
    tag_id: Optional[str] = None
    segment_id: Optional[str] = None
    display: Optional[SegmentDisplayResponse] = None


class CommandResponse(BaseModel):
    results: List[CommandResultResponse]
    state: TrackerStateResponse


class TagCreateRequest(BaseModel):
    name: Optional[str] = None


class PendingTagNameRequest(BaseModel):
    text: str = ""


class SegmentEditRequest(BaseModel):
    field: SegmentField
    text: str


class RoundingUpdateRequest(BaseModel):
    enabled: bool
    granularity_hours: float


class AppearanceUpdateRequest(BaseModel):
    is_dark_mode: bool


class BatchCommand(BaseModel):
    type: Literal[
        "create_tag",
        "set_pending_tag_name",
        "start_segment",
        "stop_segment",
        "edit_segment_field",
        "delete_segment",
        "delete_tag",
        "clear_session",
        "set_rounding",
    ]
    tag_id: Optional[str] = None
    segment_id: Optional[str] = None
    name: Optional[str] = None
    text: Optional[str] = None
    field: Optional[SegmentField] = None
    enabled: Optional[bool] = None
    granularity_hours: Optional[float] = None


class BatchCommandRequest(BaseModel):
    commands: List[BatchCommand] = Field(default_factory=list)

    @field_validator("commands")
    @classmethod
    def _require_commands(cls, value: List[BatchCommand]) -> List[BatchCommand]:
        if not value:
            raise ValueError("At least one command is required")
        return value


class SettingsResponse(BaseModel):
    environment: str
    timezone: Optional[str]
    storage: str
    rounding_enabled: bool
    rounding_granularity_hours: float
    is_dark_mode: bool

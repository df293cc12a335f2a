from __future__ import annotations

import datetime as dt
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .aggregator import as_utc, recompute_segment, recompute_tag
from .rounding import round_timestamp

logger = logging.getLogger(__name__)

DEFAULT_ROUNDING_ENABLED = True
DEFAULT_ROUNDING_GRANULARITY = 0.25


def _new_id() -> str:
    return uuid.uuid4().hex


def _capture(now: dt.datetime, rounding_enabled: bool, granularity: float) -> dt.datetime:
    if rounding_enabled:
        return round_timestamp(now, granularity)
    return now


class SegmentField(str, Enum):
    START_HOUR = "start_hour"
    START_MINUTE = "start_minute"
    END_HOUR = "end_hour"
    END_MINUTE = "end_minute"

    @property
    def boundary(self) -> str:
        return "start" if self in (SegmentField.START_HOUR, SegmentField.START_MINUTE) else "end"

    @property
    def unit(self) -> str:
        return "hour" if self in (SegmentField.START_HOUR, SegmentField.END_HOUR) else "minute"


FIELD_LIMITS = {"hour": 23, "minute": 59}


@dataclass(frozen=True, slots=True)
class SegmentDisplay:
    """Editable hour/minute text, always projected from the canonical timestamps."""

    start_hour: str = ""
    start_minute: str = ""
    end_hour: str = ""
    end_minute: str = ""


@dataclass(slots=True, eq=False)
class TimeSegment:
    """One interval of a tag; open until ``end_time`` is recorded."""

    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    duration_hours: float = 0.0
    id: str = field(default_factory=_new_id)

    @classmethod
    def open(cls, now: dt.datetime, rounding_enabled: bool, granularity: float) -> "TimeSegment":
        return cls(start_time=_capture(now, rounding_enabled, granularity))

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def close(self, now: dt.datetime, rounding_enabled: bool, granularity: float) -> bool:
        if self.end_time is not None:
            logger.info("Segment %s is already closed", self.id)
            return False
        self.end_time = _capture(now, rounding_enabled, granularity)
        recompute_segment(self)
        return True

    @property
    def display_fields(self) -> SegmentDisplay:
        start, end = self.start_time, self.end_time
        return SegmentDisplay(
            start_hour=str(start.hour) if start else "",
            start_minute=str(start.minute) if start else "",
            end_hour=str(end.hour) if end else "",
            end_minute=str(end.minute) if end else "",
        )

    def set_start_hour(self, text: str) -> bool:
        return self.edit_field(SegmentField.START_HOUR, text)

    def set_start_minute(self, text: str) -> bool:
        return self.edit_field(SegmentField.START_MINUTE, text)

    def set_end_hour(self, text: str) -> bool:
        return self.edit_field(SegmentField.END_HOUR, text)

    def set_end_minute(self, text: str) -> bool:
        return self.edit_field(SegmentField.END_MINUTE, text)

    def edit_field(self, segment_field: SegmentField, text: str) -> bool:
        """Validate ``text`` and commit it into one component of a timestamp.

        Returns ``False`` and leaves the timestamps untouched when the text is
        not an integer, is out of range, names an unknown field, targets a
        missing timestamp, or would place the end before the start.
        """
        try:
            segment_field = SegmentField(segment_field)
        except ValueError:
            logger.info("Rejected edit on segment %s: unknown field %r", self.id, segment_field)
            return False
        try:
            value = int(str(text).strip())
        except ValueError:
            logger.info("Rejected %s edit on segment %s: %r is not a number", segment_field.value, self.id, text)
            return False
        limit = FIELD_LIMITS[segment_field.unit]
        if not 0 <= value <= limit:
            logger.info("Rejected %s edit on segment %s: %s out of range", segment_field.value, self.id, value)
            return False

        current = self.start_time if segment_field.boundary == "start" else self.end_time
        if current is None:
            logger.info("Rejected %s edit on segment %s: no %s time", segment_field.value, self.id, segment_field.boundary)
            return False
        candidate = current.replace(**{segment_field.unit: value})

        start = candidate if segment_field.boundary == "start" else self.start_time
        end = candidate if segment_field.boundary == "end" else self.end_time
        if start is not None and end is not None and as_utc(end) < as_utc(start):
            logger.info("Rejected %s edit on segment %s: end would precede start", segment_field.value, self.id)
            return False

        if segment_field.boundary == "start":
            self.start_time = candidate
        else:
            self.end_time = candidate
        recompute_segment(self)
        return True


@dataclass(slots=True, eq=False)
class Tag:
    """A named activity owning its segments in creation order."""

    name: str
    segments: List[TimeSegment] = field(default_factory=list)
    total_hours: float = 0.0
    id: str = field(default_factory=_new_id)

    @property
    def is_running(self) -> bool:
        return bool(self.segments) and self.segments[-1].is_open

    @property
    def open_segment(self) -> Optional[TimeSegment]:
        return self.segments[-1] if self.is_running else None

    def start(self, now: dt.datetime, rounding_enabled: bool, granularity: float) -> Optional[TimeSegment]:
        if self.is_running:
            logger.info("Tag %r already has an active segment", self.name)
            return None
        segment = TimeSegment.open(now, rounding_enabled, granularity)
        self.segments.append(segment)
        return segment

    def stop(self, now: dt.datetime, rounding_enabled: bool, granularity: float) -> Optional[TimeSegment]:
        segment = self.open_segment
        if segment is None:
            logger.info("Tag %r has no active segment to stop", self.name)
            return None
        segment.close(now, rounding_enabled, granularity)
        recompute_tag(self)
        return segment

    def find_segment(self, segment_id: str) -> Optional[Tuple[int, TimeSegment]]:
        for index, segment in enumerate(self.segments):
            if segment.id == segment_id:
                return index, segment
        return None

    def delete_segment(self, index: int) -> Optional[TimeSegment]:
        if not 0 <= index < len(self.segments):
            logger.info("Tag %r has no segment at position %s", self.name, index)
            return None
        segment = self.segments.pop(index)
        recompute_tag(self)
        return segment

    def clear_session(self) -> None:
        self.segments.clear()
        self.total_hours = 0.0


@dataclass(slots=True)
class TimeTrackerState:
    """Aggregate root: tags plus session-wide rounding configuration."""

    tags: List[Tag] = field(default_factory=list)
    rounding_enabled: bool = DEFAULT_ROUNDING_ENABLED
    rounding_granularity_hours: float = DEFAULT_ROUNDING_GRANULARITY
    pending_tag_name: str = ""

    def create_tag(self, name: str) -> Optional[Tag]:
        if not name or not name.strip():
            logger.info("Ignoring tag with a blank name")
            return None
        tag = Tag(name=name)
        self.tags.append(tag)
        return tag

    def find_tag(self, tag_id: str) -> Optional[Tag]:
        for tag in self.tags:
            if tag.id == tag_id:
                return tag
        return None

    def find_segment(self, segment_id: str) -> Optional[Tuple[Tag, int, TimeSegment]]:
        for tag in self.tags:
            match = tag.find_segment(segment_id)
            if match is not None:
                return tag, match[0], match[1]
        return None

    def remove_tag(self, tag_id: str) -> Optional[Tag]:
        tag = self.find_tag(tag_id)
        if tag is None:
            logger.info("Tag %s does not exist", tag_id)
            return None
        self.tags.remove(tag)
        return tag

    def clear_session(self) -> None:
        for tag in self.tags:
            tag.clear_session()

    @property
    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]


__all__ = [
    "DEFAULT_ROUNDING_ENABLED",
    "DEFAULT_ROUNDING_GRANULARITY",
    "SegmentDisplay",
    "SegmentField",
    "Tag",
    "TimeSegment",
    "TimeTrackerState",
]

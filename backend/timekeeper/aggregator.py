"""Derived duration bookkeeping for segments and tags."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:  # pragma: no cover
    from .models import Tag, TimeSegment


SECONDS_PER_HOUR = 3600.0


def as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def segment_hours(segment: "TimeSegment") -> float:
    if segment.start_time is None or segment.end_time is None:
        return 0.0
    delta = as_utc(segment.end_time) - as_utc(segment.start_time)
    return max(delta.total_seconds() / SECONDS_PER_HOUR, 0.0)


def recompute_segment(segment: "TimeSegment") -> float:
    segment.duration_hours = segment_hours(segment)
    return segment.duration_hours


def recompute_tag(tag: "Tag") -> float:
    """Refresh every segment of ``tag`` and then its total."""
    for segment in tag.segments:
        recompute_segment(segment)
    tag.total_hours = sum(segment.duration_hours for segment in tag.segments)
    return tag.total_hours


def recompute_tags(tags: Iterable["Tag"]) -> None:
    for tag in tags:
        recompute_tag(tag)


__all__ = ["SECONDS_PER_HOUR", "as_utc", "recompute_segment", "recompute_tag", "recompute_tags", "segment_hours"]

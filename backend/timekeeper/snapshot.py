"""Conversion between the live state and its persisted document.

Only tag names and rounding settings survive a restart; segment history
stays with the session that recorded it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Union

from .models import DEFAULT_ROUNDING_GRANULARITY, Tag, TimeTrackerState
from .rounding import is_valid_granularity
from .schemas import SnapshotDocument

logger = logging.getLogger(__name__)


def serialize(state: TimeTrackerState, *, is_dark_mode: bool = False) -> SnapshotDocument:
    return SnapshotDocument(
        tag_names=state.tag_names,
        minute_rounding_scale=state.rounding_granularity_hours,
        is_rounding_on=state.rounding_enabled,
        is_dark_mode=is_dark_mode,
    )


def deserialize(document: Union[SnapshotDocument, Dict[str, Any]]) -> TimeTrackerState:
    if not isinstance(document, SnapshotDocument):
        document = SnapshotDocument.model_validate(document)
    granularity = document.minute_rounding_scale
    if not is_valid_granularity(granularity):
        logger.warning(
            "Stored rounding granularity %r is invalid, using %s", granularity, DEFAULT_ROUNDING_GRANULARITY
        )
        granularity = DEFAULT_ROUNDING_GRANULARITY
    tags = [Tag(name=name) for name in document.tag_names if name and name.strip()]
    return TimeTrackerState(
        tags=tags,
        rounding_enabled=document.is_rounding_on,
        rounding_granularity_hours=granularity,
    )


def dumps(state: TimeTrackerState, *, is_dark_mode: bool = False) -> str:
    return serialize(state, is_dark_mode=is_dark_mode).model_dump_json(indent=2)


def loads(text: str) -> SnapshotDocument:
    return SnapshotDocument.model_validate_json(text)


__all__ = ["deserialize", "dumps", "loads", "serialize"]

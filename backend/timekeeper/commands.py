"""Validated state transitions applied to a :class:`TimeTrackerState`.

Every command either applies in full or is rejected without touching the
state. Rejections are reported through :class:`CommandResult` and logged;
only a missing clock escapes as an exception, and then no command of the
cycle is applied.
"""

from __future__ import annotations

import copy
import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from .aggregator import recompute_tags
from .clock import Clock, ClockUnavailableError
from .models import SegmentDisplay, SegmentField, Tag, TimeTrackerState
from .rounding import is_valid_granularity

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CreateTag:
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SetPendingTagName:
    text: str


@dataclass(frozen=True, slots=True)
class StartSegment:
    tag_id: str


@dataclass(frozen=True, slots=True)
class StopSegment:
    tag_id: str


@dataclass(frozen=True, slots=True)
class EditSegmentField:
    segment_id: str
    field: SegmentField
    text: str


@dataclass(frozen=True, slots=True)
class DeleteSegment:
    segment_id: str


@dataclass(frozen=True, slots=True)
class DeleteTag:
    tag_id: str


@dataclass(frozen=True, slots=True)
class ClearSession:
    pass


@dataclass(frozen=True, slots=True)
class SetRounding:
    enabled: bool
    granularity_hours: float


Command = Union[
    CreateTag,
    SetPendingTagName,
    StartSegment,
    StopSegment,
    EditSegmentField,
    DeleteSegment,
    DeleteTag,
    ClearSession,
    SetRounding,
]

_CLOCKED = (StartSegment, StopSegment)


@dataclass(slots=True)
class CommandResult:
    command: Command
    applied: bool
    detail: Optional[str] = None
    tag_id: Optional[str] = None
    segment_id: Optional[str] = None
    display: Optional[SegmentDisplay] = None
    affected_tags: List[Tag] = field(default_factory=list, repr=False)


class CommandProcessor:
    """Sole owner of the state; applies one command at a time."""

    def __init__(self, state: TimeTrackerState, clock: Clock) -> None:
        self.state = state
        self.clock = clock
        self._pending: List[Command] = []
        self._now: Optional[dt.datetime] = None
        self._handlers: Dict[type, Callable[..., CommandResult]] = {
            CreateTag: self._create_tag,
            SetPendingTagName: self._set_pending_tag_name,
            StartSegment: self._start_segment,
            StopSegment: self._stop_segment,
            EditSegmentField: self._edit_segment_field,
            DeleteSegment: self._delete_segment,
            DeleteTag: self._delete_tag,
            ClearSession: self._clear_session,
            SetRounding: self._set_rounding,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def apply(self, command: Command) -> CommandResult:
        """Apply a single command as its own update cycle."""
        self.submit(command)
        return self.run_cycle()[0]

    def submit(self, *commands: Command) -> None:
        for command in commands:
            if type(command) not in self._handlers:
                raise TypeError(f"Unsupported command: {command!r}")
        self._pending.extend(commands)

    def run_cycle(self) -> List[CommandResult]:
        """Apply buffered commands in submission order, then aggregate once.

        The clock is read once, before anything is applied, when the batch
        starts or stops a segment. If it cannot be read nothing is applied:
        :class:`ClockUnavailableError` is raised carrying one rejected result
        per buffered command in its ``results`` attribute.
        """
        pending, self._pending = self._pending, []
        try:
            self._now = self.clock.now() if any(isinstance(command, _CLOCKED) for command in pending) else None
        except ClockUnavailableError as exc:
            exc.results = [self._rejected(command, "Not applied: local time unavailable") for command in pending]
            logger.warning("Dropped a cycle of %d commands: %s", len(pending), exc)
            raise
        results: List[CommandResult] = []
        affected: Dict[int, Tag] = {}
        try:
            for command in pending:
                result = self._handlers[type(command)](command)
                if not result.applied:
                    logger.info("Rejected %s: %s", type(command).__name__, result.detail)
                for tag in result.affected_tags:
                    affected[id(tag)] = tag
                results.append(result)
        finally:
            self._now = None
            recompute_tags(affected.values())
        return results

    def snapshot(self) -> TimeTrackerState:
        """Detached copy of the state for readers."""
        return copy.deepcopy(self.state)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    def _rejected(self, command: Command, detail: str, **kwargs) -> CommandResult:
        return CommandResult(command=command, applied=False, detail=detail, **kwargs)

    def _create_tag(self, command: CreateTag) -> CommandResult:
        from_buffer = command.name is None
        name = self.state.pending_tag_name if from_buffer else command.name
        tag = self.state.create_tag(name or "")
        if tag is None:
            return self._rejected(command, "Tag name must not be blank")
        if from_buffer:
            self.state.pending_tag_name = ""
        return CommandResult(command=command, applied=True, tag_id=tag.id)

    def _set_pending_tag_name(self, command: SetPendingTagName) -> CommandResult:
        self.state.pending_tag_name = command.text
        return CommandResult(command=command, applied=True)

    def _start_segment(self, command: StartSegment) -> CommandResult:
        tag = self.state.find_tag(command.tag_id)
        if tag is None:
            return self._rejected(command, f"Unknown tag {command.tag_id}", tag_id=command.tag_id)
        if tag.is_running:
            return self._rejected(command, f"Tag {tag.name!r} is already running", tag_id=tag.id)
        segment = tag.start(self._now, self.state.rounding_enabled, self.state.rounding_granularity_hours)
        return CommandResult(
            command=command,
            applied=True,
            tag_id=tag.id,
            segment_id=segment.id,
            display=segment.display_fields,
            affected_tags=[tag],
        )

    def _stop_segment(self, command: StopSegment) -> CommandResult:
        tag = self.state.find_tag(command.tag_id)
        if tag is None:
            return self._rejected(command, f"Unknown tag {command.tag_id}", tag_id=command.tag_id)
        if not tag.is_running:
            return self._rejected(command, f"Tag {tag.name!r} is not running", tag_id=tag.id)
        segment = tag.stop(self._now, self.state.rounding_enabled, self.state.rounding_granularity_hours)
        return CommandResult(
            command=command,
            applied=True,
            tag_id=tag.id,
            segment_id=segment.id,
            display=segment.display_fields,
            affected_tags=[tag],
        )

    def _edit_segment_field(self, command: EditSegmentField) -> CommandResult:
        match = self.state.find_segment(command.segment_id)
        if match is None:
            return self._rejected(command, f"Unknown segment {command.segment_id}", segment_id=command.segment_id)
        tag, _, segment = match
        applied = segment.edit_field(command.field, command.text)
        display = segment.display_fields
        if not applied:
            return self._rejected(
                command,
                f"Invalid value {command.text!r} for {getattr(command.field, 'value', command.field)}",
                tag_id=tag.id,
                segment_id=segment.id,
                display=display,
            )
        return CommandResult(
            command=command,
            applied=True,
            tag_id=tag.id,
            segment_id=segment.id,
            display=display,
            affected_tags=[tag],
        )

    def _delete_segment(self, command: DeleteSegment) -> CommandResult:
        match = self.state.find_segment(command.segment_id)
        if match is None:
            return self._rejected(command, f"Unknown segment {command.segment_id}", segment_id=command.segment_id)
        tag, index, segment = match
        tag.delete_segment(index)
        return CommandResult(
            command=command,
            applied=True,
            tag_id=tag.id,
            segment_id=segment.id,
            affected_tags=[tag],
        )

    def _delete_tag(self, command: DeleteTag) -> CommandResult:
        tag = self.state.remove_tag(command.tag_id)
        if tag is None:
            return self._rejected(command, f"Unknown tag {command.tag_id}", tag_id=command.tag_id)
        return CommandResult(command=command, applied=True, tag_id=tag.id)

    def _clear_session(self, command: ClearSession) -> CommandResult:
        self.state.clear_session()
        return CommandResult(command=command, applied=True, affected_tags=list(self.state.tags))

    def _set_rounding(self, command: SetRounding) -> CommandResult:
        if not is_valid_granularity(command.granularity_hours):
            return self._rejected(command, f"Invalid rounding granularity {command.granularity_hours!r}")
        self.state.rounding_enabled = bool(command.enabled)
        self.state.rounding_granularity_hours = float(command.granularity_hours)
        return CommandResult(command=command, applied=True)


__all__ = [
    "ClearSession",
    "Command",
    "CommandProcessor",
    "CommandResult",
    "CreateTag",
    "DeleteSegment",
    "DeleteTag",
    "EditSegmentField",
    "SetPendingTagName",
    "SetRounding",
    "StartSegment",
    "StopSegment",
]

from __future__ import annotations

import datetime as dt

import pytest

from timekeeper.clock import ClockUnavailableError, FixedClock
from timekeeper.commands import CreateTag, SetRounding, StartSegment, StopSegment
from timekeeper.schemas import SnapshotDocument
from timekeeper.state import TrackerContext
from timekeeper.storage import JsonSnapshotStore


class FailingStore:
    def __init__(self) -> None:
        self.attempts = 0

    def load(self):
        raise OSError("disk unreadable")

    def save(self, document: SnapshotDocument) -> None:
        self.attempts += 1
        raise OSError("disk full")


class UnreliableClock:
    def __init__(self, moment: dt.datetime) -> None:
        self.moment = moment
        self.available = True

    def now(self) -> dt.datetime:
        if not self.available:
            raise ClockUnavailableError("offset unknown")
        return self.moment


def test_execute_persists_after_applied_commands(context: TrackerContext, json_store: JsonSnapshotStore) -> None:
    context.execute(CreateTag(name="Work"), SetRounding(enabled=True, granularity_hours=0.5))
    stored = json_store.load()
    assert stored.tag_names == ["Work"]
    assert stored.minute_rounding_scale == 0.5


def test_rejected_commands_do_not_persist(context: TrackerContext, json_store: JsonSnapshotStore) -> None:
    context.execute(CreateTag(name="   "))
    assert json_store.load() is None


def test_load_restores_names_without_history(clock: FixedClock, json_store: JsonSnapshotStore) -> None:
    first = TrackerContext(clock, json_store)
    tag_id = first.execute(CreateTag(name="Work"))[0].tag_id
    first.execute(StartSegment(tag_id=tag_id))
    first.set_dark_mode(True)
    first.close()

    second = TrackerContext(clock, json_store)
    assert second.load() is True
    assert second.state.tag_names == ["Work"]
    assert second.state.tags[0].segments == []
    assert second.is_dark_mode is True


def test_storage_failures_keep_tracker_running(clock: FixedClock) -> None:
    store = FailingStore()
    context = TrackerContext(clock, store)
    assert context.load() is False
    results = context.execute(CreateTag(name="Work"))
    assert results[0].applied
    assert store.attempts == 1
    assert context.state.tag_names == ["Work"]


def test_state_property_returns_copy(context: TrackerContext) -> None:
    context.execute(CreateTag(name="Work"))
    view = context.state
    view.tags.clear()
    assert context.state.tag_names == ["Work"]


def test_clock_failure_surfaces_and_keeps_state(json_store: JsonSnapshotStore) -> None:
    clock = UnreliableClock(dt.datetime(2024, 6, 3, 9, 0, tzinfo=dt.timezone.utc))
    context = TrackerContext(clock, json_store)
    tag_id = context.execute(CreateTag(name="Work"))[0].tag_id
    context.execute(StartSegment(tag_id=tag_id))
    clock.available = False
    with pytest.raises(ClockUnavailableError):
        context.execute(StopSegment(tag_id=tag_id))
    assert context.state.tags[0].is_running is True


def test_clock_failure_leaves_batch_unapplied_and_unsaved(json_store: JsonSnapshotStore) -> None:
    clock = UnreliableClock(dt.datetime(2024, 6, 3, 9, 0, tzinfo=dt.timezone.utc))
    context = TrackerContext(clock, json_store)
    tag_id = context.execute(CreateTag(name="Work"))[0].tag_id
    clock.available = False
    with pytest.raises(ClockUnavailableError):
        context.execute(CreateTag(name="Rest"), StartSegment(tag_id=tag_id))
    assert context.state.tag_names == ["Work"]
    assert json_store.load().tag_names == ["Work"]

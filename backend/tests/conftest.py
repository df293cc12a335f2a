from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from timekeeper.clock import FixedClock
from timekeeper.commands import CommandProcessor
from timekeeper.main import create_app
from timekeeper.models import TimeTrackerState
from timekeeper.state import TrackerContext
from timekeeper.storage import JsonSnapshotStore, SqliteSnapshotStore

BERLIN = dt.timezone(dt.timedelta(hours=2))


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(dt.datetime(2024, 6, 3, 9, 7, 42, tzinfo=BERLIN))


@pytest.fixture()
def state() -> TimeTrackerState:
    return TimeTrackerState()


@pytest.fixture()
def processor(state: TimeTrackerState, clock: FixedClock) -> CommandProcessor:
    return CommandProcessor(state, clock)


@pytest.fixture()
def json_store(tmp_path: Path) -> JsonSnapshotStore:
    return JsonSnapshotStore(tmp_path / "state" / "timekeeper.json")


@pytest.fixture()
def sqlite_store(tmp_path: Path) -> SqliteSnapshotStore:
    return SqliteSnapshotStore(tmp_path / "timekeeper.db")


@pytest.fixture()
def context(clock: FixedClock, json_store: JsonSnapshotStore) -> TrackerContext:
    return TrackerContext(clock, json_store)


@pytest.fixture()
def client(context: TrackerContext) -> Generator[TestClient, None, None]:
    app = create_app(context)
    with TestClient(app) as c:
        yield c

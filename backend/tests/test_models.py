from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from timekeeper.aggregator import recompute_tag
from timekeeper.models import SegmentField, Tag, TimeSegment, TimeTrackerState

TZ = dt.timezone(dt.timedelta(hours=1))


def _at(hour: int, minute: int, second: int = 0) -> dt.datetime:
    return dt.datetime(2024, 1, 15, hour, minute, second, tzinfo=TZ)


def _closed_segment(start: dt.datetime, end: dt.datetime) -> TimeSegment:
    segment = TimeSegment.open(start, False, 0.25)
    segment.close(end, False, 0.25)
    return segment


def test_open_rounds_time_of_day_only() -> None:
    segment = TimeSegment.open(_at(6, 25, 13), True, 0.25)
    assert segment.start_time == _at(6, 30)
    assert segment.start_time.date() == dt.date(2024, 1, 15)
    assert segment.is_open
    assert segment.duration_hours == 0.0
    assert segment.display_fields.start_hour == "6"
    assert segment.display_fields.start_minute == "30"
    assert segment.display_fields.end_hour == ""


def test_open_without_rounding_keeps_instant() -> None:
    segment = TimeSegment.open(_at(6, 25, 13), False, 0.25)
    assert segment.start_time == _at(6, 25, 13)


def test_close_sets_end_and_duration() -> None:
    segment = TimeSegment.open(_at(8, 2), True, 0.25)
    assert segment.close(_at(10, 29), True, 0.25) is True
    assert segment.end_time == _at(10, 30)
    assert segment.duration_hours == pytest.approx(2.5)
    assert segment.close(_at(11, 0), True, 0.25) is False
    assert segment.end_time == _at(10, 30)


def test_close_before_start_clamps_duration_to_zero() -> None:
    segment = TimeSegment.open(_at(23, 40), False, 0.25)
    segment.close(_at(23, 55), True, 0.25)
    assert segment.end_time == _at(0, 0)
    assert segment.duration_hours == 0.0


def test_start_then_stop_yields_one_closed_segment() -> None:
    tag = Tag(name="Work")
    tag.start(_at(9, 0), True, 0.25)
    assert tag.is_running
    tag.stop(_at(9, 0), True, 0.25)
    assert len(tag.segments) == 1
    assert tag.is_running is False
    assert tag.segments[0].duration_hours >= 0


def test_start_while_running_is_noop() -> None:
    tag = Tag(name="Work")
    first = tag.start(_at(9, 0), True, 0.25)
    assert first is not None
    assert tag.start(_at(9, 30), True, 0.25) is None
    assert tag.segments == [first]


def test_stop_while_idle_is_noop() -> None:
    tag = Tag(name="Work")
    assert tag.stop(_at(9, 0), True, 0.25) is None
    assert tag.segments == []


def test_total_is_sum_of_segment_durations() -> None:
    tag = Tag(name="Work")
    tag.segments.extend(
        [
            _closed_segment(_at(8, 0), _at(9, 30)),
            _closed_segment(_at(10, 0), _at(10, 15)),
            _closed_segment(_at(13, 0), _at(17, 0)),
        ]
    )
    tag.segments.append(TimeSegment.open(_at(17, 30), False, 0.25))
    recompute_tag(tag)
    assert tag.total_hours == pytest.approx(1.5 + 0.25 + 4.0)
    assert Tag(name="Empty").total_hours == 0.0


def test_delete_last_open_segment_clears_running() -> None:
    tag = Tag(name="Work")
    tag.start(_at(8, 0), False, 0.25)
    tag.stop(_at(9, 0), False, 0.25)
    tag.start(_at(10, 0), False, 0.25)
    assert tag.is_running
    removed = tag.delete_segment(1)
    assert removed is not None and removed.is_open
    assert tag.is_running is False
    assert tag.total_hours == pytest.approx(1.0)
    assert tag.delete_segment(5) is None


def test_clear_session_keeps_name() -> None:
    tag = Tag(name="Work")
    for hour in (8, 10, 12):
        tag.start(_at(hour, 0), False, 0.25)
        tag.stop(_at(hour + 1, 0), False, 0.25)
    assert tag.total_hours == pytest.approx(3.0)
    tag.clear_session()
    assert tag.segments == []
    assert tag.is_running is False
    assert tag.total_hours == 0.0
    assert tag.name == "Work"


def test_edit_start_hour_recomputes_duration() -> None:
    segment = _closed_segment(_at(9, 0), _at(12, 0))
    assert segment.set_start_hour("10") is True
    assert segment.start_time == _at(10, 0)
    assert segment.duration_hours == pytest.approx(2.0)
    assert segment.display_fields.start_hour == "10"


@pytest.mark.parametrize("text", ["25", "-1", "abc", "", "9.5"])
def test_invalid_start_hour_leaves_timestamp_unchanged(text: str) -> None:
    segment = _closed_segment(_at(9, 15), _at(12, 0))
    assert segment.set_start_hour(text) is False
    assert segment.start_time == _at(9, 15)
    assert segment.display_fields.start_hour == "9"


def test_edit_minutes_and_end_fields() -> None:
    segment = _closed_segment(_at(9, 15), _at(12, 0))
    assert segment.set_start_minute(" 45 ") is True
    assert segment.set_end_minute("30") is True
    assert segment.set_end_hour("13") is True
    assert segment.start_time == _at(9, 45)
    assert segment.end_time == _at(13, 30)
    assert segment.duration_hours == pytest.approx(3.75)
    assert segment.set_end_minute("60") is False
    assert segment.end_time == _at(13, 30)


def test_edit_end_on_open_segment_is_rejected() -> None:
    segment = TimeSegment.open(_at(9, 0), False, 0.25)
    assert segment.edit_field(SegmentField.END_HOUR, "10") is False
    assert segment.end_time is None


def test_edit_putting_end_before_start_is_rejected() -> None:
    segment = _closed_segment(_at(9, 0), _at(10, 0))
    assert segment.set_end_hour("8") is False
    assert segment.set_start_hour("11") is False
    assert segment.start_time == _at(9, 0)
    assert segment.end_time == _at(10, 0)
    assert segment.duration_hours == pytest.approx(1.0)


def test_state_create_tag_rejects_blank_names() -> None:
    state = TimeTrackerState()
    assert state.create_tag("") is None
    assert state.create_tag("   ") is None
    tag = state.create_tag("Work")
    assert tag is not None
    assert state.tag_names == ["Work"]
    assert tag.segments == []


def test_state_allows_duplicate_names_with_distinct_identity() -> None:
    state = TimeTrackerState()
    first = state.create_tag("Work")
    second = state.create_tag("Work")
    assert first.id != second.id
    assert state.remove_tag(second.id) is second
    assert state.tags == [first]
    assert state.remove_tag("missing") is None


def test_duration_across_dst_change_uses_elapsed_time() -> None:
    berlin = ZoneInfo("Europe/Berlin")
    segment = TimeSegment.open(dt.datetime(2024, 3, 31, 1, 0, tzinfo=berlin), True, 0.25)
    segment.close(dt.datetime(2024, 3, 31, 4, 0, tzinfo=berlin), True, 0.25)
    assert segment.duration_hours == pytest.approx(2.0)

    autumn = _closed_segment(
        dt.datetime(2024, 10, 27, 1, 0, tzinfo=berlin),
        dt.datetime(2024, 10, 27, 4, 0, tzinfo=berlin),
    )
    assert autumn.duration_hours == pytest.approx(4.0)


def test_edit_order_check_compares_instants() -> None:
    berlin = ZoneInfo("Europe/Berlin")
    # 02:40 summer time, then 02:20 winter time: 40 minutes apart.
    segment = TimeSegment(
        start_time=dt.datetime(2024, 10, 27, 2, 40, tzinfo=berlin),
        end_time=dt.datetime(2024, 10, 27, 2, 20, tzinfo=berlin, fold=1),
    )
    assert segment.set_end_minute("25") is True
    assert segment.end_time.fold == 1
    assert segment.duration_hours == pytest.approx(0.75)


def test_edit_with_unknown_field_is_rejected() -> None:
    segment = _closed_segment(_at(9, 0), _at(10, 0))
    assert segment.edit_field("bogus", "3") is False
    assert segment.start_time == _at(9, 0)
    assert segment.end_time == _at(10, 0)

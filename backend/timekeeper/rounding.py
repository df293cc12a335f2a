from __future__ import annotations

import datetime as dt
import math
from typing import Tuple

TimeOfDay = Tuple[int, int]


class InvalidGranularityError(ValueError):
    """Granularity shorter than one minute (or non-positive)."""


def minute_step(granularity_hours: float) -> int:
    """Return the rounding step in whole minutes for a granularity given in hours."""
    try:
        step = math.floor(60 * float(granularity_hours))
    except (TypeError, ValueError, OverflowError) as exc:
        raise InvalidGranularityError(f"Invalid rounding granularity: {granularity_hours!r}") from exc
    if step < 1:
        raise InvalidGranularityError(f"Invalid rounding granularity: {granularity_hours!r}")
    return step


def is_valid_granularity(granularity_hours: float) -> bool:
    try:
        minute_step(granularity_hours)
    except InvalidGranularityError:
        return False
    return True


def round_time_of_day(hour: int, minute: int, granularity_hours: float) -> TimeOfDay:
    """Snap ``(hour, minute)`` to the nearest multiple of the granularity.

    Ties round up. A minute that rounds to 60 or more carries into the hour
    and lands on its first minute, so the result is stable under re-rounding
    even for steps that do not divide 60. Hour 24 wraps to 0.
    """
    step = minute_step(granularity_hours)
    rounded = math.floor(minute / step + 0.5) * step
    if rounded >= 60:
        hour += 1
        if hour > 23:
            hour = 0
        return hour, 0
    return hour, rounded


def round_timestamp(moment: dt.datetime, granularity_hours: float) -> dt.datetime:
    """Replace the time of day of ``moment`` with its rounded value.

    Date and UTC offset are kept; seconds and microseconds are dropped.
    """
    hour, minute = round_time_of_day(moment.hour, moment.minute, granularity_hours)
    return moment.replace(hour=hour, minute=minute, second=0, microsecond=0)


__all__ = [
    "InvalidGranularityError",
    "TimeOfDay",
    "is_valid_granularity",
    "minute_step",
    "round_time_of_day",
    "round_timestamp",
]

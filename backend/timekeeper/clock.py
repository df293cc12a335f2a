"""Sources of the current wall-clock time."""

from __future__ import annotations

import datetime as dt
from typing import Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class ClockUnavailableError(RuntimeError):
    """The local time (or its UTC offset) cannot be determined."""


class Clock(Protocol):
    def now(self) -> dt.datetime:
        ...


class SystemClock:
    """Reads the local time, optionally pinned to a named zone."""

    def __init__(self, timezone: Optional[str] = None) -> None:
        self.timezone = timezone

    def now(self) -> dt.datetime:
        if self.timezone:
            try:
                zone = ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ClockUnavailableError(f"Unknown timezone: {self.timezone}") from exc
            return dt.datetime.now(zone)
        try:
            current = dt.datetime.now().astimezone()
        except (OSError, OverflowError, ValueError) as exc:
            raise ClockUnavailableError("Local time offset could not be determined") from exc
        if current.utcoffset() is None:
            raise ClockUnavailableError("Local time has no UTC offset")
        return current


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, moment: dt.datetime) -> None:
        if moment.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self.moment = moment

    @property
    def timezone(self) -> Optional[str]:
        return getattr(self.moment.tzinfo, "key", None) or self.moment.tzname()

    def now(self) -> dt.datetime:
        return self.moment

    def advance(self, **delta: float) -> dt.datetime:
        self.moment = self.moment + dt.timedelta(**delta)
        return self.moment


__all__ = ["Clock", "ClockUnavailableError", "FixedClock", "SystemClock"]

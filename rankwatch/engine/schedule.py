"""
rankwatch.engine.schedule — Weekly Tournament Timetable
========================================================

Pure functions over a fixed weekly timetable.  Given a clock reading they
answer two questions:

- When did the most recent round **end**?  (:func:`last_round_end`)
- When does the next round **start**?      (:func:`next_round_start`)

Nothing here holds state or touches I/O, so every function is safe to
call from any task or thread.  All returned instants are UTC; slot times
are interpreted in the timetable's own timezone.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

__all__ = [
    "WeeklySlot",
    "Timetable",
    "RoundWindow",
    "last_round_window",
    "last_round_end",
    "next_round_start",
    "round_date",
]

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True, slots=True)
class WeeklySlot:
    """A weekly round start: ``weekday`` uses Python numbering (Monday == 0)."""

    weekday: int
    hour: int = 0
    minute: int = 0


@dataclass(frozen=True, slots=True)
class Timetable:
    """Weekly start slots plus the fixed duration of every round."""

    slots: tuple[WeeklySlot, ...]
    duration: timedelta
    timezone: str = "UTC"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True, slots=True)
class RoundWindow:
    """One round's ``[start, end)`` interval.  Derived, never persisted."""

    start: datetime
    end: datetime


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------
def _require_aware(now: datetime) -> None:
    if now.tzinfo is None:
        raise ValueError("Schedule arithmetic needs a timezone-aware datetime")


def _slot_starts(
    now: datetime, timetable: Timetable, day_offsets: Iterable[int]
) -> Iterator[datetime]:
    """Yield every slot start (UTC) on the calendar days ``today + offset``."""
    tz = timetable.tz
    today = now.astimezone(tz).date()
    for offset in day_offsets:
        day = today + timedelta(days=offset)
        for slot in timetable.slots:
            if day.weekday() == slot.weekday:
                local = datetime.combine(day, time(slot.hour, slot.minute), tzinfo=tz)
                yield local.astimezone(UTC)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def last_round_window(now: datetime, timetable: Timetable) -> RoundWindow | None:
    """Return the most recent round whose end is ``<= now``.

    Looks back one full week plus the round duration, so a timetable with a
    single weekly slot still resolves to last week's round while this
    week's is in progress.  Returns ``None`` for an empty timetable.
    """
    _require_aware(now)
    lookback = 7 + math.ceil(timetable.duration / ONE_DAY)
    latest: RoundWindow | None = None
    for start in _slot_starts(now, timetable, range(-lookback, 1)):
        end = start + timetable.duration
        if end <= now and (latest is None or end > latest.end):
            latest = RoundWindow(start=start, end=end)
    return latest


def last_round_end(now: datetime, timetable: Timetable) -> datetime | None:
    """Latest round end ``<= now``, or ``None`` when no slots are configured."""
    window = last_round_window(now, timetable)
    return window.end if window else None


def next_round_start(now: datetime, timetable: Timetable) -> datetime | None:
    """Earliest round start strictly after *now*, or ``None`` without slots."""
    _require_aware(now)
    upcoming = [s for s in _slot_starts(now, timetable, range(0, 8)) if s > now]
    return min(upcoming, default=None)


def round_date(window: RoundWindow, timetable: Timetable) -> date:
    """Calendar date (timetable timezone) a round is keyed by: its start day."""
    return window.start.astimezone(timetable.tz).date()

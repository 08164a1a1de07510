"""
tests/test_schedule.py — Weekly Timetable Arithmetic
=====================================================
Covers last-round-end / next-round-start lookups, the lookback window for
long rounds, timezone handling and the round date key.

Reference week: Monday 2026-10-19 .. Sunday 2026-10-25.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from rankwatch.engine.schedule import (
    RoundWindow,
    Timetable,
    WeeklySlot,
    last_round_end,
    last_round_window,
    next_round_start,
    round_date,
)

TUESDAY_ONLY = Timetable(slots=(WeeklySlot(1),), duration=timedelta(hours=28))
TUE_FRI = Timetable(
    slots=(WeeklySlot(1), WeeklySlot(4)), duration=timedelta(hours=28)
)
EMPTY = Timetable(slots=(), duration=timedelta(hours=28))


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


class TestLastRoundEnd:
    """Latest round end at or before now."""

    def test_round_still_running_returns_previous_week(self):
        # This week's round ends Wed 04:00; at 03:00 it has not ended yet.
        now = utc(2026, 10, 21, 3, 0)
        assert last_round_end(now, TUESDAY_ONLY) == utc(2026, 10, 14, 4, 0)

    def test_end_boundary_is_inclusive(self):
        now = utc(2026, 10, 21, 4, 0)
        assert last_round_end(now, TUESDAY_ONLY) == utc(2026, 10, 21, 4, 0)

    def test_picks_latest_of_several_slots(self):
        now = utc(2026, 10, 24, 12, 0)  # Saturday, after Friday's round
        window = last_round_window(now, TUE_FRI)
        assert window == RoundWindow(utc(2026, 10, 23), utc(2026, 10, 24, 4, 0))

    def test_between_rounds_returns_earlier_slot(self):
        now = utc(2026, 10, 22, 9, 0)  # Thursday
        assert last_round_end(now, TUE_FRI) == utc(2026, 10, 21, 4, 0)

    def test_long_round_still_finds_previous_week(self):
        # Six-day rounds starting Monday: on Saturday the current one is
        # running and the concluded one started twelve days earlier.
        long_rounds = Timetable(slots=(WeeklySlot(0),), duration=timedelta(days=6))
        now = utc(2026, 10, 24, 12, 0)
        window = last_round_window(now, long_rounds)
        assert window is not None
        assert window.start == utc(2026, 10, 12)
        assert window.end == utc(2026, 10, 18)

    def test_empty_timetable(self):
        assert last_round_end(utc(2026, 10, 21), EMPTY) is None
        assert last_round_window(utc(2026, 10, 21), EMPTY) is None

    def test_naive_now_rejected(self):
        with pytest.raises(ValueError):
            last_round_end(datetime(2026, 10, 21), TUESDAY_ONLY)


class TestNextRoundStart:
    """Earliest start strictly after now."""

    def test_later_this_week(self):
        now = utc(2026, 10, 19, 12, 0)  # Monday
        assert next_round_start(now, TUE_FRI) == utc(2026, 10, 20)

    def test_start_instant_is_excluded(self):
        now = utc(2026, 10, 20)
        assert next_round_start(now, TUE_FRI) == utc(2026, 10, 23)

    def test_wraps_into_next_week(self):
        now = utc(2026, 10, 24, 12, 0)  # Saturday
        assert next_round_start(now, TUE_FRI) == utc(2026, 10, 27)

    def test_single_slot_same_weekday_after_start(self):
        now = utc(2026, 10, 20, 0, 1)
        assert next_round_start(now, TUESDAY_ONLY) == utc(2026, 10, 27)

    def test_empty_timetable(self):
        assert next_round_start(utc(2026, 10, 21), EMPTY) is None

    def test_naive_now_rejected(self):
        with pytest.raises(ValueError):
            next_round_start(datetime(2026, 10, 21), TUE_FRI)


class TestTimezones:
    """Slots are local to the timetable's zone; results are UTC."""

    NEW_YORK = Timetable(
        slots=(WeeklySlot(1),),
        duration=timedelta(hours=28),
        timezone="America/New_York",
    )

    def test_local_midnight_converted_to_utc(self):
        # EDT is UTC-4 in October.
        window = last_round_window(utc(2026, 10, 22), self.NEW_YORK)
        assert window == RoundWindow(utc(2026, 10, 20, 4, 0), utc(2026, 10, 21, 8, 0))
        assert window.end.tzinfo is UTC

    def test_round_date_uses_local_start_day(self):
        window = last_round_window(utc(2026, 10, 22), self.NEW_YORK)
        assert round_date(window, self.NEW_YORK) == date(2026, 10, 20)


class TestRoundDate:
    def test_keyed_by_start_day_not_end_day(self):
        window = last_round_window(utc(2026, 10, 21, 12, 0), TUESDAY_ONLY)
        assert round_date(window, TUESDAY_ONLY) == date(2026, 10, 20)

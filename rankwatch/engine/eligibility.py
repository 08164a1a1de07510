"""
rankwatch.engine.eligibility — Poll Gate
=========================================

Decides, per guild and per tick, whether the expensive detection +
ingestion pipeline should run.  All four conditions must hold:

1. ``now >= last_end + grace``       — upstream had time to finalize results
2. ``last_ingested_at < last_end``   — this round is not recorded yet
3. ``now < next_start``              — the following round has not begun
4. ``now - last_checked_at >= min_recheck`` — rate-limit rechecks

``next_start`` is the start of the round *after* the concluded one.  The
caller derives it with :func:`next_start_after`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from rankwatch.engine.schedule import RoundWindow, Timetable, next_round_start

__all__ = ["GateDecision", "evaluate_gate", "next_start_after"]


@dataclass(frozen=True, slots=True)
class GateDecision:
    """Each condition's verdict, kept separately for logging and tests."""

    results_final: bool
    not_ingested: bool
    before_next_round: bool
    recheck_due: bool

    @property
    def eligible(self) -> bool:
        return (
            self.results_final
            and self.not_ingested
            and self.before_next_round
            and self.recheck_due
        )

    def describe(self) -> str:
        failed = [
            name
            for name in ("results_final", "not_ingested", "before_next_round", "recheck_due")
            if not getattr(self, name)
        ]
        return "eligible" if not failed else "blocked by " + ", ".join(failed)


NEVER_ELIGIBLE = GateDecision(False, False, False, False)


def evaluate_gate(
    now: datetime,
    last_end: datetime | None,
    next_start: datetime | None,
    last_checked_at: datetime | None,
    last_ingested_at: datetime | None,
    grace: timedelta,
    min_recheck: timedelta,
) -> GateDecision:
    """Evaluate the four timing conditions.

    ``None`` timestamps mean "never happened".  A missing ``last_end``
    (empty timetable) is never eligible; a missing ``next_start`` leaves
    condition 3 satisfied.
    """
    if last_end is None:
        return NEVER_ELIGIBLE

    return GateDecision(
        results_final=now >= last_end + grace,
        not_ingested=last_ingested_at is None or last_ingested_at < last_end,
        before_next_round=next_start is None or now < next_start,
        recheck_due=last_checked_at is None or now - last_checked_at >= min_recheck,
    )


def next_start_after(window: RoundWindow, timetable: Timetable) -> datetime | None:
    """Start of the first round after *window* began."""
    return next_round_start(window.start, timetable)

"""
rankwatch.engine.fingerprint — Leaderboard Change Signal
=========================================================

The global leaderboard only changes when a round's results are published,
so a cheap digest of its top entries tells us whether a new round has
concluded without scraping every tracked player.

The digest is the classic 31-multiplier string fold truncated to a signed
32-bit integer.  Collisions are acceptable: this is a change signal, not a
security digest.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = ["LeaderboardEntry", "ChangeSignal", "fingerprint", "detect_change"]

_MASK = 0xFFFFFFFF


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    """One row of the global results table, kept as displayed text."""

    rank: str
    name: str
    score: str


@dataclass(frozen=True, slots=True)
class ChangeSignal:
    """Outcome of comparing a fresh snapshot against the stored fingerprint."""

    new_round: bool
    fingerprint: int | None = None
    reason: str = ""


def _to_int32(value: int) -> int:
    value &= _MASK
    return value - (1 << 32) if value & 0x80000000 else value


def fingerprint(snapshot: Sequence[LeaderboardEntry]) -> int:
    """Order-sensitive fold of ``rank:name:score`` entries into an int32.

    Entries are joined with ``|`` and folded over their UTF-16 code units,
    so the value is stable across processes and platforms.
    """
    data = "|".join(f"{e.rank}:{e.name}:{e.score}" for e in snapshot)
    units = data.encode("utf-16-le")
    value = 0
    for i in range(0, len(units), 2):
        code = units[i] | (units[i + 1] << 8)
        value = _to_int32((value << 5) - value + code)
    return value


def detect_change(
    snapshot: Sequence[LeaderboardEntry], last_fingerprint: str | None
) -> ChangeSignal:
    """Decide whether *snapshot* signals a round we have not ingested.

    An empty snapshot means the leaderboard could not be read; that is
    reported as "no new round" so a flaky upstream never double-posts.
    """
    if not snapshot:
        return ChangeSignal(new_round=False, reason="empty snapshot")

    current = fingerprint(snapshot)
    if last_fingerprint is not None and str(current) == last_fingerprint:
        return ChangeSignal(new_round=False, fingerprint=current, reason="unchanged")
    return ChangeSignal(new_round=True, fingerprint=current, reason="changed")

"""
rankwatch.engine.normalizer — Page Rows → Round Candidates
===========================================================

Turns the raw text the scraper pulled off each player page into typed
round candidates, ready to be keyed and persisted.

Shared fields
-------------
Patch version and battle conditions are the same for everyone in a
round, but not every page shows them.  The guild-wide value is taken from
the first candidate that supplies it and fills the gaps for the others.
Candidates whose own value disagrees keep it; their ids are reported in
:attr:`NormalizedRound.mismatched` so the caller can log the drift.

Stale rows
----------
A player page lists the newest round the player *played*, which is not
always the round that just concluded.  When the round name carries an ISO
date it is checked against the concluded round's calendar days; rows
without a date are taken as current.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date

from rankwatch.constants import (
    CONDITIONS_LEN,
    CONDITIONS_SEPARATOR,
    DISPLAY_NAME_LEN,
    FALLBACK_RANK,
    FALLBACK_SCORE,
    LEAGUE_LEN,
    PATCH_VERSION_LEN,
    ROUND_NAME_LEN,
    UNKNOWN,
    UNKNOWN_ROUND_NAME,
)
from rankwatch.scraping.source import ParticipantPage

logger = logging.getLogger(__name__)

__all__ = [
    "RoundCandidate",
    "NormalizedRound",
    "parse_count",
    "split_conditions",
    "clip",
    "fit_conditions",
    "row_round_date",
    "to_candidate",
    "normalize_results",
]

_NUMBER = re.compile(r"-?\d+")
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True, slots=True)
class RoundCandidate:
    """One participant's result for the concluded round."""

    participant_id: str
    player_name: str
    round_name: str
    score: int
    rank: int
    league: str
    patch_version: str
    conditions: tuple[str, ...]
    is_watch_list: bool = False

    @property
    def conditions_text(self) -> str:
        return CONDITIONS_SEPARATOR.join(self.conditions)


@dataclass(frozen=True, slots=True)
class NormalizedRound:
    """All candidates of one ingestion run plus the guild-wide shared fields."""

    candidates: tuple[RoundCandidate, ...] = ()
    patch_version: str = UNKNOWN
    conditions: tuple[str, ...] = ()
    mismatched: tuple[str, ...] = field(default=())
    stale: tuple[str, ...] = ()

    @property
    def members(self) -> list[RoundCandidate]:
        return [c for c in self.candidates if not c.is_watch_list]

    @property
    def watch_list(self) -> list[RoundCandidate]:
        return [c for c in self.candidates if c.is_watch_list]


def parse_count(text: str | None, default: int) -> int:
    """Parse a displayed number such as ``"1,234"`` or ``"#12"``."""
    if not text:
        return default
    match = _NUMBER.search(text.replace(",", "").replace(" ", ""))
    return int(match.group()) if match else default


def split_conditions(text: str | None) -> tuple[str, ...]:
    """``"Fast / Strong"`` → ``("Fast", "Strong")``; blanks are dropped."""
    if not text:
        return ()
    return tuple(part.strip() for part in text.split("/") if part.strip())


def clip(text: str, width: int) -> str:
    """Trim *text* to a column width."""
    return text if len(text) <= width else text[:width].rstrip()


def fit_conditions(parts: tuple[str, ...], width: int = CONDITIONS_LEN) -> tuple[str, ...]:
    """Keep leading conditions while their joined text fits in *width*."""
    kept: list[str] = []
    for part in parts:
        joined = CONDITIONS_SEPARATOR.join([*kept, part])
        if len(joined) > width:
            if not kept:
                kept.append(clip(part, width))
            break
        kept.append(part)
    return tuple(kept)


def row_round_date(round_name: str) -> date | None:
    """ISO date embedded in a round name, if the site printed one."""
    match = _ISO_DATE.search(round_name)
    if match is None:
        return None
    try:
        return date.fromisoformat(match.group())
    except ValueError:
        return None


def to_candidate(
    page: ParticipantPage, *, is_watch_list: bool = False
) -> RoundCandidate | None:
    """Map one page to a candidate; ``None`` when there is no round data.

    Text fields are clipped to their column widths.
    """
    if not page.has_round:
        return None
    row = page.row
    assert row is not None
    return RoundCandidate(
        participant_id=page.participant_id,
        player_name=clip(page.player_name or page.participant_id, DISPLAY_NAME_LEN),
        round_name=clip(row.round_name or UNKNOWN_ROUND_NAME, ROUND_NAME_LEN),
        score=parse_count(row.score, FALLBACK_SCORE),
        rank=parse_count(row.rank, FALLBACK_RANK),
        league=clip(row.league or UNKNOWN, LEAGUE_LEN),
        patch_version=clip(row.patch_version, PATCH_VERSION_LEN),
        conditions=fit_conditions(split_conditions(row.conditions)),
        is_watch_list=is_watch_list,
    )


def normalize_results(
    pages: Iterable[ParticipantPage],
    watch_list_ids: Iterable[str] = (),
    round_span: tuple[date, date] | None = None,
) -> NormalizedRound:
    """Normalize every page, derive shared fields and back-fill gaps.

    With *round_span* (first and last calendar day of the concluded round),
    a row whose name carries a date outside the span is an older round the
    player happened to play last; it is dropped and listed in ``stale``.
    Rows without a date are kept.
    """
    watch = set(watch_list_ids)
    raw: list[RoundCandidate] = []
    stale: list[str] = []
    for page in pages:
        c = to_candidate(page, is_watch_list=page.participant_id in watch)
        if c is None:
            continue
        played = row_round_date(c.round_name)
        if round_span and played and not round_span[0] <= played <= round_span[1]:
            stale.append(c.participant_id)
            continue
        raw.append(c)

    if stale:
        logger.info(
            "Skipped %d players whose latest row is another round: %s",
            len(stale), ", ".join(stale),
        )

    shared_patch = next((c.patch_version for c in raw if c.patch_version), "")
    shared_conditions = next((c.conditions for c in raw if c.conditions), ())

    mismatched: list[str] = []
    candidates: list[RoundCandidate] = []
    for c in raw:
        if (c.patch_version and c.patch_version != shared_patch) or (
            c.conditions and c.conditions != shared_conditions
        ):
            mismatched.append(c.participant_id)
        candidates.append(
            replace(
                c,
                patch_version=c.patch_version or shared_patch or UNKNOWN,
                conditions=c.conditions or shared_conditions,
            )
        )

    if mismatched:
        logger.warning(
            "Shared round fields differ for %d players: %s",
            len(mismatched), ", ".join(mismatched),
        )

    return NormalizedRound(
        candidates=tuple(candidates),
        patch_version=shared_patch or UNKNOWN,
        conditions=shared_conditions,
        mismatched=tuple(mismatched),
        stale=tuple(stale),
    )

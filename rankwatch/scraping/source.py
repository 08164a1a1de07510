"""
rankwatch.scraping.source — Upstream Fetch Contract
====================================================

The pipeline never looks at HTML.  It talks to a :class:`ResultSource`,
which returns either a leaderboard snapshot or a :class:`ParticipantPage`
carrying a structured :class:`FetchStatus`.  Anything that depends on the
page's copy or layout (e.g. matching "Player not found") lives in the
parsing helpers below and in the concrete source, never in the pipeline.

Transport problems (timeouts, connection errors) are **raised**; the
scrape orchestrator catches them per participant.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from rankwatch.constants import PLAYER_NOT_FOUND_TEXT
from rankwatch.engine.fingerprint import LeaderboardEntry

logger = logging.getLogger(__name__)

# Column positions in the upstream tables.
_LEADERBOARD_RANK_COL = 0
_LEADERBOARD_NAME_COL = 3
_LEADERBOARD_SCORE_COL = 5
_LEADERBOARD_MIN_CELLS = 6

_PLAYER_MIN_CELLS = 5


class FetchStatus(enum.StrEnum):
    """What a participant page turned out to be."""
    FOUND = "found"
    NOT_FOUND = "not_found"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True, slots=True)
class RoundRow:
    """The newest tournament row on a player page, as displayed text."""

    round_name: str
    score: str
    rank: str
    league: str = ""
    patch_version: str = ""
    conditions: str = ""


@dataclass(frozen=True, slots=True)
class ParticipantPage:
    """Structured result of fetching one participant's detail page."""

    participant_id: str
    status: FetchStatus
    player_name: str | None = None
    row: RoundRow | None = None

    @property
    def has_round(self) -> bool:
        return self.status is FetchStatus.FOUND and self.row is not None


class ResultSource(Protocol):
    """Read-only access to the upstream statistics site."""

    async def fetch_leaderboard(self, size: int) -> list[LeaderboardEntry]:
        """Top *size* rows of the global results table (may be empty)."""
        ...

    async def fetch_participant(self, participant_id: str) -> ParticipantPage:
        """Detail page for one participant id."""
        ...


# ---------------------------------------------------------------------------
# Table parsing (shared by every concrete source)
# ---------------------------------------------------------------------------
def parse_leaderboard_rows(
    rows: Sequence[Sequence[str]], size: int
) -> list[LeaderboardEntry]:
    """Turn raw ``<td>`` text rows into leaderboard entries.

    Header rows carry no ``<td>`` cells and are skipped along with any row
    too short to hold a rank, name and score.
    """
    entries: list[LeaderboardEntry] = []
    for cells in rows:
        if len(cells) < _LEADERBOARD_MIN_CELLS:
            continue
        entries.append(
            LeaderboardEntry(
                rank=cells[_LEADERBOARD_RANK_COL].strip(),
                name=cells[_LEADERBOARD_NAME_COL].strip(),
                score=cells[_LEADERBOARD_SCORE_COL].strip(),
            )
        )
        if len(entries) >= size:
            break
    return entries


def _cell(cells: Sequence[str], index: int) -> str:
    return cells[index].strip() if index < len(cells) else ""


def parse_participant_page(
    participant_id: str,
    body_text: str,
    player_name: str | None,
    rows: Sequence[Sequence[str]],
) -> ParticipantPage:
    """Classify a rendered player page and pull out its newest round row.

    Columns: name, score, rank, (unused), patch, conditions, league.
    """
    if PLAYER_NOT_FOUND_TEXT in body_text:
        return ParticipantPage(participant_id, FetchStatus.NOT_FOUND)

    name = (player_name or "").strip() or None
    for cells in rows:
        if len(cells) < _PLAYER_MIN_CELLS:
            continue
        row = RoundRow(
            round_name=_cell(cells, 0),
            score=_cell(cells, 1),
            rank=_cell(cells, 2),
            patch_version=_cell(cells, 4),
            conditions=_cell(cells, 5),
            league=_cell(cells, 6),
        )
        if not row.score and not row.rank:
            return ParticipantPage(participant_id, FetchStatus.PARSE_ERROR, name)
        return ParticipantPage(participant_id, FetchStatus.FOUND, name, row)

    # Player exists but has not played a tournament yet.
    return ParticipantPage(participant_id, FetchStatus.FOUND, name)

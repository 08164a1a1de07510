"""
rankwatch.services.round_service — Round Persistence & History
===============================================================

Write path
----------
:func:`persist_round` stores one ingestion run:

1. Every :class:`RoundRecord` is upserted inside **one** transaction,
   keyed by ``(guild_id, participant_id, round_date)``.  A re-run for the
   same round replaces rows instead of duplicating them.  Any error rolls
   the whole batch back.
2. Only after that commit does the guild's ``last_fingerprint`` /
   ``last_ingested_at`` advance.  A crash in between makes the next poll
   re-detect and re-upsert, which is harmless.

Read path
---------
History and aggregate stats per player, newest first.

All functions are synchronous; call them via ``run_db()`` from async code.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import date, datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from rankwatch.constants import TREND_WINDOW
from rankwatch.database.engine import as_utc, get_session
from rankwatch.database.models import GuildSyncState, RoundHistory

logger = logging.getLogger(__name__)

# Rows per INSERT statement (keeps SQLite under its bound-parameter limit).
UPSERT_CHUNK = 500

_KEY_COLUMNS = ("guild_id", "participant_id", "round_date")


@dataclass(frozen=True, slots=True)
class RoundRecord:
    """One participant's result for one round, as stored for one guild."""

    guild_id: int
    participant_id: str
    chat_user_id: int | None
    round_date: date
    round_name: str
    score: int
    rank: int
    league: str
    patch_version: str
    conditions: str
    observed_at: datetime

    @property
    def key(self) -> tuple[int, str, date]:
        return (self.guild_id, self.participant_id, self.round_date)


class Trend(enum.StrEnum):
    UP = "📈"
    DOWN = "📉"
    FLAT = "↔️"


@dataclass(frozen=True, slots=True)
class PlayerStats:
    """Aggregates over every stored round of one player in one guild.

    The trends compare the newest of the last ``TREND_WINDOW`` rounds with
    the oldest of them.  For rank, a smaller number counts as ``UP``.
    """

    total_rounds: int
    best_score: int
    best_rank: int
    average_score: float
    average_rank: float
    current_league: str
    score_trend: Trend = Trend.FLAT
    rank_trend: Trend = Trend.FLAT


def trend_between(oldest: int, newest: int, *, lower_is_better: bool = False) -> Trend:
    if newest == oldest:
        return Trend.FLAT
    improved = newest < oldest if lower_is_better else newest > oldest
    return Trend.UP if improved else Trend.DOWN


def _to_record(row: RoundHistory) -> RoundRecord:
    return RoundRecord(
        guild_id=row.guild_id,
        participant_id=row.participant_id,
        chat_user_id=row.chat_user_id,
        round_date=row.round_date,
        round_name=row.round_name,
        score=row.score,
        rank=row.rank,
        league=row.league,
        patch_version=row.patch_version,
        conditions=row.conditions,
        observed_at=as_utc(row.observed_at),
    )


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Round upsert is not supported on dialect {dialect!r}")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def upsert_round_records(session: Session, records: Sequence[RoundRecord]) -> int:
    """Insert-or-replace *records* in the caller's transaction.

    Later records win when the same key appears twice.
    """
    by_key = {r.key: asdict(r) for r in records}
    rows = list(by_key.values())
    if not rows:
        return 0

    insert = _insert_for(session)
    for start in range(0, len(rows), UPSERT_CHUNK):
        stmt = insert(RoundHistory).values(rows[start:start + UPSERT_CHUNK])
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_KEY_COLUMNS),
            set_={
                col: stmt.excluded[col]
                for col in rows[0]
                if col not in _KEY_COLUMNS
            },
        )
        session.execute(stmt)
    return len(rows)


def persist_round(
    engine: Engine,
    guild_id: int,
    records: Sequence[RoundRecord],
    fingerprint: int | str | None,
    ingested_at: datetime,
    *,
    advance_state: bool = True,
) -> int:
    """Commit *records*, then advance the guild's sync state.

    A ``None`` *fingerprint* keeps the stored one (forced re-runs without a
    readable leaderboard).  With ``advance_state=False`` the records are
    provisional: the sync state is left alone so the next eligible tick
    ingests the round again.  Raises whatever the database raised; in that
    case nothing was written and the sync state is unchanged.
    """
    with get_session(engine) as session:
        written = upsert_round_records(session, records)

    if not advance_state:
        logger.info("Guild %d: stored %d provisional round records", guild_id, written)
        return written

    values: dict = {"last_ingested_at": ingested_at}
    if fingerprint is not None:
        values["last_fingerprint"] = str(fingerprint)
    with get_session(engine) as session:
        session.execute(
            update(GuildSyncState)
            .where(GuildSyncState.guild_id == guild_id)
            .values(**values)
        )

    logger.info("Guild %d: persisted %d round records", guild_id, written)
    return written


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_round_records(
    engine: Engine, guild_id: int, round_date: date | None = None
) -> list[RoundRecord]:
    """Stored rows for a guild (optionally one round), best rank first."""
    with get_session(engine) as session:
        stmt = select(RoundHistory).where(RoundHistory.guild_id == guild_id)
        if round_date is not None:
            stmt = stmt.where(RoundHistory.round_date == round_date)
        rows = session.scalars(
            stmt.order_by(RoundHistory.round_date.desc(), RoundHistory.rank)
        ).all()
        return [_to_record(r) for r in rows]


def get_player_history(
    engine: Engine, guild_id: int, participant_id: str, limit: int = 5
) -> list[RoundRecord]:
    """The player's last *limit* rounds in this guild, newest first."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(RoundHistory)
            .where(
                RoundHistory.guild_id == guild_id,
                RoundHistory.participant_id == participant_id,
            )
            .order_by(RoundHistory.round_date.desc(), RoundHistory.observed_at.desc())
            .limit(limit)
        ).all()
        return [_to_record(r) for r in rows]


def get_player_stats(
    engine: Engine, guild_id: int, participant_id: str
) -> PlayerStats | None:
    """Aggregate the player's history; ``None`` if nothing is stored yet."""
    where = (
        RoundHistory.guild_id == guild_id,
        RoundHistory.participant_id == participant_id,
    )
    with get_session(engine) as session:
        agg = session.execute(
            select(
                func.count().label("total"),
                func.max(RoundHistory.score).label("best_score"),
                func.min(RoundHistory.rank).label("best_rank"),
                func.avg(RoundHistory.score).label("avg_score"),
                func.avg(RoundHistory.rank).label("avg_rank"),
            ).where(*where)
        ).one()
        if not agg.total:
            return None

        recent = session.execute(
            select(RoundHistory.score, RoundHistory.rank, RoundHistory.league)
            .where(*where)
            .order_by(RoundHistory.round_date.desc(), RoundHistory.observed_at.desc())
            .limit(TREND_WINDOW)
        ).all()

    newest, oldest = recent[0], recent[-1]
    return PlayerStats(
        total_rounds=agg.total,
        best_score=agg.best_score,
        best_rank=agg.best_rank,
        average_score=float(agg.avg_score),
        average_rank=float(agg.avg_rank),
        current_league=newest.league or "",
        score_trend=trend_between(oldest.score, newest.score),
        rank_trend=trend_between(oldest.rank, newest.rank, lower_is_better=True),
    )

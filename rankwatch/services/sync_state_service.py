"""
rankwatch.services.sync_state_service — Guild Opt-in & Poll Bookkeeping
========================================================================

One :class:`~rankwatch.database.models.GuildSyncState` row per guild that
opted in to tournament tracking.  Reads return a detached
:class:`SyncSnapshot` with UTC-normalized timestamps so the gate can
compare them against an aware ``now``.

``last_fingerprint`` and ``last_ingested_at`` are written only by
:func:`rankwatch.services.round_service.persist_round`, after the round's
records are committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, delete, select, update

from rankwatch.database.engine import as_utc, get_session
from rankwatch.database.models import GuildSyncState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SyncSnapshot:
    """Read-only copy of a guild's sync state."""

    guild_id: int
    notify_target: int | None
    last_checked_at: datetime | None
    last_ingested_at: datetime | None
    last_fingerprint: str | None


def _snapshot(row: GuildSyncState) -> SyncSnapshot:
    return SyncSnapshot(
        guild_id=row.guild_id,
        notify_target=row.notify_target,
        last_checked_at=as_utc(row.last_checked_at),
        last_ingested_at=as_utc(row.last_ingested_at),
        last_fingerprint=row.last_fingerprint,
    )


# ---------------------------------------------------------------------------
# Opt-in / opt-out
# ---------------------------------------------------------------------------
def enable_guild(engine: Engine, guild_id: int, notify_target: int | None) -> bool:
    """Create the guild's sync state, or re-point its notify target.

    Returns True when the guild was newly enabled.  Poll bookkeeping of an
    existing guild is left untouched.
    """
    with get_session(engine) as session:
        row = session.get(GuildSyncState, guild_id)
        if row is not None:
            row.notify_target = notify_target
            return False
        session.add(GuildSyncState(guild_id=guild_id, notify_target=notify_target))
    logger.info("Tournament tracking enabled for guild %d", guild_id)
    return True


def disable_guild(engine: Engine, guild_id: int) -> bool:
    """Drop the guild's sync state.  Round history stays as a ledger."""
    with get_session(engine) as session:
        result = session.execute(
            delete(GuildSyncState).where(GuildSyncState.guild_id == guild_id)
        )
    return bool(result.rowcount)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_sync_state(engine: Engine, guild_id: int) -> SyncSnapshot | None:
    with get_session(engine) as session:
        row = session.get(GuildSyncState, guild_id)
        return _snapshot(row) if row else None


def list_sync_states(engine: Engine) -> list[SyncSnapshot]:
    """Every opted-in guild, in a stable order."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(GuildSyncState).order_by(GuildSyncState.guild_id)
        ).all()
        return [_snapshot(r) for r in rows]


# ---------------------------------------------------------------------------
# Poll bookkeeping
# ---------------------------------------------------------------------------
def mark_checked(engine: Engine, guild_id: int, checked_at: datetime) -> None:
    """Stamp ``last_checked_at`` before detection runs."""
    with get_session(engine) as session:
        session.execute(
            update(GuildSyncState)
            .where(GuildSyncState.guild_id == guild_id)
            .values(last_checked_at=checked_at)
        )

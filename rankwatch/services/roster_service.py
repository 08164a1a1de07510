"""
rankwatch.services.roster_service — Tracked & Watched Players
==============================================================

A guild's roster is the union of its members' registered player ids and
its watch list (players of interest).  The same player id may appear in
both and in any number of guilds; :func:`load_roster` deduplicates per
guild, preferring the member entry so results stay linked to a Discord
user.

All functions are synchronous; call them via ``run_db()`` from async code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Engine, delete, select

from rankwatch.constants import DISPLAY_NAME_LEN, PARTICIPANT_ID_LEN
from rankwatch.database.engine import get_session
from rankwatch.database.models import TrackedPlayer, WatchedPlayer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RosterEntry:
    """One deduplicated roster slot."""

    participant_id: str
    display_name: str
    chat_user_id: int | None = None
    is_watch_list: bool = False


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_roster(engine: Engine, guild_id: int) -> list[RosterEntry]:
    """Members first (by registration order), then watch-list extras."""
    with get_session(engine) as session:
        members = session.scalars(
            select(TrackedPlayer)
            .where(TrackedPlayer.guild_id == guild_id)
            .order_by(TrackedPlayer.added_at, TrackedPlayer.participant_id)
        ).all()
        watched = session.scalars(
            select(WatchedPlayer)
            .where(WatchedPlayer.guild_id == guild_id)
            .order_by(WatchedPlayer.added_at, WatchedPlayer.participant_id)
        ).all()

        roster: dict[str, RosterEntry] = {}
        for m in members:
            roster.setdefault(
                m.participant_id,
                RosterEntry(m.participant_id, m.display_name, m.chat_user_id),
            )
        for w in watched:
            roster.setdefault(
                w.participant_id,
                RosterEntry(w.participant_id, w.display_name, None, is_watch_list=True),
            )
    return list(roster.values())


def find_member_by_user(
    engine: Engine, guild_id: int, chat_user_id: int
) -> RosterEntry | None:
    """Look up the player id a Discord user registered in *guild_id*."""
    with get_session(engine) as session:
        row = session.scalar(
            select(TrackedPlayer).where(
                TrackedPlayer.guild_id == guild_id,
                TrackedPlayer.chat_user_id == chat_user_id,
            )
        )
        if row is None:
            return None
        return RosterEntry(row.participant_id, row.display_name, row.chat_user_id)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _normalize_id(participant_id: str) -> str:
    participant_id = participant_id.strip().upper()
    if not participant_id or len(participant_id) > PARTICIPANT_ID_LEN:
        raise ValueError(f"Invalid player id: {participant_id!r}")
    return participant_id


def add_tracked_player(
    engine: Engine,
    guild_id: int,
    participant_id: str,
    display_name: str,
    chat_user_id: int | None = None,
) -> bool:
    """Register a member's player id.  Returns False if it was already tracked.

    Raises ``ValueError`` for a blank or over-long id.
    """
    participant_id = _normalize_id(participant_id)
    display_name = display_name[:DISPLAY_NAME_LEN]
    with get_session(engine) as session:
        existing = session.get(TrackedPlayer, (guild_id, participant_id))
        if existing is not None:
            existing.display_name = display_name
            if chat_user_id is not None:
                existing.chat_user_id = chat_user_id
            return False
        session.add(
            TrackedPlayer(
                guild_id=guild_id,
                participant_id=participant_id,
                display_name=display_name,
                chat_user_id=chat_user_id,
            )
        )
    logger.info("Guild %d now tracks player %s", guild_id, participant_id)
    return True


def remove_tracked_player(engine: Engine, guild_id: int, participant_id: str) -> bool:
    """Stop tracking a member.  Round history is kept."""
    with get_session(engine) as session:
        result = session.execute(
            delete(TrackedPlayer).where(
                TrackedPlayer.guild_id == guild_id,
                TrackedPlayer.participant_id == participant_id.strip().upper(),
            )
        )
        return bool(result.rowcount)


def add_watched_player(
    engine: Engine,
    guild_id: int,
    participant_id: str,
    display_name: str,
    added_by: int | None = None,
) -> bool:
    """Follow a player of interest.  Returns False if already on the list."""
    participant_id = _normalize_id(participant_id)
    display_name = display_name[:DISPLAY_NAME_LEN]
    with get_session(engine) as session:
        if session.get(WatchedPlayer, (guild_id, participant_id)) is not None:
            return False
        session.add(
            WatchedPlayer(
                guild_id=guild_id,
                participant_id=participant_id,
                display_name=display_name,
                added_by=added_by,
            )
        )
    logger.info("Guild %d now watches player %s", guild_id, participant_id)
    return True


def remove_watched_player(engine: Engine, guild_id: int, participant_id: str) -> bool:
    with get_session(engine) as session:
        result = session.execute(
            delete(WatchedPlayer).where(
                WatchedPlayer.guild_id == guild_id,
                WatchedPlayer.participant_id == participant_id.strip().upper(),
            )
        )
        return bool(result.rowcount)


def update_player_names(engine: Engine, guild_id: int, names: dict[str, str]) -> int:
    """Refresh stored display names from freshly scraped pages.

    Returns the number of roster rows whose name changed.
    """
    if not names:
        return 0
    changed = 0
    with get_session(engine) as session:
        for model in (TrackedPlayer, WatchedPlayer):
            rows = session.scalars(
                select(model).where(
                    model.guild_id == guild_id,
                    model.participant_id.in_(list(names)),
                )
            ).all()
            for row in rows:
                new_name = (names[row.participant_id] or "")[:DISPLAY_NAME_LEN]
                if new_name and row.display_name != new_name:
                    row.display_name = new_name
                    changed += 1
    return changed

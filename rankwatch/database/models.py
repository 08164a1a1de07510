"""
rankwatch.database.models — SQLAlchemy 2.0 Data Models
=======================================================

Tables:
- guild_sync_state  — One row per opted-in guild: notify target + poll bookkeeping
- tracked_players   — Guild roster members (player id ↔ Discord user)
- watched_players   — Players of interest a guild follows without membership
- round_history     — One result per player per round per guild (historical ledger)
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from rankwatch.constants import (
    CONDITIONS_LEN,
    DISPLAY_NAME_LEN,
    LEAGUE_LEN,
    PARTICIPANT_ID_LEN,
    PATCH_VERSION_LEN,
    ROUND_NAME_LEN,
)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Rankwatch ORM models."""


# ---------------------------------------------------------------------------
# GuildSyncState — created on opt-in, advanced by the poll loop
# ---------------------------------------------------------------------------
class GuildSyncState(Base):
    __tablename__ = "guild_sync_state"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    notify_target: Mapped[int | None] = mapped_column(BigInteger, default=None)
    last_checked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_ingested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    last_fingerprint: Mapped[str | None] = mapped_column(String(20), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<GuildSyncState guild={self.guild_id} "
            f"fingerprint={self.last_fingerprint!r}>"
        )


# ---------------------------------------------------------------------------
# Rosters
# ---------------------------------------------------------------------------
class TrackedPlayer(Base):
    """A guild member who registered their in-game player id."""
    __tablename__ = "tracked_players"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    participant_id: Mapped[str] = mapped_column(String(PARTICIPANT_ID_LEN), primary_key=True)
    chat_user_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    display_name: Mapped[str] = mapped_column(String(DISPLAY_NAME_LEN), nullable=False)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_tracked_players_chat_user", "guild_id", "chat_user_id"),
    )

    def __repr__(self) -> str:
        return f"<TrackedPlayer guild={self.guild_id} id={self.participant_id!r}>"


class WatchedPlayer(Base):
    """A player of interest (rival, top player) followed by a guild."""
    __tablename__ = "watched_players"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    participant_id: Mapped[str] = mapped_column(String(PARTICIPANT_ID_LEN), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(DISPLAY_NAME_LEN), nullable=False)
    added_by: Mapped[int | None] = mapped_column(BigInteger, default=None)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<WatchedPlayer guild={self.guild_id} id={self.participant_id!r}>"


# ---------------------------------------------------------------------------
# RoundHistory — append/replace-only ledger, never deleted by the pipeline
# ---------------------------------------------------------------------------
class RoundHistory(Base):
    __tablename__ = "round_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    participant_id: Mapped[str] = mapped_column(String(PARTICIPANT_ID_LEN), nullable=False)
    chat_user_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    round_date: Mapped[date] = mapped_column(Date, nullable=False)
    round_name: Mapped[str] = mapped_column(String(ROUND_NAME_LEN), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    league: Mapped[str] = mapped_column(String(LEAGUE_LEN), nullable=False)
    patch_version: Mapped[str] = mapped_column(String(PATCH_VERSION_LEN), nullable=False)
    conditions: Mapped[str] = mapped_column(String(CONDITIONS_LEN), default="")
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "guild_id", "participant_id", "round_date",
            name="uq_round_history_guild_player_date",
        ),
        Index("ix_round_history_player_observed", "guild_id", "participant_id", "observed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<RoundHistory guild={self.guild_id} id={self.participant_id!r} "
            f"date={self.round_date} score={self.score}>"
        )

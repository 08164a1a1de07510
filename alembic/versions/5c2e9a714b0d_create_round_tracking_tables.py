"""Create guild sync state, roster and round history tables

Revision ID: 5c2e9a714b0d
Revises:
Create Date: 2026-10-19 10:12:31.804117

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e9a714b0d'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "guild_sync_state",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("notify_target", sa.BigInteger, nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_ingested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_fingerprint", sa.String(20), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # --- rosters ---
    op.create_table(
        "tracked_players",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("participant_id", sa.String(32), primary_key=True),
        sa.Column("chat_user_id", sa.BigInteger, nullable=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_tracked_players_chat_user", "tracked_players",
        ["guild_id", "chat_user_id"],
    )

    op.create_table(
        "watched_players",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("participant_id", sa.String(32), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("added_by", sa.BigInteger, nullable=True),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # --- round_history ---
    op.create_table(
        "round_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("participant_id", sa.String(32), nullable=False),
        sa.Column("chat_user_id", sa.BigInteger, nullable=True),
        sa.Column("round_date", sa.Date, nullable=False),
        sa.Column("round_name", sa.String(100), nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("rank", sa.Integer, nullable=False),
        sa.Column("league", sa.String(50), nullable=False),
        sa.Column("patch_version", sa.String(50), nullable=False),
        sa.Column("conditions", sa.String(255), nullable=False, server_default=""),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "guild_id", "participant_id", "round_date",
            name="uq_round_history_guild_player_date",
        ),
    )
    op.create_index(
        "ix_round_history_player_observed", "round_history",
        ["guild_id", "participant_id", "observed_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_round_history_player_observed", table_name="round_history")
    op.drop_table("round_history")
    op.drop_table("watched_players")
    op.drop_index("ix_tracked_players_chat_user", table_name="tracked_players")
    op.drop_table("tracked_players")
    op.drop_table("guild_sync_state")

"""
tests/test_sync_state_service.py — Guild Opt-in & Poll Bookkeeping
===================================================================
"""

from __future__ import annotations

from datetime import UTC, datetime

from rankwatch.services.sync_state_service import (
    disable_guild,
    enable_guild,
    get_sync_state,
    list_sync_states,
    mark_checked,
)


class TestOptIn:
    def test_enable_creates_blank_state(self, db_engine):
        assert enable_guild(db_engine, 100, 555) is True
        state = get_sync_state(db_engine, 100)
        assert state.notify_target == 555
        assert state.last_checked_at is None
        assert state.last_ingested_at is None
        assert state.last_fingerprint is None

    def test_re_enable_only_moves_target(self, db_engine):
        enable_guild(db_engine, 100, 555)
        checked = datetime(2026, 10, 21, 12, 0, tzinfo=UTC)
        mark_checked(db_engine, 100, checked)

        assert enable_guild(db_engine, 100, 777) is False
        state = get_sync_state(db_engine, 100)
        assert state.notify_target == 777
        assert state.last_checked_at == checked

    def test_disable(self, db_engine):
        enable_guild(db_engine, 100, None)
        assert disable_guild(db_engine, 100) is True
        assert disable_guild(db_engine, 100) is False
        assert get_sync_state(db_engine, 100) is None


class TestReads:
    def test_list_is_ordered(self, db_engine):
        for guild_id in (300, 100, 200):
            enable_guild(db_engine, guild_id, None)
        assert [s.guild_id for s in list_sync_states(db_engine)] == [100, 200, 300]

    def test_unknown_guild(self, db_engine):
        assert get_sync_state(db_engine, 999) is None


class TestMarkChecked:
    def test_timestamps_come_back_utc_aware(self, db_engine):
        enable_guild(db_engine, 100, None)
        checked = datetime(2026, 10, 21, 12, 30, tzinfo=UTC)
        mark_checked(db_engine, 100, checked)
        state = get_sync_state(db_engine, 100)
        assert state.last_checked_at == checked
        assert state.last_checked_at.tzinfo is not None

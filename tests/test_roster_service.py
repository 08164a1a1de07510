"""
tests/test_roster_service.py — Tracked & Watched Players
=========================================================
Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

import pytest

from rankwatch.constants import DISPLAY_NAME_LEN, PARTICIPANT_ID_LEN
from rankwatch.services.roster_service import (
    add_tracked_player,
    add_watched_player,
    find_member_by_user,
    load_roster,
    remove_tracked_player,
    remove_watched_player,
    update_player_names,
)

GUILD = 100


class TestTrackedPlayers:
    def test_add_normalizes_id(self, db_engine):
        assert add_tracked_player(db_engine, GUILD, " abc123 ", "Ann", 1) is True
        roster = load_roster(db_engine, GUILD)
        assert [e.participant_id for e in roster] == ["ABC123"]
        assert roster[0].chat_user_id == 1
        assert roster[0].is_watch_list is False

    def test_re_adding_updates_instead_of_duplicating(self, db_engine):
        add_tracked_player(db_engine, GUILD, "ABC123", "Ann", 1)
        assert add_tracked_player(db_engine, GUILD, "abc123", "Annie", 2) is False
        roster = load_roster(db_engine, GUILD)
        assert len(roster) == 1
        assert roster[0].display_name == "Annie"
        assert roster[0].chat_user_id == 2

    def test_remove(self, db_engine):
        add_tracked_player(db_engine, GUILD, "ABC123", "Ann")
        assert remove_tracked_player(db_engine, GUILD, "abc123") is True
        assert remove_tracked_player(db_engine, GUILD, "abc123") is False
        assert load_roster(db_engine, GUILD) == []

    def test_find_member_by_user(self, db_engine):
        add_tracked_player(db_engine, GUILD, "ABC123", "Ann", 42)
        entry = find_member_by_user(db_engine, GUILD, 42)
        assert entry is not None and entry.participant_id == "ABC123"
        assert find_member_by_user(db_engine, GUILD, 43) is None
        assert find_member_by_user(db_engine, GUILD + 1, 42) is None

    @pytest.mark.parametrize("participant_id", ["", "   ", "X" * (PARTICIPANT_ID_LEN + 1)])
    def test_rejects_blank_or_oversized_id(self, db_engine, participant_id):
        with pytest.raises(ValueError):
            add_tracked_player(db_engine, GUILD, participant_id, "Ann")
        with pytest.raises(ValueError):
            add_watched_player(db_engine, GUILD, participant_id, "Ann")
        assert load_roster(db_engine, GUILD) == []

    def test_long_display_name_clipped(self, db_engine):
        add_tracked_player(db_engine, GUILD, "AAA", "A" * 300)
        add_watched_player(db_engine, GUILD, "BBB", "B" * 300)
        names = {e.participant_id: e.display_name for e in load_roster(db_engine, GUILD)}
        assert names == {"AAA": "A" * DISPLAY_NAME_LEN, "BBB": "B" * DISPLAY_NAME_LEN}


class TestRoster:
    def test_member_entry_wins_over_watch_list(self, db_engine):
        add_watched_player(db_engine, GUILD, "ABC123", "Rival Ann")
        add_tracked_player(db_engine, GUILD, "ABC123", "Ann", 7)
        roster = load_roster(db_engine, GUILD)
        assert len(roster) == 1
        assert roster[0].is_watch_list is False
        assert roster[0].chat_user_id == 7

    def test_members_before_watch_list(self, db_engine):
        add_watched_player(db_engine, GUILD, "RIVAL", "Rival")
        add_tracked_player(db_engine, GUILD, "MEMBER", "Member")
        roster = load_roster(db_engine, GUILD)
        assert [(e.participant_id, e.is_watch_list) for e in roster] == [
            ("MEMBER", False),
            ("RIVAL", True),
        ]

    def test_guilds_are_isolated(self, db_engine):
        add_tracked_player(db_engine, GUILD, "ABC123", "Ann")
        add_tracked_player(db_engine, GUILD + 1, "ABC123", "Ann elsewhere")
        assert len(load_roster(db_engine, GUILD)) == 1
        assert load_roster(db_engine, GUILD + 1)[0].display_name == "Ann elsewhere"

    def test_watch_list_add_remove(self, db_engine):
        assert add_watched_player(db_engine, GUILD, "rival", "Rival", added_by=5) is True
        assert add_watched_player(db_engine, GUILD, "RIVAL", "Rival") is False
        assert remove_watched_player(db_engine, GUILD, "rival") is True
        assert load_roster(db_engine, GUILD) == []


class TestUpdatePlayerNames:
    def test_only_changed_names_counted(self, db_engine):
        add_tracked_player(db_engine, GUILD, "AAA", "Old")
        add_watched_player(db_engine, GUILD, "BBB", "Same")
        changed = update_player_names(
            db_engine, GUILD, {"AAA": "New", "BBB": "Same", "CCC": "Stranger"}
        )
        assert changed == 1
        names = {e.participant_id: e.display_name for e in load_roster(db_engine, GUILD)}
        assert names == {"AAA": "New", "BBB": "Same"}

    def test_empty_mapping(self, db_engine):
        assert update_player_names(db_engine, GUILD, {}) == 0

    def test_scraped_name_clipped_to_column(self, db_engine):
        add_tracked_player(db_engine, GUILD, "AAA", "Ann")
        assert update_player_names(db_engine, GUILD, {"AAA": "Z" * 500}) == 1
        assert load_roster(db_engine, GUILD)[0].display_name == "Z" * DISPLAY_NAME_LEN

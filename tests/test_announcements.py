"""
tests/test_announcements.py — Round Report Embeds & Delivery
=============================================================

Tests the embed builders (paging, league grouping, badges) and the
Discord notifier's channel resolution.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock

import discord
from conftest import make_leaderboard, run_async

from rankwatch.constants import MAX_FIELDS_PER_EMBED, RANK_BADGES
from rankwatch.engine.normalizer import RoundCandidate
from rankwatch.services.announcement_service import DiscordRoundNotifier
from rankwatch.services.embeds import (
    build_league_embeds,
    build_round_embeds,
    build_summary_embed,
)
from rankwatch.services.ingestion_service import RoundReport
from rankwatch.services.round_service import RoundRecord


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _candidate(pid: str, rank: int, league: str = "Legends", *, watch: bool = False):
    return RoundCandidate(
        participant_id=pid,
        player_name=f"Page {pid}",
        round_name=f"{league} Tournament",
        score=5000 - rank,
        rank=rank,
        league=league,
        patch_version="25.1",
        conditions=("Fast", "Strong"),
        is_watch_list=watch,
    )


def _record(c: RoundCandidate) -> RoundRecord:
    return RoundRecord(
        guild_id=100,
        participant_id=c.participant_id,
        chat_user_id=None,
        round_date=date(2026, 10, 20),
        round_name=c.round_name,
        score=c.score,
        rank=c.rank,
        league=c.league,
        patch_version=c.patch_version,
        conditions=c.conditions_text,
        observed_at=datetime(2026, 10, 21, 12, 0, tzinfo=UTC),
    )


def _report(members=(), watch_list=(), names=None, target=555) -> RoundReport:
    return RoundReport(
        guild_id=100,
        notify_target=target,
        round_date=date(2026, 10, 20),
        patch_version="25.1",
        conditions=("Fast", "Strong"),
        top_players=tuple(make_leaderboard(4210, 4105, 3998)),
        records=tuple(_record(c) for c in (*members, *watch_list)),
        members=tuple(members),
        watch_list=tuple(watch_list),
        display_names=names or {},
    )


# ---------------------------------------------------------------------------
# Embeds
# ---------------------------------------------------------------------------
class TestSummaryEmbed:
    def test_header_top_players_and_footer(self):
        embed = build_summary_embed(_report(members=[_candidate("AAA", 3)]))
        assert "Tue Oct 20 2026" in embed.title
        assert "25.1" in embed.description
        assert "Fast / Strong" in embed.description
        assert embed.fields[0].name == "Top 3 Players"
        assert "Top1" in embed.fields[0].value
        assert embed.footer.text == "1 tracked results recorded"


class TestLeagueEmbeds:
    def test_badges_then_positions(self):
        players = [_candidate(f"P{i}", i) for i in range(1, 5)]
        embed = build_league_embeds(_report(players), "Legends", players)[0]
        names = [f.name for f in embed.fields]
        assert names[0].startswith(RANK_BADGES[0])
        assert names[2].startswith(RANK_BADGES[2])
        assert names[3].startswith("#4")
        assert "Legends" in embed.title

    def test_paged_over_field_cap(self):
        players = [_candidate(f"P{i}", i) for i in range(1, 26)]
        embeds = build_league_embeds(_report(players), "Legends", players)
        assert len(embeds) == 2
        assert len(embeds[0].fields) == MAX_FIELDS_PER_EMBED
        assert len(embeds[1].fields) == 25 - MAX_FIELDS_PER_EMBED
        assert embeds[1].title.endswith("(continued)")

    def test_roster_name_preferred(self):
        player = _candidate("AAA", 1)
        report = _report([player], names={"AAA": "Ann"})
        embed = build_league_embeds(report, "Legends", [player])[0]
        assert "Ann" in embed.fields[0].name


class TestRoundEmbeds:
    def test_order_summary_leagues_watch_list(self):
        members = [_candidate("AAA", 9, "Legends"), _candidate("BBB", 2, "Champions")]
        rivals = [_candidate("RIV", 1, "Legends", watch=True)]
        embeds = build_round_embeds(_report(members, rivals))
        titles = [e.title for e in embeds]
        assert len(embeds) == 4
        assert "Tournament Results" in titles[0]
        assert "Champions" in titles[1]
        assert "Legends" in titles[2]
        assert titles[3].startswith("Players of Interest")

    def test_no_watch_list_section_when_empty(self):
        embeds = build_round_embeds(_report([_candidate("AAA", 1)]))
        assert len(embeds) == 2


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------
class TestDiscordRoundNotifier:
    def _channel(self):
        channel = MagicMock(spec=discord.TextChannel)
        channel.send = AsyncMock()
        return channel

    def test_sends_every_embed(self):
        channel = self._channel()
        bot = MagicMock()
        bot.get_channel.return_value = channel
        report = _report([_candidate("AAA", 1)])

        run_async(DiscordRoundNotifier(bot).deliver(report))

        bot.get_channel.assert_called_once_with(555)
        assert channel.send.await_count == len(build_round_embeds(report))

    def test_falls_back_to_fetch(self):
        channel = self._channel()
        bot = MagicMock()
        bot.get_channel.return_value = None
        bot.fetch_channel = AsyncMock(return_value=channel)

        run_async(DiscordRoundNotifier(bot).deliver(_report([_candidate("AAA", 1)])))

        bot.fetch_channel.assert_awaited_once_with(555)
        channel.send.assert_awaited()

    def test_non_text_channel_dropped(self):
        bot = MagicMock()
        bot.get_channel.return_value = MagicMock(spec=discord.CategoryChannel)
        run_async(DiscordRoundNotifier(bot).deliver(_report([_candidate("AAA", 1)])))

    def test_no_target_configured(self):
        bot = MagicMock()
        run_async(DiscordRoundNotifier(bot).deliver(_report(target=None)))
        bot.get_channel.assert_not_called()

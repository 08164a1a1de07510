"""
rankwatch.services.embeds — Discord embed builders for round reports
=====================================================================

All embed construction lives here so the announcement service only
needs to supply a :class:`~rankwatch.services.ingestion_service.RoundReport`.
"""

from __future__ import annotations

from collections.abc import Sequence

import discord

from rankwatch.constants import (
    CONDITIONS_SEPARATOR,
    LEAGUE_TITLES,
    MAX_FIELDS_PER_EMBED,
    RANK_BADGES,
)
from rankwatch.engine.normalizer import RoundCandidate
from rankwatch.services.ingestion_service import RoundReport

REPORT_COLOR = discord.Color.gold()


def _round_header(report: RoundReport) -> str:
    lines = [f"**Patch:** {report.patch_version}"]
    if report.conditions:
        lines.append(f"**Battle Conditions:** {CONDITIONS_SEPARATOR.join(report.conditions)}")
    return "\n".join(lines)


def build_summary_embed(report: RoundReport) -> discord.Embed:
    """Headline embed: round date, shared fields and the global top N."""
    embed = discord.Embed(
        title=f"\U0001f3c6 Tournament Results — {report.round_date:%a %b %d %Y}",
        description=_round_header(report),
        color=REPORT_COLOR,
    )
    if report.top_players:
        lines = [
            f"**{p.rank}.** {p.name} — {p.score} waves" for p in report.top_players
        ]
        embed.add_field(
            name=f"Top {len(report.top_players)} Players",
            value="\n".join(lines)[:1024],
            inline=False,
        )
    embed.set_footer(text=f"{len(report.records)} tracked results recorded")
    return embed


def _paged(
    title: str,
    description: str | None,
    fields: Sequence[tuple[str, str]],
) -> list[discord.Embed]:
    """Spread *fields* over as many embeds as the field cap requires."""
    embeds: list[discord.Embed] = []
    for start in range(0, len(fields), MAX_FIELDS_PER_EMBED):
        embed = discord.Embed(
            title=title if start == 0 else f"{title} (continued)",
            description=description if start == 0 else None,
            color=REPORT_COLOR,
        )
        for name, value in fields[start:start + MAX_FIELDS_PER_EMBED]:
            embed.add_field(name=name, value=value, inline=False)
        embeds.append(embed)
    return embeds


def build_league_embeds(
    report: RoundReport, league: str, players: Sequence[RoundCandidate]
) -> list[discord.Embed]:
    """One league's tracked members, best rank first."""
    fields = []
    for position, c in enumerate(players):
        badge = RANK_BADGES[position] if position < len(RANK_BADGES) else f"#{position + 1}"
        fields.append((
            f"{badge} {report.name_for(c)}",
            f"Rank {c.rank}: {c.round_name} — {c.score:,} waves",
        ))
    title = f"{LEAGUE_TITLES.get(league, league)} — Tournament Results"
    return _paged(title, None, fields)


def build_watch_list_embeds(report: RoundReport) -> list[discord.Embed]:
    players = sorted(report.watch_list, key=lambda c: (c.rank, -c.score))
    fields = [
        (f"Rank {c.rank}: {report.name_for(c)}", f"{c.score:,} waves ({c.league})")
        for c in players
    ]
    return _paged("Players of Interest — Tournament Results", None, fields)


def build_round_embeds(report: RoundReport) -> list[discord.Embed]:
    """Summary, then one section per league, then the watch list."""
    embeds = [build_summary_embed(report)]
    for league, players in report.members_by_league().items():
        embeds.extend(build_league_embeds(report, league, players))
    if report.watch_list:
        embeds.extend(build_watch_list_embeds(report))
    return embeds

"""
rankwatch.services.announcement_service — Round Report Delivery
================================================================

Resolves a guild's ``notify_target`` to a Discord channel and posts the
round report embeds there, one message per embed.

Delivery is **at-most-once**: the ingestor calls :meth:`deliver` after
the round is committed and never retries.  Failures are raised to the
ingestor, which logs them.

Embed construction lives in :mod:`rankwatch.services.embeds`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.abc import Messageable

from rankwatch.services.embeds import build_round_embeds
from rankwatch.services.ingestion_service import RoundReport

if TYPE_CHECKING:
    from discord.ext import commands

logger = logging.getLogger(__name__)


class DiscordRoundNotifier:
    """:class:`~rankwatch.services.ingestion_service.RoundNotifier` for Discord."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def resolve_channel(self, channel_id: int | None) -> Messageable | None:
        if channel_id is None:
            return None
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel if isinstance(channel, Messageable) else None

    async def deliver(self, report: RoundReport) -> None:
        channel = await self.resolve_channel(report.notify_target)
        if channel is None:
            logger.warning(
                "Guild %d: notify target %s is not a text channel; report dropped",
                report.guild_id, report.notify_target,
            )
            return

        embeds = build_round_embeds(report)
        for embed in embeds:
            await channel.send(embed=embed)
        logger.info(
            "Guild %d: posted %d report embeds to channel %s",
            report.guild_id, len(embeds), report.notify_target,
        )

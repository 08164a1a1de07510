"""
rankwatch.bot.cogs.tasks — Periodic Background Tasks
=====================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Round polling** — hourly by default (``polling.interval_minutes``),
  runs one :meth:`RoundPoller.tick`.  A tick drains its whole queue
  before the loop schedules the next one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

if TYPE_CHECKING:
    from rankwatch.bot.core import RankwatchBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled tournament polling."""

    def __init__(self, bot: RankwatchBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Start task loops when the cog is loaded."""
        interval = self.bot.cfg.polling.interval
        self.poll_loop.change_interval(seconds=interval.total_seconds())
        self.poll_loop.start()

    async def cog_unload(self) -> None:
        """Cancel task loops on unload."""
        self.poll_loop.cancel()

    # -------------------------------------------------------------------
    # Round polling
    # -------------------------------------------------------------------
    @tasks.loop(hours=1)
    async def poll_loop(self):
        """Check every opted-in guild for a newly concluded round."""
        try:
            outcomes = await self.bot.poller.tick()
        except Exception:
            logger.exception("Round poll tick failed", extra={"task": "round_poll"})
            return
        for outcome in outcomes:
            logger.info(
                "Guild %d: %s (%d records)",
                outcome.guild_id, outcome.status, outcome.written,
            )

    @poll_loop.before_loop
    async def _wait_poll(self):
        await self.bot.wait_until_ready()


async def setup(bot: RankwatchBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))

"""
rankwatch.bot.core — Bot Instance & Cog Loader
===============================================

Defines :class:`RankwatchBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``) and DB engine (``bot.engine``).
2. Wires the tournament pipeline once: Playwright source → scrape
   orchestrator → ingestor (with a Discord notifier) → poller.
3. Loads every cog listed in :data:`EXTENSIONS`.
4. Cancels in-flight round runs and closes the browser on shutdown.

Chat commands are not part of this bot; guild opt-in and roster changes
go through :mod:`rankwatch.services.sync_state_service` and
:mod:`rankwatch.services.roster_service`.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands
from sqlalchemy import Engine

from rankwatch.config import RankwatchConfig
from rankwatch.scraping.browser import BrowserResultSource
from rankwatch.scraping.orchestrator import ScrapeOrchestrator
from rankwatch.services.announcement_service import DiscordRoundNotifier
from rankwatch.services.ingestion_service import RoundIngestor
from rankwatch.services.poll_service import RoundPoller

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "rankwatch.bot.cogs.tasks",
]


class RankwatchBot(commands.Bot):
    """Custom Bot subclass that carries the tournament pipeline.

    Parameters
    ----------
    cfg:
        The parsed :class:`RankwatchConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine`.
    """

    def __init__(self, cfg: RankwatchConfig, engine: Engine) -> None:
        intents = discord.Intents.default()
        super().__init__(command_prefix=cfg.bot_prefix, intents=intents)

        self.cfg = cfg
        self.engine = engine

        scraping = cfg.scraping
        self.source = BrowserResultSource(
            timeout=scraping.fetch_timeout, headless=scraping.headless
        )
        self.ingestor = RoundIngestor(
            engine,
            self.source,
            ScrapeOrchestrator(
                self.source,
                batch_size=scraping.batch_size,
                stagger_delay=scraping.stagger_delay,
                fetch_timeout=scraping.fetch_timeout,
            ),
            cfg.timetable,
            leaderboard_size=scraping.leaderboard_size,
            notifier=DiscordRoundNotifier(self),
            grace=cfg.polling.grace_delay,
        )
        self.poller = RoundPoller(engine, self.ingestor, cfg.timetable, cfg.polling)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load cog extensions; one broken cog shouldn't take down the bot."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

    async def close(self) -> None:
        await self.poller.shutdown()
        await self.source.close()
        await super().close()

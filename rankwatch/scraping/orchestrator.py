"""
rankwatch.scraping.orchestrator — Batched Participant Scraping
===============================================================

Fetches every participant on a guild's roster from the upstream site
without hammering it:

- The roster is split into batches of ``batch_size`` ids.
- Batches run strictly one after another; the ids inside a batch are
  fetched concurrently.
- After every batch but the last, the orchestrator sleeps for
  ``stagger_delay`` (backpressure, not correctness).

Failure isolation is per participant: a timeout or exception drops that
one id into ``failed`` and the batch carries on.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta

from rankwatch.scraping.source import ParticipantPage, ResultSource

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScrapeOutcome:
    """Pages that came back plus the ids whose fetch failed."""

    pages: list[ParticipantPage] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.pages) + len(self.failed)


def partition(ids: Sequence[str], size: int) -> list[list[str]]:
    """Split *ids* into consecutive chunks of at most *size*."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(ids[i:i + size]) for i in range(0, len(ids), size)]


class ScrapeOrchestrator:
    """Runs bounded-concurrency, staggered fetches against a result source."""

    def __init__(
        self,
        source: ResultSource,
        *,
        batch_size: int = 1,
        stagger_delay: timedelta = timedelta(seconds=5),
        fetch_timeout: timedelta = timedelta(seconds=60),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.source = source
        self.batch_size = batch_size
        self.stagger_delay = stagger_delay
        self.fetch_timeout = fetch_timeout
        self._sleep = sleep

    async def scrape(self, participant_ids: Sequence[str]) -> ScrapeOutcome:
        """Fetch every id once, in roster order, batch by batch."""
        unique_ids = list(dict.fromkeys(participant_ids))
        batches = partition(unique_ids, self.batch_size)
        outcome = ScrapeOutcome()

        for index, batch in enumerate(batches, start=1):
            logger.info(
                "Scraping batch %d/%d (%d players)", index, len(batches), len(batch)
            )
            pages = await asyncio.gather(*(self._fetch_one(pid) for pid in batch))
            for pid, page in zip(batch, pages):
                if page is None:
                    outcome.failed.append(pid)
                else:
                    outcome.pages.append(page)

            if index < len(batches) and self.stagger_delay > timedelta(0):
                logger.debug(
                    "Waiting %.1fs before next batch", self.stagger_delay.total_seconds()
                )
                await self._sleep(self.stagger_delay.total_seconds())

        logger.info(
            "Scrape finished: %d pages, %d failures", len(outcome.pages), len(outcome.failed)
        )
        return outcome

    async def _fetch_one(self, participant_id: str) -> ParticipantPage | None:
        try:
            return await asyncio.wait_for(
                self.source.fetch_participant(participant_id),
                timeout=self.fetch_timeout.total_seconds(),
            )
        except TimeoutError:
            logger.warning(
                "Timed out fetching player %s after %.0fs",
                participant_id, self.fetch_timeout.total_seconds(),
            )
        except Exception:
            logger.warning("Failed to fetch player %s", participant_id, exc_info=True)
        return None

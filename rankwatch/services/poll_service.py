"""
rankwatch.services.poll_service — Timer-Driven Round Polling
=============================================================

:class:`RoundPoller` is what the hourly task loop calls.  Per tick:

1. Load every opted-in guild's sync state.
2. Evaluate the eligibility gate (:mod:`rankwatch.engine.eligibility`).
3. For each eligible guild, stamp ``last_checked_at`` **immediately** so
   an overlapping tick cannot schedule the same guild twice, then queue it.
4. Drain the queue with ``max_concurrent_guilds`` workers; each worker
   pauses ``guild_delay`` between guilds (backpressure on the upstream).

Every guild run is wrapped in an ``asyncio.Task`` registered as that
guild's in-flight lease.  While a lease is held, neither a tick nor a
manual :meth:`RoundPoller.run_guild` starts a second run for the guild.
:meth:`RoundPoller.shutdown` cancels in-flight runs.

Exceptions from a guild run are caught and logged here, so one guild can
never affect another or stop the loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine

from rankwatch.config import PollSettings
from rankwatch.database.engine import run_db
from rankwatch.engine.eligibility import GateDecision, evaluate_gate, next_start_after
from rankwatch.engine.schedule import Timetable, last_round_window
from rankwatch.services.ingestion_service import IngestOutcome, IngestStatus, RoundIngestor
from rankwatch.services.sync_state_service import (
    SyncSnapshot,
    get_sync_state,
    list_sync_states,
    mark_checked,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RoundPoller:
    """Eligibility gate + bounded work queue in front of :class:`RoundIngestor`."""

    def __init__(
        self,
        engine: Engine,
        ingestor: RoundIngestor,
        timetable: Timetable,
        settings: PollSettings | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.engine = engine
        self.ingestor = ingestor
        self.timetable = timetable
        self.settings = settings or PollSettings()
        self._clock = clock
        self._sleep = sleep
        self._in_flight: dict[int, asyncio.Task[IngestOutcome]] = {}

    # -------------------------------------------------------------------
    # Gate
    # -------------------------------------------------------------------
    def gate_for(self, state: SyncSnapshot, now: datetime) -> GateDecision:
        window = last_round_window(now, self.timetable)
        return evaluate_gate(
            now,
            window.end if window else None,
            next_start_after(window, self.timetable) if window else None,
            state.last_checked_at,
            state.last_ingested_at,
            self.settings.grace_delay,
            self.settings.min_recheck,
        )

    def is_running(self, guild_id: int) -> bool:
        task = self._in_flight.get(guild_id)
        return task is not None and not task.done()

    # -------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------
    async def tick(self, now: datetime | None = None) -> list[IngestOutcome]:
        """Run one poll cycle; returns the outcome of every guild processed."""
        now = now or self._clock()
        states = await run_db(list_sync_states, self.engine)

        queue: asyncio.Queue[int] = asyncio.Queue()
        for state in states:
            if self.is_running(state.guild_id):
                logger.debug("Guild %d: run still in flight, skipping", state.guild_id)
                continue
            decision = self.gate_for(state, now)
            if not decision.eligible:
                logger.debug("Guild %d: %s", state.guild_id, decision.describe())
                continue
            await run_db(mark_checked, self.engine, state.guild_id, now)
            queue.put_nowait(state.guild_id)

        if queue.empty():
            return []

        logger.info("Queued tournament checks for %d guilds", queue.qsize())
        outcomes: list[IngestOutcome] = []
        workers = [
            asyncio.create_task(self._worker(queue, now, outcomes), name=f"round-poll-{i}")
            for i in range(min(self.settings.max_concurrent_guilds, queue.qsize()))
        ]
        await asyncio.gather(*workers)
        logger.info("Completed tournament checks for %d guilds", len(outcomes))
        return outcomes

    async def _worker(
        self, queue: asyncio.Queue[int], now: datetime, outcomes: list[IngestOutcome]
    ) -> None:
        delay = self.settings.guild_delay
        while True:
            try:
                guild_id = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            outcomes.append(
                await self._run_guarded(
                    guild_id, lambda g=guild_id: self.ingestor.check_and_ingest(g, now)
                )
            )
            queue.task_done()
            if not queue.empty() and delay > timedelta(0):
                await self._sleep(delay.total_seconds())

    # -------------------------------------------------------------------
    # Manual trigger
    # -------------------------------------------------------------------
    async def run_guild(
        self, guild_id: int, *, force: bool = False, now: datetime | None = None
    ) -> IngestOutcome:
        """Out-of-band run for one guild, bypassing the eligibility gate.

        With ``force`` the fingerprint comparison is skipped as well and the
        round is re-scraped and re-upserted, unless its results are not
        published yet.  Inside the grace delay either kind of run stores
        provisional records only (see :class:`RoundIngestor`).
        """
        now = now or self._clock()
        if self.is_running(guild_id):
            logger.info("Guild %d: manual run refused, one is already in flight", guild_id)
            return IngestOutcome(guild_id, IngestStatus.ALREADY_RUNNING)

        state = await run_db(get_sync_state, self.engine, guild_id)
        if state is None:
            return IngestOutcome(guild_id, IngestStatus.NOT_ENABLED)

        await run_db(mark_checked, self.engine, guild_id, now)
        if force:
            return await self._run_guarded(
                guild_id, lambda: self.ingestor.ingest(guild_id, now)
            )
        return await self._run_guarded(
            guild_id, lambda: self.ingestor.check_and_ingest(guild_id, now)
        )

    # -------------------------------------------------------------------
    # Leases
    # -------------------------------------------------------------------
    async def _run_guarded(
        self, guild_id: int, run: Callable[[], Awaitable[IngestOutcome]]
    ) -> IngestOutcome:
        if self.is_running(guild_id):
            return IngestOutcome(guild_id, IngestStatus.ALREADY_RUNNING)

        task = asyncio.create_task(run(), name=f"round-ingest-{guild_id}")
        self._in_flight[guild_id] = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and not (current and current.cancelling()):
                logger.warning("Guild %d: round run cancelled", guild_id)
                return IngestOutcome(guild_id, IngestStatus.FAILED)
            raise
        except Exception:
            logger.exception(
                "Round run failed for guild %d", guild_id, extra={"guild_id": guild_id}
            )
            return IngestOutcome(guild_id, IngestStatus.FAILED)
        finally:
            if self._in_flight.get(guild_id) is task:
                del self._in_flight[guild_id]

    async def shutdown(self) -> None:
        """Cancel every in-flight guild run and wait for them to unwind."""
        tasks = [t for t in self._in_flight.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d in-flight round runs", len(tasks))

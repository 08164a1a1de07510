"""
rankwatch.services.ingestion_service — One Guild, One Round
============================================================

The per-guild pipeline, strictly phased:

    leaderboard snapshot → change decision
        → scrape every roster id (batched)
        → normalize all pages
        → persist records, then advance sync state
        → hand a :class:`RoundReport` to the notifier

Each phase finishes before the next starts.  Failure policy:

- Leaderboard unreadable → "no new round" (retried next tick).
- Forced run for a round not yet recorded, while the leaderboard still
  shows the previous round → nothing written.
- Any run inside the grace delay → records are provisional: stored,
  but the sync state does not advance and nothing is announced, so the
  next eligible tick ingests the round again.
- Single player fetch fails → that player is skipped.
- Every player fetch fails → run aborted before persistence.
- Persistence fails → exception propagates; sync state is untouched.
- Notifier fails → logged.  Delivery is at-most-once: the round is
  already recorded and will not be announced again.
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Protocol

from sqlalchemy import Engine

from rankwatch.constants import CONDITIONS_SEPARATOR
from rankwatch.database.engine import run_db
from rankwatch.engine.fingerprint import LeaderboardEntry, detect_change, fingerprint
from rankwatch.engine.normalizer import NormalizedRound, RoundCandidate, normalize_results
from rankwatch.engine.schedule import RoundWindow, Timetable, last_round_window, round_date
from rankwatch.scraping.orchestrator import ScrapeOrchestrator
from rankwatch.scraping.source import ResultSource
from rankwatch.services.roster_service import RosterEntry, load_roster, update_player_names
from rankwatch.services.round_service import RoundRecord, persist_round
from rankwatch.services.sync_state_service import SyncSnapshot, get_sync_state

logger = logging.getLogger(__name__)


class IngestStatus(enum.StrEnum):
    """How a guild's pipeline run ended."""
    INGESTED = "ingested"
    UNCHANGED = "unchanged"
    NO_SIGNAL = "no_signal"
    ABORTED = "aborted"
    FAILED = "failed"
    ALREADY_RUNNING = "already_running"
    NOT_ENABLED = "not_enabled"


@dataclass(frozen=True, slots=True)
class RoundReport:
    """Everything the presentation layer needs to announce a round."""

    guild_id: int
    notify_target: int | None
    round_date: date
    patch_version: str
    conditions: tuple[str, ...]
    top_players: tuple[LeaderboardEntry, ...]
    records: tuple[RoundRecord, ...]
    members: tuple[RoundCandidate, ...] = ()
    watch_list: tuple[RoundCandidate, ...] = ()
    display_names: Mapping[str, str] = field(default_factory=dict)

    def name_for(self, candidate: RoundCandidate) -> str:
        """Roster name if the guild set one, else the name on the page."""
        return self.display_names.get(candidate.participant_id) or candidate.player_name

    def members_by_league(self) -> dict[str, list[RoundCandidate]]:
        """Members grouped by league, each group best rank first."""
        grouped: dict[str, list[RoundCandidate]] = defaultdict(list)
        for c in self.members:
            grouped[c.league].append(c)
        return {
            league: sorted(players, key=lambda c: (c.rank, -c.score))
            for league, players in sorted(grouped.items())
        }


@dataclass(frozen=True, slots=True)
class IngestOutcome:
    guild_id: int
    status: IngestStatus
    fingerprint: int | None = None
    written: int = 0
    report: RoundReport | None = field(default=None, repr=False)
    provisional: bool = False


class RoundNotifier(Protocol):
    """Delivers a finished round report somewhere humans will see it."""

    async def deliver(self, report: RoundReport) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _awaiting_results(
    state: SyncSnapshot | None,
    window: RoundWindow | None,
    current: int | None,
) -> IngestStatus | None:
    """Status that stops a forced run for an unpublished round, else ``None``.

    A round already recorded (``last_ingested_at`` at or after its end) may
    always be re-run.  Otherwise the leaderboard has to be readable and
    differ from the one stored at the previous ingestion.
    """
    if state is None or window is None:
        return None
    if state.last_ingested_at is not None and state.last_ingested_at >= window.end:
        return None
    if current is None:
        return IngestStatus.NO_SIGNAL
    if state.last_fingerprint == str(current):
        return IngestStatus.UNCHANGED
    return None


def build_records(
    guild_id: int,
    normalized: NormalizedRound,
    roster: Sequence[RosterEntry],
    played_on: date,
    observed_at: datetime,
) -> list[RoundRecord]:
    """Key every candidate to the guild and round, best rank first."""
    users = {e.participant_id: e.chat_user_id for e in roster}
    records = [
        RoundRecord(
            guild_id=guild_id,
            participant_id=c.participant_id,
            chat_user_id=users.get(c.participant_id),
            round_date=played_on,
            round_name=c.round_name,
            score=c.score,
            rank=c.rank,
            league=c.league,
            patch_version=c.patch_version,
            conditions=CONDITIONS_SEPARATOR.join(c.conditions),
            observed_at=observed_at,
        )
        for c in normalized.candidates
    ]
    return sorted(records, key=lambda r: (r.rank, -r.score, r.participant_id))


class RoundIngestor:
    """Runs the detect → scrape → normalize → persist → notify pipeline."""

    def __init__(
        self,
        engine: Engine,
        source: ResultSource,
        orchestrator: ScrapeOrchestrator,
        timetable: Timetable,
        *,
        leaderboard_size: int = 10,
        notifier: RoundNotifier | None = None,
        grace: timedelta = timedelta(hours=8),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.engine = engine
        self.source = source
        self.orchestrator = orchestrator
        self.timetable = timetable
        self.leaderboard_size = leaderboard_size
        self.notifier = notifier
        self.grace = grace
        self._clock = clock

    # -------------------------------------------------------------------
    # Change detection
    # -------------------------------------------------------------------
    async def fetch_snapshot(self) -> list[LeaderboardEntry]:
        """Top-N leaderboard, or ``[]`` when it cannot be read."""
        try:
            return await self.source.fetch_leaderboard(self.leaderboard_size)
        except Exception:
            logger.warning("Leaderboard fetch failed; treating as no signal", exc_info=True)
            return []

    async def check_and_ingest(
        self, guild_id: int, now: datetime | None = None
    ) -> IngestOutcome:
        """Ingest only if the leaderboard changed since the last ingestion."""
        now = now or self._clock()
        state = await run_db(get_sync_state, self.engine, guild_id)
        if state is None:
            return IngestOutcome(guild_id, IngestStatus.NOT_ENABLED)

        snapshot = await self.fetch_snapshot()
        signal = detect_change(snapshot, state.last_fingerprint)
        if not signal.new_round:
            logger.info("Guild %d: no new round (%s)", guild_id, signal.reason)
            status = IngestStatus.NO_SIGNAL if not snapshot else IngestStatus.UNCHANGED
            return IngestOutcome(guild_id, status, signal.fingerprint)

        logger.info(
            "Guild %d: leaderboard changed (%s → %s), ingesting round",
            guild_id, state.last_fingerprint, signal.fingerprint,
        )
        return await self.ingest(
            guild_id,
            now,
            snapshot=snapshot,
            signal_fingerprint=signal.fingerprint,
            notify_target=state.notify_target,
        )

    # -------------------------------------------------------------------
    # Full ingestion
    # -------------------------------------------------------------------
    async def ingest(
        self,
        guild_id: int,
        now: datetime | None = None,
        *,
        snapshot: Sequence[LeaderboardEntry] | None = None,
        signal_fingerprint: int | None = None,
        notify_target: int | None = None,
    ) -> IngestOutcome:
        """Scrape, normalize and persist the concluded round for *guild_id*.

        Safe to call out of band: the upsert makes re-runs idempotent.
        Without a *snapshot* this is a forced run; it fetches its own and
        refuses to record a round whose results are not published yet.
        """
        now = now or self._clock()
        window = last_round_window(now, self.timetable)

        if snapshot is None:
            snapshot = await self.fetch_snapshot()
            signal_fingerprint = fingerprint(snapshot) if snapshot else None
            state = await run_db(get_sync_state, self.engine, guild_id)
            notify_target = state.notify_target if state else None

            waiting = _awaiting_results(state, window, signal_fingerprint)
            if waiting is not None:
                logger.info(
                    "Guild %d: forced run skipped, round results not published (%s)",
                    guild_id, waiting,
                )
                return IngestOutcome(guild_id, waiting, signal_fingerprint)

        final = window is None or now >= window.end + self.grace
        tz = self.timetable.tz
        if window:
            played_on = round_date(window, self.timetable)
            span = (window.start.astimezone(tz).date(), window.end.astimezone(tz).date())
        else:
            played_on = now.astimezone(tz).date()
            span = None

        roster = await run_db(load_roster, self.engine, guild_id)
        scraped = await self.orchestrator.scrape([e.participant_id for e in roster])
        if roster and not scraped.pages:
            logger.error(
                "Guild %d: all %d player fetches failed; leaving round for next tick",
                guild_id, len(roster),
            )
            return IngestOutcome(guild_id, IngestStatus.ABORTED, signal_fingerprint)

        watch_ids = [e.participant_id for e in roster if e.is_watch_list]
        normalized = normalize_results(scraped.pages, watch_ids, span)
        records = build_records(guild_id, normalized, roster, played_on, now)

        written = await run_db(
            persist_round, self.engine, guild_id, records, signal_fingerprint, now,
            advance_state=final,
        )

        await self._refresh_names(guild_id, scraped.pages)

        report = RoundReport(
            guild_id=guild_id,
            notify_target=notify_target,
            round_date=played_on,
            patch_version=normalized.patch_version,
            conditions=normalized.conditions,
            top_players=tuple(snapshot),
            records=tuple(records),
            members=tuple(normalized.members),
            watch_list=tuple(normalized.watch_list),
            display_names={e.participant_id: e.display_name for e in roster},
        )
        if final:
            await self._notify(report)
        return IngestOutcome(
            guild_id, IngestStatus.INGESTED, signal_fingerprint, written, report,
            provisional=not final,
        )

    async def _refresh_names(self, guild_id: int, pages) -> None:
        names = {p.participant_id: p.player_name for p in pages if p.player_name}
        try:
            await run_db(update_player_names, self.engine, guild_id, names)
        except Exception:
            logger.exception(
                "Failed to refresh player names", extra={"guild_id": guild_id}
            )

    async def _notify(self, report: RoundReport) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.deliver(report)
        except Exception:
            logger.exception(
                "Round report delivery failed for guild %d",
                report.guild_id, extra={"guild_id": report.guild_id},
            )

"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import pytest
from sqlalchemy import BigInteger, Engine, create_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from rankwatch.database.models import Base
from rankwatch.engine.fingerprint import LeaderboardEntry
from rankwatch.scraping.source import FetchStatus, ParticipantPage, RoundRow


# ---------------------------------------------------------------------------
# SQLite compatibility: render BigInteger as INTEGER so autoincrement works.
# ---------------------------------------------------------------------------
@compiles(BigInteger, "sqlite")
def _compile_bigint_as_integer(type_, compiler, **kw):
    return "INTEGER"


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Rankwatch tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Async helper (no pytest-asyncio)
# ---------------------------------------------------------------------------
def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


async def no_sleep(seconds: float) -> None:
    """Stand-in for ``asyncio.sleep`` that returns immediately."""
    await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Upstream fakes
# ---------------------------------------------------------------------------
def make_leaderboard(*scores: int) -> list[LeaderboardEntry]:
    """Leaderboard with one row per score, ranked in the given order."""
    return [
        LeaderboardEntry(rank=str(i), name=f"Top{i}", score=f"{score:,}")
        for i, score in enumerate(scores, start=1)
    ]


def found_page(
    participant_id: str,
    *,
    name: str | None = None,
    score: str = "1,200",
    rank: str = "5",
    league: str = "Legend",
    patch: str = "25.1",
    conditions: str = "Fast / Strong",
    round_name: str = "Legend Tournament",
) -> ParticipantPage:
    return ParticipantPage(
        participant_id,
        FetchStatus.FOUND,
        name or f"Player {participant_id}",
        RoundRow(
            round_name=round_name,
            score=score,
            rank=rank,
            league=league,
            patch_version=patch,
            conditions=conditions,
        ),
    )


class FakeSource:
    """In-memory :class:`~rankwatch.scraping.source.ResultSource`.

    ``pages`` maps participant ids to the page returned; ids listed in
    ``failing`` raise instead.  Every call is recorded.
    """

    def __init__(
        self,
        leaderboard: list[LeaderboardEntry] | None = None,
        pages: dict[str, ParticipantPage] | None = None,
        failing: Iterable[str] = (),
    ) -> None:
        self.leaderboard = leaderboard or []
        self.pages = pages or {}
        self.failing = set(failing)
        self.leaderboard_calls = 0
        self.fetched: list[str] = []

    async def fetch_leaderboard(self, size: int) -> list[LeaderboardEntry]:
        self.leaderboard_calls += 1
        return list(self.leaderboard[:size])

    async def fetch_participant(self, participant_id: str) -> ParticipantPage:
        self.fetched.append(participant_id)
        if participant_id in self.failing:
            raise ConnectionError(f"upstream refused {participant_id}")
        return self.pages.get(
            participant_id, ParticipantPage(participant_id, FetchStatus.NOT_FOUND)
        )

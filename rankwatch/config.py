"""
rankwatch.config — YAML Configuration Loader
=============================================

**Why this file exists:**
This module reads ``config.yaml`` for the **soft** settings: the weekly
tournament timetable, scraping backpressure and poll cadence.  Secrets
(``DISCORD_TOKEN``, ``DATABASE_URL``) stay in ``.env``.

Usage::

    from rankwatch.config import load_config

    cfg = load_config()                # reads ./config.yaml by default
    print(cfg.timetable.slots)         # (WeeklySlot(weekday=1, ...), ...)
    print(cfg.scraping.batch_size)     # 1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

import yaml

from rankwatch.engine.schedule import Timetable, WeeklySlot

WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


# ---------------------------------------------------------------------------
# Typed settings objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ScrapeSettings:
    """Backpressure knobs for the upstream statistics site."""

    batch_size: int = 1
    stagger_delay: timedelta = timedelta(seconds=5)
    fetch_timeout: timedelta = timedelta(seconds=60)
    leaderboard_size: int = 10
    headless: bool = True


@dataclass(frozen=True, slots=True)
class PollSettings:
    """Cadence and gating of the periodic poll loop."""

    interval: timedelta = timedelta(minutes=60)
    grace_delay: timedelta = timedelta(hours=8)
    min_recheck: timedelta = timedelta(minutes=60)
    guild_delay: timedelta = timedelta(seconds=2)
    max_concurrent_guilds: int = 1


def _default_timetable() -> Timetable:
    # Tuesday and Friday at midnight, 28 hours each.
    return Timetable(
        slots=(WeeklySlot(1, 0, 0), WeeklySlot(4, 0, 0)),
        duration=timedelta(hours=28),
    )


@dataclass(frozen=True, slots=True)
class RankwatchConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str

    timetable: Timetable = field(default_factory=_default_timetable)
    scraping: ScrapeSettings = field(default_factory=ScrapeSettings)
    polling: PollSettings = field(default_factory=PollSettings)


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------
def _parse_slot(raw: dict) -> WeeklySlot:
    day = str(raw["day"]).strip().lower()
    if day not in WEEKDAYS:
        raise ValueError(f"Unknown weekday in schedule: {raw['day']!r}")
    hour = int(raw.get("hour", 0))
    minute = int(raw.get("minute", 0))
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid start time {hour:02d}:{minute:02d} for {day}")
    return WeeklySlot(weekday=WEEKDAYS[day], hour=hour, minute=minute)


def _parse_schedule(raw: dict | None) -> tuple[Timetable, timedelta]:
    raw = raw or {}
    default = _default_timetable()
    slots = (
        tuple(_parse_slot(s) for s in raw["starts"])
        if "starts" in raw
        else default.slots
    )
    timetable = Timetable(
        slots=slots,
        duration=timedelta(hours=float(raw.get("duration_hours", 28))),
        timezone=str(raw.get("timezone", "UTC")),
    )
    grace = timedelta(hours=float(raw.get("grace_hours", 8)))
    return timetable, grace


def _parse_scraping(raw: dict | None) -> ScrapeSettings:
    raw = raw or {}
    batch_size = int(raw.get("batch_size", 1))
    if batch_size < 1:
        raise ValueError("scraping.batch_size must be at least 1")
    return ScrapeSettings(
        batch_size=batch_size,
        stagger_delay=timedelta(seconds=float(raw.get("stagger_seconds", 5))),
        fetch_timeout=timedelta(seconds=float(raw.get("fetch_timeout_seconds", 60))),
        leaderboard_size=int(raw.get("leaderboard_size", 10)),
        headless=bool(raw.get("headless", True)),
    )


def _parse_polling(raw: dict | None, grace: timedelta) -> PollSettings:
    raw = raw or {}
    workers = int(raw.get("max_concurrent_guilds", 1))
    if workers < 1:
        raise ValueError("polling.max_concurrent_guilds must be at least 1")
    return PollSettings(
        interval=timedelta(minutes=float(raw.get("interval_minutes", 60))),
        grace_delay=grace,
        min_recheck=timedelta(minutes=float(raw.get("min_recheck_minutes", 60))),
        guild_delay=timedelta(seconds=float(raw.get("guild_delay_seconds", 2))),
        max_concurrent_guilds=workers,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> RankwatchConfig:
    """Read *path* and return a :class:`RankwatchConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If a schedule or tuning value is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    timetable, grace = _parse_schedule(raw.get("schedule"))
    return RankwatchConfig(
        bot_prefix=raw["bot_prefix"],
        timetable=timetable,
        scraping=_parse_scraping(raw.get("scraping")),
        polling=_parse_polling(raw.get("polling"), grace),
    )

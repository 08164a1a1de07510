"""
Rankwatch — Tournament Result Tracking for Discord Communities
===============================================================
Watches a public game-statistics leaderboard, notices when a tournament
round has concluded, scrapes each tracked player's result and records it
once per round for every guild that opted in.

Package layout::

    rankwatch/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Upstream URLs and fallback values
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (sync state, rosters, history)
    ├── engine/
    │   ├── schedule.py    # Weekly timetable arithmetic
    │   ├── fingerprint.py # Leaderboard change signal
    │   ├── eligibility.py # Poll gate
    │   └── normalizer.py  # Raw page rows → round candidates
    ├── scraping/
    │   ├── source.py      # Fetch contract + structured status
    │   ├── browser.py     # Playwright-backed source
    │   └── orchestrator.py # Batched, staggered per-player fetches
    ├── services/
    │   ├── roster_service.py      # Tracked / watched players
    │   ├── sync_state_service.py  # Guild opt-in + poll bookkeeping
    │   ├── round_service.py       # Transactional upsert + history
    │   ├── ingestion_service.py   # One guild, one round, end to end
    │   ├── poll_service.py        # Timer-driven work queue
    │   ├── announcement_service.py # Discord delivery of round reports
    │   └── embeds.py              # Round report embeds
    └── bot/
        ├── __main__.py    # Entry point (python -m rankwatch.bot)
        ├── core.py        # Bot subclass, cog loader
        └── cogs/
            └── tasks.py   # Hourly poll loop
"""

__version__ = "0.1.0"

"""
rankwatch.constants — Shared Constants
=======================================

Single source of truth for upstream endpoints and the fallback values
written when a scraped cell is missing or unparseable.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Upstream statistics site
# ---------------------------------------------------------------------------
RESULTS_URL = "https://thetower.lol/results"
PLAYER_URL_TEMPLATE = "https://thetower.lol/player?player={participant_id}"

# Literal copy the player page renders for an unknown id.
PLAYER_NOT_FOUND_TEXT = "Player not found"

# ---------------------------------------------------------------------------
# Fallbacks for round records
# ---------------------------------------------------------------------------
UNKNOWN = "Unknown"
UNKNOWN_ROUND_NAME = "Unknown Tournament"
FALLBACK_SCORE = 0
FALLBACK_RANK = 999

# Separator used when storing battle conditions as a single column.
CONDITIONS_SEPARATOR = " / "

# ---------------------------------------------------------------------------
# Presentation (round report embeds)
# ---------------------------------------------------------------------------
LEAGUE_TITLES: dict[str, str] = {
    "Legends": "\U0001f3c5 Legends",        # 🏅
    "Champions": "\U0001f3c6 Champions",    # 🏆
    "Platinum": "✨ Platinum",          # ✨
    "Gold": "\U0001f947 Gold",              # 🥇
    "Silver": "\U0001f948 Silver",          # 🥈
    "Copper": "\U0001f949 Copper",          # 🥉
}

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

# Discord caps embeds at 25 fields; leave room for header fields.
MAX_FIELDS_PER_EMBED = 20

# ---------------------------------------------------------------------------
# Column widths (scraped text is clipped to these before it is stored)
# ---------------------------------------------------------------------------
PARTICIPANT_ID_LEN = 32
DISPLAY_NAME_LEN = 100
ROUND_NAME_LEN = 100
LEAGUE_LEN = 50
PATCH_VERSION_LEN = 50
CONDITIONS_LEN = 255

# ---------------------------------------------------------------------------
# Player stats
# ---------------------------------------------------------------------------
# Rounds compared (newest against oldest) when reporting a trend.
TREND_WINDOW = 5

"""
Team strength table (Elo-like seeds, centred on 1500).

Names arrive from the provider as full club names ("FC Internazionale
Milano", "Paris Saint-Germain FC"). They are normalized, resolved through
a curated alias table to a canonical key, and looked up in the seed table.
Unknown teams rate DEFAULT_RATING.

Usage:
    ratings = get_team_ratings()
    ratings.rating_of("FC Bayern München")  # 1900.0
    ratings.rating_of("Alpha FC")           # 1500.0
"""

import json
import logging
import re
import unicodedata
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from aipicks.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_RATING = 1500.0

SEED_RATINGS: dict[str, float] = {
    "real madrid": 1850, "barcelona": 1820, "manchester city": 1880,
    "liverpool": 1820, "arsenal": 1800, "chelsea": 1750,
    "manchester united": 1760, "bayern munich": 1900, "inter": 1820,
    "juventus": 1800, "milan": 1780, "psg": 1850, "atletico madrid": 1800,
    "napoli": 1780, "roma": 1740, "tottenham": 1760, "galatasaray": 1700,
    "fenerbahce": 1680, "besiktas": 1650, "trabzonspor": 1620,
}

# Normalized provider/legal name -> canonical seed key
TEAM_ALIASES: dict[str, str] = {
    # England
    "tottenham hotspur": "tottenham",
    "spurs": "tottenham",
    "man city": "manchester city",
    "man united": "manchester united",
    "man utd": "manchester united",
    # Spain
    "atletico de madrid": "atletico madrid",
    "atletico": "atletico madrid",
    # Germany
    "bayern munchen": "bayern munich",
    "bayern": "bayern munich",
    # Italy
    "internazionale milano": "inter",
    "internazionale": "inter",
    "inter milan": "inter",
    "milan 1899": "milan",
    "juventus turin": "juventus",
    # France
    "paris saint germain": "psg",
    "paris sg": "psg",
    # Turkey
    "fenerbahce istanbul": "fenerbahce",
    "besiktas istanbul": "besiktas",
}

_ORG_TOKENS = [
    r"\bfc\b", r"\bcf\b", r"\bsc\b", r"\bafc\b", r"\bssc\b",
    r"\bac\b", r"\bas\b", r"\bcd\b", r"\bsk\b", r"\bjk\b",
    r"\bclub\b",
]


def normalize_team_name(name: str) -> str:
    """
    Normalize a team name for lookup.

    Lowercase, strip diacritics, turn punctuation into spaces, drop
    organisational tokens (fc, cf, sk, club, ...), collapse whitespace.

    Examples:
        "Manchester City FC"      -> "manchester city"
        "Club Atlético de Madrid" -> "atletico de madrid"
        "Beşiktaş JK"             -> "besiktas"
    """
    if not name:
        return ""

    name = name.lower().strip()
    name = name.replace("ø", "o").replace("æ", "ae").replace("ı", "i")
    name = unicodedata.normalize("NFKD", name)
    name = "".join(c for c in name if not unicodedata.combining(c))
    name = re.sub(r"[^a-z0-9\s]", " ", name)

    for token in _ORG_TOKENS:
        name = re.sub(token, "", name)

    return " ".join(name.split())


def canonical_team_key(name: str) -> str:
    """Normalized name resolved through the alias table."""
    key = normalize_team_name(name)
    return TEAM_ALIASES.get(key, key)


class TeamRatings:
    """Immutable canonical-key -> rating table."""

    def __init__(self, overlay: Optional[Mapping[str, float]] = None):
        table = dict(SEED_RATINGS)
        for name, rating in (overlay or {}).items():
            key = canonical_team_key(name)
            if key:
                table[key] = float(rating)
        self._table = MappingProxyType(table)

    @property
    def table(self) -> Mapping[str, float]:
        return self._table

    def rating_of(self, name: str) -> float:
        """Rating for any team name; DEFAULT_RATING when unknown."""
        return float(self._table.get(canonical_team_key(name or ""), DEFAULT_RATING))

    def __len__(self) -> int:
        return len(self._table)


def load_ratings_overlay(path: str) -> dict[str, float]:
    """
    Read a JSON object {team name: rating} from disk.

    Returns an empty dict (and logs) when the file is missing, unreadable,
    or not a name -> number mapping. Non-numeric entries are skipped.
    """
    if not path:
        return {}

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"[RATINGS] Could not load overlay {path}: {e}")
        return {}

    if not isinstance(raw, dict):
        logger.warning(f"[RATINGS] Overlay {path} is not a JSON object, ignoring")
        return {}

    overlay = {}
    for name, rating in raw.items():
        if isinstance(rating, (int, float)) and not isinstance(rating, bool):
            overlay[name] = float(rating)
        else:
            logger.warning(f"[RATINGS] Skipping non-numeric rating for {name!r}")

    logger.info(f"[RATINGS] Loaded {len(overlay)} overlay ratings from {path}")
    return overlay


@lru_cache
def get_team_ratings() -> TeamRatings:
    """Process-wide ratings table (seed + optional overlay file, loaded once)."""
    return TeamRatings(load_ratings_overlay(get_settings().RATINGS_OVERLAY_PATH))

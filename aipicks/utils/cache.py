"""Single-slot, date-keyed cache for the day's prediction rows.

Usage:
    cache = DailyCache()

    # Read
    if cache.is_fresh(today):
        return cache.get()

    # Write (whole-object swap; readers never see a partial snapshot)
    cache.swap(CacheSnapshot(date=today, rows=rows, saved_at=now))
"""

import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class CacheSnapshot:
    """One complete refresh result."""

    date: Optional[str]
    rows: tuple = field(default_factory=tuple)
    saved_at: Optional[datetime] = None
    reason: Optional[str] = None
    total_from_api: int = 0
    stale: bool = False

    def as_stale(self, reason: str, date: Optional[str] = None) -> "CacheSnapshot":
        """Same rows, flagged as left over from a failed refresh (re-dated when given)."""
        return replace(self, date=date or self.date, stale=True, reason=reason)


EMPTY_SNAPSHOT = CacheSnapshot(date=None)


class DailyCache:
    """Holds exactly one CacheSnapshot, replaced atomically."""

    __slots__ = ("_snapshot", "_timestamp")

    def __init__(self):
        self._snapshot: CacheSnapshot = EMPTY_SNAPSHOT
        self._timestamp: float = 0.0

    def get(self) -> CacheSnapshot:
        return self._snapshot

    def is_fresh(self, date: str) -> bool:
        """True when the cached snapshot belongs to `date` (YYYY-MM-DD)."""
        return self._snapshot.date is not None and self._snapshot.date == date

    def swap(self, snapshot: CacheSnapshot) -> None:
        """Replace the whole snapshot."""
        self._snapshot = snapshot
        self._timestamp = time.time()

    @property
    def age(self) -> Optional[float]:
        """Seconds since last swap, or None if empty."""
        if self._timestamp == 0.0:
            return None
        return time.time() - self._timestamp

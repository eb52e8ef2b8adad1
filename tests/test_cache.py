"""Tests for the single-slot daily cache and local-time helpers."""

from datetime import datetime, timezone

from aipicks.utils.cache import EMPTY_SNAPSHOT, CacheSnapshot, DailyCache
from aipicks.utils.timezone import local_hour, local_label, today_ymd


class TestDailyCache:
    """Test snapshot swap semantics."""

    def test_empty(self):
        cache = DailyCache()
        assert cache.get() is EMPTY_SNAPSHOT
        assert cache.is_fresh("2026-10-19") is False
        assert cache.age is None

    def test_swap_replaces_whole_snapshot(self):
        cache = DailyCache()
        first = CacheSnapshot(date="2026-10-19", rows=("a",))
        second = CacheSnapshot(date="2026-10-20", rows=())
        cache.swap(first)
        cache.swap(second)

        assert cache.get() is second
        assert cache.is_fresh("2026-10-20")
        assert not cache.is_fresh("2026-10-19")
        assert cache.age is not None

    def test_as_stale(self):
        snapshot = CacheSnapshot(date="2026-10-19", rows=("a",))
        stale = snapshot.as_stale("fixtures_unavailable")
        assert stale.rows == ("a",)
        assert stale.stale is True
        assert stale.reason == "fixtures_unavailable"
        assert snapshot.stale is False

    def test_as_stale_redated(self):
        stale = CacheSnapshot(date="2026-10-19", rows=("a",)).as_stale("refresh_failed", date="2026-10-20")
        assert stale.date == "2026-10-20"
        assert stale.rows == ("a",)


class TestTimezone:
    """Test local-date and label helpers (Istanbul is UTC+3)."""

    def test_today_rolls_over_at_local_midnight(self):
        before = datetime(2026, 10, 19, 20, 59, tzinfo=timezone.utc)
        after = datetime(2026, 10, 19, 21, 0, tzinfo=timezone.utc)
        assert today_ymd("Europe/Istanbul", before) == "2026-10-19"
        assert today_ymd("Europe/Istanbul", after) == "2026-10-20"

    def test_naive_is_utc(self):
        assert today_ymd("Europe/Istanbul", datetime(2026, 10, 19, 21, 0)) == "2026-10-20"

    def test_labels(self):
        kickoff = datetime(2026, 10, 19, 16, 0, tzinfo=timezone.utc)
        assert local_label(kickoff, "Europe/Istanbul") == "2026-10-19 19:00"
        assert local_hour(kickoff, "Europe/Istanbul") == 19

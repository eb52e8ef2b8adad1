"""
Tests for PredictionService: daily cache, single-flight refresh and
per-fixture / batch-level fallbacks.

The provider is scripted (tests.factories.FakeProvider); the clock is
movable so date rollover can be simulated. Default clock: 2026-10-19
15:00 Europe/Istanbul.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from aipicks.etl.base import MissingCredentials, ProviderUnavailable, StandingsTable
from aipicks.ml.policy import MARKET_1X2, OneXTwoPolicy
from aipicks.services.predictions import (
    DEFAULT_LAMBDA_AWAY,
    DEFAULT_LAMBDA_HOME,
    REASON_FIXTURES_UNAVAILABLE,
    REASON_MISSING_API_KEY,
    REASON_REFRESH_FAILED,
    STATUS_FALLBACK,
    STATUS_OK,
    FixtureOutcome,
    PredictionService,
)
from aipicks.state import telemetry_snapshot
from aipicks.utils.cache import DailyCache
from tests.factories import FakeProvider, make_fixture

NEXT_DAY = datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)  # 12:00 local


class TestDailyCache:
    """Test same-day reuse and date rollover."""

    @pytest.mark.asyncio
    async def test_same_day_requests_fetch_once(self, service, provider):
        first = await service.get_today()
        second = await service.get_today()

        assert provider.calls["fixtures"] == 1
        assert second is first
        assert first.date == "2026-10-19"

    @pytest.mark.asyncio
    async def test_rollover_triggers_exactly_one_refresh(self, service, provider, clock):
        await service.get_today()
        clock.now = NEXT_DAY

        rolled = await service.get_today()
        await service.get_today()

        assert provider.calls["fixtures"] == 2
        assert rolled.date == "2026-10-20"

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_refresh(self, service, provider):
        joins_before = telemetry_snapshot()["refresh_single_flight_join"]

        results = await asyncio.gather(
            service.get_today(),
            service.get_today(),
            service.refresh(),
        )

        assert provider.calls["fixtures"] == 1
        assert results[0] is results[1] is results[2]
        assert telemetry_snapshot()["refresh_single_flight_join"] - joins_before == 2
        assert service.refresh_in_flight is False

    @pytest.mark.asyncio
    async def test_explicit_refresh_rebuilds(self, service, provider):
        await service.get_today()
        await service.refresh()
        assert provider.calls["fixtures"] == 2

    @pytest.mark.asyncio
    async def test_refresh_spanning_midnight_is_not_joined_by_next_day(self, service, provider, clock):
        provider.gate = asyncio.Event()
        clock.now = datetime(2026, 10, 19, 20, 59, 59, tzinfo=timezone.utc)  # 23:59:59 local
        late = asyncio.create_task(service.refresh())
        await asyncio.sleep(0)

        clock.now = datetime(2026, 10, 19, 21, 0, 30, tzinfo=timezone.utc)  # 00:00:30 local
        first = asyncio.create_task(service.get_today())
        second = asyncio.create_task(service.get_today())
        await asyncio.sleep(0)
        provider.gate.set()

        old, new, joined = await asyncio.gather(late, first, second)

        assert old.date == "2026-10-19"
        assert new.date == "2026-10-20"
        assert joined is new
        assert provider.calls["fixtures"] == 2
        assert service.cache.get() is new


class TestSnapshotContents:
    """Test the rows a refresh produces."""

    @pytest.mark.asyncio
    async def test_rows_sorted_by_local_kickoff(self, service):
        snapshot = await service.get_today()

        assert [r.home for r in snapshot.rows] == ["Gamma City", "Alpha FC"]
        first = snapshot.rows[0]
        assert first.kickoff == "2026-10-19 16:30"
        assert first.kickoff_iso == "2026-10-19T13:30:00Z"
        assert first.hour_local == 16
        assert first.league == "Testland Test League"
        assert snapshot.total_from_api == 2
        assert snapshot.reason is None
        assert snapshot.stale is False

    @pytest.mark.asyncio
    async def test_row_carries_pick_and_lambdas(self, service):
        snapshot = await service.get_today()

        for row in snapshot.rows:
            assert row.status == STATUS_OK
            assert row.prediction == f"{row.market}: {row.pick} ({round(row.probability * 100)}%)"
            assert 0.15 <= row.lambda_home <= 3.2
            assert 0.15 <= row.lambda_away <= 3.2
            assert row.alternate is not None

    @pytest.mark.asyncio
    async def test_window_filtering(self, service, provider):
        provider.fixtures = [
            make_fixture("Early", "Side", 10, 11, kickoff="2026-10-19T07:00:00+00:00"),  # 10:00 local
            make_fixture("Late", "Side", 12, 13, kickoff="2026-10-19T20:59:00+00:00"),  # 23:59 local
            make_fixture("After", "Midnight", 14, 15, kickoff="2026-10-19T21:30:00+00:00"),  # next day
            make_fixture("Tomorrow", "Side", 16, 17, kickoff="2026-10-20T12:00:00+00:00"),
            make_fixture("Opening", "Side", 18, 19, kickoff="2026-10-19T08:00:00+00:00"),  # 11:00 local
        ]
        snapshot = await service.get_today()

        assert [r.home for r in snapshot.rows] == ["Opening", "Late"]
        assert snapshot.total_from_api == 5

    @pytest.mark.asyncio
    async def test_policy_is_pluggable(self, provider, settings, params, ratings, clock):
        service = PredictionService(
            provider=provider,
            settings=settings,
            params=params,
            ratings=ratings,
            policy=OneXTwoPolicy(),
            clock=clock,
        )
        snapshot = await service.get_today()
        assert all(r.market == MARKET_1X2 for r in snapshot.rows)

    @pytest.mark.asyncio
    async def test_demo_row_when_enabled(self, provider, settings, params, ratings, clock):
        provider.fixtures = []
        service = PredictionService(
            provider=provider,
            settings=settings.model_copy(update={"FALLBACK_DEMO": True}),
            params=params,
            ratings=ratings,
            clock=clock,
        )
        snapshot = await service.get_today()

        assert len(snapshot.rows) == 1
        demo = snapshot.rows[0]
        assert demo.league == "Demo League"
        assert (demo.home, demo.away) == ("Alpha FC", "Beta United")
        assert demo.prediction == "1X2: 1 (57%)"

    @pytest.mark.asyncio
    async def test_no_demo_row_by_default(self, service, provider):
        provider.fixtures = []
        snapshot = await service.get_today()
        assert snapshot.rows == ()


class TestMemoization:
    """Test per-pass memo of standings and form lookups."""

    @pytest.mark.asyncio
    async def test_standings_fetched_once_per_pass(self, service, provider):
        await service.refresh()
        assert provider.calls["standings"] == 1
        assert provider.calls["matches"] == 4

        await service.refresh()
        assert provider.calls["standings"] == 2
        assert provider.calls["matches"] == 8

    @pytest.mark.asyncio
    async def test_team_form_reused_within_pass(self, service, provider):
        provider.fixtures = [
            make_fixture("Alpha FC", "Beta United", 1, 2, kickoff="2026-10-19T12:00:00+00:00"),
            make_fixture("Alpha FC", "Gamma City", 1, 3, kickoff="2026-10-19T17:00:00+00:00"),
        ]
        await service.refresh()
        assert provider.calls["matches"] == 3

    @pytest.mark.asyncio
    async def test_fixture_without_competition_skips_standings(self, service, provider):
        provider.fixtures = [make_fixture(competition_id=None)]
        snapshot = await service.refresh()

        assert provider.calls["standings"] == 0
        assert snapshot.rows[0].status == STATUS_OK


class TestFallbacks:
    """Test per-fixture and batch-level failure handling."""

    @pytest.mark.asyncio
    async def test_form_failure_falls_back_for_that_fixture_only(self, service, provider):
        provider.failing_teams = {2}
        snapshot = await service.get_today()

        by_home = {r.home: r for r in snapshot.rows}
        failed = by_home["Alpha FC"]
        assert failed.status == STATUS_FALLBACK
        assert failed.fallback_reason == "provider_error: ProviderUnavailable"
        assert failed.pick == "1"
        assert failed.probability == 0.45
        assert failed.prediction == "1X2: 1 (45%)"
        assert (failed.lambda_home, failed.lambda_away) == (DEFAULT_LAMBDA_HOME, DEFAULT_LAMBDA_AWAY)

        assert by_home["Gamma City"].status == STATUS_OK
        assert snapshot.reason is None

    @pytest.mark.asyncio
    async def test_engine_failure_falls_back(self, service):
        with patch("aipicks.services.predictions.expected_goals", side_effect=ValueError("bad input")):
            snapshot = await service.get_today()

        assert all(r.status == STATUS_FALLBACK for r in snapshot.rows)
        assert snapshot.rows[0].fallback_reason == "prediction_error: ValueError"

    @pytest.mark.asyncio
    async def test_missing_api_key(self, service, provider):
        provider.fixtures_error = MissingCredentials("FOOTBALL_DATA_KEY is not configured")

        snapshot = await service.get_today()
        again = await service.get_today()

        assert snapshot.reason == REASON_MISSING_API_KEY
        assert snapshot.rows == ()
        assert snapshot.date == "2026-10-19"
        assert again is snapshot
        assert provider.calls["fixtures"] == 1

    @pytest.mark.asyncio
    async def test_fixture_list_failure_keeps_previous_rows(self, service, provider, clock):
        yesterday = await service.get_today()
        clock.now = NEXT_DAY
        provider.fixtures_error = ProviderUnavailable("matches failed after 3 attempts")

        snapshot = await service.get_today()
        await service.get_today()

        assert snapshot.date == "2026-10-20"
        assert snapshot.rows == yesterday.rows
        assert snapshot.stale is True
        assert snapshot.reason == REASON_FIXTURES_UNAVAILABLE
        assert provider.calls["fixtures"] == 2

    @pytest.mark.asyncio
    async def test_fixture_list_failure_without_previous_rows(self, service, provider):
        provider.fixtures_error = ProviderUnavailable("matches failed")
        snapshot = await service.get_today()

        assert snapshot.rows == ()
        assert snapshot.stale is False
        assert snapshot.reason == REASON_FIXTURES_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_unexpected_error_never_escapes(self, service, provider):
        await service.get_today()
        provider.fixtures_error = RuntimeError("boom")

        snapshot = await service.refresh()

        assert snapshot.reason == REASON_REFRESH_FAILED
        assert snapshot.stale is True
        assert len(snapshot.rows) == 2
        assert service.last_refresh["result"] == REASON_REFRESH_FAILED


class TestFixtureOutcome:
    """Test the neutral fallback outcome."""

    def test_fallback_row(self):
        row = FixtureOutcome.fallback(make_fixture(), reason="provider_error: ProviderUnavailable").to_row(
            "Europe/Istanbul"
        )
        assert row.kickoff == "2026-10-19 19:00"
        assert row.market == MARKET_1X2
        assert row.edge == pytest.approx(0.45 - 1 / 3, abs=1e-4)
        assert row.alternate is None


class TestDiagnostics:
    """Test the operational view."""

    @pytest.mark.asyncio
    async def test_diagnostics(self, service):
        await service.get_today()
        info = await service.diagnostics()

        assert info["today"] == "2026-10-19"
        assert info["tz"] == "Europe/Istanbul"
        assert info["cache_rows"] == 2
        assert info["market_policy"] == "strongest_edge"
        assert info["live"] == {"total_from_api": 2, "in_window": 2}
        assert info["last_refresh"]["result"] == "ok"

    @pytest.mark.asyncio
    async def test_diagnostics_missing_key(self, service, provider):
        provider.fixtures_error = MissingCredentials("no key")
        info = await service.diagnostics()
        assert info["live"] == {"error": REASON_MISSING_API_KEY}
        assert info["cache_date"] is None

    @pytest.mark.asyncio
    async def test_close(self, service, provider):
        await service.close()
        assert provider.closed is True

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_refresh(self, service, provider):
        provider.gate = asyncio.Event()
        pending = asyncio.create_task(service.refresh())
        await asyncio.sleep(0)
        assert service.refresh_in_flight is True

        await service.close()

        assert service.refresh_in_flight is False
        assert provider.closed is True
        with pytest.raises(asyncio.CancelledError):
            await pending


class TestInjectedCache:
    """Test an externally owned cache."""

    @pytest.mark.asyncio
    async def test_shared_cache_object(self, settings, params, ratings, clock):
        cache = DailyCache()
        service = PredictionService(
            provider=FakeProvider(
                fixtures=[make_fixture()],
                standings={100: StandingsTable(positions={1: 1, 2: 2}, table_size=2)},
            ),
            settings=settings,
            params=params,
            ratings=ratings,
            cache=cache,
            clock=clock,
        )
        snapshot = await service.get_today()
        assert cache.get() is snapshot
        assert cache.is_fresh("2026-10-19")

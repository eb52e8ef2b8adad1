"""Shared fixtures: settings without pacing, a scripted provider, a movable clock."""

from datetime import datetime, timezone

import pytest

from aipicks.config import ModelParams, Settings
from aipicks.etl.base import StandingsTable
from aipicks.features.ratings import TeamRatings
from aipicks.services.predictions import PredictionService
from tests.factories import FakeProvider, MutableClock, make_fixture, make_match


@pytest.fixture
def settings() -> Settings:
    return Settings(
        FOOTBALL_DATA_KEY="test-key",
        TZ="Europe/Istanbul",
        START_HOUR=11,
        END_HOUR=24,
        REQUEST_DELAY_SECONDS=0,
        HTTP_RETRY_DELAY_SECONDS=0,
        HTTP_MAX_RETRIES=3,
        FALLBACK_DEMO=False,
        MARKET_POLICY="strongest_edge",
    )


@pytest.fixture
def params() -> ModelParams:
    return ModelParams()


@pytest.fixture
def ratings() -> TeamRatings:
    return TeamRatings()


@pytest.fixture
def clock() -> MutableClock:
    # 15:00 in Istanbul
    return MutableClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(
        fixtures=[
            make_fixture("Alpha FC", "Beta United", 1, 2, kickoff="2026-10-19T16:00:00+00:00"),
            make_fixture("Gamma City", "Delta Town", 3, 4, kickoff="2026-10-19T13:30:00+00:00"),
        ],
        standings={100: StandingsTable(positions={1: 1, 2: 4, 3: 2, 4: 3}, table_size=4)},
        matches={
            1: [make_match(12, 1, 3, 2, 0), make_match(5, 4, 1, 1, 1)],
            2: [make_match(11, 2, 4, 0, 1)],
        },
    )


@pytest.fixture
def service(provider, settings, params, ratings, clock) -> PredictionService:
    return PredictionService(
        provider=provider,
        settings=settings,
        params=params,
        ratings=ratings,
        clock=clock,
    )

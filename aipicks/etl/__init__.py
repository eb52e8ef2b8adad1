"""ETL module for fixture, standings and match-history extraction."""

from aipicks.etl.base import (
    DataProvider,
    FixtureData,
    MatchResult,
    MissingCredentials,
    ProviderError,
    ProviderUnavailable,
    StandingsTable,
)
from aipicks.etl.football_data import FootballDataProvider

__all__ = [
    "DataProvider",
    "FootballDataProvider",
    "FixtureData",
    "MatchResult",
    "StandingsTable",
    "ProviderError",
    "MissingCredentials",
    "ProviderUnavailable",
]

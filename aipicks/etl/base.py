"""Abstract base class for data providers."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

# Used when a competition has no standings table at all
DEFAULT_TABLE_SIZE = 20


class ProviderError(Exception):
    """Base error for upstream data provider failures."""


class MissingCredentials(ProviderError):
    """Raised when no API token is configured for the provider."""


class ProviderUnavailable(ProviderError):
    """Raised on non-2xx responses or network failures after retries."""


@dataclass
class FixtureData:
    """Data transfer object for a scheduled fixture."""

    external_id: Optional[int]
    kickoff_utc: datetime  # timezone-aware UTC
    competition_id: Optional[int]
    league: str  # "<area> <competition>", e.g. "England Premier League"
    home_team_id: Optional[int]
    home_team: str
    away_team_id: Optional[int]
    away_team: str
    status: str = "SCHEDULED"


@dataclass
class MatchResult:
    """Data transfer object for a finished match."""

    utc_date: datetime
    competition_id: Optional[int]
    home_team_id: Optional[int]
    away_team_id: Optional[int]
    home_goals: int
    away_goals: int


@dataclass
class StandingsTable:
    """League table positions for one competition (lower is stronger)."""

    positions: dict[int, int] = field(default_factory=dict)
    table_size: int = 0

    @property
    def effective_size(self) -> int:
        return self.table_size or DEFAULT_TABLE_SIZE

    @property
    def midpoint(self) -> int:
        return math.ceil(self.effective_size / 2)

    def position_of(self, team_id: Optional[int]) -> int:
        """Position of a team, or the table midpoint when unknown."""
        if team_id is not None and team_id in self.positions:
            return self.positions[team_id]
        return self.midpoint


class DataProvider(ABC):
    """Abstract base class for football data providers."""

    @abstractmethod
    async def get_fixtures(self, day_from: date, day_to: date) -> list[FixtureData]:
        """
        Fetch fixtures kicking off between two dates (inclusive).

        Raises:
            MissingCredentials: No API token configured.
            ProviderUnavailable: Upstream failure after retries.
        """
        pass

    @abstractmethod
    async def get_standings(self, competition_id: int) -> StandingsTable:
        """Fetch the TOTAL standings table for a competition."""
        pass

    @abstractmethod
    async def get_recent_matches(
        self,
        team_id: int,
        competition_id: Optional[int] = None,
        lookback_days: int = 45,
        limit: int = 5,
    ) -> list[MatchResult]:
        """
        Fetch a team's most recent finished matches, most-recent-first.

        Args:
            team_id: Provider team ID.
            competition_id: Restrict to one competition when given.
            lookback_days: Size of the date window ending today.
            limit: Maximum number of matches returned.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass

"""football-data.org (v4) data provider implementation."""

import asyncio
import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import httpx

from aipicks.config import Settings, get_settings
from aipicks.etl.base import (
    DataProvider,
    FixtureData,
    MatchResult,
    MissingCredentials,
    ProviderUnavailable,
    StandingsTable,
)
from aipicks.telemetry.metrics import record_provider_request

logger = logging.getLogger(__name__)

PROVIDER_NAME = "football_data"

FIXTURE_STATUSES = "SCHEDULED,TIMED,IN_PLAY,PAUSED,FINISHED"


def _parse_utc(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 UTC timestamp ("2026-10-19T18:00:00Z") into an aware datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _full_time_score(match: dict) -> tuple[int, int]:
    score = match.get("score") or {}
    ft = score.get("fullTime") or score.get("regularTime") or {}
    return ft.get("home") or 0, ft.get("away") or 0


class FootballDataProvider(DataProvider):
    """football-data.org provider with pacing, 429 back-off and telemetry."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.BASE_URL = self.settings.FOOTBALL_DATA_BASE_URL.rstrip("/")
        self.client = httpx.AsyncClient(
            headers={
                "X-Auth-Token": self.settings.FOOTBALL_DATA_KEY,
                "Accept": "application/json",
            },
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.request_count = 0

    @property
    def has_credentials(self) -> bool:
        return bool(self.settings.FOOTBALL_DATA_KEY)

    def _require_credentials(self) -> None:
        if not self.has_credentials:
            raise MissingCredentials("FOOTBALL_DATA_KEY is not configured")

    async def _request(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """
        Make a request to the API with retries.

        429 responses back off exponentially; timeouts, request errors and
        non-2xx statuses retry up to HTTP_MAX_RETRIES and then raise
        ProviderUnavailable. A body that is not valid JSON yields {}.

        Args:
            endpoint: Path relative to the base URL (e.g. "matches").
            params: Query parameters.
        """
        url = f"{self.BASE_URL}/{endpoint}"
        max_retries = max(1, self.settings.HTTP_MAX_RETRIES)
        retry_delay = self.settings.HTTP_RETRY_DELAY_SECONDS
        telemetry_endpoint = endpoint.split("/")[0]
        last_error: Optional[Exception] = None

        for attempt in range(max_retries):
            start_time = time.time()
            try:
                self.request_count += 1
                response = await self.client.get(url, params=params)
                latency_ms = (time.time() - start_time) * 1000

                if response.status_code == 429:
                    record_provider_request(PROVIDER_NAME, telemetry_endpoint, 429, latency_ms, is_rate_limited=True)
                    wait_time = retry_delay * (2**attempt)
                    logger.warning(f"[PROVIDER] Rate limited on {endpoint}. Waiting {wait_time}s before retry...")
                    last_error = ProviderUnavailable(f"{endpoint}: rate limited")
                    await asyncio.sleep(wait_time)
                    continue

                response.raise_for_status()
                record_provider_request(PROVIDER_NAME, telemetry_endpoint, response.status_code, latency_ms)

                try:
                    data = response.json()
                except ValueError:
                    logger.error(f"[PROVIDER] Malformed JSON from {endpoint}: {response.text[:200]!r}")
                    return {}
                return data if isinstance(data, dict) else {}

            except httpx.TimeoutException as e:
                latency_ms = (time.time() - start_time) * 1000
                record_provider_request(PROVIDER_NAME, telemetry_endpoint, 0, latency_ms, is_timeout=True)
                logger.error(f"[PROVIDER] Timeout on {endpoint}: {e}")
                last_error = e

            except httpx.HTTPStatusError as e:
                latency_ms = (time.time() - start_time) * 1000
                record_provider_request(PROVIDER_NAME, telemetry_endpoint, e.response.status_code, latency_ms)
                logger.error(f"[PROVIDER] HTTP error on {endpoint}: {e.response.status_code}")
                last_error = e
                # Client errors other than 429 will not improve on retry
                if 400 <= e.response.status_code < 500:
                    break

            except httpx.RequestError as e:
                latency_ms = (time.time() - start_time) * 1000
                record_provider_request(PROVIDER_NAME, telemetry_endpoint, 0, latency_ms)
                logger.error(f"[PROVIDER] Request error on {endpoint}: {e}")
                last_error = e

            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))

        raise ProviderUnavailable(f"{endpoint} failed after {max_retries} attempts: {last_error}")

    def _parse_fixture(self, match: dict) -> Optional[FixtureData]:
        """Parse an API match object into FixtureData (None without a kickoff)."""
        kickoff = _parse_utc(match.get("utcDate"))
        if kickoff is None:
            return None

        competition = match.get("competition") or {}
        area = match.get("area") or competition.get("area") or {}
        league = f"{area.get('name') or ''} {competition.get('name') or ''}".strip()
        home = match.get("homeTeam") or {}
        away = match.get("awayTeam") or {}

        return FixtureData(
            external_id=match.get("id"),
            kickoff_utc=kickoff,
            competition_id=competition.get("id"),
            league=league,
            home_team_id=home.get("id"),
            home_team=home.get("name") or "",
            away_team_id=away.get("id"),
            away_team=away.get("name") or "",
            status=match.get("status") or "SCHEDULED",
        )

    def _parse_result(self, match: dict) -> Optional[MatchResult]:
        played_at = _parse_utc(match.get("utcDate"))
        if played_at is None:
            return None
        home_goals, away_goals = _full_time_score(match)
        return MatchResult(
            utc_date=played_at,
            competition_id=(match.get("competition") or {}).get("id"),
            home_team_id=(match.get("homeTeam") or {}).get("id"),
            away_team_id=(match.get("awayTeam") or {}).get("id"),
            home_goals=home_goals,
            away_goals=away_goals,
        )

    async def get_fixtures(self, day_from: date, day_to: date) -> list[FixtureData]:
        self._require_credentials()
        data = await self._request(
            "matches",
            params={
                "dateFrom": day_from.isoformat(),
                "dateTo": day_to.isoformat(),
                "status": FIXTURE_STATUSES,
            },
        )
        matches = data.get("matches")
        if not isinstance(matches, list):
            return []

        fixtures = []
        for match in matches:
            fixture = self._parse_fixture(match)
            if fixture is not None:
                fixtures.append(fixture)
        logger.info(f"[PROVIDER] {len(fixtures)} fixtures between {day_from} and {day_to}")
        return fixtures

    async def get_standings(self, competition_id: int) -> StandingsTable:
        self._require_credentials()
        data = await self._request(f"competitions/{competition_id}/standings")

        total = next(
            (s for s in data.get("standings") or [] if s.get("type") == "TOTAL"),
            None,
        )
        table = (total or {}).get("table") or []

        positions = {}
        for row in table:
            team_id = (row.get("team") or {}).get("id")
            position = row.get("position")
            # rows without a rank fall back to the table midpoint
            if team_id is None or not position or position < 1:
                continue
            positions[team_id] = position
        return StandingsTable(positions=positions, table_size=len(table))

    async def get_recent_matches(
        self,
        team_id: int,
        competition_id: Optional[int] = None,
        lookback_days: int = 45,
        limit: int = 5,
    ) -> list[MatchResult]:
        self._require_credentials()
        day_to = datetime.now(timezone.utc).date()
        day_from = day_to - timedelta(days=lookback_days)
        params = {
            "status": "FINISHED",
            "dateFrom": day_from.isoformat(),
            "dateTo": day_to.isoformat(),
        }
        if competition_id is not None:
            params["competitions"] = competition_id

        data = await self._request(f"teams/{team_id}/matches", params=params)
        matches = data.get("matches")
        if not isinstance(matches, list):
            return []

        results = [r for r in (self._parse_result(m) for m in matches) if r is not None]
        results.sort(key=lambda r: r.utc_date, reverse=True)
        return results[:limit]

    async def close(self) -> None:
        await self.client.aclose()

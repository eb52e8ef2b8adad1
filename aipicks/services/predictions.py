"""
Daily prediction service.

Owns the DailyCache and coordinates one refresh pass:

    fixtures (provider) -> per fixture: standings + recent matches (memoized
    for this pass) -> form -> expected goals -> market probabilities ->
    market selection -> PredictionRow -> atomic cache swap

Fixtures are processed one at a time with a pause between provider calls to
stay inside the free-tier rate limit. A provider failure for one fixture
produces a FixtureOutcome with status "fallback" (neutral pick, reason kept)
instead of aborting the pass. Only a missing API key or an unavailable
fixture list is reported at batch level.

Refreshes are single-flight per local date: concurrent triggers (cron + a
request that sees a stale date) await the in-flight refresh for the same date
instead of starting another.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from aipicks.config import ModelParams, Settings, get_model_params, get_settings
from aipicks.etl.base import (
    DataProvider,
    FixtureData,
    MissingCredentials,
    ProviderError,
    StandingsTable,
)
from aipicks.features.form import FormSnapshot, compute_form
from aipicks.features.ratings import TeamRatings, get_team_ratings
from aipicks.ml.expected_goals import expected_goals
from aipicks.ml.poisson import market_probabilities
from aipicks.ml.policy import (
    BASELINE_1X2,
    MARKET_1X2,
    MarketPick,
    MarketPolicy,
    Selection,
    get_policy,
    select_market,
)
from aipicks.state import _incr
from aipicks.telemetry.metrics import record_fixture_outcome, record_refresh
from aipicks.telemetry.sentry import capture_exception
from aipicks.utils.cache import CacheSnapshot, DailyCache
from aipicks.utils.timezone import local_hour, local_label, to_local, today_ymd

logger = logging.getLogger(__name__)

# Neutral inputs used when a fixture's form/standings cannot be fetched
DEFAULT_LAMBDA_HOME = 1.3
DEFAULT_LAMBDA_AWAY = 1.2
DEFAULT_PICK = MarketPick(
    market=MARKET_1X2,
    label="1",
    probability=0.45,
    edge=0.45 - BASELINE_1X2,
)

STATUS_OK = "ok"
STATUS_FALLBACK = "fallback"

REASON_MISSING_API_KEY = "missing_api_key"
REASON_FIXTURES_UNAVAILABLE = "fixtures_unavailable"
REASON_REFRESH_FAILED = "refresh_failed"


class PredictionRow(BaseModel):
    """One served prediction (immutable once produced)."""

    model_config = ConfigDict(frozen=True)

    league: str
    kickoff_iso: str
    kickoff: str
    hour_local: int
    home: str
    away: str
    market: str
    pick: str
    probability: float
    edge: float
    low_edge: bool = False
    prediction: str
    alternate: Optional[dict] = None
    lambda_home: float
    lambda_away: float
    status: str = STATUS_OK
    fallback_reason: Optional[str] = None


@dataclass(frozen=True)
class FixtureOutcome:
    """Result of predicting one fixture: a real prediction or the neutral fallback."""

    fixture: FixtureData
    status: str
    lambda_home: float
    lambda_away: float
    selection: Selection
    reason: Optional[str] = None

    @classmethod
    def fallback(cls, fixture: FixtureData, reason: str) -> "FixtureOutcome":
        return cls(
            fixture=fixture,
            status=STATUS_FALLBACK,
            lambda_home=DEFAULT_LAMBDA_HOME,
            lambda_away=DEFAULT_LAMBDA_AWAY,
            selection=Selection(pick=DEFAULT_PICK),
            reason=reason,
        )

    def to_row(self, tz_name: str) -> PredictionRow:
        pick = self.selection.pick
        runner_up = self.selection.runner_up
        kickoff = self.fixture.kickoff_utc
        return PredictionRow(
            league=self.fixture.league,
            kickoff_iso=kickoff.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
            kickoff=local_label(kickoff, tz_name),
            hour_local=local_hour(kickoff, tz_name),
            home=self.fixture.home_team,
            away=self.fixture.away_team,
            market=pick.market,
            pick=pick.label,
            probability=round(pick.probability, 4),
            edge=round(pick.edge, 4),
            low_edge=pick.low_edge,
            prediction=pick.describe(),
            alternate=runner_up.as_dict() if runner_up else None,
            lambda_home=round(self.lambda_home, 3),
            lambda_away=round(self.lambda_away, 3),
            status=self.status,
            fallback_reason=self.reason,
        )


class RefreshContext:
    """
    Memo of standings and form lookups for ONE refresh pass.

    Keys: competition id for standings, (team id, competition id) for form.
    A new context per pass means nothing fetched on day N is reused on day N+1.
    """

    def __init__(self, provider: DataProvider, settings: Settings):
        self.provider = provider
        self.settings = settings
        self.standings: dict[int, StandingsTable] = {}
        self.forms: dict[tuple[int, Optional[int]], FormSnapshot] = {}

    async def _pause(self) -> None:
        if self.settings.REQUEST_DELAY_SECONDS > 0:
            await asyncio.sleep(self.settings.REQUEST_DELAY_SECONDS)

    async def standings_for(self, competition_id: Optional[int]) -> StandingsTable:
        if competition_id is None:
            return StandingsTable()
        if competition_id in self.standings:
            _incr("standings_memo_hit")
            return self.standings[competition_id]

        table = await self.provider.get_standings(competition_id)
        await self._pause()
        self.standings[competition_id] = table
        return table

    async def form_for(
        self,
        team_id: Optional[int],
        competition_id: Optional[int],
        standings: StandingsTable,
    ) -> FormSnapshot:
        if team_id is None:
            return FormSnapshot.neutral(standings)
        key = (team_id, competition_id)
        if key in self.forms:
            _incr("form_memo_hit")
            return self.forms[key]

        matches = await self.provider.get_recent_matches(
            team_id,
            competition_id=competition_id,
            lookback_days=self.settings.FORM_LOOKBACK_DAYS,
            limit=self.settings.FORM_MAX_MATCHES,
        )
        await self._pause()

        form = compute_form(
            team_id,
            matches,
            standings,
            max_matches=self.settings.FORM_MAX_MATCHES,
            strength_divisor=self.settings.FORM_STRENGTH_DIVISOR,
        )
        logger.debug(
            f"[FORM] team={team_id} comp={competition_id} played={form.matches_played} "
            f"ppm={form.points_per_match:.2f} strength={form.form_strength:.2f}"
        )
        self.forms[key] = form
        return form


class PredictionService:
    """Builds, caches and serves the day's prediction rows."""

    def __init__(
        self,
        provider: DataProvider,
        settings: Optional[Settings] = None,
        params: Optional[ModelParams] = None,
        ratings: Optional[TeamRatings] = None,
        policy: Optional[MarketPolicy] = None,
        cache: Optional[DailyCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.provider = provider
        self.settings = settings or get_settings()
        self.params = params or get_model_params()
        self.ratings = ratings or get_team_ratings()
        self.policy = policy or get_policy(self.settings.MARKET_POLICY)
        self.cache = cache or DailyCache()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_day: Optional[str] = None
        self.last_refresh: dict = {}

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> str:
        return today_ymd(self.settings.TZ, self.now())

    def _in_window(self, fixture: FixtureData, day: str) -> bool:
        local = to_local(fixture.kickoff_utc, self.settings.TZ)
        if local.strftime("%Y-%m-%d") != day:
            return False
        return self.settings.START_HOUR <= local.hour < self.settings.END_HOUR

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    async def predict_fixture(self, fixture: FixtureData, ctx: RefreshContext) -> FixtureOutcome:
        """Predict one fixture; provider or engine failures yield a fallback outcome."""
        try:
            standings = await ctx.standings_for(fixture.competition_id)
            home_form = await ctx.form_for(fixture.home_team_id, fixture.competition_id, standings)
            away_form = await ctx.form_for(fixture.away_team_id, fixture.competition_id, standings)
        except ProviderError as e:
            logger.warning(
                f"[REFRESH] Form/standings unavailable for {fixture.home_team} vs "
                f"{fixture.away_team}: {e}"
            )
            return FixtureOutcome.fallback(fixture, reason=f"provider_error: {type(e).__name__}")

        try:
            goals = expected_goals(
                fixture.home_team,
                fixture.away_team,
                fixture.league,
                home_form,
                away_form,
                params=self.params,
                ratings=self.ratings,
            )
            probs = market_probabilities(goals.lambda_home, goals.lambda_away, params=self.params)
            selection = select_market(probs, policy=self.policy, params=self.params)
        except (ArithmeticError, ValueError) as e:
            logger.error(f"[REFRESH] Prediction failed for {fixture.home_team} vs {fixture.away_team}: {e}")
            return FixtureOutcome.fallback(fixture, reason=f"prediction_error: {type(e).__name__}")

        return FixtureOutcome(
            fixture=fixture,
            status=STATUS_OK,
            lambda_home=goals.lambda_home,
            lambda_away=goals.lambda_away,
            selection=selection,
        )

    def _demo_row(self, day: str) -> PredictionRow:
        return PredictionRow(
            league="Demo League",
            kickoff_iso=f"{day}T16:00:00Z",
            kickoff=f"{day} 19:00",
            hour_local=19,
            home="Alpha FC",
            away="Beta United",
            market=MARKET_1X2,
            pick="1",
            probability=0.57,
            edge=round(0.57 - BASELINE_1X2, 4),
            prediction="1X2: 1 (57%)",
            lambda_home=DEFAULT_LAMBDA_HOME,
            lambda_away=DEFAULT_LAMBDA_AWAY,
            status=STATUS_FALLBACK,
            fallback_reason="demo",
        )

    def _keep_previous(self, day: str, reason: str) -> CacheSnapshot:
        """Snapshot for a failed fixture fetch: last rows kept, flagged stale."""
        previous = self.cache.get()
        if previous.rows:
            return previous.as_stale(reason, date=day)
        return CacheSnapshot(date=day, saved_at=self.now(), reason=reason)

    async def build_snapshot(self, day: str) -> CacheSnapshot:
        """Fetch and predict every fixture of `day` (YYYY-MM-DD, local time)."""
        day_from = date.fromisoformat(day)
        try:
            fixtures = await self.provider.get_fixtures(day_from, day_from + timedelta(days=1))
        except MissingCredentials:
            logger.warning("[REFRESH] FOOTBALL_DATA_KEY missing, serving empty rows")
            return CacheSnapshot(date=day, saved_at=self.now(), reason=REASON_MISSING_API_KEY)
        except ProviderError as e:
            logger.error(f"[REFRESH] Fixture list unavailable: {e}")
            return self._keep_previous(day, REASON_FIXTURES_UNAVAILABLE)

        ctx = RefreshContext(self.provider, self.settings)
        outcomes = []
        for fixture in fixtures:
            if not self._in_window(fixture, day):
                continue
            outcome = await self.predict_fixture(fixture, ctx)
            _incr(f"fixture_{outcome.status}")
            record_fixture_outcome(outcome.status)
            outcomes.append(outcome)

        rows = [o.to_row(self.settings.TZ) for o in outcomes]
        rows.sort(key=lambda r: r.kickoff)

        if not rows and self.settings.FALLBACK_DEMO:
            rows.append(self._demo_row(day))

        n_fallback = sum(1 for o in outcomes if o.status == STATUS_FALLBACK)
        logger.info(
            f"[REFRESH] {day}: {len(rows)} rows from {len(fixtures)} fixtures "
            f"({n_fallback} fallback, {len(ctx.standings)} standings, {len(ctx.forms)} forms)"
        )
        return CacheSnapshot(
            date=day,
            rows=tuple(rows),
            saved_at=self.now(),
            total_from_api=len(fixtures),
        )

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    async def _run_refresh(self, day: str) -> CacheSnapshot:
        t0 = time.time()
        _incr("refresh_started")
        try:
            snapshot = await self.build_snapshot(day)
        except Exception as e:
            logger.exception(f"[REFRESH] Unexpected failure for {day}: {e}")
            capture_exception(e, job_id="refresh")
            snapshot = self._keep_previous(day, REASON_REFRESH_FAILED)

        self.cache.swap(snapshot)
        elapsed_ms = (time.time() - t0) * 1000
        result = snapshot.reason if snapshot.reason else "ok"
        record_refresh(result, elapsed_ms)
        self.last_refresh = {
            "date": day,
            "result": result,
            "rows": len(snapshot.rows),
            "duration_ms": round(elapsed_ms),
            "finished_at": self.now().isoformat(),
        }
        return snapshot

    async def refresh(self) -> CacheSnapshot:
        """Rebuild today's snapshot.

        Joins the in-flight refresh only when it is building the same local
        date. A refresh still running for an earlier date is allowed to finish
        first, then one new refresh is started for today.
        """
        day = self.today()
        while self.refresh_in_flight:
            task = self._refresh_task
            if self._refresh_day == day:
                _incr("refresh_single_flight_join")
                return await asyncio.shield(task)
            logger.info(f"[REFRESH] Waiting for {self._refresh_day} refresh before building {day}")
            await asyncio.wait({task})

        self._refresh_day = day
        self._refresh_task = asyncio.create_task(self._run_refresh(day))
        return await asyncio.shield(self._refresh_task)

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def get_today(self) -> CacheSnapshot:
        """Today's snapshot, refreshing once when the cached date is not today."""
        if self.cache.is_fresh(self.today()):
            _incr("today_cache_hit")
            return self.cache.get()
        _incr("today_cache_miss")
        return await self.refresh()

    async def diagnostics(self) -> dict:
        """Operational view: config window, cache state, last refresh, live fixture count."""
        snapshot = self.cache.get()
        day = self.today()

        live: dict = {}
        try:
            day_from = date.fromisoformat(day)
            fixtures = await self.provider.get_fixtures(day_from, day_from + timedelta(days=1))
            live = {
                "total_from_api": len(fixtures),
                "in_window": sum(1 for f in fixtures if self._in_window(f, day)),
            }
        except MissingCredentials:
            live = {"error": REASON_MISSING_API_KEY}
        except ProviderError as e:
            live = {"error": REASON_FIXTURES_UNAVAILABLE, "detail": str(e)}

        return {
            "tz": self.settings.TZ,
            "today": day,
            "start_hour": self.settings.START_HOUR,
            "end_hour": self.settings.END_HOUR,
            "market_policy": self.policy.name,
            "cache_date": snapshot.date,
            "cache_rows": len(snapshot.rows),
            "cache_age_seconds": round(self.cache.age) if self.cache.age is not None else None,
            "saved_at": snapshot.saved_at.isoformat() if snapshot.saved_at else None,
            "stale": snapshot.stale,
            "reason": snapshot.reason,
            "refresh_in_flight": self.refresh_in_flight,
            "last_refresh": self.last_refresh,
            "ratings_loaded": len(self.ratings),
            "live": live,
        }

    async def close(self) -> None:
        """Cancel an in-flight refresh, then close the provider it uses."""
        task = self._refresh_task
        if task is not None and not task.done():
            logger.info(f"[REFRESH] Cancelling in-flight refresh for {self._refresh_day}")
            task.cancel()
            await asyncio.wait({task})
        await self.provider.close()

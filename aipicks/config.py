"""Application configuration using Pydantic Settings."""

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # football-data.org
    FOOTBALL_DATA_KEY: str = ""
    FOOTBALL_DATA_BASE_URL: str = "https://api.football-data.org/v4"
    HTTP_TIMEOUT_SECONDS: float = 15.0
    HTTP_MAX_RETRIES: int = 3
    HTTP_RETRY_DELAY_SECONDS: float = 2.0
    REQUEST_DELAY_SECONDS: float = 0.12  # Pause between provider calls (free tier: 10 r/m)

    # Serving window (local time)
    TZ: str = "Europe/Istanbul"
    START_HOUR: int = 11
    END_HOUR: int = 24
    FALLBACK_DEMO: bool = False

    # Daily refresh (local time)
    REFRESH_HOUR: int = 0
    REFRESH_MINUTE: int = 1

    # Optional JSON file {team name: rating} merged over the seed table at boot
    RATINGS_OVERLAY_PATH: str = ""

    # API security
    RATE_LIMIT_PER_MINUTE: str = "60/minute"
    METRICS_BEARER_TOKEN: str = ""

    # ═══════════════════════════════════════════════════════════════
    # Prediction calibration knobs
    # ═══════════════════════════════════════════════════════════════

    # Strength
    HOME_ADVANTAGE_ELO: float = 60.0

    # Form
    FORM_LOOKBACK_DAYS: int = 45
    FORM_MAX_MATCHES: int = 5
    FORM_STRENGTH_DIVISOR: float = 6.4  # ~1.5 ppm over five weighted matches -> 1.0
    FORM_MULTIPLIER_SLOPE: float = 0.15
    FORM_MULTIPLIER_MIN: float = 0.85
    FORM_MULTIPLIER_MAX: float = 1.15

    # Goal split
    SPLIT_MIN: float = 0.36
    SPLIT_MAX: float = 0.64
    SPLIT_TANH_SCALE: float = 0.12
    SPLIT_TANH_DIVISOR: float = 600.0
    FORM_RATIO_EXPONENT: float = 0.25
    LINEAR_TILT_DIVISOR: float = 2200.0

    # One-sided dominance
    MISMATCH_THRESHOLD: float = 300.0
    MISMATCH_HOME_TILT: float = 1.10
    MISMATCH_AWAY_TILT: float = 0.90

    # Poisson
    LAMBDA_MIN: float = 0.15
    LAMBDA_MAX: float = 3.2
    POISSON_CAP: int = 12
    SHARPEN_ENABLED: bool = True
    SHARPEN_TAU: float = 1.25

    # Market selection
    MARKET_POLICY: str = "strongest_edge"  # strongest_edge | one_x_two | one_x_two_then_goals
    MIN_EDGE: float = 0.08
    GOALS_FALLBACK_MIN_PROB: float = 0.55

    # Telemetry / Observability
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.05
    SENTRY_ENVIRONMENT: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@dataclass(frozen=True)
class ModelParams:
    """Snapshot of the calibration knobs consumed by the pure engine functions."""

    home_advantage_elo: float = 60.0
    form_multiplier_slope: float = 0.15
    form_multiplier_min: float = 0.85
    form_multiplier_max: float = 1.15
    split_min: float = 0.36
    split_max: float = 0.64
    split_tanh_scale: float = 0.12
    split_tanh_divisor: float = 600.0
    form_ratio_exponent: float = 0.25
    linear_tilt_divisor: float = 2200.0
    mismatch_threshold: float = 300.0
    mismatch_home_tilt: float = 1.10
    mismatch_away_tilt: float = 0.90
    lambda_min: float = 0.15
    lambda_max: float = 3.2
    poisson_cap: int = 12
    sharpen_enabled: bool = True
    sharpen_tau: float = 1.25
    min_edge: float = 0.08
    goals_fallback_min_prob: float = 0.55

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelParams":
        return cls(
            home_advantage_elo=settings.HOME_ADVANTAGE_ELO,
            form_multiplier_slope=settings.FORM_MULTIPLIER_SLOPE,
            form_multiplier_min=settings.FORM_MULTIPLIER_MIN,
            form_multiplier_max=settings.FORM_MULTIPLIER_MAX,
            split_min=settings.SPLIT_MIN,
            split_max=settings.SPLIT_MAX,
            split_tanh_scale=settings.SPLIT_TANH_SCALE,
            split_tanh_divisor=settings.SPLIT_TANH_DIVISOR,
            form_ratio_exponent=settings.FORM_RATIO_EXPONENT,
            linear_tilt_divisor=settings.LINEAR_TILT_DIVISOR,
            mismatch_threshold=settings.MISMATCH_THRESHOLD,
            mismatch_home_tilt=settings.MISMATCH_HOME_TILT,
            mismatch_away_tilt=settings.MISMATCH_AWAY_TILT,
            lambda_min=settings.LAMBDA_MIN,
            lambda_max=settings.LAMBDA_MAX,
            poisson_cap=settings.POISSON_CAP,
            sharpen_enabled=settings.SHARPEN_ENABLED,
            sharpen_tau=settings.SHARPEN_TAU,
            min_edge=settings.MIN_EDGE,
            goals_fallback_min_prob=settings.GOALS_FALLBACK_MIN_PROB,
        )


@lru_cache
def get_model_params() -> ModelParams:
    """Calibration parameters built from the cached settings."""
    return ModelParams.from_settings(get_settings())

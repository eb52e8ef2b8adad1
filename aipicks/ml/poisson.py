"""
Poisson probability engine.

Independent Poisson goal counts for each side:
- 1X2 from the joint score grid truncated at `cap` goals per side (the tail
  beyond cap is dropped and the three buckets renormalised to sum to 1),
  optionally sharpened by a power transform.
- Over/Under 2.5 from the Poisson CDF of the total.
- BTTS from the zero-goal probabilities.

Implementation: numpy-only.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from aipicks.config import ModelParams, get_model_params


@dataclass(frozen=True)
class MarketProbabilities:
    """Per-fixture market probabilities; each pair/triple sums to 1."""

    home: float
    draw: float
    away: float
    over25: float
    under25: float
    btts_yes: float
    btts_no: float
    home_over15: float

    def as_dict(self) -> dict:
        return {
            "1x2": {"1": self.home, "X": self.draw, "2": self.away},
            "over_under_25": {"over": self.over25, "under": self.under25},
            "btts": {"yes": self.btts_yes, "no": self.btts_no},
            "home_over_15": self.home_over15,
        }


def poisson_pmf(lam: float, cap: int) -> np.ndarray:
    """P(k) for k = 0..cap."""
    k = np.arange(cap + 1)
    factorials = np.concatenate(([1.0], np.cumprod(np.arange(1, cap + 1, dtype=float))))
    return np.exp(-lam) * np.power(float(lam), k) / factorials


def poisson_cdf(lam: float, k: int) -> float:
    """P(X <= k)."""
    return float(np.clip(poisson_pmf(lam, k).sum(), 0.0, 1.0))


def sharpen(probs: np.ndarray, tau: float) -> np.ndarray:
    """Raise to tau and renormalise; tau > 1 widens the gap to the leader."""
    powered = np.power(probs, tau)
    total = powered.sum()
    if total <= 0:
        return probs
    return powered / total


def probs_1x2(
    lambda_home: float,
    lambda_away: float,
    cap: int = 12,
    tau: Optional[float] = None,
) -> tuple[float, float, float]:
    """
    Home/draw/away probabilities from a truncated Poisson score grid.

    Args:
        lambda_home: Expected home goals.
        lambda_away: Expected away goals.
        cap: Highest goal count per side included in the grid.
        tau: Sharpening exponent (None or 1.0 disables).

    Returns:
        Tuple (home, draw, away) summing to 1.0
    """
    grid = np.outer(poisson_pmf(lambda_home, cap), poisson_pmf(lambda_away, cap))
    # rows = home goals, cols = away goals
    probs = np.array([
        np.tril(grid, -1).sum(),
        np.trace(grid),
        np.triu(grid, 1).sum(),
    ])

    total = probs.sum()
    probs = probs / total if total > 0 else np.full(3, 1 / 3)

    if tau is not None and tau != 1.0:
        probs = sharpen(probs, tau)

    return float(probs[0]), float(probs[1]), float(probs[2])


def over_under_25(lambda_home: float, lambda_away: float) -> tuple[float, float]:
    """(over, under) for 2.5 total goals."""
    under = poisson_cdf(lambda_home + lambda_away, 2)
    return 1.0 - under, under


def btts(lambda_home: float, lambda_away: float) -> tuple[float, float]:
    """(yes, no) for both teams to score."""
    p_home_blank = np.exp(-lambda_home)
    p_away_blank = np.exp(-lambda_away)
    no = float(np.clip(p_home_blank + p_away_blank - p_home_blank * p_away_blank, 0.0, 1.0))
    return 1.0 - no, no


def market_probabilities(
    lambda_home: float,
    lambda_away: float,
    params: Optional[ModelParams] = None,
) -> MarketProbabilities:
    """All market probabilities for a pair of expected-goal values."""
    params = params or get_model_params()
    tau = params.sharpen_tau if params.sharpen_enabled else None

    home, draw, away = probs_1x2(lambda_home, lambda_away, cap=params.poisson_cap, tau=tau)
    over, under = over_under_25(lambda_home, lambda_away)
    yes, no = btts(lambda_home, lambda_away)

    return MarketProbabilities(
        home=home,
        draw=draw,
        away=away,
        over25=over,
        under25=under,
        btts_yes=yes,
        btts_no=no,
        home_over15=1.0 - poisson_cdf(lambda_home, 1),
    )

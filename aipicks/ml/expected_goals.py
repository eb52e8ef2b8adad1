"""
Expected-goals model.

Turns team ratings, the league baseline and both teams' form into a pair of
Poisson means (lambda_home, lambda_away). Deterministic; no I/O.
"""

import math
from dataclasses import dataclass
from typing import Optional

from aipicks.config import ModelParams, get_model_params
from aipicks.features.form import FormSnapshot
from aipicks.features.leagues import baseline_goals
from aipicks.features.ratings import TeamRatings, get_team_ratings


@dataclass(frozen=True)
class ExpectedGoals:
    lambda_home: float
    lambda_away: float
    rating_diff: float
    split: float


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def form_multiplier(form: FormSnapshot, params: ModelParams) -> float:
    """Bounded transform of form_strength (1.0 is neutral)."""
    return _clamp(
        1.0 + (form.form_strength - 1.0) * params.form_multiplier_slope,
        params.form_multiplier_min,
        params.form_multiplier_max,
    )


def goal_split(rating_diff: float, home_mult: float, away_mult: float, params: ModelParams) -> float:
    """
    Home share of the baseline goals.

    tanh saturates large rating gaps; the form ratio is damped by
    form_ratio_exponent.
    """
    split = 0.5 + params.split_tanh_scale * math.tanh(rating_diff / params.split_tanh_divisor)
    split *= (home_mult / away_mult) ** params.form_ratio_exponent
    return _clamp(split, params.split_min, params.split_max)


def expected_goals(
    home_team: str,
    away_team: str,
    league_label: str,
    home_form: FormSnapshot,
    away_form: FormSnapshot,
    params: Optional[ModelParams] = None,
    ratings: Optional[TeamRatings] = None,
) -> ExpectedGoals:
    """
    Expected goals for both sides of a fixture.

    Args:
        home_team: Home team name (as given by the provider).
        away_team: Away team name.
        league_label: League label used for the baseline lookup.
        home_form: Home team's recent form.
        away_form: Away team's recent form.
        params: Calibration knobs (defaults from settings).
        ratings: Strength table (defaults to the process-wide table).

    Returns:
        ExpectedGoals with both lambdas clamped to [lambda_min, lambda_max].
    """
    params = params or get_model_params()
    ratings = ratings or get_team_ratings()

    base = baseline_goals(league_label)
    diff = (ratings.rating_of(home_team) + params.home_advantage_elo) - ratings.rating_of(away_team)

    home_mult = form_multiplier(home_form, params)
    away_mult = form_multiplier(away_form, params)
    split = goal_split(diff, home_mult, away_mult, params)

    lambda_home = base * split * home_mult
    lambda_away = base * (1.0 - split) * away_mult

    tilt = diff / params.linear_tilt_divisor
    lambda_home *= 1.0 + tilt
    lambda_away *= 1.0 - tilt

    if diff > params.mismatch_threshold:
        lambda_home *= params.mismatch_home_tilt
        lambda_away *= params.mismatch_away_tilt
    elif diff < -params.mismatch_threshold:
        lambda_home *= params.mismatch_away_tilt
        lambda_away *= params.mismatch_home_tilt

    return ExpectedGoals(
        lambda_home=_clamp(lambda_home, params.lambda_min, params.lambda_max),
        lambda_away=_clamp(lambda_away, params.lambda_min, params.lambda_max),
        rating_diff=diff,
        split=split,
    )

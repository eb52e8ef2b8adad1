"""Feature inputs for the prediction engine: strength, league baseline, form."""

from aipicks.features.form import FormSnapshot, compute_form
from aipicks.features.leagues import baseline_goals
from aipicks.features.ratings import TeamRatings, get_team_ratings

__all__ = ["FormSnapshot", "compute_form", "baseline_goals", "TeamRatings", "get_team_ratings"]

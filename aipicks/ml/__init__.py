"""Prediction engine: expected goals, Poisson market probabilities, market selection."""

from aipicks.ml.expected_goals import ExpectedGoals, expected_goals
from aipicks.ml.poisson import MarketProbabilities, market_probabilities
from aipicks.ml.policy import MarketPick, MarketPolicy, Selection, get_policy, select_market

__all__ = [
    "ExpectedGoals",
    "expected_goals",
    "MarketProbabilities",
    "market_probabilities",
    "MarketPick",
    "MarketPolicy",
    "Selection",
    "get_policy",
    "select_market",
]

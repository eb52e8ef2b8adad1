"""
Market selection policies.

Each market contributes its leading outcome as a candidate; edge is the
candidate's probability minus the market's neutral baseline (1/3 for 1X2,
1/2 for the binary markets). Policies decide which candidate is reported.

Policies (MARKET_POLICY setting):
- strongest_edge: highest edge across 1X2, Over/Under 2.5 and BTTS (default)
- one_x_two: 1X2 only
- one_x_two_then_goals: 1X2 when its edge clears MIN_EDGE, otherwise the most
  probable goals outcome if it reaches GOALS_FALLBACK_MIN_PROB

No policy returns "no prediction": a pick whose edge is below MIN_EDGE is
still returned, flagged low_edge.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional

from aipicks.config import ModelParams, get_model_params
from aipicks.ml.poisson import MarketProbabilities

logger = logging.getLogger(__name__)

MARKET_1X2 = "1X2"
MARKET_OU25 = "Over/Under 2.5"
MARKET_BTTS = "BTTS"
MARKET_HOME_O15 = "Home Over 1.5"

BASELINE_1X2 = 1 / 3
BASELINE_BINARY = 1 / 2


@dataclass(frozen=True)
class MarketPick:
    market: str
    label: str
    probability: float
    edge: float
    low_edge: bool = False

    def describe(self) -> str:
        """Display form, e.g. "1X2: 1 (57%)"."""
        return f"{self.market}: {self.label} ({round(self.probability * 100)}%)"

    def as_dict(self) -> dict:
        return {
            "market": self.market,
            "label": self.label,
            "probability": round(self.probability, 4),
            "edge": round(self.edge, 4),
            "low_edge": self.low_edge,
        }


@dataclass(frozen=True)
class Selection:
    pick: MarketPick
    runner_up: Optional[MarketPick] = None


def _leading(market: str, outcomes: list[tuple[str, float]], baseline: float) -> MarketPick:
    # max() keeps the first of equal probabilities
    label, prob = max(outcomes, key=lambda o: o[1])
    return MarketPick(market=market, label=label, probability=prob, edge=prob - baseline)


def candidates(probs: MarketProbabilities) -> list[MarketPick]:
    """Leading outcome per market, in evaluation order 1X2, Over/Under, BTTS."""
    return [
        _leading(MARKET_1X2, [("1", probs.home), ("X", probs.draw), ("2", probs.away)], BASELINE_1X2),
        _leading(MARKET_OU25, [("Over 2.5", probs.over25), ("Under 2.5", probs.under25)], BASELINE_BINARY),
        _leading(MARKET_BTTS, [("Yes", probs.btts_yes), ("No", probs.btts_no)], BASELINE_BINARY),
    ]


def _flag(pick: MarketPick, min_edge: float) -> MarketPick:
    return replace(pick, low_edge=pick.edge < min_edge)


class MarketPolicy(ABC):
    """Chooses the reported market for one fixture."""

    name: str = ""

    @abstractmethod
    def select(self, probs: MarketProbabilities, params: ModelParams) -> Selection:
        pass


class StrongestEdgePolicy(MarketPolicy):
    """Highest edge across markets; ties keep evaluation order (stable sort)."""

    name = "strongest_edge"

    def select(self, probs: MarketProbabilities, params: ModelParams) -> Selection:
        ranked = sorted(candidates(probs), key=lambda c: c.edge, reverse=True)
        return Selection(
            pick=_flag(ranked[0], params.min_edge),
            runner_up=_flag(ranked[1], params.min_edge),
        )


class OneXTwoPolicy(MarketPolicy):
    """Always the 1X2 leader; the best goals market is the runner-up."""

    name = "one_x_two"

    def select(self, probs: MarketProbabilities, params: ModelParams) -> Selection:
        one_x_two, *goals = candidates(probs)
        best_goals = sorted(goals, key=lambda c: c.edge, reverse=True)[0]
        return Selection(
            pick=_flag(one_x_two, params.min_edge),
            runner_up=_flag(best_goals, params.min_edge),
        )


class OneXTwoThenGoalsPolicy(MarketPolicy):
    """1X2 first; a confident goals market only when the 1X2 edge is weak."""

    name = "one_x_two_then_goals"

    def select(self, probs: MarketProbabilities, params: ModelParams) -> Selection:
        one_x_two = candidates(probs)[0]
        if one_x_two.edge >= params.min_edge:
            return Selection(pick=one_x_two)

        goals = [
            MarketPick(MARKET_OU25, "Over 2.5", probs.over25, probs.over25 - BASELINE_BINARY),
            MarketPick(MARKET_OU25, "Under 2.5", probs.under25, probs.under25 - BASELINE_BINARY),
            MarketPick(MARKET_BTTS, "Yes", probs.btts_yes, probs.btts_yes - BASELINE_BINARY),
            MarketPick(MARKET_HOME_O15, "Home Over 1.5", probs.home_over15, probs.home_over15 - BASELINE_BINARY),
        ]
        best_goals = sorted(goals, key=lambda c: c.probability, reverse=True)[0]

        if best_goals.probability < params.goals_fallback_min_prob:
            return Selection(
                pick=_flag(one_x_two, params.min_edge),
                runner_up=_flag(best_goals, params.min_edge),
            )
        return Selection(
            pick=_flag(best_goals, params.min_edge),
            runner_up=_flag(one_x_two, params.min_edge),
        )


POLICIES: dict[str, type[MarketPolicy]] = {
    StrongestEdgePolicy.name: StrongestEdgePolicy,
    OneXTwoPolicy.name: OneXTwoPolicy,
    OneXTwoThenGoalsPolicy.name: OneXTwoThenGoalsPolicy,
}


def get_policy(name: Optional[str] = None) -> MarketPolicy:
    """Policy by name; unknown names fall back to strongest_edge."""
    key = (name or StrongestEdgePolicy.name).strip().lower()
    policy_cls = POLICIES.get(key)
    if policy_cls is None:
        logger.warning(f"[POLICY] Unknown market policy {name!r}, using {StrongestEdgePolicy.name}")
        policy_cls = StrongestEdgePolicy
    return policy_cls()


def select_market(
    probs: MarketProbabilities,
    min_edge: Optional[float] = None,
    policy: Optional[MarketPolicy] = None,
    params: Optional[ModelParams] = None,
) -> Selection:
    """
    Choose the market to report for one fixture.

    Args:
        probs: Market probabilities for the fixture.
        min_edge: Override for params.min_edge.
        policy: Selection policy (default strongest_edge).
        params: Calibration knobs (defaults from settings).

    Returns:
        Selection with the pick and an optional runner-up.
    """
    params = params or get_model_params()
    if min_edge is not None:
        params = replace(params, min_edge=min_edge)
    return (policy or StrongestEdgePolicy()).select(probs, params)

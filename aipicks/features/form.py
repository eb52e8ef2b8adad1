"""
Recent-form aggregation.

Summarises a team's last few finished matches in one competition into a
FormSnapshot: unweighted per-match averages plus a recency-, opponent- and
venue-weighted form_strength (1.0 ~ an average 1.5 points-per-match run).
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from aipicks.etl.base import MatchResult, StandingsTable

logger = logging.getLogger(__name__)

# Most recent match first
RECENCY_WEIGHTS = (1.00, 0.92, 0.85, 0.78, 0.72)
RECENCY_WEIGHT_DEFAULT = 0.70

# Away results are worth more: raw results already contain home advantage
HOME_VENUE_FACTOR = 1.00
AWAY_VENUE_FACTOR = 1.15

# Opponent factor ranges over [1 - span, 1 + span] from last to first place
OPPONENT_FACTOR_SPAN = 0.20

NEUTRAL_FORM_STRENGTH = 1.0
DEFAULT_FORM_STRENGTH_DIVISOR = 6.4


@dataclass(frozen=True)
class FormSnapshot:
    """Recent-form metrics for one team in one competition."""

    matches_played: int
    points_per_match: float
    goals_for_per_match: float
    goals_against_per_match: float
    home_goals_for_per_match: float
    home_goals_against_per_match: float
    away_goals_for_per_match: float
    away_goals_against_per_match: float
    avg_opponent_position: float
    form_strength: float

    @classmethod
    def neutral(cls, standings: Optional[StandingsTable] = None) -> "FormSnapshot":
        """Snapshot used when no recent matches are available."""
        midpoint = (standings or StandingsTable()).midpoint
        return cls(
            matches_played=0,
            points_per_match=0.0,
            goals_for_per_match=0.0,
            goals_against_per_match=0.0,
            home_goals_for_per_match=0.0,
            home_goals_against_per_match=0.0,
            away_goals_for_per_match=0.0,
            away_goals_against_per_match=0.0,
            avg_opponent_position=float(midpoint),
            form_strength=NEUTRAL_FORM_STRENGTH,
        )


def recency_weight(index: int) -> float:
    """Weight for the index-th most recent match (0-based)."""
    if 0 <= index < len(RECENCY_WEIGHTS):
        return RECENCY_WEIGHTS[index]
    return RECENCY_WEIGHT_DEFAULT


def opponent_factor(position: int, table_size: int) -> float:
    """
    Strength multiplier for an opponent's league position.

    Position 1 gives 1 + span, the last position 1 - span, linear between.
    """
    if table_size <= 1:
        return 1.0
    rank = (position - 1) / (table_size - 1)
    rank = max(0.0, min(1.0, rank))
    return 1.0 + OPPONENT_FACTOR_SPAN * (1.0 - 2.0 * rank)


def match_points(goals_for: int, goals_against: int) -> int:
    if goals_for > goals_against:
        return 3
    if goals_for == goals_against:
        return 1
    return 0


def compute_form(
    team_id: Optional[int],
    matches: Iterable[MatchResult],
    standings: Optional[StandingsTable] = None,
    max_matches: int = 5,
    strength_divisor: float = DEFAULT_FORM_STRENGTH_DIVISOR,
) -> FormSnapshot:
    """
    Compute a team's FormSnapshot from its recent finished matches.

    Args:
        team_id: Provider team ID (matches are read from this team's side).
        matches: Finished matches, any order; the most recent max_matches are used.
        standings: Competition table for opponent strength (midpoint when missing).
        max_matches: Window size.
        strength_divisor: Fixed normaliser for the weighted composite.

    Returns:
        FormSnapshot. Averages are taken over the matches actually present.
    """
    standings = standings or StandingsTable()
    recent = sorted(matches, key=lambda m: m.utc_date, reverse=True)[:max_matches]

    if team_id is None or not recent:
        return FormSnapshot.neutral(standings)

    points = goals_for = goals_against = 0
    home_gf = home_ga = away_gf = away_ga = 0
    home_played = 0
    opponent_position_sum = 0
    composite = 0.0

    for i, match in enumerate(recent):
        is_home = match.home_team_id == team_id
        if is_home:
            gf, ga = match.home_goals, match.away_goals
            opponent_id = match.away_team_id
            home_gf += gf
            home_ga += ga
            home_played += 1
        else:
            gf, ga = match.away_goals, match.home_goals
            opponent_id = match.home_team_id
            away_gf += gf
            away_ga += ga

        pts = match_points(gf, ga)
        points += pts
        goals_for += gf
        goals_against += ga

        opponent_position = standings.position_of(opponent_id)
        opponent_position_sum += opponent_position

        venue = HOME_VENUE_FACTOR if is_home else AWAY_VENUE_FACTOR
        composite += (
            pts
            * opponent_factor(opponent_position, standings.effective_size)
            * venue
            * recency_weight(i)
        )

    played = len(recent)
    away_played = played - home_played
    home_div = home_played or 1
    away_div = away_played or 1

    return FormSnapshot(
        matches_played=played,
        points_per_match=points / played,
        goals_for_per_match=goals_for / played,
        goals_against_per_match=goals_against / played,
        home_goals_for_per_match=home_gf / home_div,
        home_goals_against_per_match=home_ga / home_div,
        away_goals_for_per_match=away_gf / away_div,
        away_goals_against_per_match=away_ga / away_div,
        avg_opponent_position=opponent_position_sum / played,
        form_strength=composite / strength_divisor,
    )

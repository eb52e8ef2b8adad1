"""League baseline: expected total goals per match, matched by league name fragment."""

DEFAULT_BASELINE_GOALS = 2.65

# Ordered: first fragment contained in the (lowercased) league label wins
LEAGUE_BASELINES: list[tuple[str, float]] = [
    ("super lig", 2.7),
    ("süper lig", 2.7),
    ("premier", 2.9),
    ("la liga", 2.6),
    ("bundesliga", 3.1),
    ("serie a", 2.5),
    ("ligue 1", 2.7),
    ("eredivisie", 3.0),
    ("primeira", 2.5),
]


def baseline_goals(league_label: str) -> float:
    """Baseline total goals per match for a league label (default 2.65)."""
    label = (league_label or "").lower()
    for fragment, goals in LEAGUE_BASELINES:
        if fragment in label:
            return goals
    return DEFAULT_BASELINE_GOALS

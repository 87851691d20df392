"""Scenario analysis: best/base/worst bounds around the posterior"""

from typing import Sequence

from alphahunter.models import Factor, Scenario, ScenarioSet


def _driver(factors: Sequence[Factor], positive: bool):
    candidates = [f for f in factors if (f.contribution > 0 if positive else f.contribution < 0)]
    if not candidates:
        return None
    return max(candidates, key=lambda f: (abs(f.contribution), f.name))


def build_scenarios(
    probability: float,
    half_width: float,
    factors: Sequence[Factor],
    base_rate: float,
) -> ScenarioSet:
    """
    Bracket the posterior by the confidence-interval half-width

    worst <= base <= best holds by construction since ``half_width`` is
    never negative and both bounds are clamped to [0, 1].
    """
    half_width = max(0.0, half_width)
    best = min(1.0, probability + half_width)
    worst = max(0.0, probability - half_width)

    upside = _driver(factors, positive=True)
    downside = _driver(factors, positive=False)

    if upside:
        best_text = f"{upside.name} strengthens: {upside.description}"
    else:
        best_text = "Coverage turns favorable beyond what current evidence shows"
    if downside:
        worst_text = f"{downside.name} dominates: {downside.description}"
    else:
        worst_text = "Unreported negative developments pull the outcome below the estimate"

    net = sum(f.contribution for f in factors)
    base_text = (
        f"Current evidence holds: {len(factors)} factor(s) net {net:+.1%} "
        f"against a {base_rate:.1%} base rate"
    )

    return ScenarioSet(
        best_case=Scenario(probability=best, description=best_text),
        base_case=Scenario(probability=probability, description=base_text),
        worst_case=Scenario(probability=worst, description=worst_text),
    )

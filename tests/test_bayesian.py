from __future__ import annotations

import pytest

from alphahunter.analysis import BayesianEstimator, build_scenarios, logit, sigmoid
from alphahunter.config import BayesianConfig
from alphahunter.models import Article, Factor, MarketQuote, Scenario, ScenarioSet, WeightedArticle
from alphahunter.utils.errors import InvalidInputError


def _articles(count: int, weight: float = 1.0, age_hours: float = 72.0):
    return [
        WeightedArticle(Article("Reuters", f"Headline {i}"), credibility=weight, recency=1.0, age_hours=age_hours)
        for i in range(count)
    ]


def _quote(price: float, category: str = "politics") -> MarketQuote:
    return MarketQuote(platform="polymarket", market_id="m1", question="Will X happen?", price=price, category=category)


def test_logit_and_sigmoid_are_inverse_and_overflow_safe() -> None:
    assert sigmoid(logit(0.73)) == pytest.approx(0.73)
    assert sigmoid(1000.0) == pytest.approx(1.0)
    assert sigmoid(-1000.0) == pytest.approx(0.0)


def test_base_rate_precedence() -> None:
    estimator = BayesianEstimator(BayesianConfig(category_base_rates={"politics": 0.4}))

    assert estimator.base_rate(_quote(0.3, "politics"), cached_prior=0.7) == (0.4, "category")
    assert estimator.base_rate(_quote(0.3, "sports"), cached_prior=0.7) == (0.3, "market")
    assert estimator.base_rate(None, cached_prior=0.7) == (0.7, "cached")
    assert estimator.base_rate(None, None) == (0.5, "uninformative")


def test_no_evidence_returns_base_rate_at_minimum_confidence() -> None:
    estimator = BayesianEstimator(BayesianConfig())

    posterior = estimator.estimate([], 0.0, [], quote=_quote(0.35))

    assert posterior.probability == pytest.approx(0.35)
    assert posterior.confidence_score == pytest.approx(0.10)
    assert posterior.data_quality == "Low"
    assert posterior.bias_corrections == ()
    assert posterior.interval.lower <= posterior.probability <= posterior.interval.upper


def test_confidence_is_monotonic_and_saturates() -> None:
    estimator = BayesianEstimator(BayesianConfig())
    values = [estimator.confidence(v) for v in (0, 0.5, 1, 5, 20, 500)]

    assert values == sorted(values)
    assert values[0] == pytest.approx(0.10)
    assert values[-1] <= 0.95
    assert estimator.data_quality(values[-1]) == "High"


def test_interval_narrows_as_confidence_grows() -> None:
    estimator = BayesianEstimator(BayesianConfig())

    wide = estimator.interval(0.5, 0.2)
    narrow = estimator.interval(0.5, 0.9)

    assert (narrow.upper - narrow.lower) < (wide.upper - wide.lower)


def test_extreme_evidence_is_clamped_inside_epsilon() -> None:
    estimator = BayesianEstimator(BayesianConfig())
    factors = [Factor("Landslide", 0.15, "Every poll agrees", recent_share=0.0)]

    posterior = estimator.estimate(_articles(10), 1.0, factors, quote=_quote(0.9995, "sports"))

    assert posterior.probability == pytest.approx(0.999)
    assert 0.0 <= posterior.interval.lower <= posterior.probability <= posterior.interval.upper <= 1.0
    assert any("clamped" in c for c in posterior.bias_corrections)


def test_recent_driven_factors_are_discounted() -> None:
    estimator = BayesianEstimator(BayesianConfig())
    articles = _articles(10)

    stale = estimator.estimate(articles, 0.0, [Factor("Polls", 0.10, "Polling lead", recent_share=0.0)])
    fresh = estimator.estimate(articles, 0.0, [Factor("Polls", 0.10, "Polling lead", recent_share=1.0)])

    assert stale.probability == pytest.approx(0.6)
    assert 0.5 < fresh.probability < stale.probability
    assert any(c.startswith("Recency debiasing") for c in fresh.bias_corrections)
    assert not stale.bias_corrections


def test_scarce_evidence_is_shrunk_toward_prior() -> None:
    estimator = BayesianEstimator(BayesianConfig())

    posterior = estimator.estimate(_articles(1), 0.0, [Factor("Polls", 0.10, "Polling lead", recent_share=0.0)])

    # volume 1 of 5 -> scarcity 0.8 -> 40% pull back toward 0.5
    assert posterior.probability == pytest.approx(0.56)
    assert any(c.startswith("Overconfidence shrinkage") for c in posterior.bias_corrections)


def test_scenarios_bracket_the_posterior() -> None:
    factors = [Factor("Endorsement", 0.05, "Governor endorsed"), Factor("Scandal", -0.03, "Inquiry opened")]

    scenarios = build_scenarios(0.6, 0.1, factors, base_rate=0.5)

    assert scenarios.worst_case.probability == pytest.approx(0.5)
    assert scenarios.base_case.probability == pytest.approx(0.6)
    assert scenarios.best_case.probability == pytest.approx(0.7)
    assert "Endorsement" in scenarios.best_case.description
    assert "Scandal" in scenarios.worst_case.description


def test_scenarios_clip_at_probability_bounds() -> None:
    scenarios = build_scenarios(0.98, 0.1, [], base_rate=0.9)

    assert scenarios.best_case.probability == 1.0
    assert scenarios.worst_case.probability <= scenarios.base_case.probability <= scenarios.best_case.probability


def test_scenario_set_rejects_inverted_order() -> None:
    with pytest.raises(InvalidInputError):
        ScenarioSet(Scenario(0.4, "best"), Scenario(0.5, "base"), Scenario(0.6, "worst"))


def test_cached_prior_is_ignored_when_evidence_exists() -> None:
    estimator = BayesianEstimator(BayesianConfig())
    factors = [Factor("Polls", 0.10, "Polling lead", recent_share=0.0)]

    with_cache = estimator.estimate(_articles(10), 0.0, factors, cached_prior=0.9)
    without_cache = estimator.estimate(_articles(10), 0.0, factors)

    assert with_cache.base_rate_source == "uninformative"
    assert with_cache.probability == pytest.approx(without_cache.probability)


def test_scenarios_near_bounds_keep_the_full_interval_width() -> None:
    estimator = BayesianEstimator(BayesianConfig())
    posterior = estimator.estimate([], 0.0, [], quote=_quote(0.98, "sports"))

    scenarios = build_scenarios(posterior.probability, posterior.half_width, [], posterior.base_rate)

    assert posterior.interval.upper == 1.0
    assert posterior.half_width == pytest.approx(estimator.half_width(posterior.confidence_score))
    assert scenarios.worst_case.probability == pytest.approx(posterior.interval.lower)
    assert scenarios.best_case.probability == 1.0

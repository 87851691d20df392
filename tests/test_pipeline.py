from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from alphahunter.analysis import PIPELINE_STAGES, PredictionPipeline
from alphahunter.config import ConfigManager
from alphahunter.models import Article, Factor, MarketQuote
from alphahunter.utils.errors import InvalidInputError

AS_OF = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
QUESTION = "Will the Senate pass the infrastructure bill by July 2025?"


class StubDecomposer:
    """Returns fixed, deliberately oversized factors"""

    def __init__(self, factors):
        self.factors = factors
        self.calls = 0

    async def decompose(self, question, articles, sentiment):
        self.calls += 1
        return list(self.factors)


def _articles():
    return [
        Article("Reuters", "Senate leaders confirm infrastructure vote", published_at=AS_OF - timedelta(hours=3)),
        Article("Bloomberg", "Infrastructure bill gains bipartisan support", published_at=AS_OF - timedelta(hours=40)),
        Article("Politico", "Holdouts warn of delay on infrastructure bill", published_at=AS_OF - timedelta(hours=10)),
        Article("Reddit", "Infrastructure bill is dead, says poster", published_at=None),
    ]


def _quote(price: float = 0.45) -> MarketQuote:
    return MarketQuote(platform="polymarket", market_id="infra-bill", question=QUESTION, price=price)


@pytest.mark.asyncio
async def test_identical_inputs_give_identical_results() -> None:
    pipeline = PredictionPipeline(ConfigManager.from_dict({}))

    first = await pipeline.run(QUESTION, _articles(), quote=_quote(), as_of=AS_OF)
    second = await pipeline.run(QUESTION, _articles(), quote=_quote(), as_of=AS_OF)

    assert first == second
    assert first.to_dict()["probability"] == second.to_dict()["probability"]


@pytest.mark.asyncio
async def test_result_is_fully_populated() -> None:
    pipeline = PredictionPipeline(ConfigManager.from_dict({}))

    result = await pipeline.run(QUESTION, _articles(), quote=_quote(), as_of=AS_OF)

    assert result.analysis_pipeline == PIPELINE_STAGES
    assert 0.0 <= result.confidence_interval.lower <= result.probability <= result.confidence_interval.upper <= 1.0
    assert result.scenarios.worst_case.probability <= result.probability <= result.scenarios.best_case.probability
    assert result.base_rate == pytest.approx(0.45)
    assert result.base_rate_source == "market"
    assert result.data_summary.news_articles_fetched == 4
    assert result.data_summary.weighted_articles_used == 4
    assert result.data_sources[0] == "Reuters"
    assert len(result.raw_news_headlines) == 4
    assert result.reasoning
    assert set(result.stage_timings_ms) == set(PIPELINE_STAGES)


@pytest.mark.asyncio
async def test_decomposer_output_is_bounded_before_estimation() -> None:
    stub = StubDecomposer([
        Factor("Whip count", 0.9, "Leadership claims the votes"),
        Factor("Filibuster", -0.7, "Minority threatens delay"),
    ])
    pipeline = PredictionPipeline(ConfigManager.from_dict({}), decomposer=stub)

    result = await pipeline.run(QUESTION, _articles(), quote=_quote(), as_of=AS_OF)

    assert stub.calls == 1
    assert [abs(f.contribution) for f in result.factor_decomposition] == [pytest.approx(0.15), pytest.approx(0.15)]


@pytest.mark.asyncio
async def test_no_evidence_degrades_to_base_rate() -> None:
    stub = StubDecomposer([Factor("Unused", 0.1, "Should never be asked")])
    pipeline = PredictionPipeline(ConfigManager.from_dict({}), decomposer=stub)

    result = await pipeline.run(QUESTION, [], quote=_quote(0.3), as_of=AS_OF)

    assert stub.calls == 0
    assert result.probability == pytest.approx(0.3)
    assert result.data_quality == "Low"
    assert result.confidence_score == pytest.approx(0.10)
    assert result.factor_decomposition == ()
    assert result.bias_corrections == ()


@pytest.mark.asyncio
async def test_cached_prior_is_used_without_a_quote() -> None:
    pipeline = PredictionPipeline(ConfigManager.from_dict({}))

    result = await pipeline.run(QUESTION, [], cached_prior=0.72, as_of=AS_OF)

    assert result.probability == pytest.approx(0.72)
    assert result.base_rate_source == "cached"


@pytest.mark.asyncio
async def test_malformed_question_is_rejected() -> None:
    pipeline = PredictionPipeline(ConfigManager.from_dict({}))

    with pytest.raises(InvalidInputError):
        await pipeline.run("  ", _articles(), as_of=AS_OF)

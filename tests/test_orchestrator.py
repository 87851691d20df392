from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from alphahunter.analysis import HeuristicFactorDecomposer
from alphahunter.config import ConfigManager
from alphahunter.models import Article, MarketQuote, OpportunityStatus, RecommendedAction
from alphahunter.orchestrator import ScanOrchestrator, build_orchestrator
from alphahunter.storage import DatabaseManager
from alphahunter.utils.errors import InvalidInputError, SourceUnavailableError

AS_OF = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class StubMarketSource:
    def __init__(self, platform, quotes=(), delay=0.0, error=None):
        self.platform = platform
        self.quotes = list(quotes)
        self.delay = delay
        self.error = error

    async def fetch_quotes(self, category=None, limit=None):
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.quotes)


class StubNewsSource:
    def __init__(self, name="stubnews", articles=None, delay=0.0, error=None):
        self.name = name
        self.articles = articles if articles is not None else _bullish_articles()
        self.delay = delay
        self.error = error
        self.calls = 0

    async def fetch_articles(self, query, limit=50):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.articles)


class ExplodingDecomposer(HeuristicFactorDecomposer):
    """Fails for one question, behaves normally otherwise"""

    def __init__(self, config, poison):
        super().__init__(config)
        self.poison = poison

    async def decompose(self, question, articles, sentiment):
        if self.poison in question:
            raise RuntimeError("decomposer crashed")
        return await super().decompose(question, articles, sentiment)


def _bullish_articles():
    return [
        Article(
            source="Reuters",
            headline=f"Candidate wins endorsement number {i} and leads polls",
            published_at=AS_OF - timedelta(hours=30),
        )
        for i in range(6)
    ]


def _quote(platform: str, market_id: str, price: float = 0.40) -> MarketQuote:
    return MarketQuote(
        platform=platform,
        market_id=market_id,
        question=f"Will candidate {market_id} win the {platform} primary?",
        price=price,
        liquidity=25_000,
    )


def _config(**scan) -> ConfigManager:
    settings = {"max_workers": 4, "source_timeout_seconds": 0.5, "deadline_seconds": 10, "grace_seconds": 1}
    settings.update(scan)
    return ConfigManager.from_dict({"scan": settings})


async def _db(tmp_path) -> DatabaseManager:
    db = DatabaseManager(str(tmp_path / "scan.sqlite"))
    await db.initialize()
    return db


@pytest.mark.asyncio
async def test_timed_out_platform_is_isolated(tmp_path) -> None:
    db = await _db(tmp_path)
    sources = [
        StubMarketSource("alpha", [_quote("alpha", "a1")]),
        StubMarketSource("slow", [_quote("slow", "s1")], delay=5.0),
        StubMarketSource("beta", [_quote("beta", "b1")]),
    ]
    orchestrator = ScanOrchestrator(_config(), db, sources, [StubNewsSource()])

    result = await orchestrator.scan(min_edge=0.05, as_of=AS_OF)

    assert len(result.errors) == 1
    assert result.errors[0]["platform"] == "slow"
    assert "deadline" in result.errors[0]["error"].lower()
    assert result.platforms == ["alpha", "beta"]
    assert result.markets_scanned == 2
    assert result.opportunities_created == 2
    assert {o.platform for o in result.opportunities} == {"alpha", "beta"}
    assert all(o.edge >= 0.05 for o in result.opportunities)
    assert result.partial is False


@pytest.mark.asyncio
async def test_unavailable_platform_is_recorded(tmp_path) -> None:
    db = await _db(tmp_path)
    sources = [
        StubMarketSource("alpha", [_quote("alpha", "a1")]),
        StubMarketSource("down", error=SourceUnavailableError("down", "HTTP 502")),
    ]
    orchestrator = ScanOrchestrator(_config(), db, sources, [StubNewsSource()])

    result = await orchestrator.scan(as_of=AS_OF)

    assert [e["platform"] for e in result.errors] == ["down"]
    assert result.markets_scanned == 1


@pytest.mark.asyncio
async def test_rescan_updates_and_reuses_cached_articles(tmp_path) -> None:
    db = await _db(tmp_path)
    news = StubNewsSource()
    markets = [_quote("alpha", "a1"), _quote("alpha", "a2")]
    orchestrator = ScanOrchestrator(_config(), db, news_sources=[news])

    first = await orchestrator.scan(markets, min_edge=0.05, as_of=AS_OF)
    second = await orchestrator.scan(markets, min_edge=0.05, as_of=AS_OF)

    assert (first.opportunities_created, first.opportunities_updated) == (2, 0)
    assert (second.opportunities_created, second.opportunities_updated) == (0, 2)
    assert news.calls == 2
    assert [o.edge for o in first.opportunities] == [o.edge for o in second.opportunities]
    assert len(await db.get_active_opportunities()) == 2


@pytest.mark.asyncio
async def test_invalid_market_input_is_rejected_alone(tmp_path) -> None:
    db = await _db(tmp_path)
    orchestrator = ScanOrchestrator(_config(), db, news_sources=[StubNewsSource()])
    markets = [
        _quote("alpha", "a1"),
        {"platform": "alpha", "market_id": "bad", "question": "Will this bad quote parse?", "price": 1.5},
        {"platform": "alpha", "market_id": "a2", "question": "Will candidate a2 win?", "price": 0.4},
    ]

    result = await orchestrator.scan(markets, min_edge=0.05, as_of=AS_OF)

    assert len(result.errors) == 1
    assert result.errors[0]["platform"] == "alpha"
    assert result.markets_scanned == 2


@pytest.mark.asyncio
async def test_failing_market_does_not_abort_batch(tmp_path) -> None:
    db = await _db(tmp_path)
    config = _config()
    orchestrator = ScanOrchestrator(
        config,
        db,
        news_sources=[StubNewsSource()],
        decomposer=ExplodingDecomposer(config.factors, poison="a2"),
    )
    markets = [_quote("alpha", "a1"), _quote("alpha", "a2"), _quote("beta", "b1")]

    result = await orchestrator.scan(markets, min_edge=0.05, as_of=AS_OF)

    assert result.markets_scanned == 2
    assert len(result.errors) == 1
    assert "alpha:a2" in result.errors[0]["error"]
    assert await db.get_opportunity("alpha:a2") is None


@pytest.mark.asyncio
async def test_news_outage_degrades_to_base_rate(tmp_path) -> None:
    db = await _db(tmp_path)
    news = StubNewsSource(name="newsapi", error=SourceUnavailableError("newsapi", "HTTP 500"))
    orchestrator = ScanOrchestrator(_config(), db, news_sources=[news])

    result = await orchestrator.scan([_quote("alpha", "a1"), _quote("alpha", "a2")], min_edge=0.0, as_of=AS_OF)

    assert result.markets_scanned == 2
    assert [e["platform"] for e in result.errors] == ["newsapi"]
    assert all(o.edge == 0 for o in result.opportunities)


@pytest.mark.asyncio
async def test_deadline_cancels_queued_markets_and_marks_partial(tmp_path) -> None:
    db = await _db(tmp_path)
    config = _config(max_workers=1, source_timeout_seconds=5, deadline_seconds=0.2, grace_seconds=0.1)
    orchestrator = ScanOrchestrator(config, db, news_sources=[StubNewsSource(delay=2.0)])
    markets = [_quote("alpha", f"m{i}") for i in range(3)]

    result = await orchestrator.scan(markets, as_of=AS_OF)

    assert result.partial is True
    assert result.markets_scanned == 0
    assert result.markets_skipped == 2
    assert len(result.errors) == 1
    assert result.errors[0]["platform"] == "alpha"


@pytest.mark.asyncio
async def test_min_edge_must_be_a_probability(tmp_path) -> None:
    orchestrator = ScanOrchestrator(_config(), await _db(tmp_path))

    with pytest.raises(InvalidInputError):
        await orchestrator.scan([], min_edge=1.5)


@pytest.mark.asyncio
async def test_predict_stores_result_for_later_priors(tmp_path) -> None:
    db = await _db(tmp_path)
    orchestrator = ScanOrchestrator(_config(), db, news_sources=[StubNewsSource()])
    question = "Will the candidate win the primary election?"

    result = await orchestrator.predict(question, as_of=AS_OF)

    assert result.probability > 0.5
    assert await db.get_cached_prior(question) == pytest.approx(result.probability)

    quiet = ScanOrchestrator(_config(), db)
    fallback = await quiet.predict(question, as_of=AS_OF)
    assert fallback.probability == pytest.approx(result.probability)
    assert fallback.base_rate_source == "cached"


@pytest.mark.asyncio
async def test_predict_rejects_malformed_question(tmp_path) -> None:
    orchestrator = ScanOrchestrator(_config(), await _db(tmp_path))

    with pytest.raises(InvalidInputError):
        await orchestrator.predict("   ")


@pytest.mark.asyncio
async def test_build_orchestrator_respects_configuration(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("NEWSAPI_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    config = ConfigManager.from_dict({
        "platforms": {"manifold": {"enabled": False}},
        "factors": {"provider": "claude"},
    })

    orchestrator = build_orchestrator(config, await _db(tmp_path))

    assert [s.platform for s in orchestrator.market_sources] == ["polymarket", "kalshi"]
    assert orchestrator.news_sources == []
    assert isinstance(orchestrator.pipeline.decomposer, HeuristicFactorDecomposer)


@pytest.mark.asyncio
async def test_repeated_predictions_with_same_evidence_are_identical(tmp_path) -> None:
    db = await _db(tmp_path)
    orchestrator = ScanOrchestrator(_config(), db, news_sources=[StubNewsSource()])
    question = "Will the candidate win the primary election?"

    runs = [await orchestrator.predict(question, as_of=AS_OF) for _ in range(3)]

    assert runs[0].probability == pytest.approx(runs[1].probability)
    assert runs[1].probability == pytest.approx(runs[2].probability)
    assert {r.base_rate_source for r in runs} == {"uninformative"}
    assert runs[0].confidence_interval == runs[2].confidence_interval


@pytest.mark.asyncio
async def test_active_opportunity_is_refreshed_when_edge_drops_below_min_edge(tmp_path) -> None:
    db = await _db(tmp_path)
    first = await ScanOrchestrator(_config(), db, news_sources=[StubNewsSource()]).scan(
        [_quote("alpha", "a1", price=0.40)], min_edge=0.05, as_of=AS_OF
    )
    assert first.opportunities_created == 1
    assert (await db.get_opportunity("alpha:a1")).recommended_action == RecommendedAction.BUY

    quiet = ScanOrchestrator(_config(), db)
    second = await quiet.scan(
        [_quote("alpha", "a1", price=0.55), _quote("alpha", "new1", price=0.55)], min_edge=0.05, as_of=AS_OF
    )

    assert (second.opportunities_created, second.opportunities_updated) == (0, 1)
    refreshed = await db.get_opportunity("alpha:a1")
    assert refreshed.status == OpportunityStatus.ACTIVE
    assert refreshed.market_price == pytest.approx(0.55)
    assert refreshed.edge == pytest.approx(0.0)
    assert refreshed.recommended_action == RecommendedAction.PASS
    assert await db.get_opportunity("alpha:new1") is None


@pytest.mark.asyncio
async def test_non_object_market_inputs_are_rejected_alone(tmp_path) -> None:
    db = await _db(tmp_path)
    orchestrator = ScanOrchestrator(_config(), db, news_sources=[StubNewsSource()])

    result = await orchestrator.scan([_quote("alpha", "a1"), None, "alpha:a2"], min_edge=0.05, as_of=AS_OF)

    assert result.markets_scanned == 1
    assert [e["platform"] for e in result.errors] == ["unknown", "unknown"]
    assert "object" in result.errors[0]["error"]

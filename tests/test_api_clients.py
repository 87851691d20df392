from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from alphahunter.api_clients import (
    AuthenticationError,
    BaseAPIClient,
    KalshiClient,
    ManifoldClient,
    NewsAPIClient,
    PolymarketClient,
    ServerError,
    build_search_query,
)
from alphahunter.config import NewsConfig, PlatformConfig
from alphahunter.utils.errors import SourceUnavailableError


def test_search_query_keeps_content_words_and_years() -> None:
    assert build_search_query("Will the Fed cut rates before July 2025?") == "fed cut rates july 2025"
    assert build_search_query("Will BTC reach $100,000 by 2026?") == "btc 2026"
    assert build_search_query("Will it?") == ""


def test_polymarket_parses_binary_market() -> None:
    client = PolymarketClient(PlatformConfig(base_url="https://gamma-api.polymarket.com"))

    quote = client._parse_market({
        "id": "12345",
        "question": "Will the Fed cut rates in July?",
        "outcomes": json.dumps(["No", "Yes"]),
        "outcomePrices": json.dumps(["0.62", "0.38"]),
        "volumeNum": 150000.5,
        "liquidityNum": 22000,
        "category": "Economics",
        "endDate": "2025-07-31T00:00:00Z",
        "slug": "fed-july-cut",
    })

    assert quote.market_key == "polymarket:12345"
    assert quote.price == pytest.approx(0.38)
    assert quote.volume == pytest.approx(150000.5)
    assert quote.category == "economics"
    assert quote.resolution_date == datetime(2025, 7, 31, tzinfo=timezone.utc)
    assert quote.url == "https://polymarket.com/event/fed-july-cut"


@pytest.mark.parametrize(
    "market",
    [
        {"id": "1", "question": "Who wins?", "outcomes": '["A", "B", "C"]', "outcomePrices": '["0.2", "0.3", "0.5"]'},
        {"id": "2", "question": "Resolved?", "outcomes": '["Yes", "No"]', "outcomePrices": '["1", "0"]'},
        {"id": "3", "question": "Broken?", "outcomes": '["Yes", "No"]', "outcomePrices": "not json"},
    ],
)
def test_polymarket_skips_non_binary_or_resolved_markets(market) -> None:
    client = PolymarketClient(PlatformConfig(base_url="https://gamma-api.polymarket.com"))
    assert client._parse_market(market) is None


def test_manifold_parses_binary_market() -> None:
    client = ManifoldClient(PlatformConfig(base_url="https://api.manifold.markets"))

    quote = client._parse_market({
        "id": "abc",
        "question": "Will SpaceX land Starship on Mars by 2030?",
        "outcomeType": "BINARY",
        "probability": 0.12,
        "volume": 5400,
        "totalLiquidity": 800,
        "closeTime": 1893456000000,
        "url": "https://manifold.markets/u/starship-mars",
        "groupSlugs": ["Space", "spacex"],
    })

    assert quote.market_key == "manifold:abc"
    assert quote.price == pytest.approx(0.12)
    assert quote.category == "space"
    assert quote.resolution_date.year == 2030


def test_manifold_skips_resolved_and_non_binary() -> None:
    client = ManifoldClient(PlatformConfig(base_url="https://api.manifold.markets"))

    assert client._parse_market({"id": "x", "question": "Q?", "outcomeType": "MULTIPLE_CHOICE"}) is None
    assert client._parse_market(
        {"id": "y", "question": "Q?", "outcomeType": "BINARY", "isResolved": True, "probability": 0.5}
    ) is None


def test_news_article_parsing() -> None:
    client = NewsAPIClient(NewsConfig(), api_key="key")

    article = client._parse_article({
        "source": {"id": "reuters", "name": "Reuters"},
        "title": "Fed signals July cut",
        "description": "Officials hint at easing.",
        "content": "Markets rallied on the news.",
        "publishedAt": "2025-06-01T10:00:00Z",
        "url": "https://reuters.com/x",
    })

    assert article.source == "Reuters"
    assert article.body == "Officials hint at easing. Markets rallied on the news."
    assert article.published_at == datetime(2025, 6, 1, 10, tzinfo=timezone.utc)
    assert client._parse_article({"source": {}, "title": "[Removed]"}) is None


@pytest.mark.asyncio
async def test_exhausted_platform_failure_becomes_source_unavailable() -> None:
    client = PolymarketClient(PlatformConfig(base_url="https://gamma-api.polymarket.com"))
    client._get_paginated = AsyncMock(side_effect=ServerError("polymarket", 502, "bad gateway"))

    with pytest.raises(SourceUnavailableError) as excinfo:
        await client.fetch_quotes()

    assert excinfo.value.source == "polymarket"
    assert client.session is None


@pytest.mark.asyncio
async def test_news_error_payload_becomes_source_unavailable() -> None:
    client = NewsAPIClient(NewsConfig(), api_key="key")
    client._get_json = AsyncMock(return_value={"status": "error", "message": "rateLimited"})

    with pytest.raises(SourceUnavailableError):
        await client.fetch_articles("fed july cut")


@pytest.mark.asyncio
async def test_retry_recovers_from_transient_server_errors(monkeypatch) -> None:
    monkeypatch.setattr(asyncio, "sleep", AsyncMock())
    client = BaseAPIClient("test", max_retries=3)
    calls = {"n": 0}

    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise ServerError("test", 503)
        return {"ok": True}

    assert await client._call_with_retry(flaky, "flaky call") == {"ok": True}
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_auth_errors_are_not_retried() -> None:
    client = BaseAPIClient("test", max_retries=3)
    calls = {"n": 0}

    async def denied():
        calls["n"] += 1
        raise AuthenticationError("test", 401)

    with pytest.raises(AuthenticationError):
        await client._call_with_retry(denied, "denied call")
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_shared_session_survives_concurrent_users() -> None:
    client = BaseAPIClient("test")

    async def use():
        async with client:
            session = client.session
            await asyncio.sleep(0)
            return session is client.session and not session.closed

    assert all(await asyncio.gather(use(), use(), use()))
    assert client.session is None


def _kalshi() -> KalshiClient:
    return KalshiClient(PlatformConfig(base_url="https://api.elections.kalshi.com/trade-api/v2", max_markets=10))


def test_kalshi_parses_mid_price_and_option_title() -> None:
    quote = _kalshi()._parse_market({
        "ticker": "KXFED-25JUL-T4.25",
        "event_ticker": "KXFED-25JUL",
        "market_type": "binary",
        "title": "Fed rate after July meeting?",
        "yes_sub_title": "Below 4.25%",
        "yes_bid": 30,
        "yes_ask": 34,
        "volume": 1200,
        "open_interest": 800,
        "close_time": "2025-07-30T18:00:00Z",
        "category": "Economics",
    })

    assert quote.market_key == "kalshi:KXFED-25JUL-T4.25"
    assert quote.question == "Fed rate after July meeting? [Below 4.25%]"
    assert quote.price == pytest.approx(0.32)
    assert quote.liquidity == pytest.approx(800)
    assert quote.category == "economics"
    assert quote.resolution_date == datetime(2025, 7, 30, 18, tzinfo=timezone.utc)
    assert quote.url == "https://kalshi.com/markets/kxfed-25jul"


def test_kalshi_prefers_dollar_prices_and_falls_back_to_last_trade() -> None:
    client = _kalshi()

    dollars = client._parse_market({"ticker": "A", "title": "A?", "yes_bid_dollars": "0.4100", "yes_ask_dollars": "0.4300"})
    last = client._parse_market({"ticker": "B", "title": "B?", "last_price": 12})

    assert dollars.price == pytest.approx(0.42)
    assert last.price == pytest.approx(0.12)
    assert client._parse_market({"ticker": "C", "title": "C?"}) is None
    assert client._parse_market({"ticker": "D", "title": "D?", "market_type": "scalar", "yes_bid": 40}) is None


@pytest.mark.asyncio
async def test_kalshi_follows_cursor_pages_and_skips_bundles(monkeypatch) -> None:
    monkeypatch.setattr(asyncio, "sleep", AsyncMock())
    client = _kalshi()
    pages = [
        {
            "markets": [
                {"ticker": "K1", "title": "First?", "yes_bid": 40, "yes_ask": 42},
                {"ticker": "KXMVE-BUNDLE", "title": "Bundle?", "yes_bid": 10, "yes_ask": 12},
            ],
            "cursor": "next-page",
        },
        {"markets": [{"ticker": "K2", "title": "Second?", "last_price": 70}], "cursor": ""},
    ]
    client._get_json = AsyncMock(side_effect=pages)

    quotes = await client.fetch_quotes()

    assert [q.market_id for q in quotes] == ["K1", "K2"]
    assert client._get_json.await_count == 2
    assert client._get_json.await_args_list[1].kwargs["params"]["cursor"] == "next-page"
    assert "cursor" not in client._get_json.await_args_list[0].kwargs["params"]

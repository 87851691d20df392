from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from alphahunter.models import MarketQuote, parse_timestamp, to_utc_iso
from alphahunter.utils import LLMResponseParser, TTLCache, coerce_float
from alphahunter.utils.errors import InvalidInputError


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_ttl_cache_expires_entries() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set("fed cut", ["a"])

    clock.now = 59
    assert cache.get("fed cut") == ["a"]
    clock.now = 61
    assert cache.get("fed cut") is None
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1


def test_ttl_cache_evicts_oldest_and_can_be_disabled() -> None:
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, max_entries=2, clock=clock)
    for i, key in enumerate(["a", "b", "c"]):
        clock.now = i
        cache.set(key, i)

    assert len(cache) == 2
    assert cache.get("a") is None

    disabled = TTLCache(ttl_seconds=0)
    disabled.set("a", 1)
    assert len(disabled) == 0


def test_json_is_extracted_from_prose_and_code_blocks() -> None:
    assert LLMResponseParser.extract_json_from_text('```json\n{"a": 1}\n```') == {"a": 1}
    assert LLMResponseParser.extract_json_from_text('Sure! {"a": 2} Hope that helps.') == {"a": 2}
    assert LLMResponseParser.extract_json_from_text("no json here") is None


def test_coerce_float_tolerates_loose_api_values() -> None:
    assert coerce_float("0.4500") == pytest.approx(0.45)
    assert coerce_float(None, default=0.0) == 0.0
    assert coerce_float("n/a") is None


@pytest.mark.parametrize("raw", ["2025-06-01T10:00:00Z", 1748772000, 1748772000000])
def test_timestamps_parse_to_utc(raw) -> None:
    parsed = parse_timestamp(raw)
    assert parsed.tzinfo is not None
    assert (parsed.year, parsed.month, parsed.day, parsed.hour) == (2025, 6, 1, 10)


@pytest.mark.parametrize("price", [0.0, 1.0, -0.2, "abc"])
def test_quotes_outside_open_unit_interval_are_rejected(price) -> None:
    with pytest.raises(InvalidInputError):
        MarketQuote(platform="polymarket", market_id="m1", question="Will X happen?", price=price)


def test_quote_from_dict_accepts_legacy_keys() -> None:
    quote = MarketQuote.from_dict({"platform": "Kalshi", "id": "K1", "title": "Will it snow?", "yes_price": 0.2})

    assert quote.market_key == "kalshi:K1"
    assert quote.question == "Will it snow?"
    assert quote.price == pytest.approx(0.2)


@pytest.mark.parametrize("raw", [None, "polymarket:m1", ["m1", 0.4]])
def test_quote_from_non_object_is_invalid_input(raw) -> None:
    with pytest.raises(InvalidInputError):
        MarketQuote.from_dict(raw)


def test_to_utc_iso_normalizes_offsets() -> None:
    moment = datetime(2025, 6, 1, 12, 30, 15, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert to_utc_iso(moment) == "2025-06-01T10:30:15+00:00"

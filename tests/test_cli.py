from __future__ import annotations

import json

import pytest

from alphahunter.__main__ import build_parser, run_command
from alphahunter.config import ConfigManager


@pytest.fixture(autouse=True)
def _no_external_services(monkeypatch):
    for name in ("NEWSAPI_KEY", "ANTHROPIC_API_KEY", "POLYMARKET_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def _markets_file(tmp_path, markets) -> str:
    path = tmp_path / "markets.json"
    path.write_text(json.dumps({"markets": markets}))
    return str(path)


async def _run(capsys, db_path: str, *argv: str):
    args = build_parser().parse_args(["--db", db_path, *argv])
    code = await run_command(args, ConfigManager.from_dict({}))
    return code, json.loads(capsys.readouterr().out)


MARKETS = [
    {"platform": "polymarket", "market_id": "p1", "question": "Will the bill pass the Senate?", "price": 0.35},
    {
        "platform": "manifold",
        "market_id": "m1",
        "question": "Will the launch happen this year?",
        "price": 0.6,
        "resolution_date": "2020-01-01T00:00:00Z",
    },
]


@pytest.mark.asyncio
async def test_scan_list_and_close_round_trip(tmp_path, capsys) -> None:
    db_path = str(tmp_path / "cli.sqlite")

    code, scanned = await _run(capsys, db_path, "scan", "--markets", _markets_file(tmp_path, MARKETS), "--min-edge", "0")
    assert code == 0
    assert scanned["markets_scanned"] == 2
    assert scanned["opportunities_created"] == 2
    assert scanned["partial"] is False

    code, listed = await _run(capsys, db_path, "opportunities", "--platform", "polymarket")
    assert code == 0
    assert [o["market_key"] for o in listed] == ["polymarket:p1"]

    code, closed = await _run(capsys, db_path, "close", "polymarket:p1")
    assert (code, closed["closed"]) == (0, True)
    code, closed = await _run(capsys, db_path, "close", "polymarket:p1")
    assert (code, closed["closed"]) == (1, False)


@pytest.mark.asyncio
async def test_cleanup_expires_resolved_markets(tmp_path, capsys) -> None:
    db_path = str(tmp_path / "cli.sqlite")
    await _run(capsys, db_path, "scan", "--markets", _markets_file(tmp_path, MARKETS), "--min-edge", "0")

    code, cleaned = await _run(capsys, db_path, "cleanup")

    assert code == 0
    assert cleaned == {"expired_opportunities": 1, "market_keys": ["manifold:m1"]}
    _, listed = await _run(capsys, db_path, "opportunities")
    assert [o["market_key"] for o in listed] == ["polymarket:p1"]


@pytest.mark.asyncio
async def test_predict_prints_base_rate_estimate_without_news(tmp_path, capsys) -> None:
    code, result = await _run(capsys, str(tmp_path / "cli.sqlite"), "predict", "Will it snow in Boston on New Year's Day?")

    assert code == 0
    assert result["probability"] == pytest.approx(0.5)
    assert result["base_rate_source"] == "uninformative"
    assert result["data_quality"] == "Low"

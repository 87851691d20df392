from __future__ import annotations

import json

import pytest

from alphahunter.config import ConfigManager
from alphahunter.utils.errors import ConfigError


@pytest.fixture(autouse=True)
def _clear_secrets(monkeypatch):
    for name in ("NEWSAPI_KEY", "ANTHROPIC_API_KEY", "POLYMARKET_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_are_valid() -> None:
    cfg = ConfigManager.from_dict({})

    assert cfg.factors.provider == "heuristic"
    assert cfg.factors.max_factors == 8
    assert cfg.scoring.high_edge_threshold == pytest.approx(0.10)
    assert cfg.credibility.sources["reuters"] == pytest.approx(0.95)
    assert cfg.credibility.default_weight == pytest.approx(0.5)
    assert cfg.news_enabled is False
    assert cfg.kalshi_enabled is True
    assert cfg.platforms.kalshi.base_url == "https://api.elections.kalshi.com/trade-api/v2"


def test_credibility_overrides_extend_defaults() -> None:
    cfg = ConfigManager.from_dict({"credibility": {"sources": {"Local Gazette": 0.6, "Reuters": 0.9}}})

    assert cfg.credibility.sources["local gazette"] == pytest.approx(0.6)
    assert cfg.credibility.sources["reuters"] == pytest.approx(0.9)
    assert cfg.credibility.sources["bloomberg"] == pytest.approx(0.92)


@pytest.mark.parametrize(
    "raw",
    [
        {"scoring": {"kelly_multiplier": 0}},
        {"factors": {"provider": "oracle"}},
        {"factors": {"max_factor_contribution": 0.5, "max_total_contribution": 0.4}},
        {"recency": {"half_life_hours": 0}},
        {"bayesian": {"category_base_rates": {"politics": 1.0}}},
        {"scan": {"max_workers": 0}},
        {"sentiment": {"positive": 0.5, "very_positive": 0.3}},
        {"claude": {"memo_max_entries": 0}},
        {"platforms": {"kalshi": {"base_url": ""}}},
    ],
)
def test_invalid_sections_raise_config_error(raw) -> None:
    with pytest.raises(ConfigError):
        ConfigManager.from_dict(raw)


def test_provider_is_normalized() -> None:
    assert ConfigManager.from_dict({"factors": {"provider": " Claude "}}).factors.provider == "claude"


def test_environment_secrets_win_and_placeholders_are_ignored(monkeypatch) -> None:
    monkeypatch.setenv("NEWSAPI_KEY", "env-news-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "YOUR_ANTHROPIC_KEY")

    cfg = ConfigManager.from_dict({"api": {"newsapi_key": "json-key", "claude_api_key": "json-claude"}})

    assert cfg.api.newsapi_key == "env-news-key"
    assert cfg.news_enabled is True
    assert cfg.api.claude_api_key is None
    with pytest.raises(ConfigError):
        _ = cfg.claude_api_key


def test_config_file_is_loaded(tmp_path) -> None:
    path = tmp_path / "alphahunter_config.json"
    path.write_text(json.dumps({"scan": {"max_workers": 2, "default_min_edge": 0.05}}))

    cfg = ConfigManager(str(path))

    assert cfg.scan.max_workers == 2
    assert cfg.scan.default_min_edge == pytest.approx(0.05)


def test_missing_config_file_falls_back_to_defaults(tmp_path) -> None:
    cfg = ConfigManager(str(tmp_path / "missing.json"))

    assert cfg.scan.max_workers == 5

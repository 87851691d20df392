"""Configuration management for the alpha engine with validation and typed access"""

import json
import logging
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

from dotenv import load_dotenv

from alphahunter.utils.errors import ConfigError

logger = logging.getLogger(__name__)


# ============================================================================
# DEFAULT TABLES
# ============================================================================

def default_source_credibility() -> Dict[str, float]:
    """Static source-reputation table (normalized source name -> weight)"""
    return {
        'reuters': 0.95,
        'associated press': 0.95,
        'ap': 0.95,
        'bloomberg': 0.92,
        'the wall street journal': 0.90,
        'wall street journal': 0.90,
        'wsj': 0.90,
        'financial times': 0.90,
        'ft': 0.90,
        'the economist': 0.90,
        'economist': 0.90,
        'the new york times': 0.88,
        'new york times': 0.88,
        'nytimes': 0.88,
        'bbc news': 0.88,
        'bbc': 0.88,
        'npr': 0.85,
        'the washington post': 0.85,
        'washington post': 0.85,
        'the guardian': 0.82,
        'guardian': 0.82,
        'politico': 0.80,
        'axios': 0.80,
        'cnbc': 0.80,
        'espn': 0.80,
        'cnn': 0.75,
        'marketwatch': 0.75,
        'yahoo finance': 0.70,
        'forbes': 0.70,
        'coindesk': 0.70,
        'techcrunch': 0.70,
        'the verge': 0.70,
        'fox news': 0.65,
        'business insider': 0.65,
        'cointelegraph': 0.60,
        'medium': 0.35,
        'reddit': 0.30,
        'twitter': 0.30,
        'x': 0.30,
    }


def default_positive_words() -> List[str]:
    return [
        'win', 'wins', 'won', 'lead', 'leads', 'leading', 'ahead', 'approve', 'approved',
        'approval', 'pass', 'passed', 'passes', 'surge', 'surges', 'gain', 'gains', 'rise',
        'rises', 'rising', 'record', 'strong', 'stronger', 'beat', 'beats', 'support',
        'supports', 'likely', 'confirm', 'confirmed', 'success', 'successful', 'agreement',
        'deal', 'boost', 'boosts', 'momentum', 'growth', 'rally', 'rallies', 'victory',
        'endorse', 'endorsed', 'endorsement', 'favored', 'favorite', 'optimistic', 'improve',
        'improved', 'upgrade', 'breakthrough', 'secure', 'secured', 'advance', 'advances',
    ]


def default_negative_words() -> List[str]:
    return [
        'lose', 'loses', 'lost', 'loss', 'trail', 'trails', 'trailing', 'behind', 'reject',
        'rejected', 'fail', 'fails', 'failed', 'failure', 'decline', 'declines', 'drop',
        'drops', 'fall', 'falls', 'fell', 'weak', 'weaker', 'miss', 'missed', 'oppose',
        'opposed', 'opposition', 'unlikely', 'delay', 'delayed', 'scandal', 'lawsuit',
        'crisis', 'collapse', 'risk', 'risks', 'concern', 'concerns', 'uncertainty',
        'uncertain', 'setback', 'veto', 'vetoed', 'blocked', 'ban', 'banned', 'recession',
        'warning', 'downgrade', 'plunge', 'plunges', 'slump', 'indicted', 'subpoena',
    ]


def default_negation_words() -> List[str]:
    return ['not', 'no', 'never', 'without', "n't", 'neither', 'nor', 'hardly']


# ============================================================================
# CONFIGURATION DATACLASSES
# ============================================================================

@dataclass
class APIConfig:
    """Secrets and shared HTTP settings for external services"""

    newsapi_key: Optional[str] = None
    claude_api_key: Optional[str] = None
    polymarket_api_key: Optional[str] = None
    max_retries: int = 3
    request_timeout_seconds: float = 30.0

    def validate(self) -> None:
        """Validate API configuration"""
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.request_timeout_seconds <= 0:
            raise ValueError(f"request_timeout_seconds must be > 0, got {self.request_timeout_seconds}")


@dataclass
class ClaudeConfig:
    """Configuration for the Claude-backed factor decomposer"""

    model: str = "claude-sonnet-4-20250514"
    temperature: float = 0.0  # Factor extraction should be as repeatable as possible
    max_tokens: int = 1000
    base_url: str = "https://api.anthropic.com/v1"
    memo_ttl_seconds: float = 3600.0  # Reuse factors for identical evidence
    memo_max_entries: int = 256

    def validate(self) -> None:
        """Validate Claude configuration"""
        if not self.model:
            raise ValueError("model name cannot be empty")
        if not (0 <= self.temperature <= 1):
            raise ValueError(f"temperature must be between 0 and 1, got {self.temperature}")
        if self.max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {self.max_tokens}")
        if not self.base_url:
            raise ValueError("base_url cannot be empty")
        if self.memo_ttl_seconds < 0:
            raise ValueError(f"memo_ttl_seconds must be >= 0, got {self.memo_ttl_seconds}")
        if self.memo_max_entries < 1:
            raise ValueError(f"memo_max_entries must be >= 1, got {self.memo_max_entries}")


@dataclass
class NewsConfig:
    """Configuration for news retrieval"""

    enabled: bool = True
    base_url: str = "https://newsapi.org/v2"
    max_articles: int = 50
    language: str = "en"
    lookback_days: int = 14

    def validate(self) -> None:
        if not (1 <= self.max_articles <= 100):
            raise ValueError(f"max_articles must be between 1 and 100, got {self.max_articles}")
        if self.lookback_days < 1:
            raise ValueError(f"lookback_days must be >= 1, got {self.lookback_days}")


@dataclass
class PlatformConfig:
    """Configuration for a single prediction market platform"""

    enabled: bool = True
    base_url: str = ""
    max_markets: int = 50
    api_key: Optional[str] = None

    def validate(self) -> None:
        """Validate platform configuration"""
        if self.max_markets < 1:
            raise ValueError(f"max_markets must be >= 1, got {self.max_markets}")
        if self.enabled and not self.base_url:
            raise ValueError("base_url cannot be empty for an enabled platform")


@dataclass
class PlatformsConfig:
    """Configuration for all prediction market platforms"""

    polymarket: PlatformConfig = field(
        default_factory=lambda: PlatformConfig(base_url="https://gamma-api.polymarket.com")
    )
    kalshi: PlatformConfig = field(
        default_factory=lambda: PlatformConfig(base_url="https://api.elections.kalshi.com/trade-api/v2")
    )
    manifold: PlatformConfig = field(
        default_factory=lambda: PlatformConfig(base_url="https://api.manifold.markets")
    )

    def validate(self) -> None:
        """Validate platforms configuration"""
        self.polymarket.validate()
        self.kalshi.validate()
        self.manifold.validate()


@dataclass
class CredibilityConfig:
    """Source reputation table used by the normalizer"""

    sources: Dict[str, float] = field(default_factory=default_source_credibility)
    default_weight: float = 0.5  # Unknown sources

    def validate(self) -> None:
        if not (0 < self.default_weight <= 1):
            raise ValueError(f"default_weight must be in (0, 1], got {self.default_weight}")
        for source, weight in self.sources.items():
            if not (0 <= weight <= 1):
                raise ValueError(f"credibility for {source!r} must be between 0 and 1, got {weight}")


@dataclass
class RecencyConfig:
    """Exponential age decay for article weights"""

    half_life_hours: float = 48.0
    floor: float = 0.1  # Old articles never drop to zero

    def validate(self) -> None:
        if self.half_life_hours <= 0:
            raise ValueError(f"half_life_hours must be > 0, got {self.half_life_hours}")
        if not (0 < self.floor <= 1):
            raise ValueError(f"floor must be in (0, 1], got {self.floor}")


@dataclass
class SentimentConfig:
    """Label cut points and lexicons for the sentiment stage"""

    very_positive: float = 0.3
    positive: float = 0.1
    negative: float = -0.1
    very_negative: float = -0.3
    positive_words: List[str] = field(default_factory=default_positive_words)
    negative_words: List[str] = field(default_factory=default_negative_words)
    negation_words: List[str] = field(default_factory=default_negation_words)
    max_themes: int = 5

    def validate(self) -> None:
        if not (-1 <= self.very_negative <= self.negative <= self.positive <= self.very_positive <= 1):
            raise ValueError(
                "sentiment thresholds must satisfy -1 <= very_negative <= negative "
                "<= positive <= very_positive <= 1"
            )
        if self.max_themes < 0:
            raise ValueError(f"max_themes must be >= 0, got {self.max_themes}")


@dataclass
class FactorsConfig:
    """Configuration for the factor decomposition stage"""

    provider: str = "heuristic"  # "heuristic" or "claude"
    max_factors: int = 8
    max_factor_contribution: float = 0.15  # Probability points per factor
    max_total_contribution: float = 0.40  # Probability points across all factors
    min_contribution: float = 0.005  # Smaller factors are dropped as noise
    recent_window_hours: float = 24.0
    high_credibility: float = 0.8

    def validate(self) -> None:
        provider_normalized = (self.provider or "").strip().lower()
        if provider_normalized not in {"heuristic", "claude"}:
            raise ValueError(f"provider must be 'heuristic' or 'claude', got {self.provider!r}")
        self.provider = provider_normalized
        if self.max_factors < 1:
            raise ValueError(f"max_factors must be >= 1, got {self.max_factors}")
        if not (0 < self.max_factor_contribution <= self.max_total_contribution < 1):
            raise ValueError("contribution caps must satisfy 0 < per-factor <= total < 1")
        if self.min_contribution < 0:
            raise ValueError(f"min_contribution must be >= 0, got {self.min_contribution}")


@dataclass
class BayesianConfig:
    """Configuration for the posterior estimator"""

    epsilon: float = 0.001  # Final clamp to [eps, 1 - eps]
    sentiment_weight: float = 0.5  # Logit units per unit of aggregate sentiment
    min_confidence: float = 0.10
    max_confidence: float = 0.95
    evidence_scale: float = 5.0  # Weighted-article volume for ~63% of max confidence
    shrinkage_strength: float = 0.5  # Max pull toward the prior when evidence is scarce
    scarcity_volume: float = 5.0  # Evidence volume at which shrinkage stops
    recent_window_hours: float = 24.0
    recency_debias_share: float = 0.6  # Recent-weight share above which factors are discounted
    recency_discount: float = 0.5
    min_half_width: float = 0.03
    max_half_width: float = 0.25
    high_quality_confidence: float = 0.70  # Data quality label cut points
    medium_quality_confidence: float = 0.40
    category_base_rates: Dict[str, float] = field(default_factory=dict)

    def validate(self) -> None:
        if not (0 < self.epsilon < 0.5):
            raise ValueError(f"epsilon must be in (0, 0.5), got {self.epsilon}")
        if not (0 <= self.min_confidence <= self.max_confidence <= 1):
            raise ValueError("confidence bounds must satisfy 0 <= min <= max <= 1")
        if self.evidence_scale <= 0 or self.scarcity_volume <= 0:
            raise ValueError("evidence_scale and scarcity_volume must be > 0")
        if not (0 <= self.shrinkage_strength <= 1):
            raise ValueError(f"shrinkage_strength must be between 0 and 1, got {self.shrinkage_strength}")
        if not (0 <= self.recency_discount <= 1):
            raise ValueError(f"recency_discount must be between 0 and 1, got {self.recency_discount}")
        if not (0 < self.recency_debias_share <= 1):
            raise ValueError(f"recency_debias_share must be in (0, 1], got {self.recency_debias_share}")
        if not (0 <= self.min_half_width <= self.max_half_width <= 0.5):
            raise ValueError("interval widths must satisfy 0 <= min <= max <= 0.5")
        if not (0 <= self.medium_quality_confidence <= self.high_quality_confidence <= 1):
            raise ValueError("quality cut points must satisfy 0 <= medium <= high <= 1")
        for category, rate in self.category_base_rates.items():
            if not (0 < rate < 1):
                raise ValueError(f"base rate for {category!r} must be in (0, 1), got {rate}")


@dataclass
class ScoringConfig:
    """Recommendation thresholds for the opportunity scorer"""

    min_confidence: float = 0.30  # Below this every edge is a Pass
    hold_edge: float = 0.03  # |edge| below this is a Hold
    strong_edge: float = 0.10
    strong_confidence: float = 0.60
    high_edge_threshold: float = 0.10  # |edge| above this is flagged High Edge
    kelly_multiplier: float = 1.0  # 1.0 = full Kelly, 0.25 = quarter Kelly
    low_liquidity: float = 1000.0

    def validate(self) -> None:
        if not (0 <= self.min_confidence <= 1):
            raise ValueError(f"min_confidence must be between 0 and 1, got {self.min_confidence}")
        if not (0 <= self.strong_confidence <= 1):
            raise ValueError(f"strong_confidence must be between 0 and 1, got {self.strong_confidence}")
        if not (0 <= self.hold_edge <= self.strong_edge <= 1):
            raise ValueError("edge thresholds must satisfy 0 <= hold_edge <= strong_edge <= 1")
        if not (0 <= self.high_edge_threshold <= 1):
            raise ValueError(f"high_edge_threshold must be between 0 and 1, got {self.high_edge_threshold}")
        if not (0 < self.kelly_multiplier <= 1):
            raise ValueError(f"kelly_multiplier must be in (0, 1], got {self.kelly_multiplier}")
        if self.low_liquidity < 0:
            raise ValueError(f"low_liquidity must be >= 0, got {self.low_liquidity}")


@dataclass
class ScanConfig:
    """Concurrency, deadlines and caching for scans"""

    max_workers: int = 5
    source_timeout_seconds: float = 15.0
    deadline_seconds: float = 120.0
    grace_seconds: float = 5.0  # Extra time granted to in-flight markets after the deadline
    article_cache_ttl_seconds: float = 900.0
    default_min_edge: float = 0.03

    def validate(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.source_timeout_seconds <= 0 or self.deadline_seconds <= 0:
            raise ValueError("timeouts must be > 0")
        if self.grace_seconds < 0:
            raise ValueError(f"grace_seconds must be >= 0, got {self.grace_seconds}")
        if self.article_cache_ttl_seconds < 0:
            raise ValueError(f"article_cache_ttl_seconds must be >= 0, got {self.article_cache_ttl_seconds}")
        if not (0 <= self.default_min_edge <= 1):
            raise ValueError(f"default_min_edge must be between 0 and 1, got {self.default_min_edge}")


@dataclass
class DatabaseConfig:
    path: str = "data/alphahunter.db"

    def validate(self) -> None:
        if not self.path:
            raise ValueError("database path cannot be empty")


# ============================================================================
# MAIN CONFIG MANAGER
# ============================================================================

class ConfigManager:
    """
    Central configuration management with validation and typed access

    Every stage receives its own section object, so reputation and decay
    tables can be overridden per instance.
    """

    def __init__(self, config_file: str):
        """
        Load and validate configuration from JSON file

        Args:
            config_file: Path to config JSON file

        Raises:
            json.JSONDecodeError: If config file is invalid JSON
            ConfigError: If configuration validation fails
        """
        # Load environment variables from .env file if it exists
        load_dotenv()

        self.config_path = Path(config_file)

        if not self.config_path.exists():
            logger.warning(f"Config file not found: {config_file}. Using defaults and environment variables.")
            raw_config = {}
        else:
            with open(self.config_path) as f:
                raw_config = json.load(f)

        self._parse_config(raw_config)

    @classmethod
    def from_dict(cls, raw_config: Dict[str, Any]) -> "ConfigManager":
        """Build a validated config from an in-memory dict (no file, no .env)"""
        manager = cls.__new__(cls)
        manager.config_path = None
        manager._parse_config(raw_config or {})
        return manager

    def _get_secret(self, env_var: str, json_value: Optional[str] = None) -> Optional[str]:
        """
        Get secret from environment variable, falling back to JSON value.
        Filters out placeholder values containing 'YOUR_'.
        """
        val = os.getenv(env_var)
        if not val:
            val = json_value

        if val and isinstance(val, str) and 'YOUR_' in val:
            return None
        return val

    def _validate_section(self, name: str, section: Any) -> None:
        try:
            section.validate()
        except ValueError as e:
            raise ConfigError(f"Invalid {name} config: {e}", config_key=name)

    def _parse_config(self, raw_config: Dict[str, Any]) -> None:
        """Parse raw JSON config into typed dataclasses"""

        # API configuration
        api_raw = raw_config.get('api', {})
        self.api = APIConfig(
            newsapi_key=self._get_secret('NEWSAPI_KEY', api_raw.get('newsapi_key')),
            claude_api_key=self._get_secret('ANTHROPIC_API_KEY', api_raw.get('claude_api_key')),
            polymarket_api_key=self._get_secret('POLYMARKET_API_KEY', api_raw.get('polymarket_api_key')),
            max_retries=api_raw.get('max_retries', 3),
            request_timeout_seconds=api_raw.get('request_timeout_seconds', 30.0),
        )
        self._validate_section('api', self.api)

        # Claude configuration
        claude_raw = raw_config.get('claude', {})
        self.claude = ClaudeConfig(
            model=claude_raw.get('model', 'claude-sonnet-4-20250514'),
            temperature=claude_raw.get('temperature', 0.0),
            max_tokens=claude_raw.get('max_tokens', 1000),
            base_url=claude_raw.get('base_url', 'https://api.anthropic.com/v1'),
            memo_ttl_seconds=claude_raw.get('memo_ttl_seconds', 3600.0),
            memo_max_entries=claude_raw.get('memo_max_entries', 256),
        )
        self._validate_section('claude', self.claude)

        # News configuration
        news_raw = raw_config.get('news', {})
        self.news = NewsConfig(
            enabled=news_raw.get('enabled', True),
            base_url=news_raw.get('base_url', 'https://newsapi.org/v2'),
            max_articles=news_raw.get('max_articles', 50),
            language=news_raw.get('language', 'en'),
            lookback_days=news_raw.get('lookback_days', 14),
        )
        self._validate_section('news', self.news)

        # Platforms configuration
        platforms_raw = raw_config.get('platforms', {})
        polymarket_raw = platforms_raw.get('polymarket', {})
        kalshi_raw = platforms_raw.get('kalshi', {})
        manifold_raw = platforms_raw.get('manifold', {})
        self.platforms = PlatformsConfig(
            polymarket=PlatformConfig(
                enabled=polymarket_raw.get('enabled', True),
                base_url=polymarket_raw.get('base_url', 'https://gamma-api.polymarket.com'),
                max_markets=polymarket_raw.get('max_markets', 50),
                api_key=self.api.polymarket_api_key,
            ),
            kalshi=PlatformConfig(
                enabled=kalshi_raw.get('enabled', True),
                base_url=kalshi_raw.get('base_url', 'https://api.elections.kalshi.com/trade-api/v2'),
                max_markets=kalshi_raw.get('max_markets', 50),
            ),
            manifold=PlatformConfig(
                enabled=manifold_raw.get('enabled', True),
                base_url=manifold_raw.get('base_url', 'https://api.manifold.markets'),
                max_markets=manifold_raw.get('max_markets', 50),
            ),
        )
        self._validate_section('platforms', self.platforms)

        # Source reputation table; JSON entries extend/override the defaults
        credibility_raw = raw_config.get('credibility', {})
        sources = default_source_credibility()
        sources.update({
            str(name).strip().lower(): float(weight)
            for name, weight in credibility_raw.get('sources', {}).items()
        })
        self.credibility = CredibilityConfig(
            sources=sources,
            default_weight=credibility_raw.get('default_weight', 0.5),
        )
        self._validate_section('credibility', self.credibility)

        recency_raw = raw_config.get('recency', {})
        self.recency = RecencyConfig(
            half_life_hours=recency_raw.get('half_life_hours', 48.0),
            floor=recency_raw.get('floor', 0.1),
        )
        self._validate_section('recency', self.recency)

        sentiment_raw = raw_config.get('sentiment', {})
        self.sentiment = SentimentConfig(
            very_positive=sentiment_raw.get('very_positive', 0.3),
            positive=sentiment_raw.get('positive', 0.1),
            negative=sentiment_raw.get('negative', -0.1),
            very_negative=sentiment_raw.get('very_negative', -0.3),
            positive_words=sentiment_raw.get('positive_words', default_positive_words()),
            negative_words=sentiment_raw.get('negative_words', default_negative_words()),
            negation_words=sentiment_raw.get('negation_words', default_negation_words()),
            max_themes=sentiment_raw.get('max_themes', 5),
        )
        self._validate_section('sentiment', self.sentiment)

        factors_raw = raw_config.get('factors', {})
        self.factors = FactorsConfig(
            provider=factors_raw.get('provider', 'heuristic'),
            max_factors=factors_raw.get('max_factors', 8),
            max_factor_contribution=factors_raw.get('max_factor_contribution', 0.15),
            max_total_contribution=factors_raw.get('max_total_contribution', 0.40),
            min_contribution=factors_raw.get('min_contribution', 0.005),
            recent_window_hours=factors_raw.get('recent_window_hours', 24.0),
            high_credibility=factors_raw.get('high_credibility', 0.8),
        )
        self._validate_section('factors', self.factors)

        bayesian_raw = raw_config.get('bayesian', {})
        defaults = BayesianConfig()
        self.bayesian = BayesianConfig(
            epsilon=bayesian_raw.get('epsilon', defaults.epsilon),
            sentiment_weight=bayesian_raw.get('sentiment_weight', defaults.sentiment_weight),
            min_confidence=bayesian_raw.get('min_confidence', defaults.min_confidence),
            max_confidence=bayesian_raw.get('max_confidence', defaults.max_confidence),
            evidence_scale=bayesian_raw.get('evidence_scale', defaults.evidence_scale),
            shrinkage_strength=bayesian_raw.get('shrinkage_strength', defaults.shrinkage_strength),
            scarcity_volume=bayesian_raw.get('scarcity_volume', defaults.scarcity_volume),
            recent_window_hours=bayesian_raw.get('recent_window_hours', defaults.recent_window_hours),
            recency_debias_share=bayesian_raw.get('recency_debias_share', defaults.recency_debias_share),
            recency_discount=bayesian_raw.get('recency_discount', defaults.recency_discount),
            min_half_width=bayesian_raw.get('min_half_width', defaults.min_half_width),
            max_half_width=bayesian_raw.get('max_half_width', defaults.max_half_width),
            high_quality_confidence=bayesian_raw.get('high_quality_confidence', defaults.high_quality_confidence),
            medium_quality_confidence=bayesian_raw.get('medium_quality_confidence', defaults.medium_quality_confidence),
            category_base_rates={
                str(k).strip().lower(): float(v)
                for k, v in bayesian_raw.get('category_base_rates', {}).items()
            },
        )
        self._validate_section('bayesian', self.bayesian)

        scoring_raw = raw_config.get('scoring', {})
        self.scoring = ScoringConfig(
            min_confidence=scoring_raw.get('min_confidence', 0.30),
            hold_edge=scoring_raw.get('hold_edge', 0.03),
            strong_edge=scoring_raw.get('strong_edge', 0.10),
            strong_confidence=scoring_raw.get('strong_confidence', 0.60),
            high_edge_threshold=scoring_raw.get('high_edge_threshold', 0.10),
            kelly_multiplier=scoring_raw.get('kelly_multiplier', 1.0),
            low_liquidity=scoring_raw.get('low_liquidity', 1000.0),
        )
        self._validate_section('scoring', self.scoring)

        scan_raw = raw_config.get('scan', {})
        self.scan = ScanConfig(
            max_workers=scan_raw.get('max_workers', 5),
            source_timeout_seconds=scan_raw.get('source_timeout_seconds', 15.0),
            deadline_seconds=scan_raw.get('deadline_seconds', 120.0),
            grace_seconds=scan_raw.get('grace_seconds', 5.0),
            article_cache_ttl_seconds=scan_raw.get('article_cache_ttl_seconds', 900.0),
            default_min_edge=scan_raw.get('default_min_edge', 0.03),
        )
        self._validate_section('scan', self.scan)

        database_raw = raw_config.get('database', {})
        self.database = DatabaseConfig(path=database_raw.get('path', 'data/alphahunter.db'))
        self._validate_section('database', self.database)

        logger.info(f"✅ Configuration loaded and validated from {self.config_path or 'dict'}")

    # ========================================================================
    # CONVENIENCE PROPERTIES
    # ========================================================================

    @property
    def claude_api_key(self) -> str:
        """Get Claude API key"""
        if not self.api.claude_api_key:
            raise ConfigError("Claude API key not configured", config_key="ANTHROPIC_API_KEY")
        return str(self.api.claude_api_key)

    @property
    def news_enabled(self) -> bool:
        """News fetching needs both the flag and a key"""
        return self.news.enabled and bool(self.api.newsapi_key)

    @property
    def polymarket_enabled(self) -> bool:
        return self.platforms.polymarket.enabled

    @property
    def kalshi_enabled(self) -> bool:
        return self.platforms.kalshi.enabled

    @property
    def manifold_enabled(self) -> bool:
        return self.platforms.manifold.enabled

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def log_config_summary(self) -> None:
        """Log a summary of the loaded configuration"""
        logger.info("\n" + "=" * 80)
        logger.info("📋 CONFIGURATION SUMMARY")
        logger.info("=" * 80)

        logger.info(f"\n📰 News:")
        logger.info(f"   NewsAPI: {'✅ Enabled' if self.news_enabled else '❌ Disabled'} "
                    f"(max {self.news.max_articles} articles, {self.news.lookback_days}d lookback)")
        logger.info(f"   Known sources: {len(self.credibility.sources)} "
                    f"(default weight {self.credibility.default_weight:.2f})")
        logger.info(f"   Recency half-life: {self.recency.half_life_hours:.0f}h, floor {self.recency.floor:.2f}")

        logger.info(f"\n🧠 Factors:")
        logger.info(f"   Provider: {self.factors.provider}")
        if self.factors.provider == 'claude':
            logger.info(f"   Model: {self.claude.model} (temperature {self.claude.temperature})")
        logger.info(f"   Caps: {self.factors.max_factors} factors, "
                    f"{self.factors.max_factor_contribution:.0%} each, {self.factors.max_total_contribution:.0%} total")

        logger.info(f"\n🏢 Platforms:")
        logger.info(f"   Polymarket: {'✅ Enabled' if self.polymarket_enabled else '❌ Disabled'} "
                    f"(max {self.platforms.polymarket.max_markets} markets)")
        logger.info(f"   Kalshi: {'✅ Enabled' if self.kalshi_enabled else '❌ Disabled'} "
                    f"(max {self.platforms.kalshi.max_markets} markets)")
        logger.info(f"   Manifold: {'✅ Enabled' if self.manifold_enabled else '❌ Disabled'} "
                    f"(max {self.platforms.manifold.max_markets} markets)")

        logger.info(f"\n📈 Scoring:")
        logger.info(f"   Strong edge: {self.scoring.strong_edge:.1%} @ {self.scoring.strong_confidence:.0%} confidence")
        logger.info(f"   Hold band: ±{self.scoring.hold_edge:.1%}, pass below {self.scoring.min_confidence:.0%} confidence")
        logger.info(f"   Kelly multiplier: {self.scoring.kelly_multiplier:.2f}")

        logger.info(f"\n⏱️  Scan:")
        logger.info(f"   Workers: {self.scan.max_workers}, source timeout {self.scan.source_timeout_seconds:.0f}s, "
                    f"deadline {self.scan.deadline_seconds:.0f}s")
        logger.info(f"   Default min edge: {self.scan.default_min_edge:.1%}")
        logger.info(f"   Database: {self.database.path}")

        logger.info("=" * 80 + "\n")

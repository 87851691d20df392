from .market_quote import MarketQuote, parse_timestamp, to_utc_iso
from .article import Article, WeightedArticle
from .prediction import (
    DATA_QUALITY_LEVELS,
    ConfidenceInterval,
    DataSummary,
    Factor,
    PredictionResult,
    Scenario,
    ScenarioSet,
)
from .opportunity import Opportunity, OpportunityStatus, RecommendedAction

__all__ = [
    'MarketQuote',
    'parse_timestamp',
    'to_utc_iso',
    'Article',
    'WeightedArticle',
    'DATA_QUALITY_LEVELS',
    'ConfidenceInterval',
    'DataSummary',
    'Factor',
    'PredictionResult',
    'Scenario',
    'ScenarioSet',
    'Opportunity',
    'OpportunityStatus',
    'RecommendedAction',
]

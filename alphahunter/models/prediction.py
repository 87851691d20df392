"""Prediction result models produced by the estimation pipeline"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from alphahunter.utils.errors import InvalidInputError

DATA_QUALITY_LEVELS = ("Low", "Medium", "High")


@dataclass(frozen=True)
class Factor:
    """
    A named, audited driver of the estimate
    
    ``contribution`` is in probability points relative to the prior and may
    be negative. Factors are advisory inputs to the estimator.
    """
    
    name: str
    contribution: float
    description: str
    recent_share: Optional[float] = None  # Share of supporting evidence weight inside the recent window
    
    def __post_init__(self):
        if not str(self.name or "").strip():
            raise InvalidInputError("factor name cannot be empty", field="name")
        if not str(self.description or "").strip():
            raise InvalidInputError("factor needs a rationale", field="description", value=self.name)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "contribution": self.contribution,
            "description": self.description,
            "recent_share": self.recent_share,
        }


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float
    
    def to_dict(self) -> Dict[str, float]:
        return {"lower": self.lower, "upper": self.upper}


@dataclass(frozen=True)
class Scenario:
    probability: float
    description: str
    
    def to_dict(self) -> Dict[str, Any]:
        return {"probability": self.probability, "description": self.description}


@dataclass(frozen=True)
class ScenarioSet:
    best_case: Scenario
    base_case: Scenario
    worst_case: Scenario
    
    def __post_init__(self):
        if not (self.worst_case.probability <= self.base_case.probability <= self.best_case.probability):
            raise InvalidInputError(
                "scenarios must satisfy worst <= base <= best",
                field="scenarios",
                value=(self.worst_case.probability, self.base_case.probability, self.best_case.probability),
            )
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_case": self.best_case.to_dict(),
            "base_case": self.base_case.to_dict(),
            "worst_case": self.worst_case.to_dict(),
        }


@dataclass(frozen=True)
class DataSummary:
    """Summary of the evidence that fed one prediction"""
    
    news_articles_fetched: int = 0
    weighted_articles_used: int = 0
    average_article_credibility: float = 0.0
    average_recency_weight: float = 0.0
    data_fetch_time_ms: float = field(default=0.0, compare=False)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "news_articles_fetched": self.news_articles_fetched,
            "weighted_articles_used": self.weighted_articles_used,
            "average_article_credibility": round(self.average_article_credibility, 4),
            "average_recency_weight": round(self.average_recency_weight, 4),
            "data_fetch_time_ms": round(self.data_fetch_time_ms, 1),
        }


@dataclass(frozen=True)
class PredictionResult:
    """
    Independent probability estimate for one question
    
    Created once per scan of a question and never mutated afterwards.
    Timing metadata is excluded from equality so that identical inputs
    compare equal across runs.
    """
    
    question: str
    probability: float
    confidence_interval: ConfidenceInterval
    base_rate: float
    confidence_score: float
    data_quality: str
    sentiment_score: float
    sentiment_label: str
    factor_decomposition: Tuple[Factor, ...]
    scenarios: ScenarioSet
    key_themes: Tuple[str, ...] = ()
    key_assumptions: Tuple[str, ...] = ()
    uncertainty_factors: Tuple[str, ...] = ()
    bias_corrections: Tuple[str, ...] = ()
    analysis_pipeline: Tuple[str, ...] = ()
    reasoning: str = ""
    raw_news_headlines: Tuple[str, ...] = ()
    data_sources: Tuple[str, ...] = ()
    data_summary: DataSummary = field(default_factory=DataSummary)
    base_rate_source: str = "uninformative"
    timestamp: str = field(default="", compare=False)
    duration_ms: float = field(default=0.0, compare=False)
    stage_timings_ms: Dict[str, float] = field(default_factory=dict, compare=False)
    
    def __post_init__(self):
        """Validate probability invariants after initialization"""
        if not 0 <= self.probability <= 1:
            raise InvalidInputError(
                f"probability must be between 0 and 1, got {self.probability}", field="probability"
            )
        ci = self.confidence_interval
        if not (0 <= ci.lower <= self.probability <= ci.upper <= 1):
            raise InvalidInputError(
                "confidence interval must satisfy 0 <= lower <= probability <= upper <= 1",
                field="confidence_interval",
                value=(ci.lower, self.probability, ci.upper),
            )
        if not 0 <= self.confidence_score <= 1:
            raise InvalidInputError(
                f"confidence_score must be between 0 and 1, got {self.confidence_score}",
                field="confidence_score",
            )
        if self.data_quality not in DATA_QUALITY_LEVELS:
            raise InvalidInputError("unknown data quality label", field="data_quality", value=self.data_quality)
    
    def __str__(self) -> str:
        """Human-readable representation"""
        return (
            f"Estimate: {self.probability:.1%} "
            f"[{self.confidence_interval.lower:.1%}, {self.confidence_interval.upper:.1%}] "
            f"(confidence: {self.confidence_score:.1%}, quality: {self.data_quality})"
        )
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "probability": self.probability,
            "confidence_interval": self.confidence_interval.to_dict(),
            "base_rate": self.base_rate,
            "base_rate_source": self.base_rate_source,
            "confidence_score": self.confidence_score,
            "data_quality": self.data_quality,
            "sentiment_score": self.sentiment_score,
            "sentiment_label": self.sentiment_label,
            "factor_decomposition": [f.to_dict() for f in self.factor_decomposition],
            "key_themes": list(self.key_themes),
            "key_assumptions": list(self.key_assumptions),
            "uncertainty_factors": list(self.uncertainty_factors),
            "bias_corrections": list(self.bias_corrections),
            "scenarios": self.scenarios.to_dict(),
            "analysis_pipeline": list(self.analysis_pipeline),
            "reasoning": self.reasoning,
            "raw_news_headlines": list(self.raw_news_headlines),
            "data_sources": list(self.data_sources),
            "data_summary": self.data_summary.to_dict(),
            "timestamp": self.timestamp,
            "duration_ms": round(self.duration_ms, 1),
            "stage_timings_ms": {k: round(v, 2) for k, v in self.stage_timings_ms.items()},
        }

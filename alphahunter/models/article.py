"""News article models"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Article:
    """
    A fetched news article; immutable for the duration of a scan
    
    ``polarity`` is an optional pre-computed sentiment score (-1..1)
    supplied by the news provider.
    """
    
    source: str
    headline: str
    body: str = ""
    published_at: Optional[datetime] = None
    polarity: Optional[float] = None
    url: str = ""
    
    @property
    def text(self) -> str:
        return f"{self.headline}. {self.body}".strip()
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "headline": self.headline,
            "body": self.body,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "polarity": self.polarity,
            "url": self.url,
        }


@dataclass(frozen=True)
class WeightedArticle:
    """Article annotated with engine-derived credibility and recency weights"""
    
    article: Article
    credibility: float  # Source reputation (0-1)
    recency: float  # Age decay (floor-1]
    age_hours: float = 0.0
    known_source: bool = True
    
    @property
    def weight(self) -> float:
        """Combined evidence weight (credibility x recency)"""
        return self.credibility * self.recency

"""Opportunity model: a scored, persisted trading edge on one market"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from alphahunter.utils.errors import InvalidInputError


class RecommendedAction(str, Enum):
    """Recommendation derived from (edge, confidence) thresholds"""
    STRONG_BUY = "Strong Buy"
    BUY = "Buy"
    HOLD = "Hold"
    SELL = "Sell"
    STRONG_SELL = "Strong Sell"
    PASS = "Pass"  # Confidence too low to act on any edge


class OpportunityStatus(str, Enum):
    ACTIVE = "Active"
    CLOSED = "Closed"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Opportunity:
    """
    Edge on one market, scored against an independent estimate
    
    Created by a scan. While ``status`` is Active, later scans of the same
    market refresh it in place; once Closed it is never mutated again.
    """
    
    platform: str
    market_id: str
    question: str
    market_price: float  # Snapshot at scan time
    estimated_true_probability: float
    edge: float  # estimated_true_probability - market_price
    expected_value: float  # Return per $1 staked on YES
    confidence_score: float
    kelly_fraction: float  # Clamped to [0, 1]
    recommended_action: RecommendedAction
    reasoning: str = ""
    data_sources: List[str] = field(default_factory=list)
    risk_factors: List[str] = field(default_factory=list)
    is_high_edge: bool = False
    status: OpportunityStatus = OpportunityStatus.ACTIVE
    url: str = ""
    category: str = "other"
    resolution_date: Optional[str] = None  # UTC ISO; past dates expire the opportunity
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    closed_at: Optional[str] = None
    
    def __post_init__(self):
        """Validate opportunity invariants after initialization"""
        self.recommended_action = RecommendedAction(self.recommended_action)
        self.status = OpportunityStatus(self.status)
        if not 0 < self.market_price < 1:
            raise InvalidInputError(
                f"market_price must be strictly between 0 and 1, got {self.market_price}", field="market_price"
            )
        if not 0 <= self.estimated_true_probability <= 1:
            raise InvalidInputError(
                f"estimated_true_probability must be between 0 and 1, got {self.estimated_true_probability}",
                field="estimated_true_probability",
            )
        if not 0 <= self.kelly_fraction <= 1:
            raise InvalidInputError(
                f"kelly_fraction must be between 0 and 1, got {self.kelly_fraction}", field="kelly_fraction"
            )
    
    def __str__(self) -> str:
        """Human-readable representation"""
        return (
            f"{self.recommended_action.value.upper()}: {self.question[:40]}... "
            f"| Est: {self.estimated_true_probability:.1%} vs Market: {self.market_price:.1%} "
            f"| Edge: {self.edge:+.2%} | Kelly: {self.kelly_fraction:.1%}"
        )
    
    @property
    def market_key(self) -> str:
        return f"{str(self.platform).strip().lower()}:{str(self.market_id).strip()}"
    
    @property
    def is_active(self) -> bool:
        return self.status == OpportunityStatus.ACTIVE
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "market_key": self.market_key,
            "platform": self.platform,
            "market_id": self.market_id,
            "question": self.question,
            "market_price": self.market_price,
            "estimated_true_probability": self.estimated_true_probability,
            "edge": self.edge,
            "expected_value": self.expected_value,
            "confidence_score": self.confidence_score,
            "kelly_fraction": self.kelly_fraction,
            "recommended_action": self.recommended_action.value,
            "reasoning": self.reasoning,
            "data_sources": list(self.data_sources),
            "risk_factors": list(self.risk_factors),
            "is_high_edge": self.is_high_edge,
            "status": self.status.value,
            "url": self.url,
            "category": self.category,
            "resolution_date": self.resolution_date,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "closed_at": self.closed_at,
        }

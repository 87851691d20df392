"""Market quote model representing one binary prediction market"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from alphahunter.utils.errors import InvalidInputError


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse ISO strings / unix seconds / datetimes into an aware UTC datetime."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, (int, float)):
        # Manifold and friends report epoch milliseconds
        seconds = raw / 1000.0 if raw > 1e11 else float(raw)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(raw, str):
        text = raw.strip().replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def to_utc_iso(moment: datetime) -> str:
    """Second-precision UTC ISO string; stored dates compare correctly as text."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


@dataclass
class MarketQuote:
    """
    Normalized quote for a binary market from any platform
    
    Owned by the ingestion side; the engine treats it as read-only input.
    ``price`` is the YES price expressed as a probability.
    """
    
    platform: str  # 'polymarket', 'manifold', 'kalshi', ...
    market_id: str  # Platform-specific unique identifier
    question: str  # Market question text
    price: float  # Current YES price (0.0-1.0)
    volume: float = 0.0  # Traded volume
    liquidity: float = 0.0  # Available liquidity
    category: str = "other"
    resolution_date: Optional[datetime] = None
    url: str = ""
    fetched_at: Optional[datetime] = None  # Freshness timestamp
    
    def __post_init__(self):
        """Validate quote data after initialization"""
        if not str(self.platform or "").strip():
            raise InvalidInputError("platform cannot be empty", field="platform")
        if not str(self.market_id or "").strip():
            raise InvalidInputError("market_id cannot be empty", field="market_id")
        if not str(self.question or "").strip():
            raise InvalidInputError("question cannot be empty", field="question", value=self.market_id)
        try:
            self.price = float(self.price)
        except (TypeError, ValueError):
            raise InvalidInputError("price must be numeric", field="price", value=self.price)
        # Binary markets only; a price of exactly 0 or 1 is already resolved
        if not 0 < self.price < 1:
            raise InvalidInputError(
                f"price must be strictly between 0 and 1, got {self.price}", field="price", value=self.market_id
            )
        if self.volume < 0 or self.liquidity < 0:
            raise InvalidInputError("volume and liquidity cannot be negative", field="volume", value=self.market_id)
    
    def __str__(self) -> str:
        """Human-readable representation"""
        return f"{self.question[:50]}... [{self.platform}] YES:{self.price:.1%}"
    
    @property
    def market_key(self) -> str:
        """Canonical market identity used for opportunity upserts"""
        return f"{str(self.platform).strip().lower()}:{str(self.market_id).strip()}"
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketQuote":
        """
        Build a quote from a plain dict (JSON files, API adapters)
        
        Accepts either ``price`` or the legacy ``yes_price`` key and either
        ``question`` or ``title``.
        
        Raises:
            InvalidInputError: If required fields are missing or malformed
        """
        if not isinstance(data, Mapping):
            raise InvalidInputError(
                f"market quote must be an object, got {type(data).__name__}", field="market", value=data
            )
        price = data.get("price", data.get("yes_price"))
        if price is None:
            raise InvalidInputError("price is required", field="price", value=data.get("market_id"))
        try:
            return cls(
                platform=str(data.get("platform", "")),
                market_id=str(data.get("market_id", data.get("id", ""))),
                question=str(data.get("question", data.get("title", ""))),
                price=price,
                volume=float(data.get("volume", 0) or 0),
                liquidity=float(data.get("liquidity", 0) or 0),
                category=str(data.get("category") or "other"),
                resolution_date=parse_timestamp(data.get("resolution_date", data.get("end_date"))),
                url=str(data.get("url", "") or ""),
                fetched_at=parse_timestamp(data.get("fetched_at")),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, InvalidInputError):
                raise
            raise InvalidInputError(f"malformed market quote: {e}", field="market", value=data.get("market_id"))
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "market_id": self.market_id,
            "market_key": self.market_key,
            "question": self.question,
            "price": self.price,
            "volume": self.volume,
            "liquidity": self.liquidity,
            "category": self.category,
            "resolution_date": self.resolution_date.isoformat() if self.resolution_date else None,
            "url": self.url,
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
        }

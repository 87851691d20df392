"""Edge / Kelly opportunity scoring"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from alphahunter.config import ScoringConfig
from alphahunter.models import MarketQuote, Opportunity, PredictionResult, RecommendedAction, to_utc_iso
from alphahunter.utils.errors import InvalidInputError

logger = logging.getLogger(__name__)

MAX_COUNTER_SIGNALS = 2


class KellyCriterion:
    """Kelly sizing for binary markets priced as probabilities"""

    @staticmethod
    def calculate_kelly_fraction(
        probability: float,
        market_price: float,
        multiplier: float = 1.0,
    ) -> float:
        """
        Calculate the Kelly fraction for the side the edge favors

        Kelly = (p * (b + 1) - 1) / b
        where:
        - p = true probability of winning
        - b = odds received on bet (decimal odds - 1)

        For prediction markets:
        - Buying YES at price m: f* = (p - m) / (1 - m)
        - Buying NO at price 1 - m: f* = (m - p) / m

        Returns:
            Fraction of bankroll, clamped to [0, 1]
        """
        if market_price <= 0 or market_price >= 1:
            return 0.0

        edge = probability - market_price
        if edge > 0:
            kelly = edge / (1 - market_price)
        elif edge < 0:
            kelly = -edge / market_price
        else:
            return 0.0

        return max(0.0, min(1.0, kelly * multiplier))

    @staticmethod
    def expected_value(probability: float, market_price: float) -> float:
        """
        Expected return per $1 staked on YES at ``market_price``

        p * (1/m - 1) - (1 - p) simplifies to p/m - 1, so the sign always
        matches the edge.
        """
        if market_price <= 0:
            raise InvalidInputError("market_price must be > 0", field="market_price", value=market_price)
        return probability / market_price - 1.0


class OpportunityScorer:
    """
    Compares an estimate with the market price and recommends an action

    All thresholds come from ScoringConfig.
    """

    def __init__(self, config: ScoringConfig):
        self.config = config
        self.kelly = KellyCriterion()

    def recommend(self, edge: float, confidence_score: float) -> RecommendedAction:
        """
        Map (edge, confidence) onto a recommendation

        Low confidence is a Pass whatever the edge; a near-zero edge is a
        Hold; otherwise Strong Buy/Sell needs both a strong edge and strong
        confidence.
        """
        cfg = self.config
        if confidence_score < cfg.min_confidence:
            return RecommendedAction.PASS
        if abs(edge) < cfg.hold_edge:
            return RecommendedAction.HOLD
        strong = abs(edge) >= cfg.strong_edge and confidence_score >= cfg.strong_confidence
        if edge > 0:
            return RecommendedAction.STRONG_BUY if strong else RecommendedAction.BUY
        return RecommendedAction.STRONG_SELL if strong else RecommendedAction.SELL

    def is_high_edge(self, edge: float) -> bool:
        return abs(edge) > self.config.high_edge_threshold

    def risk_factors(
        self,
        prediction: PredictionResult,
        quote: MarketQuote,
        edge: float,
        as_of: Optional[datetime] = None,
    ) -> List[str]:
        """Human-readable risks attached to an opportunity"""
        risks: List[str] = list(prediction.uncertainty_factors)

        if prediction.data_quality == "Low":
            risks.append("Low data quality: the estimate relies on limited evidence")

        ci = prediction.confidence_interval
        if ci.lower <= quote.price <= ci.upper:
            risks.append(
                f"Market price {quote.price:.1%} lies inside the estimate's "
                f"[{ci.lower:.1%}, {ci.upper:.1%}] interval"
            )

        opposing = [
            f for f in prediction.factor_decomposition
            if (f.contribution < 0 if edge > 0 else f.contribution > 0)
        ]
        for factor in opposing[:MAX_COUNTER_SIGNALS]:
            risks.append(f"Counter-signal: {factor.name} ({factor.contribution:+.1%})")

        if quote.liquidity < self.config.low_liquidity:
            risks.append(f"Thin liquidity (${quote.liquidity:,.0f}); fills may move the price")

        if quote.resolution_date is not None:
            now = as_of or datetime.now(timezone.utc)
            days = (quote.resolution_date - now).total_seconds() / 86400
            if days < 0:
                risks.append("Resolution date has passed; the market may be settling")
            elif days < 2:
                risks.append("Resolves within 48 hours; little time for the edge to be realized")
            elif days > 365:
                risks.append(f"Long-dated market (resolves in {days:.0f} days); capital is tied up")

        deduped = []
        for risk in risks:
            if risk not in deduped:
                deduped.append(risk)
        return deduped

    def score(
        self,
        prediction: PredictionResult,
        quote: MarketQuote,
        as_of: Optional[datetime] = None,
    ) -> Opportunity:
        """
        Score one market against its independent estimate

        Args:
            prediction: Pipeline output for the market's question
            quote: Market quote the edge is measured against
            as_of: Reference time for resolution-date risks

        Returns:
            Active Opportunity (not yet persisted)
        """
        probability = prediction.probability
        price = quote.price
        edge = probability - price
        expected_value = self.kelly.expected_value(probability, price)
        kelly_fraction = self.kelly.calculate_kelly_fraction(probability, price, self.config.kelly_multiplier)
        action = self.recommend(edge, prediction.confidence_score)

        side = "YES" if edge >= 0 else "NO"
        reasoning = (
            f"{prediction.reasoning} Edge {edge:+.1%} versus the {price:.1%} market price; "
            f"EV {expected_value:+.1%} per $1 on YES; Kelly {kelly_fraction:.1%} on the {side} side."
        ).strip()

        opportunity = Opportunity(
            platform=quote.platform,
            market_id=quote.market_id,
            question=quote.question,
            market_price=price,
            estimated_true_probability=probability,
            edge=edge,
            expected_value=expected_value,
            confidence_score=prediction.confidence_score,
            kelly_fraction=kelly_fraction,
            recommended_action=action,
            reasoning=reasoning,
            data_sources=list(prediction.data_sources),
            risk_factors=self.risk_factors(prediction, quote, edge, as_of),
            is_high_edge=self.is_high_edge(edge),
            url=quote.url,
            category=quote.category,
            resolution_date=to_utc_iso(quote.resolution_date) if quote.resolution_date else None,
        )

        logger.debug(f"📈 {opportunity}")
        return opportunity

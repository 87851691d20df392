"""Bayesian probability estimator: base rate + evidence -> posterior with interval"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from alphahunter.config import BayesianConfig
from alphahunter.models import ConfidenceInterval, Factor, MarketQuote, WeightedArticle

logger = logging.getLogger(__name__)

UNINFORMATIVE_PRIOR = 0.5


def logit(p: float) -> float:
    return math.log(p / (1.0 - p))


def sigmoid(x: float) -> float:
    # Split by sign so large |x| never overflows exp()
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


@dataclass(frozen=True)
class Posterior:
    """Estimator output consumed by the pipeline"""

    probability: float
    base_rate: float
    base_rate_source: str  # 'category', 'market', 'cached', 'uninformative'
    confidence_score: float
    data_quality: str
    interval: ConfidenceInterval
    bias_corrections: Tuple[str, ...]
    evidence_volume: float
    recent_share: float
    half_width: float  # Before clamping the interval to [0, 1]


class BayesianEstimator:
    """
    Fuses a base-rate prior with sentiment and factor evidence in logit space

    Never raises for lack of evidence: with nothing to go on the posterior
    is the base rate at minimum confidence.
    """

    def __init__(self, config: BayesianConfig):
        self.config = config

    def _clamp(self, p: float) -> float:
        eps = self.config.epsilon
        return max(eps, min(1.0 - eps, p))

    # ========================================================================
    # PRIOR
    # ========================================================================

    def base_rate(
        self,
        quote: Optional[MarketQuote] = None,
        cached_prior: Optional[float] = None,
    ) -> Tuple[float, str]:
        """
        Pick the prior for a question

        Precedence: configured category base rate, the market's own price,
        an earlier cached prediction, then 0.5. Callers pass ``cached_prior``
        only when the current evidence is empty.

        Returns:
            (base_rate, source_tag)
        """
        if quote is not None:
            category_rate = self.config.category_base_rates.get((quote.category or "").strip().lower())
            if category_rate is not None:
                return self._clamp(category_rate), "category"
            return self._clamp(quote.price), "market"
        if cached_prior is not None:
            return self._clamp(float(cached_prior)), "cached"
        return UNINFORMATIVE_PRIOR, "uninformative"

    # ========================================================================
    # CONFIDENCE
    # ========================================================================

    @staticmethod
    def evidence_volume(articles: Sequence[WeightedArticle]) -> float:
        """Total credibility x recency weight of the evidence"""
        return sum(wa.weight for wa in articles)

    def confidence(self, volume: float) -> float:
        """Saturating, non-decreasing function of evidence volume"""
        cfg = self.config
        saturation = 1.0 - math.exp(-max(0.0, volume) / cfg.evidence_scale)
        return cfg.min_confidence + (cfg.max_confidence - cfg.min_confidence) * saturation

    def data_quality(self, confidence_score: float) -> str:
        if confidence_score >= self.config.high_quality_confidence:
            return "High"
        if confidence_score >= self.config.medium_quality_confidence:
            return "Medium"
        return "Low"

    def half_width(self, confidence_score: float) -> float:
        """Interval half-width; shrinks as confidence grows"""
        cfg = self.config
        return cfg.min_half_width + (cfg.max_half_width - cfg.min_half_width) * (1.0 - confidence_score)

    def interval(self, probability: float, confidence_score: float) -> ConfidenceInterval:
        """95% interval around the estimate, clamped to [0, 1]"""
        half_width = self.half_width(confidence_score)
        return ConfidenceInterval(
            lower=max(0.0, probability - half_width),
            upper=min(1.0, probability + half_width),
        )

    # ========================================================================
    # POSTERIOR
    # ========================================================================

    def _recent_share(self, articles: Sequence[WeightedArticle]) -> float:
        total = self.evidence_volume(articles)
        if total <= 0:
            return 0.0
        recent = sum(wa.weight for wa in articles if wa.age_hours <= self.config.recent_window_hours)
        return recent / total

    def _factor_logit_delta(self, prior: float, factor: Factor) -> float:
        """Probability-point contribution -> logit shift relative to the prior"""
        shifted = self._clamp(prior + factor.contribution)
        return logit(shifted) - logit(prior)

    def estimate(
        self,
        articles: Sequence[WeightedArticle],
        sentiment_score: float,
        factors: Sequence[Factor],
        quote: Optional[MarketQuote] = None,
        cached_prior: Optional[float] = None,
    ) -> Posterior:
        """
        Compute the posterior probability

        Args:
            articles: Weighted evidence (may be empty)
            sentiment_score: Aggregate sentiment in [-1, 1]
            factors: Bounded factor decomposition
            quote: Market quote, if estimating a listed market
            cached_prior: Earlier prediction for the same question; used only
                when there is no evidence

        Returns:
            Posterior with interval, confidence and the corrections that fired
        """
        cfg = self.config
        volume = self.evidence_volume(articles)
        # A cached estimate already counts earlier evidence; it only stands in when there is none
        prior, prior_source = self.base_rate(quote, cached_prior if volume <= 0 else None)

        if volume <= 0:
            confidence_score = cfg.min_confidence
            return Posterior(
                probability=prior,
                base_rate=prior,
                base_rate_source=prior_source,
                confidence_score=confidence_score,
                data_quality=self.data_quality(confidence_score),
                interval=self.interval(prior, confidence_score),
                bias_corrections=(),
                evidence_volume=0.0,
                recent_share=0.0,
                half_width=self.half_width(confidence_score),
            )

        corrections = []
        recent_share = self._recent_share(articles)

        # Evidence update in logit space
        posterior_logit = logit(prior)
        discounted = 0
        for factor in factors:
            delta = self._factor_logit_delta(prior, factor)
            share = factor.recent_share if factor.recent_share is not None else recent_share
            if share > cfg.recency_debias_share:
                delta *= 1.0 - cfg.recency_discount
                discounted += 1
            posterior_logit += delta
        posterior_logit += cfg.sentiment_weight * max(-1.0, min(1.0, sentiment_score))
        raw = sigmoid(posterior_logit)

        if discounted:
            corrections.append(
                f"Recency debiasing: discounted {discounted} factor(s) driven mostly by articles "
                f"under {cfg.recent_window_hours:.0f}h old by {cfg.recency_discount:.0%}"
            )

        # Overconfidence shrinkage toward the prior, proportional to data scarcity
        scarcity = max(0.0, 1.0 - volume / cfg.scarcity_volume)
        shrink = cfg.shrinkage_strength * scarcity
        probability = raw + shrink * (prior - raw)
        if shrink > 0.01 and abs(raw - prior) > 1e-9:
            corrections.append(
                f"Overconfidence shrinkage: pulled {shrink:.0%} back toward the {prior:.1%} prior "
                f"(evidence volume {volume:.2f})"
            )

        clamped = self._clamp(probability)
        if clamped != probability:
            corrections.append(f"Probability clamped to [{cfg.epsilon}, {1 - cfg.epsilon}]")
        probability = clamped

        confidence_score = self.confidence(volume)
        posterior = Posterior(
            probability=probability,
            base_rate=prior,
            base_rate_source=prior_source,
            confidence_score=confidence_score,
            data_quality=self.data_quality(confidence_score),
            interval=self.interval(probability, confidence_score),
            bias_corrections=tuple(corrections),
            evidence_volume=volume,
            recent_share=recent_share,
            half_width=self.half_width(confidence_score),
        )
        logger.debug(
            f"Posterior {posterior.probability:.3f} from prior {prior:.3f} ({prior_source}), "
            f"volume {volume:.2f}, confidence {confidence_score:.2f}"
        )
        return posterior

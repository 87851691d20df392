"""Prediction pipeline: normalize -> sentiment -> factors -> posterior -> scenarios"""

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from alphahunter.config import ConfigManager
from alphahunter.models import Article, DataSummary, MarketQuote, PredictionResult
from alphahunter.utils.errors import InsufficientDataError

from .bayesian import BayesianEstimator, Posterior
from .factors import FactorDecomposer, HeuristicFactorDecomposer, bound_factors
from .normalizer import NormalizedInput, Normalizer, validate_question
from .scenarios import build_scenarios
from .sentiment import SentimentAnalyzer, SentimentResult

logger = logging.getLogger(__name__)

STAGE_NORMALIZE = "Data normalization"
STAGE_SENTIMENT = "Sentiment analysis"
STAGE_FACTORS = "Factor decomposition"
STAGE_BAYESIAN = "Bayesian estimation"
STAGE_SCENARIOS = "Scenario analysis"

PIPELINE_STAGES = (STAGE_NORMALIZE, STAGE_SENTIMENT, STAGE_FACTORS, STAGE_BAYESIAN, STAGE_SCENARIOS)

MAX_HEADLINES = 10

BASE_RATE_DESCRIPTIONS = {
    'category': "the historical resolution rate for this category",
    'market': "the market's own price (uninformative prior)",
    'cached': "the most recent stored prediction for this question",
    'uninformative': "an uninformative 50% prior",
}


class PredictionPipeline:
    """
    Runs every estimation stage for one question

    Stages run sequentially; the only awaited step is factor decomposition,
    which may call an LLM. Everything else is a pure function of the inputs
    and configuration.
    """

    def __init__(self, config: ConfigManager, decomposer: Optional[FactorDecomposer] = None):
        self.config = config
        self.normalizer = Normalizer(config.credibility, config.recency)
        self.sentiment = SentimentAnalyzer(config.sentiment)
        self.decomposer = decomposer or HeuristicFactorDecomposer(config.factors)
        self.estimator = BayesianEstimator(config.bayesian)

    async def run(
        self,
        question: str,
        articles: Sequence[Article],
        quote: Optional[MarketQuote] = None,
        cached_prior: Optional[float] = None,
        as_of: Optional[datetime] = None,
        fetch_time_ms: float = 0.0,
    ) -> PredictionResult:
        """
        Produce an independent estimate for one question

        Args:
            question: Question text (validated here)
            articles: Raw articles fetched for the question
            quote: Market quote when scoring a listed market
            cached_prior: Earlier prediction for the same question; the prior
                only when no evidence survives normalization
            as_of: Reference time for recency weights; fix it for reproducible runs
            fetch_time_ms: Time spent fetching the articles, for the data summary

        Raises:
            InvalidInputError: If the question is malformed
        """
        started = time.perf_counter()
        timings: Dict[str, float] = {}
        as_of = as_of or datetime.now(timezone.utc)

        # Stage 1: normalization; no evidence at all degrades to a base-rate estimate
        stage_start = time.perf_counter()
        try:
            normalized = self.normalizer.normalize(question, articles, quote, cached_prior, as_of)
        except InsufficientDataError as e:
            logger.warning(f"⚠️  {e}; falling back to base-rate-only estimate")
            normalized = NormalizedInput(
                question=validate_question(question),
                articles=(),
                quote=quote,
                cached_prior=cached_prior,
                articles_fetched=len(articles),
                as_of=as_of,
            )
        timings[STAGE_NORMALIZE] = (time.perf_counter() - stage_start) * 1000
        weighted = normalized.articles

        # Stage 2: sentiment
        stage_start = time.perf_counter()
        sentiment = self.sentiment.analyze(weighted)
        timings[STAGE_SENTIMENT] = (time.perf_counter() - stage_start) * 1000

        # Stage 3: factors (bounded here whatever the decomposer returns)
        stage_start = time.perf_counter()
        factors = []
        if weighted:
            raw_factors = await self.decomposer.decompose(normalized.question, weighted, sentiment)
            factors = bound_factors(raw_factors, self.config.factors)
        timings[STAGE_FACTORS] = (time.perf_counter() - stage_start) * 1000

        # Stage 4: posterior
        stage_start = time.perf_counter()
        posterior = self.estimator.estimate(weighted, sentiment.score, factors, quote, cached_prior)
        timings[STAGE_BAYESIAN] = (time.perf_counter() - stage_start) * 1000

        # Stage 5: scenarios
        stage_start = time.perf_counter()
        scenarios = build_scenarios(posterior.probability, posterior.half_width, factors, posterior.base_rate)
        timings[STAGE_SCENARIOS] = (time.perf_counter() - stage_start) * 1000

        result = PredictionResult(
            question=normalized.question,
            probability=posterior.probability,
            confidence_interval=posterior.interval,
            base_rate=posterior.base_rate,
            base_rate_source=posterior.base_rate_source,
            confidence_score=posterior.confidence_score,
            data_quality=posterior.data_quality,
            sentiment_score=sentiment.score,
            sentiment_label=sentiment.label,
            factor_decomposition=tuple(factors),
            scenarios=scenarios,
            key_themes=sentiment.key_themes,
            key_assumptions=tuple(self._key_assumptions(normalized, posterior)),
            uncertainty_factors=tuple(self._uncertainty_factors(normalized, sentiment)),
            bias_corrections=posterior.bias_corrections,
            analysis_pipeline=PIPELINE_STAGES,
            reasoning=self._reasoning(normalized, sentiment, posterior, factors),
            raw_news_headlines=tuple(wa.article.headline for wa in weighted[:MAX_HEADLINES]),
            data_sources=tuple(self._data_sources(normalized)),
            data_summary=self._data_summary(normalized, fetch_time_ms),
            timestamp=datetime.now(timezone.utc).isoformat(),
            duration_ms=(time.perf_counter() - started) * 1000,
            stage_timings_ms=timings,
        )

        logger.info(
            f"🔮 {result.question[:60]}... → {result.probability:.1%} "
            f"[{result.confidence_interval.lower:.1%}, {result.confidence_interval.upper:.1%}] "
            f"({result.data_quality} quality, {len(weighted)} articles)"
        )
        return result

    # ========================================================================
    # NARRATIVE FIELDS
    # ========================================================================

    @staticmethod
    def _data_sources(normalized: NormalizedInput) -> List[str]:
        sources = []
        for wa in normalized.articles:
            name = wa.article.source.strip()
            if name and name not in sources:
                sources.append(name)
        return sources

    @staticmethod
    def _data_summary(normalized: NormalizedInput, fetch_time_ms: float) -> DataSummary:
        weighted = normalized.articles
        count = len(weighted)
        return DataSummary(
            news_articles_fetched=normalized.articles_fetched,
            weighted_articles_used=count,
            average_article_credibility=sum(wa.credibility for wa in weighted) / count if count else 0.0,
            average_recency_weight=sum(wa.recency for wa in weighted) / count if count else 0.0,
            data_fetch_time_ms=fetch_time_ms,
        )

    @staticmethod
    def _key_assumptions(normalized: NormalizedInput, posterior: Posterior) -> List[str]:
        assumptions = [
            f"Base rate of {posterior.base_rate:.1%} taken from "
            f"{BASE_RATE_DESCRIPTIONS.get(posterior.base_rate_source, posterior.base_rate_source)}",
        ]
        if normalized.articles:
            assumptions.append("Weighted news sentiment tracks outcome-relevant developments")
            assumptions.append("Source reputation scores reflect current reporting reliability")
        if normalized.quote is not None:
            assumptions.append(
                f"The {normalized.quote.platform} price of {normalized.quote.price:.1%} is current and tradable"
            )
        return assumptions

    def _uncertainty_factors(self, normalized: NormalizedInput, sentiment: SentimentResult) -> List[str]:
        weighted = normalized.articles
        factors = []
        if not weighted:
            factors.append("No usable news coverage; the estimate rests on the base rate alone")
            return factors
        if len(weighted) < 3:
            factors.append(f"Thin coverage: only {len(weighted)} usable article(s)")
        unknown = sum(1 for wa in weighted if not wa.known_source)
        if unknown * 2 > len(weighted):
            factors.append(f"{unknown} of {len(weighted)} articles come from sources without a reputation score")
        average_recency = sum(wa.recency for wa in weighted) / len(weighted)
        if average_recency < 0.3:
            factors.append(f"Coverage is mostly stale (average recency weight {average_recency:.2f})")
        if sentiment.dispersion > 0.5:
            factors.append(f"Sources disagree sharply (sentiment dispersion {sentiment.dispersion:.2f})")
        elif abs(sentiment.score) <= self.config.sentiment.positive:
            factors.append("News sentiment is mixed or neutral")
        return factors

    @staticmethod
    def _reasoning(
        normalized: NormalizedInput,
        sentiment: SentimentResult,
        posterior: Posterior,
        factors: Sequence,
    ) -> str:
        if not normalized.articles:
            return (
                f"No usable news evidence was found, so the estimate equals the "
                f"{posterior.base_rate:.1%} base rate with minimum confidence."
            )
        parts = [
            f"Starting from a {posterior.base_rate:.1%} base rate, {len(normalized.articles)} weighted "
            f"article(s) with {sentiment.label.lower()} sentiment ({sentiment.score:+.2f}) "
            f"move the estimate to {posterior.probability:.1%}."
        ]
        if factors:
            top = factors[0]
            parts.append(f"The largest driver is {top.name} ({top.contribution:+.1%}).")
        if posterior.bias_corrections:
            parts.append(f"{len(posterior.bias_corrections)} bias correction(s) applied.")
        parts.append(f"Confidence is {posterior.confidence_score:.0%} ({posterior.data_quality} data quality).")
        return " ".join(parts)

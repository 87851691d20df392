"""Factor decomposition stage: named, bounded drivers of the estimate"""

import asyncio
import hashlib
import logging
import re
from dataclasses import replace
from typing import List, Optional, Protocol, Sequence, Tuple

import aiohttp

from alphahunter.api_clients.base_client import APIError, BaseAPIClient
from alphahunter.config import ClaudeConfig, FactorsConfig
from alphahunter.models import Factor, WeightedArticle
from alphahunter.utils import LLMResponseParser, TTLCache, coerce_float

from .sentiment import SentimentResult

logger = logging.getLogger(__name__)

MAX_PROMPT_ARTICLES = 15


class FactorDecomposer(Protocol):
    """(question, evidence) -> factors; the only judgment step in the pipeline"""

    async def decompose(
        self,
        question: str,
        articles: Sequence[WeightedArticle],
        sentiment: SentimentResult,
    ) -> List[Factor]:
        ...


# ============================================================================
# BOUNDS
# ============================================================================

def bound_factors(factors: Sequence[Factor], config: FactorsConfig) -> List[Factor]:
    """
    Enforce the factor contract before the estimator sees anything

    - drops factors smaller than ``min_contribution``
    - caps each factor at +/- ``max_factor_contribution``
    - keeps the ``max_factors`` largest by magnitude
    - rescales so the summed magnitude stays within ``max_total_contribution``

    Ordering is by magnitude, then name, so it is stable for equal inputs.
    """
    cap = config.max_factor_contribution
    kept = []
    for factor in factors:
        contribution = max(-cap, min(cap, float(factor.contribution)))
        if abs(contribution) < config.min_contribution:
            continue
        kept.append(replace(factor, contribution=contribution))

    kept.sort(key=lambda f: (-abs(f.contribution), f.name))
    kept = kept[:config.max_factors]

    total = sum(abs(f.contribution) for f in kept)
    if total > config.max_total_contribution:
        scale = config.max_total_contribution / total
        kept = [replace(f, contribution=f.contribution * scale) for f in kept]
    return kept


def _weighted_mean(values: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    """(value, weight) pairs -> (weighted mean, total weight)"""
    total = sum(w for _, w in values)
    if total <= 0:
        return 0.0, 0.0
    return sum(v * w for v, w in values) / total, total


def _lean(score: float) -> str:
    if score > 0:
        return "positive"
    if score < 0:
        return "negative"
    return "neutral"


# ============================================================================
# HEURISTIC DECOMPOSER
# ============================================================================

class HeuristicFactorDecomposer:
    """
    Deterministic factors derived from the weighted evidence alone

    Produces one factor per leading theme, a momentum factor comparing
    recent and older coverage, and a high-credibility consensus factor.
    """

    def __init__(self, config: FactorsConfig, max_theme_factors: int = 4):
        self.config = config
        self.max_theme_factors = max_theme_factors

    async def decompose(
        self,
        question: str,
        articles: Sequence[WeightedArticle],
        sentiment: SentimentResult,
    ) -> List[Factor]:
        return self.decompose_sync(question, articles, sentiment)

    def decompose_sync(
        self,
        question: str,
        articles: Sequence[WeightedArticle],
        sentiment: SentimentResult,
    ) -> List[Factor]:
        if not articles:
            return []
        scored = list(zip(articles, sentiment.article_scores))
        total_weight = sum(wa.weight for wa in articles)
        if total_weight <= 0:
            return []

        factors: List[Factor] = []
        factors.extend(self._theme_factors(scored, sentiment.key_themes, total_weight))

        momentum = self._momentum_factor(scored)
        if momentum:
            factors.append(momentum)

        consensus = self._credibility_factor(scored, total_weight)
        if consensus:
            factors.append(consensus)

        return bound_factors(factors, self.config)

    def _recent_share(self, scored: Sequence[Tuple[WeightedArticle, float]]) -> float:
        total = sum(wa.weight for wa, _ in scored)
        if total <= 0:
            return 0.0
        recent = sum(wa.weight for wa, _ in scored if wa.age_hours <= self.config.recent_window_hours)
        return recent / total

    def _theme_factors(
        self,
        scored: Sequence[Tuple[WeightedArticle, float]],
        themes: Sequence[str],
        total_weight: float,
    ) -> List[Factor]:
        factors = []
        for theme in themes[:self.max_theme_factors]:
            pattern = re.compile(rf"\b{re.escape(theme)}\b")
            matching = [(wa, s) for wa, s in scored if pattern.search(wa.article.text.lower())]
            if not matching:
                continue
            theme_score, theme_weight = _weighted_mean([(s, wa.weight) for wa, s in matching])
            share = theme_weight / total_weight
            contribution = self.config.max_factor_contribution * theme_score * share
            factors.append(Factor(
                name=f"Coverage of '{theme}'",
                contribution=contribution,
                description=(
                    f"{len(matching)} article(s) mentioning '{theme}' lean {_lean(theme_score)} "
                    f"(sentiment {theme_score:+.2f}, {share:.0%} of evidence weight)"
                ),
                recent_share=self._recent_share(matching),
            ))
        return factors

    def _momentum_factor(self, scored: Sequence[Tuple[WeightedArticle, float]]) -> Optional[Factor]:
        window = self.config.recent_window_hours
        recent = [(s, wa.weight) for wa, s in scored if wa.age_hours <= window]
        older = [(s, wa.weight) for wa, s in scored if wa.age_hours > window]
        if not recent or not older:
            return None
        recent_score, _ = _weighted_mean(recent)
        older_score, _ = _weighted_mean(older)
        shift = recent_score - older_score
        direction = "improving" if shift > 0 else "deteriorating"
        return Factor(
            name="Sentiment momentum",
            contribution=0.5 * self.config.max_factor_contribution * shift / 2.0,
            description=(
                f"Coverage from the last {window:.0f}h is {direction} versus older articles "
                f"({recent_score:+.2f} vs {older_score:+.2f})"
            ),
            recent_share=1.0,
        )

    def _credibility_factor(
        self,
        scored: Sequence[Tuple[WeightedArticle, float]],
        total_weight: float,
    ) -> Optional[Factor]:
        trusted = [(wa, s) for wa, s in scored if wa.credibility >= self.config.high_credibility]
        if not trusted:
            return None
        trusted_score, trusted_weight = _weighted_mean([(s, wa.weight) for wa, s in trusted])
        share = trusted_weight / total_weight
        sources = sorted({wa.article.source for wa, _ in trusted})
        return Factor(
            name="High-credibility sources",
            contribution=self.config.max_factor_contribution * trusted_score * share,
            description=(
                f"{len(trusted)} article(s) from {', '.join(sources[:4])}"
                f"{' and others' if len(sources) > 4 else ''} lean {_lean(trusted_score)} "
                f"(sentiment {trusted_score:+.2f})"
            ),
            recent_share=self._recent_share(trusted),
        )


# ============================================================================
# CLAUDE DECOMPOSER
# ============================================================================

class ClaudeFactorDecomposer:
    """
    Uses Claude to name the factors moving a question's probability

    Responses are memoized per (question, evidence) so repeated calls inside
    one process return the same factors. Any API or parsing failure falls
    back to the heuristic decomposer.
    """

    def __init__(
        self,
        claude: ClaudeConfig,
        factors: FactorsConfig,
        api_key: str,
        fallback: Optional[HeuristicFactorDecomposer] = None,
        max_retries: int = 2,
        timeout: float = 30,
    ):
        self.client = BaseAPIClient(
            source_name="claude",
            api_key=api_key,
            base_url=claude.base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.claude = claude
        self.config = factors
        self.fallback = fallback or HeuristicFactorDecomposer(factors)
        self._memo: TTLCache[List[Factor]] = TTLCache(claude.memo_ttl_seconds, max_entries=claude.memo_max_entries)

    @staticmethod
    def _memo_key(question: str, articles: Sequence[WeightedArticle]) -> str:
        digest = hashlib.sha256(question.encode("utf-8"))
        for wa in articles:
            digest.update(f"|{wa.article.source}|{wa.article.headline}".encode("utf-8"))
        return digest.hexdigest()

    async def decompose(
        self,
        question: str,
        articles: Sequence[WeightedArticle],
        sentiment: SentimentResult,
    ) -> List[Factor]:
        if not articles:
            return []
        key = self._memo_key(question, articles)
        cached = self._memo.get(key)
        if cached is not None:
            return list(cached)

        prompt = self._build_prompt(question, articles, sentiment)
        try:
            text = await self._call_claude_api(prompt)
        except (APIError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"⚠️  Claude factor decomposition failed, using heuristic factors: {e}")
            return await self.fallback.decompose(question, articles, sentiment)

        factors = self._parse_factors(text)
        if factors is None:
            logger.warning("⚠️  Unparseable Claude factor response, using heuristic factors")
            return await self.fallback.decompose(question, articles, sentiment)

        bounded = bound_factors(factors, self.config)
        self._memo.set(key, bounded)
        return list(bounded)

    def _build_prompt(
        self,
        question: str,
        articles: Sequence[WeightedArticle],
        sentiment: SentimentResult,
    ) -> str:
        lines = []
        for wa in articles[:MAX_PROMPT_ARTICLES]:
            age = "undated" if wa.age_hours == float("inf") else f"{wa.age_hours:.0f}h old"
            lines.append(
                f"- [{wa.article.source}, credibility {wa.credibility:.2f}, {age}] {wa.article.headline}"
            )
        headlines = "\n".join(lines)
        themes = ", ".join(sentiment.key_themes) or "none"

        return f"""Identify the factors that should move the probability of this question resolving YES.

QUESTION: {question}

NEWS EVIDENCE (heaviest first):
{headlines}

Aggregate news sentiment: {sentiment.score:+.2f} ({sentiment.label})
Key themes: {themes}

YOUR TASK:
1. Name at most {self.config.max_factors} distinct factors supported by the evidence
2. Give each a signed contribution in probability points (-{self.config.max_factor_contribution:.2f} to +{self.config.max_factor_contribution:.2f})
3. Explain in one sentence why each factor moves the estimate

Respond in JSON format:
{{
  "factors": [
    {{"name": "<short name>", "contribution": <float>, "description": "<why>"}}
  ]
}}"""

    async def _call_claude_api(self, prompt: str) -> str:
        """
        Call the Claude messages API and return the response text

        Raises:
            APIError: If the API call fails after retries or returns no text
        """
        payload = {
            "model": self.claude.model,
            "max_tokens": self.claude.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ],
            "temperature": self.claude.temperature
        }
        headers = self.client._build_headers(
            auth_type="",
            auth_header_name="x-api-key",
            additional_headers={
                "anthropic-version": "2023-06-01"
            }
        )

        logger.debug(f"Calling Claude API: {self.claude.model}")
        async with self.client:
            response = await self.client._post_json(
                "/messages", payload, headers=headers, operation_name="Claude factor decomposition"
            )

        usage = response.get('usage') if isinstance(response, dict) else None
        if isinstance(usage, dict):
            logger.debug(
                f"Claude usage: {usage.get('input_tokens', 0)} in, {usage.get('output_tokens', 0)} out"
            )

        # Claude returns: {"content": [{"type": "text", "text": "..."}], "usage": {...}}
        content = response.get('content') if isinstance(response, dict) else None
        first = content[0] if isinstance(content, list) and content else None
        text = first.get('text') if isinstance(first, dict) else None
        if not isinstance(text, str) or not text:
            raise APIError(source="claude", operation="Parse response", message="Empty text in response")
        return text

    @staticmethod
    def _parse_factors(text: str) -> Optional[List[Factor]]:
        data = LLMResponseParser.extract_json_from_text(text)
        if not isinstance(data, dict) or not isinstance(data.get('factors'), list):
            return None

        factors = []
        for raw in data['factors']:
            if not isinstance(raw, dict):
                continue
            name = str(raw.get('name') or '').strip()
            description = str(raw.get('description') or '').strip()
            contribution = coerce_float(raw.get('contribution'))
            if not name or not description or contribution is None:
                continue
            # Some responses use percentage points
            if abs(contribution) > 1:
                contribution /= 100.0
            factors.append(Factor(name=name, contribution=contribution, description=description))
        return factors

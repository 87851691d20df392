"""Evidence normalization: credibility and recency weighting of raw articles"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from alphahunter.config import CredibilityConfig, RecencyConfig
from alphahunter.models import Article, MarketQuote, WeightedArticle
from alphahunter.utils.errors import InsufficientDataError, InvalidInputError

logger = logging.getLogger(__name__)

MIN_QUESTION_LENGTH = 8
MAX_QUESTION_LENGTH = 500

_DOMAIN_SUFFIX = re.compile(r"\.(com|org|net|co\.uk|co|io|news)$")


@dataclass(frozen=True)
class NormalizedInput:
    """Validated question plus weighted evidence for one pipeline run"""

    question: str
    articles: Tuple[WeightedArticle, ...]
    quote: Optional[MarketQuote]
    cached_prior: Optional[float]
    articles_fetched: int
    as_of: datetime

    @property
    def has_evidence(self) -> bool:
        return bool(self.articles)


def validate_question(question: str) -> str:
    """
    Return the stripped question or reject it

    Raises:
        InvalidInputError: If the question is empty, too short/long or has no words
    """
    text = re.sub(r"\s+", " ", str(question or "")).strip()
    if len(text) < MIN_QUESTION_LENGTH:
        raise InvalidInputError("question is empty or too short", field="question", value=text)
    if len(text) > MAX_QUESTION_LENGTH:
        raise InvalidInputError(
            f"question exceeds {MAX_QUESTION_LENGTH} characters", field="question", value=text[:40]
        )
    if not re.search(r"[A-Za-z]{2,}", text):
        raise InvalidInputError("question contains no words", field="question", value=text)
    return text


class Normalizer:
    """
    Assigns credibility and recency weights to fetched articles

    Both tables are injected, so two normalizers with different
    configuration never share state.
    """

    def __init__(self, credibility: CredibilityConfig, recency: RecencyConfig):
        self.credibility = credibility
        self.recency = recency

    # ========================================================================
    # WEIGHTS
    # ========================================================================

    def _source_candidates(self, source: str) -> List[str]:
        name = re.sub(r"\s+", " ", (source or "").strip().lower())
        name = name[4:] if name.startswith("www.") else name
        candidates = [name]
        stripped = _DOMAIN_SUFFIX.sub("", name)
        if stripped != name:
            candidates.append(stripped)
        for candidate in list(candidates):
            if candidate.startswith("the "):
                candidates.append(candidate[4:])
        return candidates

    def credibility_weight(self, source: str) -> Tuple[float, bool]:
        """
        Reputation weight for a source name

        Returns:
            (weight, known) where unknown sources get the configured default
        """
        for candidate in self._source_candidates(source):
            if candidate in self.credibility.sources:
                return self.credibility.sources[candidate], True
        return self.credibility.default_weight, False

    def recency_weight(self, published_at: Optional[datetime], as_of: datetime) -> Tuple[float, float]:
        """
        Exponential age decay with a floor

        Undated articles are treated as old (floor weight). Articles dated
        after ``as_of`` count as brand new.

        Returns:
            (weight, age_hours)
        """
        if published_at is None:
            return self.recency.floor, float("inf")
        if published_at.tzinfo is None:
            published_at = published_at.replace(tzinfo=timezone.utc)
        age_hours = max(0.0, (as_of - published_at).total_seconds() / 3600.0)
        decay = 0.5 ** (age_hours / self.recency.half_life_hours)
        return max(self.recency.floor, decay), age_hours

    def weigh(self, article: Article, as_of: datetime) -> WeightedArticle:
        credibility, known = self.credibility_weight(article.source)
        recency, age_hours = self.recency_weight(article.published_at, as_of)
        return WeightedArticle(
            article=article,
            credibility=credibility,
            recency=recency,
            age_hours=age_hours,
            known_source=known,
        )

    # ========================================================================
    # NORMALIZATION
    # ========================================================================

    @staticmethod
    def _usable(articles: Iterable[Article]) -> List[Article]:
        """Drop empty and duplicate (source, headline) articles, keeping first seen"""
        seen = set()
        usable = []
        for article in articles:
            headline = (article.headline or "").strip()
            if not headline and not (article.body or "").strip():
                continue
            key = ((article.source or "").strip().lower(), headline.lower())
            if key in seen:
                continue
            seen.add(key)
            usable.append(article)
        return usable

    def normalize(
        self,
        question: str,
        articles: Sequence[Article],
        quote: Optional[MarketQuote] = None,
        cached_prior: Optional[float] = None,
        as_of: Optional[datetime] = None,
    ) -> NormalizedInput:
        """
        Validate inputs and weight the evidence

        Args:
            question: Market question text
            articles: Raw fetched articles (any order, may contain duplicates)
            quote: Market quote, already validated on construction
            cached_prior: Probability from an earlier prediction of this question
            as_of: Reference time for recency; defaults to now

        Returns:
            NormalizedInput with articles ordered by weight (heaviest first)

        Raises:
            InvalidInputError: If the question is malformed
            InsufficientDataError: If no usable article AND no cached prior exist
        """
        text = validate_question(question)
        as_of = as_of or datetime.now(timezone.utc)

        usable = self._usable(articles)
        if not usable and cached_prior is None:
            raise InsufficientDataError(text, "no usable articles and no cached prior")

        weighted = [self.weigh(article, as_of) for article in usable]
        weighted.sort(key=lambda wa: (-wa.weight, wa.article.source.lower(), wa.article.headline))

        logger.debug(
            f"Normalized {len(weighted)}/{len(articles)} articles for '{text[:60]}' "
            f"(unknown sources: {sum(1 for wa in weighted if not wa.known_source)})"
        )

        return NormalizedInput(
            question=text,
            articles=tuple(weighted),
            quote=quote,
            cached_prior=cached_prior,
            articles_fetched=len(articles),
            as_of=as_of,
        )

"""Sentiment stage: per-article polarity, weighted aggregate, label and themes"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from alphahunter.config import SentimentConfig
from alphahunter.models import WeightedArticle

logger = logging.getLogger(__name__)

NEGATION_WINDOW = 3

THEME_STOPWORDS = {
    'the', 'a', 'an', 'and', 'or', 'but', 'of', 'in', 'on', 'at', 'to', 'for', 'by',
    'with', 'from', 'as', 'is', 'are', 'was', 'were', 'be', 'been', 'being', 'it', 'its',
    'this', 'that', 'these', 'those', 'will', 'would', 'could', 'should', 'may', 'might',
    'can', 'has', 'have', 'had', 'he', 'she', 'they', 'we', 'you', 'his', 'her', 'their',
    'our', 'your', 'not', 'no', 'new', 'said', 'says', 'say', 'after', 'before', 'over',
    'into', 'about', 'than', 'more', 'most', 'also', 'just', 'up', 'out', 'what', 'who',
    'when', 'where', 'why', 'how', 'which', 'there', 'here', 'some', 'all', 'any', 'one',
    'two', 'year', 'years', 'week', 'weeks', 'day', 'days', 'today', 'news', 'report',
    'reports', 'according', 'amid', 'while', 'chars', 'does', 'did', 'do', 'if', 'so',
}

_WORD = re.compile(r"[a-z][a-z'\-]*")


@dataclass(frozen=True)
class SentimentResult:
    """Output of the sentiment stage"""

    score: float  # Weighted mean polarity (-1..1)
    label: str
    article_scores: Tuple[float, ...]  # Aligned with the input article order
    key_themes: Tuple[str, ...]
    dispersion: float = 0.0  # Weighted std-dev of article scores


def tokenize(text: str) -> List[str]:
    return _WORD.findall((text or "").lower())


class SentimentAnalyzer:
    """
    Lexicon sentiment scorer

    Pure: the same weighted articles always give the same result.
    """

    def __init__(self, config: SentimentConfig):
        self.config = config
        self._positive = {w.lower() for w in config.positive_words}
        self._negative = {w.lower() for w in config.negative_words}
        self._negations = {w.lower() for w in config.negation_words}

    def _is_negation(self, token: str) -> bool:
        return token in self._negations or token.endswith("n't")

    def score_text(self, text: str) -> float:
        """
        Return a sentiment score in [-1, 1] based on keyword frequency.

        Score = (positive_count - negative_count) / total_keyword_count, with a
        keyword flipped when a negation appears within the three preceding
        tokens. Returns 0.0 when no keywords are found.
        """
        tokens = tokenize(text)
        pos_count = 0
        neg_count = 0
        for i, token in enumerate(tokens):
            if token in self._positive:
                polarity = 1
            elif token in self._negative:
                polarity = -1
            else:
                continue
            window = tokens[max(0, i - NEGATION_WINDOW):i]
            if any(self._is_negation(t) for t in window):
                polarity = -polarity
            if polarity > 0:
                pos_count += 1
            else:
                neg_count += 1

        total = pos_count + neg_count
        if total == 0:
            return 0.0
        return (pos_count - neg_count) / total

    def score_article(self, weighted: WeightedArticle) -> float:
        """Provider pre-score when present, lexicon score otherwise"""
        polarity = weighted.article.polarity
        if polarity is not None:
            return max(-1.0, min(1.0, float(polarity)))
        return self.score_text(weighted.article.text)

    def label(self, score: float) -> str:
        """Bucket a score using the configured cut points"""
        if score > self.config.very_positive:
            return "Very Positive"
        if score > self.config.positive:
            return "Positive"
        if score < self.config.very_negative:
            return "Very Negative"
        if score < self.config.negative:
            return "Negative"
        return "Neutral"

    def extract_themes(self, articles: Sequence[WeightedArticle]) -> Tuple[str, ...]:
        """Most heavily weighted content words across headlines and bodies"""
        if self.config.max_themes == 0:
            return ()
        lexicon = self._positive | self._negative | self._negations
        weights: Counter = Counter()
        for wa in articles:
            seen = set()
            for token in tokenize(wa.article.text):
                token = token.strip("'-")
                if len(token) < 4 or token in THEME_STOPWORDS or token in lexicon or token in seen:
                    continue
                seen.add(token)
                weights[token] += wa.weight
        ranked = sorted(weights.items(), key=lambda item: (-item[1], item[0]))
        return tuple(word for word, _ in ranked[:self.config.max_themes])

    def analyze(self, articles: Sequence[WeightedArticle]) -> SentimentResult:
        """
        Score every article and aggregate by credibility x recency weight

        Args:
            articles: Weighted articles from the normalizer

        Returns:
            SentimentResult; a neutral zero score when there is no evidence
        """
        scores = tuple(self.score_article(wa) for wa in articles)
        total_weight = sum(wa.weight for wa in articles)
        if total_weight <= 0:
            return SentimentResult(score=0.0, label=self.label(0.0), article_scores=scores, key_themes=())

        aggregate = sum(s * wa.weight for s, wa in zip(scores, articles)) / total_weight
        aggregate = max(-1.0, min(1.0, aggregate))
        variance = sum(wa.weight * (s - aggregate) ** 2 for s, wa in zip(scores, articles)) / total_weight

        result = SentimentResult(
            score=aggregate,
            label=self.label(aggregate),
            article_scores=scores,
            key_themes=self.extract_themes(articles),
            dispersion=variance ** 0.5,
        )
        logger.debug(
            f"Sentiment {result.score:+.3f} ({result.label}) over {len(articles)} articles, "
            f"dispersion {result.dispersion:.2f}"
        )
        return result

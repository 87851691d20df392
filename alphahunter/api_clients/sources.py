"""Collaborator contracts for market and news data sources"""

import re
from typing import List, Optional, Protocol, runtime_checkable

from alphahunter.models import Article, MarketQuote

QUERY_STOPWORDS = {
    'will', 'would', 'should', 'could', 'does', 'did', 'do', 'is', 'are', 'was', 'were',
    'be', 'been', 'the', 'a', 'an', 'of', 'in', 'on', 'at', 'to', 'for', 'by', 'with',
    'and', 'or', 'before', 'after', 'than', 'this', 'that', 'these', 'those', 'what',
    'who', 'when', 'where', 'which', 'how', 'why', 'it', 'its', 'as', 'from', 'end',
    'any', 'more', 'less', 'least', 'most', 'next', 'into', 'over', 'under', 'his', 'her',
    'their', 'has', 'have', 'had', 'get', 'gets', 'reach', 'above', 'below', 'yes', 'no',
}

MAX_QUERY_TERMS = 8


@runtime_checkable
class MarketSource(Protocol):
    """Anything that can list current quotes for one platform"""

    platform: str

    async def fetch_quotes(self, category: Optional[str] = None, limit: Optional[int] = None) -> List[MarketQuote]:
        ...


@runtime_checkable
class NewsSource(Protocol):
    """Anything that can search articles by free text"""

    name: str

    async def fetch_articles(self, query: str, limit: int = 50) -> List[Article]:
        ...


def build_search_query(question: str, max_terms: int = MAX_QUERY_TERMS) -> str:
    """
    Reduce a market question to a keyword query for news search

    Drops interrogatives, stopwords, punctuation and pure numbers other
    than years, keeping first-seen order.

    Example:
        "Will the Fed cut rates before July 2025?" -> "fed cut rates july 2025"
    """
    tokens = re.findall(r"[A-Za-z0-9][A-Za-z0-9'.&-]*", question or "")
    terms: List[str] = []
    seen = set()
    for raw in tokens:
        token = raw.strip(".'-&").lower()
        if not token or token in QUERY_STOPWORDS or token in seen:
            continue
        if token.isdigit() and not re.fullmatch(r"(19|20)\d{2}", token):
            continue
        if len(token) < 2 and not token.isdigit():
            continue
        seen.add(token)
        terms.append(token)
        if len(terms) >= max_terms:
            break
    return " ".join(terms)

"""API client module for market, news and LLM services"""

from .base_client import (
    BaseAPIClient,
    APIError,
    RateLimitError,
    AuthenticationError,
    ServerError,
    ClientError,
)
from .sources import MarketSource, NewsSource, build_search_query
from .polymarket_client import PolymarketClient
from .manifold_client import ManifoldClient
from .kalshi_client import KalshiClient
from .news_client import NewsAPIClient

__all__ = [
    'BaseAPIClient',
    'APIError',
    'RateLimitError',
    'AuthenticationError',
    'ServerError',
    'ClientError',
    'MarketSource',
    'NewsSource',
    'build_search_query',
    'PolymarketClient',
    'ManifoldClient',
    'KalshiClient',
    'NewsAPIClient',
]

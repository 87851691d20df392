"""Kalshi API client for fetching prediction market quotes (read-only)"""

import asyncio
import logging
from typing import List, Dict, Optional, Any, Tuple

import aiohttp

from alphahunter.config import PlatformConfig
from alphahunter.models import MarketQuote, parse_timestamp
from alphahunter.utils import coerce_float
from alphahunter.utils.errors import InvalidInputError

from .base_client import APIError, BaseAPIClient

logger = logging.getLogger(__name__)

PAGINATION_LIMIT = 100

# Multi-leg bundle markets have no single YES outcome to price
EXCLUDED_TICKER_PREFIXES = ("KXMVE",)


class KalshiClient(BaseAPIClient):
    """
    Client for the public Kalshi trade API market listing

    Handles:
    - Fetching open markets with cursor-based pagination
    - Pricing from the bid/ask mid, falling back to the last trade
    - Converting to MarketQuote

    Only market data is read; no portfolio or order endpoints are used.
    """

    platform = "kalshi"

    def __init__(self, config: PlatformConfig, max_retries: int = 3, timeout: float = 30):
        super().__init__(
            source_name="kalshi",
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.config = config

    async def fetch_quotes(self, category: Optional[str] = None, limit: Optional[int] = None) -> List[MarketQuote]:
        """
        Fetch open binary markets from Kalshi

        Args:
            category: Optional category to keep (case-insensitive)
            limit: Maximum number of quotes (capped by config.max_markets)

        Raises:
            SourceUnavailableError: If the API cannot be reached after retries
        """
        max_items = self.config.max_markets if limit is None else max(1, min(limit, self.config.max_markets))
        wanted = category.strip().lower() if category else None

        def params_builder(cursor: Optional[str]) -> Dict[str, Any]:
            """Build query parameters for cursor-based pagination"""
            params: Dict[str, Any] = {
                'limit': PAGINATION_LIMIT,
                'status': 'open',
            }
            if cursor:
                params['cursor'] = cursor
            return params

        def response_parser(data: Any) -> Tuple[List[MarketQuote], Optional[str]]:
            if not isinstance(data, dict):
                logger.warning(f"[kalshi] Unexpected response format: {type(data)}")
                return [], None

            parsed = []
            excluded = 0
            for market in data.get('markets') or []:
                ticker = str(market.get('ticker') or '')
                if ticker.startswith(EXCLUDED_TICKER_PREFIXES):
                    excluded += 1
                    continue
                quote = self._parse_market(market)
                if quote and (wanted is None or quote.category == wanted):
                    parsed.append(quote)

            if excluded:
                logger.debug(f"[kalshi] Excluded {excluded} bundle markets by ticker prefix")
            return parsed, data.get('cursor') or None

        try:
            async with self:
                quotes = await self._get_paginated(
                    "/markets",
                    params_builder=params_builder,
                    response_parser=response_parser,
                    max_items=max_items,
                    headers=self._build_headers(),
                    pagination_type="cursor",
                )
        except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self.unavailable(e) from e

        logger.info(f"[kalshi] Successfully fetched {len(quotes)} markets")
        return quotes

    @staticmethod
    def _yes_price(market_json: Dict[str, Any]) -> Optional[float]:
        """
        YES price as a probability

        Prefers the ``*_dollars`` fields, then the legacy cent fields. Uses the
        bid/ask mid when both sides are quoted, else whichever side exists,
        else the last trade.
        """
        def side(name: str) -> float:
            dollars = coerce_float(market_json.get(f"{name}_dollars"))
            if dollars:
                return dollars
            cents = coerce_float(market_json.get(name))
            return cents / 100.0 if cents else 0.0

        yes_bid = side('yes_bid')
        yes_ask = side('yes_ask')
        if yes_bid > 0 and yes_ask > 0:
            return (yes_bid + yes_ask) / 2
        if yes_ask > 0 or yes_bid > 0:
            return yes_ask or yes_bid
        last_price = side('last_price')
        return last_price or None

    def _parse_market(self, market_json: Dict[str, Any]) -> Optional[MarketQuote]:
        """
        Parse a single Kalshi market into a MarketQuote

        Returns:
            MarketQuote or None if the market is not binary or has no price
        """
        try:
            if str(market_json.get('market_type') or 'binary').lower() != 'binary':
                return None
            price = self._yes_price(market_json)
            if price is None:
                logger.debug(f"[kalshi] Market {market_json.get('ticker')} has no price data")
                return None

            # Title plus the specific option, e.g. "Fed decision in July? [Cut 25bps]"
            title = str(market_json.get('title') or '')
            yes_option = str(market_json.get('yes_sub_title') or '')
            if yes_option and yes_option.lower() not in title.lower():
                title = f"{title} [{yes_option}]"

            ticker = str(market_json.get('ticker') or '')
            event_ticker = str(market_json.get('event_ticker') or '')
            return MarketQuote(
                platform=self.platform,
                market_id=ticker,
                question=title,
                price=price,
                volume=float(market_json.get('volume') or 0),
                liquidity=float(market_json.get('open_interest') or 0),
                category=str(market_json.get('category') or 'other').lower(),
                resolution_date=parse_timestamp(
                    market_json.get('close_time') or market_json.get('expiration_time')
                ),
                url=f"https://kalshi.com/markets/{event_ticker.lower()}" if event_ticker else "",
            )

        except (KeyError, ValueError, TypeError, InvalidInputError) as e:
            logger.debug(f"[kalshi] Skipping market {market_json.get('ticker', 'unknown')}: {e}")
            return None

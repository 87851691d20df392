"""Polymarket API client for fetching prediction market quotes"""

import asyncio
import json
import logging
from typing import List, Dict, Optional, Any, Tuple

import aiohttp

from alphahunter.config import PlatformConfig
from alphahunter.models import MarketQuote, parse_timestamp
from alphahunter.utils.errors import InvalidInputError

from .base_client import APIError, BaseAPIClient

logger = logging.getLogger(__name__)

PAGINATION_LIMIT = 100


class PolymarketClient(BaseAPIClient):
    """
    Client for the Polymarket gamma API
    
    Handles:
    - Fetching active markets with offset pagination
    - Parsing Polymarket-specific JSON (stringified outcome arrays)
    - Converting to MarketQuote
    """
    
    platform = "polymarket"
    
    def __init__(self, config: PlatformConfig, max_retries: int = 3, timeout: float = 30):
        """
        Initialize Polymarket client
        
        Args:
            config: PlatformConfig with base URL, market cap and optional key
        """
        super().__init__(
            source_name="polymarket",
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.config = config
    
    async def fetch_quotes(self, category: Optional[str] = None, limit: Optional[int] = None) -> List[MarketQuote]:
        """
        Fetch active binary markets from Polymarket
        
        Args:
            category: Optional category to keep (case-insensitive)
            limit: Maximum number of quotes (capped by config.max_markets)
        
        Raises:
            SourceUnavailableError: If the API cannot be reached after retries
        """
        max_items = self.config.max_markets if limit is None else max(1, min(limit, self.config.max_markets))
        wanted = category.strip().lower() if category else None
        
        def params_builder(offset: int) -> Dict[str, Any]:
            """Build query parameters for pagination"""
            return {
                'limit': PAGINATION_LIMIT,
                'offset': offset,
                'active': 'true',
                'closed': 'false',
            }
        
        def response_parser(data: Any) -> Tuple[List[MarketQuote], bool]:
            # Polymarket returns array directly
            if not isinstance(data, list):
                logger.warning(f"[polymarket] Unexpected response format: {type(data)}")
                return [], False
            
            parsed = []
            for market in data:
                quote = self._parse_market(market)
                if quote and (wanted is None or quote.category.lower() == wanted):
                    parsed.append(quote)
            return parsed, len(data) == PAGINATION_LIMIT
        
        try:
            async with self:
                quotes = await self._get_paginated(
                    "/markets",
                    params_builder=params_builder,
                    response_parser=response_parser,
                    max_items=max_items,
                    headers=self._build_headers(),
                    page_size=PAGINATION_LIMIT,
                )
        except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self.unavailable(e) from e
        
        logger.info(f"[polymarket] Successfully fetched {len(quotes)} markets")
        return quotes
    
    def _parse_market(self, market_json: Dict[str, Any]) -> Optional[MarketQuote]:
        """
        Parse a single gamma market into a MarketQuote
        
        ``outcomes`` and ``outcomePrices`` arrive as JSON-encoded strings;
        only two-outcome Yes/No markets are kept.
        
        Returns:
            MarketQuote or None if the market is not a tradable binary market
        """
        try:
            outcomes = _decode_list(market_json.get('outcomes'))
            prices = _decode_list(market_json.get('outcomePrices'))
            if len(outcomes) != 2 or len(prices) != 2:
                logger.debug(f"[polymarket] Market {market_json.get('id')} is not binary")
                return None
            
            yes_index = 0
            if str(outcomes[1]).strip().lower() == 'yes':
                yes_index = 1
            
            slug = market_json.get('slug') or ''
            return MarketQuote(
                platform=self.platform,
                market_id=str(market_json.get('id', '')),
                question=market_json.get('question', ''),
                price=float(prices[yes_index]),
                volume=float(market_json.get('volumeNum', market_json.get('volume', 0)) or 0),
                liquidity=float(market_json.get('liquidityNum', market_json.get('liquidity', 0)) or 0),
                category=str(market_json.get('category') or 'other').lower(),
                resolution_date=parse_timestamp(market_json.get('endDate') or market_json.get('end_date_iso')),
                url=f"https://polymarket.com/event/{slug}" if slug else "",
                fetched_at=parse_timestamp(market_json.get('updatedAt')),
            )
        
        except (KeyError, ValueError, TypeError, InvalidInputError) as e:
            logger.debug(f"[polymarket] Skipping market {market_json.get('id', 'unknown')}: {e}")
            return None


def _decode_list(raw: Any) -> List[Any]:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str) and raw.strip():
        decoded = json.loads(raw)
        return decoded if isinstance(decoded, list) else []
    return []

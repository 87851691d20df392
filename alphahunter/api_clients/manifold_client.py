"""Manifold Markets API client"""

import asyncio
import logging
from typing import List, Dict, Optional, Any, Tuple

import aiohttp

from alphahunter.config import PlatformConfig
from alphahunter.models import MarketQuote, parse_timestamp
from alphahunter.utils.errors import InvalidInputError

from .base_client import APIError, BaseAPIClient

logger = logging.getLogger(__name__)

PAGINATION_LIMIT = 100


class ManifoldClient(BaseAPIClient):
    """Client for Manifold's public search endpoint (binary markets only)"""

    platform = "manifold"

    def __init__(self, config: PlatformConfig, max_retries: int = 3, timeout: float = 30):
        super().__init__(
            source_name="manifold",
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.config = config

    async def fetch_quotes(self, category: Optional[str] = None, limit: Optional[int] = None) -> List[MarketQuote]:
        """
        Fetch open binary markets, most liquid first

        Raises:
            SourceUnavailableError: If the API cannot be reached after retries
        """
        max_items = self.config.max_markets if limit is None else max(1, min(limit, self.config.max_markets))

        def params_builder(offset: int) -> Dict[str, Any]:
            params = {
                'term': '',
                'filter': 'open',
                'contractType': 'BINARY',
                'sort': 'liquidity',
                'limit': min(PAGINATION_LIMIT, max_items),
                'offset': offset,
            }
            if category:
                params['topicSlug'] = category.strip().lower()
            return params

        def response_parser(data: Any) -> Tuple[List[MarketQuote], bool]:
            if not isinstance(data, list):
                logger.warning(f"[manifold] Unexpected response format: {type(data)}")
                return [], False
            parsed = [q for q in (self._parse_market(m, category) for m in data) if q]
            return parsed, len(data) == min(PAGINATION_LIMIT, max_items)

        try:
            async with self:
                quotes = await self._get_paginated(
                    "/v0/search-markets",
                    params_builder=params_builder,
                    response_parser=response_parser,
                    max_items=max_items,
                    headers=self._build_headers(auth_type="Key"),
                    page_size=min(PAGINATION_LIMIT, max_items),
                )
        except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self.unavailable(e) from e

        logger.info(f"[manifold] Successfully fetched {len(quotes)} markets")
        return quotes

    def _parse_market(self, market_json: Dict[str, Any], category: Optional[str] = None) -> Optional[MarketQuote]:
        if market_json.get('outcomeType') != 'BINARY' or market_json.get('isResolved'):
            return None
        try:
            groups = market_json.get('groupSlugs') or []
            return MarketQuote(
                platform=self.platform,
                market_id=str(market_json.get('id', '')),
                question=market_json.get('question', ''),
                price=float(market_json['probability']),
                volume=float(market_json.get('volume', 0) or 0),
                liquidity=float(market_json.get('totalLiquidity', 0) or 0),
                category=(category or (groups[0] if groups else 'other')).lower(),
                resolution_date=parse_timestamp(market_json.get('closeTime')),
                url=market_json.get('url', '') or '',
                fetched_at=parse_timestamp(market_json.get('lastUpdatedTime')),
            )
        except (KeyError, ValueError, TypeError, InvalidInputError) as e:
            logger.debug(f"[manifold] Skipping market {market_json.get('id', 'unknown')}: {e}")
            return None

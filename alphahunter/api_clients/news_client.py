"""NewsAPI client for article retrieval"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional

import aiohttp

from alphahunter.config import NewsConfig
from alphahunter.models import Article, parse_timestamp

from .base_client import APIError, BaseAPIClient, ClientError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


class NewsAPIClient(BaseAPIClient):
    """
    Client for newsapi.org ``/v2/everything``

    Articles come back newest first; at most 50 per query.
    """

    name = "newsapi"

    def __init__(self, config: NewsConfig, api_key: Optional[str], max_retries: int = 3, timeout: float = 30):
        super().__init__(
            source_name="newsapi",
            api_key=api_key,
            base_url=config.base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.config = config

    async def fetch_articles(self, query: str, limit: int = 50) -> List[Article]:
        """
        Search articles matching a free-text query

        Args:
            query: Keyword query (see build_search_query)
            limit: Result cap, at most 50

        Raises:
            SourceUnavailableError: If the API cannot be reached after retries
        """
        if not query.strip():
            return []

        since = datetime.now(timezone.utc) - timedelta(days=self.config.lookback_days)
        params = {
            'q': query,
            'language': self.config.language,
            'sortBy': 'publishedAt',
            'pageSize': max(1, min(limit, self.config.max_articles, MAX_PAGE_SIZE)),
            'from': since.strftime('%Y-%m-%dT%H:%M:%S'),
        }
        headers = self._build_headers(auth_type="", auth_header_name="X-Api-Key")

        try:
            async with self:
                data = await self._get_json(
                    "/everything", params=params, headers=headers, operation_name=f"Search '{query}'"
                )
            if isinstance(data, dict) and data.get('status') == 'error':
                raise ClientError(self.source_name, 400, str(data.get('message', 'unknown error')))
        except (APIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self.unavailable(e) from e

        articles = [a for a in (self._parse_article(raw) for raw in (data or {}).get('articles', [])) if a]
        logger.debug(f"[newsapi] {len(articles)} articles for '{query}'")
        return articles

    def _parse_article(self, raw: Dict[str, Any]) -> Optional[Article]:
        headline = (raw.get('title') or '').strip()
        if not headline or headline == '[Removed]':
            return None
        source = raw.get('source') or {}
        body = " ".join(
            part.strip() for part in (raw.get('description'), raw.get('content')) if part
        )
        return Article(
            source=(source.get('name') or source.get('id') or 'unknown').strip(),
            headline=headline,
            body=body,
            published_at=parse_timestamp(raw.get('publishedAt')),
            url=raw.get('url') or '',
        )

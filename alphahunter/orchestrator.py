"""Scan orchestration: fan-out fetches, bounded worker pool, scoring and persistence"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from alphahunter.analysis import (
    ClaudeFactorDecomposer,
    FactorDecomposer,
    HeuristicFactorDecomposer,
    PredictionPipeline,
    validate_question,
)
from alphahunter.api_clients import (
    KalshiClient,
    ManifoldClient,
    MarketSource,
    NewsAPIClient,
    NewsSource,
    PolymarketClient,
    build_search_query,
)
from alphahunter.config import ConfigManager
from alphahunter.models import Article, MarketQuote, Opportunity, PredictionResult
from alphahunter.scoring import OpportunityScorer
from alphahunter.storage.db import UPSERT_CREATED, DatabaseManager
from alphahunter.utils import TTLCache
from alphahunter.utils.errors import (
    InvalidInputError,
    ScanTimeoutError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)

MarketInput = Union[MarketQuote, Dict[str, Any]]


@dataclass
class ScanResult:
    """Scan-level metrics returned to the caller"""

    markets_scanned: int = 0
    opportunities_created: int = 0
    opportunities_updated: int = 0
    platforms: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)
    partial: bool = False  # Scan deadline was hit
    markets_skipped: int = 0  # Never started because of the deadline
    duration_ms: float = 0.0
    opportunities: List[Opportunity] = field(default_factory=list)

    def add_error(self, platform: str, error: Any) -> None:
        self.errors.append({'platform': platform, 'error': str(error)})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'markets_scanned': self.markets_scanned,
            'opportunities_created': self.opportunities_created,
            'opportunities_updated': self.opportunities_updated,
            'platforms': list(self.platforms),
            'errors': list(self.errors),
            'partial': self.partial,
            'markets_skipped': self.markets_skipped,
            'duration_ms': round(self.duration_ms, 1),
            'opportunities': [o.to_dict() for o in self.opportunities],
        }


@dataclass
class _MarketOutcome:
    opportunity: Opportunity
    persisted: Optional[str]  # "created", "updated" or None when below min edge and not Active


class ScanOrchestrator:
    """
    Coordinates scans across markets and ad-hoc predictions

    Markets are processed by a bounded worker pool. Within one market the
    news sources are queried in parallel and joined before the pipeline
    runs. A failure on one market or one source is recorded and never
    aborts the rest of the scan.
    """

    def __init__(
        self,
        config: ConfigManager,
        db: DatabaseManager,
        market_sources: Sequence[MarketSource] = (),
        news_sources: Sequence[NewsSource] = (),
        decomposer: Optional[FactorDecomposer] = None,
    ):
        """
        Args:
            config: Validated configuration
            db: Initialized database manager
            market_sources: Platform adapters used when scan() gets no markets
            news_sources: Article providers queried per market
            decomposer: Factor decomposer; heuristic when omitted
        """
        self.config = config
        self.db = db
        self.market_sources = list(market_sources)
        self.news_sources = list(news_sources)
        self.pipeline = PredictionPipeline(config, decomposer)
        self.scorer = OpportunityScorer(config.scoring)
        self.article_cache: TTLCache[List[Article]] = TTLCache(config.scan.article_cache_ttl_seconds)

    # ========================================================================
    # DATA FETCHING
    # ========================================================================

    async def _fetch_platform(
        self,
        source: MarketSource,
        category: Optional[str],
        limit: Optional[int],
        timeout: float,
    ) -> List[MarketQuote]:
        try:
            return await asyncio.wait_for(source.fetch_quotes(category=category, limit=limit), timeout=timeout)
        except asyncio.TimeoutError:
            raise ScanTimeoutError("fetch", timeout, target=source.platform)

    async def fetch_markets(
        self,
        result: ScanResult,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[MarketQuote]:
        """
        Fetch quotes from every market source in parallel

        Failed or timed-out platforms are recorded in ``result.errors``;
        platforms that delivered are appended to ``result.platforms``.
        """
        if not self.market_sources:
            logger.warning("No market sources configured")
            return []

        timeout = self.config.scan.source_timeout_seconds
        results = await asyncio.gather(
            *(self._fetch_platform(s, category, limit, timeout) for s in self.market_sources),
            return_exceptions=True,
        )

        quotes: List[MarketQuote] = []
        for source, outcome in zip(self.market_sources, results):
            if isinstance(outcome, list):
                quotes.extend(outcome)
                result.platforms.append(source.platform)
                logger.info(f"   {source.platform}: {len(outcome)} markets")
            elif isinstance(outcome, (ScanTimeoutError, SourceUnavailableError)):
                logger.warning(f"⚠️  {source.platform} unavailable: {outcome}")
                result.add_error(source.platform, outcome)
            elif isinstance(outcome, Exception):
                logger.error(f"Error fetching {source.platform} markets: {outcome!r}")
                result.add_error(source.platform, outcome)
            else:
                # CancelledError and friends are not ours to swallow
                raise outcome
        return quotes

    async def _fetch_source_articles(self, source: NewsSource, query: str, timeout: float) -> List[Article]:
        cache_key = f"{source.name}:{query}"
        cached = self.article_cache.get(cache_key)
        if cached is not None:
            return cached
        try:
            articles = await asyncio.wait_for(
                source.fetch_articles(query, limit=self.config.news.max_articles), timeout=timeout
            )
        except asyncio.TimeoutError:
            raise ScanTimeoutError("fetch", timeout, target=source.name)
        self.article_cache.set(cache_key, list(articles))
        return list(articles)

    async def gather_articles(self, question: str) -> Tuple[List[Article], float, Dict[str, str]]:
        """
        Query every news source for a question in parallel

        Returns:
            (articles, fetch_time_ms, {source_name: error}) with articles in
            source order
        """
        query = build_search_query(question)
        if not query or not self.news_sources:
            return [], 0.0, {}

        started = time.perf_counter()
        timeout = self.config.scan.source_timeout_seconds
        results = await asyncio.gather(
            *(self._fetch_source_articles(s, query, timeout) for s in self.news_sources),
            return_exceptions=True,
        )

        articles: List[Article] = []
        errors: Dict[str, str] = {}
        for source, outcome in zip(self.news_sources, results):
            if isinstance(outcome, list):
                articles.extend(outcome)
            elif isinstance(outcome, Exception):
                logger.warning(f"⚠️  News source {source.name} failed for '{query}': {outcome}")
                errors[source.name] = str(outcome)
            else:
                raise outcome
        return articles, (time.perf_counter() - started) * 1000, errors

    # ========================================================================
    # SCAN
    # ========================================================================

    def _coerce_markets(self, markets: Sequence[MarketInput], result: ScanResult) -> List[MarketQuote]:
        """Accept quotes or plain dicts; malformed entries are rejected one by one"""
        quotes = []
        for item in markets:
            if isinstance(item, MarketQuote):
                quotes.append(item)
                continue
            try:
                quotes.append(MarketQuote.from_dict(item))
            except InvalidInputError as e:
                platform = str(item.get('platform') or 'unknown') if isinstance(item, Mapping) else 'unknown'
                logger.warning(f"⚠️  Rejected market input: {e}")
                result.add_error(platform, e)
        return quotes

    async def _process_market(
        self,
        quote: MarketQuote,
        min_edge: float,
        as_of: Optional[datetime],
        news_errors: Dict[str, str],
    ) -> _MarketOutcome:
        articles, fetch_ms, errors = await self.gather_articles(quote.question)
        for source_name, error in errors.items():
            news_errors.setdefault(source_name, error)

        cached_prior = await self.db.get_cached_prior(quote.question)
        prediction = await self.pipeline.run(
            quote.question, articles, quote=quote, cached_prior=cached_prior,
            as_of=as_of, fetch_time_ms=fetch_ms,
        )
        await self.db.save_prediction(quote.question, prediction)

        opportunity = self.scorer.score(prediction, quote, as_of)
        # min_edge gates creation only; an Active opportunity is always refreshed
        persisted = await self.db.upsert_opportunity(opportunity, create=abs(opportunity.edge) >= min_edge)
        return _MarketOutcome(opportunity=opportunity, persisted=persisted)

    async def scan(
        self,
        markets: Optional[Sequence[MarketInput]] = None,
        min_edge: Optional[float] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> ScanResult:
        """
        Scan markets for opportunities

        Args:
            markets: Quotes (or dicts) to scan; fetched from the market
                sources when omitted
            min_edge: Minimum |edge| for a new opportunity to be created;
                markets with an Active opportunity are refreshed regardless
            category: Category filter for fetched markets
            limit: Max markets per platform when fetching; each platform's
                configured cap applies when omitted
            as_of: Fixed reference time for reproducible estimates

        Returns:
            ScanResult; ``partial`` is set when the scan deadline was hit

        Raises:
            InvalidInputError: If min_edge is outside [0, 1]
        """
        scan_cfg = self.config.scan
        min_edge = scan_cfg.default_min_edge if min_edge is None else float(min_edge)
        if not 0 <= min_edge <= 1:
            raise InvalidInputError("min_edge must be between 0 and 1", field="min_edge", value=min_edge)

        started = time.perf_counter()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + scan_cfg.deadline_seconds
        result = ScanResult()

        logger.info("🔍 Starting scan...")
        if markets is None:
            quotes = await self.fetch_markets(result, category=category, limit=limit)
        else:
            quotes = self._coerce_markets(markets, result)
            for quote in quotes:
                if quote.platform not in result.platforms:
                    result.platforms.append(quote.platform)

        # One pipeline per market identity
        unique: Dict[str, MarketQuote] = {}
        for quote in quotes:
            unique.setdefault(quote.market_key, quote)

        semaphore = asyncio.Semaphore(scan_cfg.max_workers)
        started_keys = set()
        news_errors: Dict[str, str] = {}

        async def worker(quote: MarketQuote) -> Optional[_MarketOutcome]:
            async with semaphore:
                if loop.time() >= deadline:
                    return None
                started_keys.add(quote.market_key)
                return await self._process_market(quote, min_edge, as_of, news_errors)

        tasks = {asyncio.ensure_future(worker(q)): q for q in unique.values()}
        if tasks:
            _, pending = await asyncio.wait(list(tasks), timeout=max(0.0, deadline - loop.time()))
            if pending:
                result.partial = True
                not_started = [t for t in pending if tasks[t].market_key not in started_keys]
                for task in not_started:
                    task.cancel()
                in_flight = [t for t in pending if tasks[t].market_key in started_keys]
                logger.warning(
                    f"⏱️  Scan deadline of {scan_cfg.deadline_seconds:.0f}s hit: cancelling "
                    f"{len(not_started)} queued market(s), granting {len(in_flight)} in-flight "
                    f"market(s) {scan_cfg.grace_seconds:.0f}s"
                )
                if in_flight:
                    _, still_pending = await asyncio.wait(in_flight, timeout=scan_cfg.grace_seconds)
                    for task in still_pending:
                        task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task, quote in tasks.items():
            if task.cancelled():
                if quote.market_key in started_keys:
                    result.add_error(
                        quote.platform,
                        ScanTimeoutError("scan", scan_cfg.deadline_seconds, target=quote.market_key),
                    )
                else:
                    result.markets_skipped += 1
                continue

            error = task.exception()
            if error is not None:
                if isinstance(error, InvalidInputError):
                    logger.warning(f"⚠️  Rejected {quote.market_key}: {error}")
                else:
                    logger.error(f"❌ Failed to scan {quote.market_key}: {error!r}")
                result.add_error(quote.platform, f"{quote.market_key}: {error}")
                continue

            outcome = task.result()
            if outcome is None:
                result.markets_skipped += 1
                continue
            result.markets_scanned += 1
            if outcome.persisted is None:
                continue
            result.opportunities.append(outcome.opportunity)
            if outcome.persisted == UPSERT_CREATED:
                result.opportunities_created += 1
            else:
                result.opportunities_updated += 1

        for source_name, error in news_errors.items():
            result.add_error(source_name, error)

        result.opportunities.sort(key=lambda o: -o.edge)
        result.duration_ms = (time.perf_counter() - started) * 1000

        logger.info(
            f"✅ Scan complete: {result.markets_scanned} scanned, "
            f"{result.opportunities_created} created, {result.opportunities_updated} updated, "
            f"{len(result.errors)} error(s){' (partial)' if result.partial else ''} "
            f"in {result.duration_ms:.0f}ms"
        )
        return result

    # ========================================================================
    # AD-HOC PREDICTION
    # ========================================================================

    async def predict(self, question: str, as_of: Optional[datetime] = None) -> PredictionResult:
        """
        Estimate a single free-text question; no Opportunity is created

        Raises:
            InvalidInputError: If the question is malformed
        """
        text = validate_question(question)
        articles, fetch_ms, _ = await self.gather_articles(text)
        cached_prior = await self.db.get_cached_prior(text)
        result = await self.pipeline.run(
            text, articles, cached_prior=cached_prior,
            as_of=as_of or datetime.now(timezone.utc), fetch_time_ms=fetch_ms,
        )
        await self.db.save_prediction(text, result)
        return result


def build_orchestrator(config: ConfigManager, db: DatabaseManager) -> ScanOrchestrator:
    """Wire the configured platform, news and factor providers into an orchestrator"""
    retries = config.api.max_retries
    timeout = config.api.request_timeout_seconds

    market_sources: List[MarketSource] = []
    if config.polymarket_enabled:
        market_sources.append(PolymarketClient(config.platforms.polymarket, max_retries=retries, timeout=timeout))
    if config.kalshi_enabled:
        market_sources.append(KalshiClient(config.platforms.kalshi, max_retries=retries, timeout=timeout))
    if config.manifold_enabled:
        market_sources.append(ManifoldClient(config.platforms.manifold, max_retries=retries, timeout=timeout))

    news_sources: List[NewsSource] = []
    if config.news_enabled:
        news_sources.append(NewsAPIClient(config.news, config.api.newsapi_key, max_retries=retries, timeout=timeout))
    elif config.news.enabled:
        logger.warning("⚠️  NEWSAPI_KEY not set; estimates will rely on base rates only")

    heuristic = HeuristicFactorDecomposer(config.factors)
    decomposer: FactorDecomposer = heuristic
    if config.factors.provider == 'claude':
        if config.api.claude_api_key:
            decomposer = ClaudeFactorDecomposer(
                config.claude, config.factors, config.claude_api_key,
                fallback=heuristic, max_retries=retries, timeout=timeout,
            )
        else:
            logger.warning("⚠️  ANTHROPIC_API_KEY not set; using heuristic factors")

    return ScanOrchestrator(config, db, market_sources, news_sources, decomposer)

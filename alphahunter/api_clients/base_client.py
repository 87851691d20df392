"""Base API client with shared HTTP logic and retry handling"""

import asyncio
import logging
from typing import Dict, List, Optional, Any, Callable, Tuple

import aiohttp

from alphahunter.utils.errors import SourceUnavailableError

logger = logging.getLogger(__name__)


# ============================================================================
# CUSTOM EXCEPTION CLASSES
# ============================================================================

class APIError(Exception):
    """Base exception for API-related errors"""

    def __init__(
        self,
        source: str,
        operation: str,
        status_code: Optional[int] = None,
        message: str = "",
        details: Optional[Dict] = None
    ):
        self.source = source
        self.operation = operation
        self.status_code = status_code
        self.details = details or {}

        full_message = f"[{source}] {operation}"
        if status_code:
            full_message += f" (HTTP {status_code})"
        if message:
            full_message += f": {message}"

        super().__init__(full_message)


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (HTTP 429)"""

    def __init__(self, source: str, retry_after: Optional[float] = None):
        super().__init__(
            source=source,
            operation="Rate limit exceeded",
            status_code=429,
            details={'retry_after': retry_after}
        )
        self.retry_after = retry_after if retry_after is not None else 5.0


class AuthenticationError(APIError):
    """Raised when authentication fails (HTTP 401/403)"""

    def __init__(self, source: str, status_code: int = 401, message: str = "Invalid API key"):
        super().__init__(
            source=source,
            operation="Authentication failed",
            status_code=status_code,
            message=message
        )


class ServerError(APIError):
    """Raised when server returns 5xx error"""

    def __init__(self, source: str, status_code: int, response_text: str = ""):
        super().__init__(
            source=source,
            operation="Server error",
            status_code=status_code,
            message=response_text[:100]
        )


class ClientError(APIError):
    """Raised when request is invalid (HTTP 4xx except 401/403/429)"""

    def __init__(self, source: str, status_code: int, message: str = ""):
        super().__init__(
            source=source,
            operation="Client error",
            status_code=status_code,
            message=message
        )


# ============================================================================
# BASE API CLIENT
# ============================================================================

class BaseAPIClient:
    """
    Base client for market, news and LLM APIs with shared functionality:
    - Consistent error handling with custom exceptions
    - Automatic retry with exponential backoff
    - Offset-based pagination
    - Conversion of exhausted failures into SourceUnavailableError
    """

    def __init__(
        self,
        source_name: str,
        api_key: Optional[str] = None,
        base_url: str = "",
        timeout: float = 30,
        max_retries: int = 3,
        backoff_base: float = 2.0,
        max_retry_wait: float = 30.0,
    ):
        """
        Initialize base API client

        Args:
            source_name: Name of the source (e.g., 'polymarket', 'newsapi')
            api_key: Optional API key for authentication
            base_url: Base URL for API endpoints
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            backoff_base: Base for exponential backoff (2 = 1s, 2s, 4s, 8s...)
            max_retry_wait: Upper bound on any single wait between attempts
        """
        self.source_name = source_name
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.max_retry_wait = max_retry_wait

        # HTTP session (created in __aenter__, shared by nested/concurrent users)
        self.session: Optional[aiohttp.ClientSession] = None
        self._session_users = 0

    async def __aenter__(self):
        """Async context manager entry"""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self.session = aiohttp.ClientSession(timeout=timeout)
            self._session_users = 0
            logger.debug(f"✅ Created session for {self.source_name}")
        self._session_users += 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit; the last user closes the session"""
        self._session_users -= 1
        if self._session_users <= 0 and self.session:
            session, self.session = self.session, None
            self._session_users = 0
            await session.close()
            logger.debug(f"✅ Closed session for {self.source_name}")

    # ========================================================================
    # HEADER BUILDING
    # ========================================================================

    def _build_headers(
        self,
        api_key: Optional[str] = None,
        auth_type: str = "Bearer",
        auth_header_name: str = "Authorization",
        additional_headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, str]:
        """
        Build HTTP headers with optional authentication

        Args:
            api_key: API key to use (defaults to self.api_key)
            auth_type: Authorization scheme ("Bearer", "Token", ...); empty for raw keys
            auth_header_name: Header carrying the key ("Authorization", "X-Api-Key", ...)
            additional_headers: Additional headers to include

        Returns:
            Dictionary of headers
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        key_to_use = api_key or self.api_key
        if key_to_use:
            headers[auth_header_name] = f"{auth_type} {key_to_use}" if auth_type else key_to_use

        if additional_headers:
            headers.update(additional_headers)

        return headers

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    # ========================================================================
    # RETRY LOGIC WITH EXPONENTIAL BACKOFF
    # ========================================================================

    async def _call_with_retry(
        self,
        coro_fn: Callable[[], Any],
        operation_name: str = "API call",
        max_retries: Optional[int] = None,
    ) -> Any:
        """
        Execute an async operation with exponential backoff retry logic

        Args:
            coro_fn: Async function to execute (as callable, not coroutine)
            operation_name: Human-readable operation description for logging
            max_retries: Override default max_retries for this call

        Returns:
            Result from the async function

        Raises:
            Original exception after max retries exhausted
        """
        retries = self.max_retries if max_retries is None else max_retries
        max_attempts = retries + 1  # +1 for initial attempt
        last_exception: Optional[BaseException] = None

        for attempt in range(max_attempts):
            try:
                logger.debug(f"[{self.source_name}] {operation_name} (attempt {attempt + 1})")
                return await coro_fn()

            except RateLimitError as e:
                last_exception = e
                if attempt < max_attempts - 1:
                    wait_time = min(e.retry_after, self.max_retry_wait)
                    logger.warning(
                        f"[{self.source_name}] Rate limited. "
                        f"Waiting {wait_time:.1f}s before retry..."
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"[{self.source_name}] Rate limit exceeded after {max_attempts} attempts")

            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_exception = e
                if attempt < max_attempts - 1:
                    wait_time = min(self.backoff_base ** attempt, self.max_retry_wait)
                    logger.warning(
                        f"[{self.source_name}] {operation_name} failed: {e!r}. "
                        f"Retrying in {wait_time:.1f}s... (attempt {attempt + 1}/{max_attempts - 1})"
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(
                        f"[{self.source_name}] {operation_name} failed after {max_attempts} attempts"
                    )

            except ServerError as e:
                last_exception = e
                if attempt < max_attempts - 1:
                    wait_time = min(self.backoff_base ** attempt, self.max_retry_wait)
                    logger.warning(
                        f"[{self.source_name}] Server error. "
                        f"Retrying in {wait_time:.1f}s..."
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error(f"[{self.source_name}] {operation_name} failed: {e}")

            except (AuthenticationError, ClientError) as e:
                # Auth and client errors shouldn't be retried
                logger.error(f"[{self.source_name}] {operation_name} failed: {e}")
                raise

        # Exhausted retries
        if last_exception:
            raise last_exception

    # ========================================================================
    # REQUESTS
    # ========================================================================

    def _require_session(self) -> aiohttp.ClientSession:
        if not self.session:
            raise RuntimeError("Session not initialized. Use 'async with' context manager.")
        return self.session

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        operation_name: str = "GET",
    ) -> Any:
        """GET a JSON document with retry"""
        session = self._require_session()
        url = self._url(path)

        async def fetch():
            request_headers = headers or self._build_headers()
            async with session.get(url, params=params, headers=request_headers) as response:
                await self._handle_response_status(response)
                return await response.json(content_type=None)

        return await self._call_with_retry(fetch, operation_name)

    async def _post_json(
        self,
        path: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        operation_name: str = "POST",
    ) -> Any:
        """POST a JSON payload with retry and return the decoded response"""
        session = self._require_session()
        url = self._url(path)

        async def send():
            request_headers = headers or self._build_headers()
            async with session.post(url, json=payload, headers=request_headers) as response:
                await self._handle_response_status(response)
                return await response.json(content_type=None)

        return await self._call_with_retry(send, operation_name)

    # ========================================================================
    # PAGINATION
    # ========================================================================

    async def _get_paginated(
        self,
        path: str,
        params_builder: Callable[[Any], Dict[str, Any]],
        response_parser: Callable[[Any], Tuple[List[Any], Any]],
        max_items: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        page_size: Optional[int] = None,
        max_pages: int = 20,
        pagination_type: str = "offset",
    ) -> List[Any]:
        """
        Fetch paginated items from an API endpoint

        Args:
            path: Endpoint path (joined onto base_url)
            params_builder: Function that takes the current offset (or cursor,
                None on the first page) and returns params
            response_parser: Function that takes response JSON and returns
                (parsed_items, has_more), or (parsed_items, next_cursor) for
                cursor pagination
            max_items: Stop after fetching this many items (None = fetch all)
            headers: Headers to include in request
            page_size: Raw items requested per page; the offset advances by
                this even when the parser filters items out
            max_pages: Hard stop on requests for sparse filtered listings
            pagination_type: "offset" or "cursor"

        Returns:
            Flattened list of all parsed items

        Raises:
            APIError / aiohttp.ClientError / asyncio.TimeoutError once retries
            are exhausted; partial pages are never returned silently
        """
        all_items: List[Any] = []
        offset = 0
        cursor: Optional[str] = None
        request_count = 0
        use_cursor = pagination_type == "cursor"

        while True:
            if max_items and len(all_items) >= max_items:
                logger.debug(
                    f"[{self.source_name}] Reached max_items limit ({max_items}) "
                    f"after {request_count} requests."
                )
                break

            position = f"cursor={cursor}" if use_cursor else f"offset={offset}"
            data = await self._get_json(
                path,
                params=params_builder(cursor if use_cursor else offset),
                headers=headers,
                operation_name=f"Fetch page ({position})",
            )
            request_count += 1

            batch_items, more = response_parser(data)
            all_items.extend(batch_items)
            logger.debug(f"[{self.source_name}] Fetched {len(batch_items)} items (total: {len(all_items)})")

            if use_cursor:
                cursor = more or None
                has_more = cursor is not None
            else:
                has_more = bool(more)

            if not has_more or (not batch_items and not page_size and not use_cursor):
                break
            if request_count >= max_pages:
                logger.debug(f"[{self.source_name}] Stopping after {max_pages} pages")
                break

            offset += page_size or len(batch_items)
            # Small delay between requests to respect rate limits
            await asyncio.sleep(0.1)

        if max_items and len(all_items) > max_items:
            all_items = all_items[:max_items]

        return all_items

    # ========================================================================
    # RESPONSE HANDLING
    # ========================================================================

    async def _handle_response_status(self, response: aiohttp.ClientResponse) -> None:
        """
        Check HTTP response status and raise appropriate exceptions

        Args:
            response: aiohttp response object

        Raises:
            RateLimitError: If status is 429
            AuthenticationError: If status is 401 or 403
            ServerError: If status is 5xx
            ClientError: If status is 4xx (except 401, 403, 429)
        """
        if response.status == 429:
            try:
                retry_after = float(response.headers.get('Retry-After', 5))
            except ValueError:
                retry_after = 5.0
            raise RateLimitError(self.source_name, retry_after=retry_after)

        elif response.status in (401, 403):
            raise AuthenticationError(self.source_name, status_code=response.status)

        elif response.status >= 500:
            text = await response.text()
            raise ServerError(self.source_name, response.status, text)

        elif response.status >= 400:
            text = await response.text()
            raise ClientError(self.source_name, response.status, text[:200])

    def unavailable(self, error: BaseException) -> SourceUnavailableError:
        """Wrap an exhausted transport/API failure for the orchestrator"""
        reason = str(error) or error.__class__.__name__
        return SourceUnavailableError(self.source_name, reason)

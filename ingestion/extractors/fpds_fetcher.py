"""
FPDS ATOM feed fetcher.

Retrieves feed pages over HTTP with bounded exponential backoff:

- Transient failures (connection errors, timeouts, HTTP 408/429/5xx) are
  retried ``max_retries`` times, sleeping ``backoff_base ** n`` seconds
  before retry ``n`` (2, 4, 8, 16, 32 with the defaults)
- Any other HTTP 4xx is a terminal ``FeedRequestError`` raised at once
- Exhausted retries raise ``NetworkError`` carrying the url and attempt count

An optional ``on_attempt`` callback runs before every attempt so the caller
can persist the URL being fetched as its resumption cursor.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional, Union

import httpx

from core.config import settings
from core.exceptions import FeedRequestError, NetworkError
from core.logging import LoggerLike
import logging

logger = logging.getLogger(__name__)

AttemptCallback = Callable[[str], Awaitable[None]]

RETRYABLE_STATUS_CODES = frozenset({408, 429})


def format_feed_date(day: date) -> str:
    return day.strftime("%Y/%m/%d")


def build_feed_url(
    start: date,
    end: Optional[date] = None,
    offset: int = 0,
    base_url: Optional[str] = None,
    version: Optional[str] = None,
) -> str:
    """
    Feed URL for ``LAST_MOD_DATE:[start,end]``.

    Without ``end`` the range is open-ended (``[start,]``).
    """
    upper = format_feed_date(end) if end else ""
    params = {
        "FEEDNAME": "PUBLIC",
        "VERSION": version or settings.FPDS_FEED_VERSION,
        "q": f"LAST_MOD_DATE:[{format_feed_date(start)},{upper}]",
        "start": offset,
    }
    return str(httpx.URL(base_url or settings.FPDS_FEED_URL, params=params))


@dataclass
class FetchedPage:
    body: bytes
    url: httpx.URL

    def resolve(self, href: str) -> str:
        """Resolve a (possibly relative) link against the page's effective URL."""
        return str(self.url.join(href))


class FeedFetcher:
    """
    Fetch FPDS feed pages with retry and backoff.

    The fetcher owns an ``httpx.AsyncClient`` unless one is injected; use it
    as an async context manager (or call ``aclose``) to release connections.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        timeout: Optional[float] = None,
        logger: Optional[LoggerLike] = None,
    ):
        self.max_retries = settings.FETCH_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_base = backoff_base or settings.FETCH_BACKOFF_BASE
        self.timeout = timeout or settings.FETCH_TIMEOUT_SECONDS
        self.log = logger or logging.getLogger(__name__)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": settings.FPDS_USER_AGENT},
            follow_redirects=True,
        )

    async def __aenter__(self) -> "FeedFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    def backoff_delay(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-based)."""
        return self.backoff_base ** retry

    async def fetch(
        self,
        url: Union[str, httpx.URL],
        on_attempt: Optional[AttemptCallback] = None,
        max_retries: Optional[int] = None,
    ) -> FetchedPage:
        """
        Fetch one feed page.

        Args:
            url: Page URL
            on_attempt: Awaited with the URL before every attempt
            max_retries: Override the configured retry count (probing uses fewer)

        Returns:
            FetchedPage with the raw body and the effective URL

        Raises:
            FeedRequestError: HTTP 4xx other than 408/429
            NetworkError: Transient failures persisted through every retry
        """
        url = str(url)
        retries = self.max_retries if max_retries is None else max_retries
        attempts = retries + 1
        last_error: Optional[str] = None
        last_exception: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            if on_attempt is not None:
                await on_attempt(url)

            try:
                self.log.debug(f"Fetch attempt {attempt}/{attempts}: {url}")
                response = await self._client.get(url)
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_exception = e
                last_error = f"{type(e).__name__}: {e}"
            else:
                status = response.status_code
                if status < 400:
                    return FetchedPage(body=response.content, url=response.url)

                if status >= 500 or status in RETRYABLE_STATUS_CODES:
                    last_exception = None
                    last_error = f"HTTP {status}"
                else:
                    raise FeedRequestError(
                        f"Feed rejected request with HTTP {status}",
                        context={
                            "url": url,
                            "status_code": status,
                            "attempts": attempt,
                            "response_body": response.text[:500],
                        },
                    )

            if attempt < attempts:
                delay = self.backoff_delay(attempt)
                self.log.warning(
                    f"Fetch failed ({last_error}). "
                    f"Retrying in {delay:g} seconds (attempt {attempt}/{attempts})"
                )
                await asyncio.sleep(delay)

        self.log.error(f"Giving up on {url} after {attempts} attempts: {last_error}")
        raise NetworkError(
            f"Feed fetch failed after {attempts} attempts: {last_error}",
            context={"url": url, "attempts": attempts},
            original_exception=last_exception,
        )

"""
FII Screener Tool: Source Fetcher

Retrieves raw documents from the remote source with:
- A randomized polite delay before every attempt
- Retry with exponential backoff + jitter on 429 / 5xx / network errors
- Immediate failure on any other non-2xx status

No business knowledge: callers get text or a FetchError.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

import aiohttp

from fii_screener.config.constants import (
    DETAIL_URL,
    FETCH_BACKOFF_BASE_S,
    FETCH_BACKOFF_JITTER_S,
    FETCH_MAX_ATTEMPTS,
    FETCH_POLITE_DELAY_RANGE_S,
    FETCH_RETRYABLE_STATUS,
    FETCH_TIMEOUT_S,
    LISTING_URL,
    SOURCE_HEADERS,
)
from fii_screener.exceptions import FetchError, TransientStatusError
from fii_screener.schemas.instrument_output import normalize_identifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

@dataclass
class FetchPolicy:
    """Retry/backoff configuration for one fetcher."""

    max_attempts: int = FETCH_MAX_ATTEMPTS
    polite_delay_range_s: tuple[float, float] = FETCH_POLITE_DELAY_RANGE_S
    backoff_base_s: float = FETCH_BACKOFF_BASE_S
    backoff_jitter_s: float = FETCH_BACKOFF_JITTER_S
    timeout_s: float = FETCH_TIMEOUT_S

    def polite_delay(self, rng: random.Random) -> float:
        low, high = self.polite_delay_range_s
        return rng.uniform(low, high)

    def backoff(self, attempt: int, rng: random.Random) -> float:
        """Delay after failed *attempt* (1-indexed): base^(attempt-1) + jitter."""
        return self.backoff_base_s ** (attempt - 1) + rng.uniform(0, self.backoff_jitter_s)


def is_retryable_status(status: int) -> bool:
    return status == FETCH_RETRYABLE_STATUS or status >= 500


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------

class SourceFetcher:
    """
    Async document fetcher.

    Use as an async context manager to own an ``aiohttp.ClientSession``,
    or pass a session in (it is then never closed here).

    Example:
        async with SourceFetcher() as fetcher:
            html = await fetcher.fetch_listing()
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        policy: Optional[FetchPolicy] = None,
        listing_url: str = LISTING_URL,
        detail_url: str = DETAIL_URL,
        headers: Optional[dict[str, str]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self._session = session
        self._owns_session = False
        self.policy = policy or FetchPolicy()
        self.listing_url = listing_url
        self.detail_url = detail_url
        self._headers = dict(SOURCE_HEADERS if headers is None else headers)
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def __aenter__(self) -> "SourceFetcher":
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    # -- resources --------------------------------------------------------

    def detail_url_for(self, identifier: str) -> str:
        return self.detail_url + quote(normalize_identifier(identifier))

    async def fetch_listing(self) -> str:
        return await self.fetch(self.listing_url)

    async def fetch_detail(self, identifier: str) -> str:
        return await self.fetch(self.detail_url_for(identifier))

    # -- core -------------------------------------------------------------

    async def fetch(self, url: str) -> str:
        """
        GET *url* and return the body text.

        Raises:
            FetchError: non-retryable status, or every attempt failed.
                ``cause`` holds the last transient failure.
        """
        if self._session is None:
            raise RuntimeError("SourceFetcher has no session; use 'async with'")

        max_attempts = self.policy.max_attempts
        timeout = aiohttp.ClientTimeout(total=self.policy.timeout_s)
        last: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            await self._sleep(self.policy.polite_delay(self._rng))
            try:
                async with self._session.get(
                    url, headers=self._headers, timeout=timeout,
                ) as resp:
                    if 200 <= resp.status < 300:
                        body = await resp.text(errors="replace")
                        logger.debug(
                            f"[Fetcher] {url} -> {resp.status} "
                            f"({len(body)} chars, attempt {attempt})"
                        )
                        return body
                    if is_retryable_status(resp.status):
                        raise TransientStatusError(url, resp.status)
                    logger.error(f"[Fetcher] {url} -> HTTP {resp.status}; not retrying")
                    raise FetchError(url, attempts=attempt, status=resp.status)
            except (TransientStatusError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
                last = exc
                if attempt == max_attempts:
                    break
                delay = self.policy.backoff(attempt, self._rng)
                logger.warning(
                    f"[Fetcher] attempt {attempt}/{max_attempts} for {url} failed "
                    f"({exc!r}); retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        logger.error(f"[Fetcher] giving up on {url} after {max_attempts} attempts")
        raise FetchError(url, attempts=max_attempts, cause=last) from last

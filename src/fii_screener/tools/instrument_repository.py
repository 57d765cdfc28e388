"""
FII Screener Tool: Instrument Repository

Read API over the source listing, composed from a SourceFetcher, a
CacheStore and the listing/detail parsers:
- list_all: bulk snapshot, cached under "instruments:all"
- get_by_identifier: case-insensitive lookup, enriched with the detail value
- get_detail_value: per-ticker detail, cached under "detail:{ID}"

Unknown tickers are not errors; lookups return None.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional

from fii_screener.config.constants import (
    CACHE_TTL_S,
    DETAIL_CACHE_NAMESPACE,
    DETAIL_MAX_CONCURRENCY,
    INSTRUMENT_CACHE_NAMESPACE,
    SNAPSHOT_CACHE_KEY,
)
from fii_screener.schemas.instrument_output import InstrumentRecord, normalize_identifier
from fii_screener.tools.cache_store import CacheStore, cache_key
from fii_screener.tools.listing_parser import parse_detail_distribution, parse_listing
from fii_screener.tools.source_fetcher import SourceFetcher

logger = logging.getLogger(__name__)


def find_by_identifier(
    records: Iterable[InstrumentRecord], identifier: str,
) -> Optional[InstrumentRecord]:
    """First record whose ticker matches *identifier* case-insensitively."""
    target = normalize_identifier(identifier)
    if not target:
        return None
    return next((r for r in records if r.identifier == target), None)


class InstrumentRepository:
    """
    Cached access to instrument records and detail values.

    Args:
        fetcher: Document source (listing + detail pages).
        cache: Shared store; the repository owns no state of its own.
        listing_parser: html -> records. Defaults to parse_listing.
        detail_parser: html -> distribution or None.
        ttl_s: Lifetime of every entry this repository writes.
        max_concurrency: Default fan-out of get_detail_values.
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        cache: CacheStore,
        listing_parser: Callable[[str], list[InstrumentRecord]] = parse_listing,
        detail_parser: Callable[[str], Optional[float]] = parse_detail_distribution,
        ttl_s: float = CACHE_TTL_S,
        max_concurrency: int = DETAIL_MAX_CONCURRENCY,
    ):
        self._fetcher = fetcher
        self._cache = cache
        self._parse_listing = listing_parser
        self._parse_detail = detail_parser
        self._ttl_s = ttl_s
        self._max_concurrency = max_concurrency

    # -- bulk snapshot ----------------------------------------------------

    async def list_all(self) -> list[InstrumentRecord]:
        """Every listed instrument, in page order."""
        records = await self._cache.get_or_load(
            SNAPSHOT_CACHE_KEY, self._ttl_s, self._load_listing,
        )
        return list(records)

    async def _load_listing(self) -> list[InstrumentRecord]:
        html = await self._fetcher.fetch_listing()
        records = self._parse_listing(html)
        logger.info(f"[Repository] Snapshot refreshed: {len(records)} instruments")
        return records

    # -- single instrument ------------------------------------------------

    async def get_by_identifier(self, identifier: str) -> Optional[InstrumentRecord]:
        """
        Look up one instrument and attach its 12-month distribution.

        Returns None for a blank or unknown ticker. Misses are not cached.
        """
        target = normalize_identifier(identifier)
        if not target:
            return None

        match = find_by_identifier(await self.list_all(), target)
        if match is None:
            logger.debug(f"[Repository] {target} not in snapshot")
            return None

        async def load() -> InstrumentRecord:
            detail = await self.get_detail_value(target)
            return match.model_copy(update={"distribution_12m": detail})

        return await self._cache.get_or_load(
            cache_key(INSTRUMENT_CACHE_NAMESPACE, target), self._ttl_s, load,
        )

    # -- detail values ----------------------------------------------------

    async def get_detail_value(self, identifier: str) -> Optional[float]:
        """Trailing 12-month distribution per unit, or None if not published."""
        target = normalize_identifier(identifier)
        if not target:
            return None

        async def load() -> Optional[float]:
            html = await self._fetcher.fetch_detail(target)
            value = self._parse_detail(html)
            logger.debug(f"[Repository] Detail {target}: {value}")
            return value

        return await self._cache.get_or_load(
            cache_key(DETAIL_CACHE_NAMESPACE, target), self._ttl_s, load,
        )

    async def get_detail_values(
        self,
        identifiers: Iterable[str],
        max_concurrency: Optional[int] = None,
    ) -> list[Optional[float]]:
        """
        Resolve many detail values with at most *max_concurrency* in flight.

        Result order equals input order. The first failure cancels the
        remaining lookups before it propagates.
        """
        semaphore = asyncio.Semaphore(max_concurrency or self._max_concurrency)

        async def one(identifier: str) -> Optional[float]:
            async with semaphore:
                return await self.get_detail_value(identifier)

        tasks = [asyncio.ensure_future(one(i)) for i in identifiers]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

"""
FII Screener Tool: Benchmark Rate Client

Current SELIC rate (% p.a.) from the Central Bank of Brazil SGS API,
series 432. Used only as the yield floor of the dual-criterion filter.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from fii_screener.config.constants import BENCHMARK_CACHE_KEY, BENCHMARK_URL, CACHE_TTL_S
from fii_screener.exceptions import ParseError
from fii_screener.tools.cache_store import CacheStore
from fii_screener.tools.source_fetcher import SourceFetcher

logger = logging.getLogger(__name__)


class SgsObservation(BaseModel):
    """One SGS data point: ``{"data": "16/10/2026", "valor": "10.50"}``."""
    data: str = ""
    valor: str = ""


_PAYLOAD = TypeAdapter(list[SgsObservation])


def parse_benchmark_payload(text: str) -> float:
    """
    Latest observation value. The API uses "." as decimal separator.

    Raises:
        ParseError: payload is not a non-empty observation list, or the
            value is blank/not a number.
    """
    try:
        observations = _PAYLOAD.validate_json(text)
    except PydanticValidationError as exc:
        raise ParseError(f"Unexpected benchmark payload: {exc.error_count()} error(s)") from exc

    if not observations or not observations[0].valor.strip():
        raise ParseError("Benchmark rate missing from payload")

    raw = observations[0].valor.strip()
    try:
        return float(raw)
    except ValueError as exc:
        raise ParseError(f"Benchmark rate is not a number: '{raw}'") from exc


class BenchmarkClient:
    """Cached ``current_rate()`` lookup."""

    def __init__(
        self,
        fetcher: SourceFetcher,
        cache: CacheStore,
        url: str = BENCHMARK_URL,
        ttl_s: float = CACHE_TTL_S,
    ):
        self._fetcher = fetcher
        self._cache = cache
        self._url = url
        self._ttl_s = ttl_s

    async def current_rate(self) -> float:
        return await self._cache.get_or_load(BENCHMARK_CACHE_KEY, self._ttl_s, self._load)

    async def _load(self) -> float:
        rate = parse_benchmark_payload(await self._fetcher.fetch(self._url))
        logger.info(f"[Benchmark] SELIC = {rate:.2f}% p.a.")
        return rate

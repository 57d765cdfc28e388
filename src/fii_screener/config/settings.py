"""
Runtime settings for the FII Screener.

Defaults come from config/constants.py; each value can be overridden with
an environment variable (a .env file is loaded by run_screener.py).
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from fii_screener.config.constants import (
    BENCHMARK_URL,
    CACHE_TTL_S,
    DETAIL_MAX_CONCURRENCY,
    DETAIL_URL,
    FETCH_TIMEOUT_S,
    LISTING_URL,
)
from fii_screener.exceptions import EnvConfigError


class ScreenerSettings(BaseModel):
    """Resolved runtime configuration."""

    listing_url: str = LISTING_URL
    detail_url: str = DETAIL_URL
    benchmark_url: str = BENCHMARK_URL
    cache_ttl_s: float = Field(CACHE_TTL_S, gt=0)
    max_concurrency: int = Field(DETAIL_MAX_CONCURRENCY, ge=1)
    fetch_timeout_s: float = Field(FETCH_TIMEOUT_S, gt=0)
    log_level: str = "INFO"


def _positive(name: str, raw: str, cast):
    try:
        value = cast(raw)
    except ValueError as exc:
        raise EnvConfigError(f"{name} must be a number, got '{raw}'") from exc
    if value <= 0:
        raise EnvConfigError(f"{name} must be positive, got '{raw}'")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> ScreenerSettings:
    """
    Build settings from environment variables.

    Recognized: FII_LISTING_URL, FII_DETAIL_URL, FII_BENCHMARK_URL,
    FII_CACHE_TTL_HOURS, FII_MAX_CONCURRENCY, FII_FETCH_TIMEOUT_S,
    FII_LOG_LEVEL.
    """
    env = os.environ if environ is None else environ
    overrides: dict = {}

    for var, field in (
        ("FII_LISTING_URL", "listing_url"),
        ("FII_DETAIL_URL", "detail_url"),
        ("FII_BENCHMARK_URL", "benchmark_url"),
    ):
        if env.get(var):
            overrides[field] = env[var]

    if env.get("FII_CACHE_TTL_HOURS"):
        hours = _positive("FII_CACHE_TTL_HOURS", env["FII_CACHE_TTL_HOURS"], float)
        overrides["cache_ttl_s"] = hours * 3600
    if env.get("FII_MAX_CONCURRENCY"):
        overrides["max_concurrency"] = _positive(
            "FII_MAX_CONCURRENCY", env["FII_MAX_CONCURRENCY"], int
        )
    if env.get("FII_FETCH_TIMEOUT_S"):
        overrides["fetch_timeout_s"] = _positive(
            "FII_FETCH_TIMEOUT_S", env["FII_FETCH_TIMEOUT_S"], float
        )
    if env.get("FII_LOG_LEVEL"):
        overrides["log_level"] = env["FII_LOG_LEVEL"].upper()

    return ScreenerSettings(**overrides)

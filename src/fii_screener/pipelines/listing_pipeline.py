"""
Listing Pipeline — read-side entry points
FII Screener

Composes the repository, ranker and profile classifier into the views
served to callers: the basic listing, single-instrument lookup, the
dual-criterion filtered listing, the anchor screen and score rankings.

Detail values are resolved with bounded concurrency; result order is
always decided by the ranking comparators, never by fetch timing.
"""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Optional, Sequence

from fii_screener.config.constants import DEFAULT_TOP
from fii_screener.schemas.instrument_output import (
    AssetClass,
    InstrumentRecord,
    InstrumentView,
    Profile,
    ScoredInstrument,
)
from fii_screener.tools.benchmark_client import BenchmarkClient
from fii_screener.tools.income_metrics import compute_income_metrics
from fii_screener.tools.instrument_ranker import (
    filter_and_rank,
    rank_by_class,
    rank_controlled_risk,
    rank_high_risk,
    rank_mixed,
    select_anchor_candidates,
)
from fii_screener.tools.instrument_repository import InstrumentRepository
from fii_screener.tools.profile_classifier import explain_instrument

logger = logging.getLogger(__name__)


class RankingKind(str, Enum):
    BRICK = "brick"
    PAPER = "paper"
    MIXED = "mixed"
    CONTROLLED_RISK = "controlled-risk"
    HIGH_RISK = "high-risk"


# ---------------------------------------------------------------------------
# View building
# ---------------------------------------------------------------------------

def build_view(
    record: InstrumentRecord,
    distribution_12m: Optional[float],
    forced_profile: Optional[Profile] = None,
    today: Optional[date] = None,
) -> InstrumentView:
    """Record + detail value -> InstrumentView with income, profile, reasons."""
    distribution = distribution_12m or 0.0
    profile, reasons = explain_instrument(record, forced_profile)
    return InstrumentView(
        instrument=record.model_copy(update={"distribution_12m": distribution_12m}),
        distribution_12m=distribution,
        income=compute_income_metrics(record.price, distribution, today),
        profile=profile,
        reasons=reasons,
    )


async def build_views(
    repository: InstrumentRepository,
    records: Sequence[InstrumentRecord],
    max_concurrency: Optional[int] = None,
    today: Optional[date] = None,
) -> list[InstrumentView]:
    details = await repository.get_detail_values(
        [r.identifier for r in records], max_concurrency,
    )
    return [build_view(r, d, today=today) for r, d in zip(records, details)]


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

async def run_listing_pipeline(
    repository: InstrumentRepository,
    limit: int = DEFAULT_TOP,
    max_concurrency: Optional[int] = None,
    today: Optional[date] = None,
) -> list[InstrumentView]:
    """First *limit* instruments by ticker, enriched with detail values."""
    limit = limit if limit > 0 else DEFAULT_TOP
    records = sorted(await repository.list_all(), key=lambda r: r.identifier)[:limit]
    views = await build_views(repository, records, max_concurrency, today)
    logger.info(f"[Listing] {len(views)} instruments listed")
    return views


async def run_instrument_pipeline(
    repository: InstrumentRepository,
    identifier: str,
    today: Optional[date] = None,
) -> Optional[InstrumentView]:
    """Single instrument view, or None for an unknown ticker."""
    record = await repository.get_by_identifier(identifier)
    if record is None:
        logger.info(f"[Listing] '{identifier}' not found")
        return None
    return build_view(record, record.distribution_12m, today=today)


async def run_filtered_pipeline(
    repository: InstrumentRepository,
    benchmark: BenchmarkClient,
    limit: int = DEFAULT_TOP,
    max_concurrency: Optional[int] = None,
    today: Optional[date] = None,
) -> list[InstrumentView]:
    """Dual-criterion ranking against the current benchmark rate."""
    rate = await benchmark.current_rate()
    ranked = filter_and_rank(await repository.list_all(), rate, limit)
    views = await build_views(
        repository, [d.instrument for d in ranked], max_concurrency, today,
    )
    result = [
        view.model_copy(update={
            "rank_valuation": d.rank_valuation,
            "rank_yield": d.rank_yield,
            "combined_rank": d.combined_rank,
        })
        for view, d in zip(views, ranked)
    ]
    logger.info(f"[Listing] Filtered listing: {len(result)} instruments (benchmark {rate:.2f}%)")
    return result


async def run_anchor_pipeline(repository: InstrumentRepository) -> list[InstrumentRecord]:
    candidates = select_anchor_candidates(await repository.list_all())
    logger.info(f"[Listing] Anchor screen: {len(candidates)} candidates")
    return candidates


async def run_ranking_pipeline(
    repository: InstrumentRepository,
    kind: RankingKind,
    limit: int = DEFAULT_TOP,
) -> list[ScoredInstrument]:
    records = await repository.list_all()
    kind = RankingKind(kind)
    if kind == RankingKind.BRICK:
        ranked = rank_by_class(records, AssetClass.BRICK, limit)
    elif kind == RankingKind.PAPER:
        ranked = rank_by_class(records, AssetClass.PAPER, limit)
    elif kind == RankingKind.MIXED:
        ranked = rank_mixed(records, limit)
    elif kind == RankingKind.CONTROLLED_RISK:
        ranked = rank_controlled_risk(records, limit)
    else:
        ranked = rank_high_risk(records, limit)
    logger.info(f"[Listing] Ranking '{kind.value}': {len(ranked)} instruments")
    return ranked

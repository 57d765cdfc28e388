"""
Portfolio Pipeline — allocation entry points
FII Screener

Four ways to build a weighted portfolio, all ending in the same
distribute -> normalize machinery so weights total exactly 100.00:

- Suggested: fixed 60/35/5 BRICK/PAPER/RISK with 6/5/2 assets
- Parametrized: caller weights + counts per type bucket
- Percentage: caller weights + total, counts apportioned
- Profile: four profile weights + total, each instrument picked once,
  enriched with detail values and explained with its bucket's profile

Inputs are validated before any fetch; invalid input never yields a
partial result.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from fii_screener.config.constants import (
    PORTFOLIO_BASE_PER_ASSET,
    PORTFOLIO_MIN_LIQUIDITY,
    PORTFOLIO_RANKING_BASE,
    PROFILE_PORTFOLIO_BASE_MIN,
    PROFILE_PORTFOLIO_BASE_PER_ASSET,
    SUGGESTED_COUNTS,
    SUGGESTED_WEIGHTS,
)
from fii_screener.schemas.instrument_output import (
    AssetClass,
    InstrumentRecord,
    Profile,
    ScoredInstrument,
)
from fii_screener.schemas.portfolio_output import (
    TYPE_BUCKETS,
    AllocationRequest,
    PercentageAllocationRequest,
    PortfolioLineItem,
    PortfolioOutput,
    ProfileAllocationRequest,
)
from fii_screener.tools.allocator import (
    apportion,
    distribute_weight,
    normalize_to_hundred,
    pick_unique,
    validate_counts,
    validate_total,
    validate_weights,
)
from fii_screener.tools.instrument_ranker import (
    rank_by_class,
    rank_controlled_risk,
    rank_mixed,
)
from fii_screener.tools.instrument_repository import InstrumentRepository
from fii_screener.tools.profile_classifier import classify_profile, explain_instrument

logger = logging.getLogger(__name__)

PROFILE_ORDER: tuple[Profile, ...] = (
    Profile.ANCHOR,
    Profile.POTENTIAL,
    Profile.CONTROLLED_RISK,
    Profile.HIGH_RISK,
)


# ---------------------------------------------------------------------------
# Type-bucket portfolios
# ---------------------------------------------------------------------------

def build_type_portfolio(
    records: Sequence[InstrumentRecord],
    weights: Sequence[float],
    counts: Sequence[int],
    ranking_base: int,
) -> PortfolioOutput:
    """
    Pick the top BRICK, PAPER and controlled-risk instruments and weight them.

    Class rankings are cut below the portfolio liquidity floor. The RISK
    bucket is drawn independently, so it may repeat a class pick.
    """
    brick_weight, paper_weight, risk_weight = weights
    brick_count, paper_count, risk_count = counts

    brick = [
        s for s in rank_by_class(records, AssetClass.BRICK, ranking_base)
        if s.liquidity >= PORTFOLIO_MIN_LIQUIDITY
    ][:brick_count]
    paper = [
        s for s in rank_by_class(records, AssetClass.PAPER, ranking_base)
        if s.liquidity >= PORTFOLIO_MIN_LIQUIDITY
    ][:paper_count]
    risk = rank_controlled_risk(records, ranking_base)[:risk_count]

    items: list[PortfolioLineItem] = []
    items.extend(distribute_weight(brick, "BRICK", brick_weight))
    items.extend(distribute_weight(paper, "PAPER", paper_weight))
    items.extend(distribute_weight(risk, "RISK", risk_weight))
    items = normalize_to_hundred(items)

    logger.info(
        f"[Portfolio] {len(brick)} BRICK / {len(paper)} PAPER / {len(risk)} RISK "
        f"(requested {brick_count}/{paper_count}/{risk_count})"
    )
    return PortfolioOutput(
        bucket_weights=dict(zip(TYPE_BUCKETS, weights)),
        total_assets=len(items),
        items=items,
    )


async def run_suggested_portfolio(repository: InstrumentRepository) -> PortfolioOutput:
    """Fixed policy: 60/35/5 with 6 BRICK, 5 PAPER and 2 RISK assets."""
    logger.info("[Portfolio] Building suggested portfolio ...")
    weights = [SUGGESTED_WEIGHTS[b] for b in TYPE_BUCKETS]
    counts = [SUGGESTED_COUNTS[b] for b in TYPE_BUCKETS]
    return build_type_portfolio(
        await repository.list_all(), weights, counts, PORTFOLIO_RANKING_BASE,
    )


async def run_parametrized_portfolio(
    repository: InstrumentRepository,
    request: AllocationRequest,
) -> PortfolioOutput:
    """
    Caller weights and counts per type bucket.

    Raises:
        AllocationValidationError: negative or non-100 weights, negative
            counts, or zero assets requested.
    """
    validate_weights(request.weights)
    validate_counts(request.counts)

    base = max(PORTFOLIO_RANKING_BASE, sum(request.counts) * PORTFOLIO_BASE_PER_ASSET)
    logger.info(f"[Portfolio] Parametrized portfolio: counts={request.counts}, base={base}")
    return build_type_portfolio(
        await repository.list_all(), request.weights, request.counts, base,
    )


async def run_percentage_portfolio(
    repository: InstrumentRepository,
    request: PercentageAllocationRequest,
) -> PortfolioOutput:
    """Caller weights + total; counts come from largest-remainder apportionment."""
    validate_total(request.total_assets)
    validate_weights(request.weights)

    brick, paper, risk = apportion(request.total_assets, request.weights)
    logger.info(
        f"[Portfolio] Apportioned {request.total_assets} assets -> {brick}/{paper}/{risk}"
    )
    return await run_parametrized_portfolio(
        repository,
        AllocationRequest(
            brick_weight=request.brick_weight,
            paper_weight=request.paper_weight,
            risk_weight=request.risk_weight,
            brick_count=brick,
            paper_count=paper,
            risk_count=risk,
        ),
    )


# ---------------------------------------------------------------------------
# Profile portfolio
# ---------------------------------------------------------------------------

def select_by_profile(
    ranked: Sequence[ScoredInstrument],
    counts: Sequence[int],
) -> dict[Profile, list[ScoredInstrument]]:
    """
    Fill each profile bucket from the mixed ranking, in PROFILE_ORDER.

    An instrument is picked at most once, by the first bucket that takes it.
    """
    pools: dict[Profile, list[ScoredInstrument]] = {p: [] for p in PROFILE_ORDER}
    for scored in ranked:
        pools[classify_profile(scored)].append(scored)

    used: set[str] = set()
    return {
        profile: pick_unique(pools[profile], count, used)
        for profile, count in zip(PROFILE_ORDER, counts)
    }


async def run_profile_portfolio(
    repository: InstrumentRepository,
    request: ProfileAllocationRequest,
    max_concurrency: Optional[int] = None,
) -> PortfolioOutput:
    """
    Four profile weights + total -> weighted, explained portfolio.

    Items are ordered ANCHOR -> POTENTIAL -> CONTROLLED_RISK -> HIGH_RISK
    and carry their 12-month distribution.
    """
    validate_total(request.total_assets)
    validate_weights(request.weights)

    counts = apportion(request.total_assets, request.weights)
    base = max(
        PROFILE_PORTFOLIO_BASE_MIN,
        request.total_assets * PROFILE_PORTFOLIO_BASE_PER_ASSET,
    )
    logger.info(
        f"[Portfolio] Profile portfolio: {request.total_assets} assets -> "
        f"{dict(zip((p.value for p in PROFILE_ORDER), counts))}, base={base}"
    )

    ranked = rank_mixed(await repository.list_all(), base)
    selected = select_by_profile(ranked, counts)

    picks = [s for p in PROFILE_ORDER for s in selected[p]]
    details = await repository.get_detail_values(
        [s.identifier for s in picks], max_concurrency,
    )
    detail_by_id = {s.identifier: d for s, d in zip(picks, details)}

    items: list[PortfolioLineItem] = []
    for profile, weight in zip(PROFILE_ORDER, request.weights):
        bucket = selected[profile]
        for scored, item in zip(bucket, distribute_weight(bucket, profile.value, weight)):
            _, reasons = explain_instrument(scored.instrument, forced_profile=profile)
            items.append(item.model_copy(update={
                "reasons": reasons,
                "distribution_12m": detail_by_id.get(item.identifier),
            }))
    items = normalize_to_hundred(items)

    return PortfolioOutput(
        bucket_weights={p.value: w for p, w in zip(PROFILE_ORDER, request.weights)},
        total_assets=len(items),
        items=items,
    )

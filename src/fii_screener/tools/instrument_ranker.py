"""
FII Screener Tool: Instrument Ranker

Two independent ranking dimensions over the instrument snapshot:
- Score ranking: per class or mixed, ordered by score desc then
  liquidity desc; excluded (score 0) instruments never appear
- Dual-criterion ranking: band filter, then the average of a P/VP rank
  (ascending) and a dividend-yield rank (descending)

Plus the profile slices (controlled/high risk) and the rule-based
anchor screen. Pure functions over a list of records.
"""

from __future__ import annotations

import logging
from typing import Iterable

from fii_screener.config.constants import (
    ANCHOR_SCREEN_MAX_VACANCY,
    ANCHOR_SCREEN_MIN_LIQUIDITY,
    ANCHOR_SCREEN_MIN_MARKET_VALUE,
    ANCHOR_SCREEN_MIN_VALUATION,
    DEFAULT_TOP,
    FILTER_MAX_VACANCY,
    FILTER_MIN_LIQUIDITY,
    FILTER_VALUATION_RANGE,
    FILTER_YIELD_MAX,
    FILTER_YIELD_SPREAD_BELOW_BENCHMARK,
    MIXED_PER_CLASS_MIN,
    PROFILE_BASE_MIN,
    PROFILE_BASE_MULTIPLIER,
)
from fii_screener.schemas.instrument_output import (
    AssetClass,
    DualRankedInstrument,
    FilterBand,
    InstrumentRecord,
    Profile,
    ScoredInstrument,
)
from fii_screener.tools.asset_classifier import detect_asset_class, is_shopping
from fii_screener.tools.instrument_scorer import score_brick, score_paper
from fii_screener.tools.profile_classifier import classify_profile, is_controlled_risk

logger = logging.getLogger(__name__)

RANKED_CLASSES: tuple[AssetClass, ...] = (AssetClass.BRICK, AssetClass.PAPER)


def _limit(limit: int) -> int:
    return limit if limit > 0 else DEFAULT_TOP


def _score_order(items: Iterable[ScoredInstrument]) -> list[ScoredInstrument]:
    """Score desc, then liquidity desc. Stable for full ties."""
    return sorted(items, key=lambda s: (-s.score, -s.liquidity))


# ---------------------------------------------------------------------------
# Score ranking
# ---------------------------------------------------------------------------

def rank_by_class(
    records: Iterable[InstrumentRecord],
    asset_class: AssetClass,
    limit: int = DEFAULT_TOP,
) -> list[ScoredInstrument]:
    """
    Top *limit* scored instruments of one class.

    HYBRID has no rule set and always yields an empty ranking.
    """
    if asset_class == AssetClass.BRICK:
        scorer = score_brick
    elif asset_class == AssetClass.PAPER:
        scorer = score_paper
    else:
        return []

    scored = [
        scorer(r) for r in records if detect_asset_class(r.segment) == asset_class
    ]
    ranked = _score_order(s for s in scored if s.score > 0)
    return ranked[:_limit(limit)]


def rank_mixed(
    records: Iterable[InstrumentRecord],
    limit: int = DEFAULT_TOP,
) -> list[ScoredInstrument]:
    """Union of both class rankings, each taken wide before the merge."""
    limit = _limit(limit)
    records = list(records)
    per_class = max(MIXED_PER_CLASS_MIN, limit)

    merged: list[ScoredInstrument] = []
    for asset_class in RANKED_CLASSES:
        merged.extend(rank_by_class(records, asset_class, per_class))
    return _score_order(merged)[:limit]


def profile_base_size(limit: int) -> int:
    return max(PROFILE_BASE_MIN, limit * PROFILE_BASE_MULTIPLIER)


def rank_controlled_risk(
    records: Iterable[InstrumentRecord],
    limit: int = DEFAULT_TOP,
) -> list[ScoredInstrument]:
    """Mixed ranking restricted to the controlled-risk window."""
    limit = _limit(limit)
    base = rank_mixed(records, profile_base_size(limit))
    return _score_order(s for s in base if is_controlled_risk(s))[:limit]


def rank_high_risk(
    records: Iterable[InstrumentRecord],
    limit: int = DEFAULT_TOP,
) -> list[ScoredInstrument]:
    """Mixed ranking restricted to the HIGH_RISK profile."""
    limit = _limit(limit)
    base = rank_mixed(records, profile_base_size(limit))
    return _score_order(
        s for s in base if classify_profile(s) == Profile.HIGH_RISK
    )[:limit]


# ---------------------------------------------------------------------------
# Anchor screen
# ---------------------------------------------------------------------------

def select_anchor_candidates(records: Iterable[InstrumentRecord]) -> list[InstrumentRecord]:
    """Large, liquid, fairly priced, well-occupied non-mall funds, by ticker."""
    selected = [
        r for r in records
        if r.liquidity >= ANCHOR_SCREEN_MIN_LIQUIDITY
        and r.market_value >= ANCHOR_SCREEN_MIN_MARKET_VALUE
        and r.price_to_book >= ANCHOR_SCREEN_MIN_VALUATION
        and r.vacancy <= ANCHOR_SCREEN_MAX_VACANCY
        and not is_shopping(r.segment)
    ]
    return sorted(selected, key=lambda r: r.identifier)


# ---------------------------------------------------------------------------
# Dual-criterion ranking
# ---------------------------------------------------------------------------

def build_filter_band(benchmark_rate: float) -> FilterBand:
    """Yield floor tracks the benchmark rate; every other bound is fixed."""
    valuation_min, valuation_max = FILTER_VALUATION_RANGE
    return FilterBand(
        benchmark_rate=benchmark_rate,
        yield_min=round(benchmark_rate - FILTER_YIELD_SPREAD_BELOW_BENCHMARK, 2),
        yield_max=FILTER_YIELD_MAX,
        valuation_min=valuation_min,
        valuation_max=valuation_max,
        liquidity_min=FILTER_MIN_LIQUIDITY,
        vacancy_max=FILTER_MAX_VACANCY,
    )


def filter_and_rank(
    records: Iterable[InstrumentRecord],
    benchmark_rate: float,
    limit: int = DEFAULT_TOP,
) -> list[DualRankedInstrument]:
    """
    Band-filter the full snapshot, then rank by valuation and yield.

    rank_valuation: 1 = lowest P/VP. rank_yield: 1 = highest yield. Both
    sorts are stable over snapshot order. Final order: combined rank asc,
    then rank_valuation asc, then rank_yield asc.
    """
    band = build_filter_band(benchmark_rate)
    candidates = [r for r in records if band.accepts(r)]
    if not candidates:
        logger.info(f"[Ranker] No instrument inside band (yield ≥ {band.yield_min})")
        return []

    by_valuation = sorted(candidates, key=lambda r: r.price_to_book)
    by_yield = sorted(candidates, key=lambda r: -r.dividend_yield)
    # Keyed by object so duplicated tickers still get distinct ranks.
    rank_valuation = {id(r): i for i, r in enumerate(by_valuation, start=1)}
    rank_yield = {id(r): i for i, r in enumerate(by_yield, start=1)}

    ranked = [
        DualRankedInstrument(
            instrument=r,
            rank_valuation=rank_valuation[id(r)],
            rank_yield=rank_yield[id(r)],
            combined_rank=(rank_valuation[id(r)] + rank_yield[id(r)]) / 2,
        )
        for r in candidates
    ]
    ranked.sort(key=lambda d: (d.combined_rank, d.rank_valuation, d.rank_yield))

    logger.debug(
        f"[Ranker] Dual ranking: {len(candidates)} in band, returning {min(len(ranked), _limit(limit))}"
    )
    return ranked[:_limit(limit)]

"""
FII Screener Tool: Allocator

Pure functions for turning percentage weights into portfolios:
- apportion: integer counts per bucket via floor + largest remainder
- distribute_weight: equal split of a bucket weight, capped per asset
- normalize_to_hundred: absorb rounding drift into the top-scored item
- validate_*: caller-input checks raising AllocationValidationError

No I/O. The portfolio pipeline selects instruments and calls these.
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Iterable, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from fii_screener.config.constants import MAX_WEIGHT_PER_ASSET, WEIGHT_TOTAL
from fii_screener.exceptions import AllocationValidationError
from fii_screener.schemas.instrument_output import ScoredInstrument
from fii_screener.schemas.portfolio_output import PortfolioLineItem

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_weights(weights: Sequence[float]) -> None:
    """Non-negative and summing to exactly 100 at two decimals."""
    if any(w < 0 for w in weights):
        raise AllocationValidationError("Weights cannot be negative.")
    total = round(sum(weights), 2)
    if total != WEIGHT_TOTAL:
        raise AllocationValidationError(f"Weights must sum to 100. Current: {total}")


def validate_counts(counts: Sequence[int]) -> None:
    if any(c < 0 for c in counts):
        raise AllocationValidationError("Counts cannot be negative.")
    if sum(counts) <= 0:
        raise AllocationValidationError("At least one asset is required.")


def validate_total(total: int) -> None:
    if total <= 0:
        raise AllocationValidationError("Total assets must be greater than zero.")


def parse_request(model: Type[RequestT], data: dict) -> RequestT:
    """Build a request model, surfacing type errors as AllocationValidationError."""
    try:
        return model(**data)
    except PydanticValidationError as exc:
        raise AllocationValidationError(
            f"Invalid {model.__name__}: {exc.errors()[0]['msg']}"
        ) from exc


# ---------------------------------------------------------------------------
# Apportionment
# ---------------------------------------------------------------------------

def apportion(total: int, weights: Sequence[float]) -> list[int]:
    """
    Split *total* units across buckets proportionally to *weights* (%).

    Weights are normalised to their own sum, so a set that only rounds
    to 100 still splits exactly *total* units. Each bucket first gets
    floor(weight * total / sum); the shortfall goes one unit at a time to
    the largest fractional remainders, ties in declaration order. Decimal
    arithmetic keeps remainders exact.
    """
    if total < 0:
        raise AllocationValidationError("Total assets cannot be negative.")
    if not weights:
        return []

    amounts = [Decimal(str(w)) for w in weights]
    weight_sum = sum(amounts) or Decimal(100)
    exact = [a * total / weight_sum for a in amounts]
    counts = [math.floor(e) for e in exact]
    remainders = [e - c for e, c in zip(exact, counts)]

    # sorted() is stable, so equal remainders keep declaration order.
    order = sorted(range(len(weights)), key=lambda i: -remainders[i])
    shortfall = total - sum(counts)
    i = 0
    while shortfall > 0:
        counts[order[i % len(order)]] += 1
        shortfall -= 1
        i += 1
    return counts


# ---------------------------------------------------------------------------
# Weighting
# ---------------------------------------------------------------------------

def line_item(
    scored: ScoredInstrument,
    bucket: str,
    weight_pct: float,
    reasons: Optional[list[str]] = None,
    distribution_12m: Optional[float] = None,
) -> PortfolioLineItem:
    r = scored.instrument
    return PortfolioLineItem(
        identifier=r.identifier,
        bucket=bucket,
        score=scored.score,
        risk_tier=scored.risk_tier,
        weight_pct=weight_pct,
        price=r.price,
        dividend_yield=r.dividend_yield,
        price_to_book=r.price_to_book,
        liquidity=r.liquidity,
        market_value=r.market_value,
        segment=r.segment,
        reasons=list(scored.reasons if reasons is None else reasons),
        distribution_12m=distribution_12m,
    )


def distribute_weight(
    selected: Sequence[ScoredInstrument],
    bucket: str,
    bucket_weight: float,
    cap: float = MAX_WEIGHT_PER_ASSET,
) -> list[PortfolioLineItem]:
    """Every selected instrument gets min(round(bucket_weight / n, 2), cap)."""
    if not selected:
        return []
    weight = min(round(bucket_weight / len(selected), 2), cap)
    return [line_item(s, bucket, weight) for s in selected]


def normalize_to_hundred(items: list[PortfolioLineItem]) -> list[PortfolioLineItem]:
    """
    Make weights total exactly 100.00.

    The whole deviation goes to the first item with the highest score.
    Returns a new list; the input is not modified.
    """
    if not items:
        return []
    diff = round(WEIGHT_TOTAL - sum(i.weight_pct for i in items), 2)
    if diff == 0:
        return list(items)

    best_score = max(i.score for i in items)
    idx = next(n for n, i in enumerate(items) if i.score == best_score)
    adjusted = list(items)
    adjusted[idx] = items[idx].model_copy(
        update={"weight_pct": round(items[idx].weight_pct + diff, 2)}
    )
    logger.debug(
        f"[Allocator] Normalized: {diff:+.2f} applied to {adjusted[idx].identifier}"
    )
    return adjusted


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def pick_unique(
    source: Iterable[ScoredInstrument],
    count: int,
    used: set[str],
) -> list[ScoredInstrument]:
    """Take up to *count* instruments not already in *used*; marks them used."""
    picked: list[ScoredInstrument] = []
    for scored in source:
        if len(picked) >= count:
            break
        if scored.identifier in used:
            continue
        used.add(scored.identifier)
        picked.append(scored)
    return picked

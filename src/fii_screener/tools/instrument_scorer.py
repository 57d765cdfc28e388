"""
FII Screener Tool: Instrument Scorer

Explainable 0-10 score per instrument, one rule set per asset class:
- Pre-filter: below the class minimums -> score 0, tier N/A, one reason
- Otherwise a weighted sum of 0-10 step sub-scores, a small class
  adjustment, clamped to [0, 10] and rounded to 2 decimals
- Reasons flag notable risks whether or not they moved the score

Pure functions: same record -> same score, tier and reasons.
"""

from __future__ import annotations

import logging

from fii_screener.config.constants import (
    BRICK_MAX_VACANCY,
    BRICK_MIN_LIQUIDITY,
    BRICK_MIN_YIELD,
    BRICK_REASON_LIQUIDITY,
    BRICK_REASON_MARKET_VALUE,
    BRICK_REASON_VACANCY,
    BRICK_SEGMENT_BONUS,
    BRICK_WEIGHTS,
    PAPER_MIN_LIQUIDITY,
    PAPER_MIN_YIELD,
    PAPER_REASON_HIGH_YIELD,
    PAPER_REASON_LIQUIDITY,
    PAPER_VACANCY_PENALTY,
    PAPER_VACANCY_PENALTY_THRESHOLD,
    PAPER_WEIGHTS,
    RISK_CONSERVATIVE_MIN,
    RISK_MODERATE_MIN,
    SCORE_MAX,
    SCORE_MIN,
    STRETCHED_VALUATION,
)
from fii_screener.schemas.instrument_output import (
    AssetClass,
    InstrumentRecord,
    RiskTier,
    ScoredInstrument,
)
from fii_screener.tools.asset_classifier import detect_asset_class
from fii_screener.tools.listing_parser import fold_label

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reason texts
# ---------------------------------------------------------------------------

REASON_STRETCHED_VALUATION = "Stretched P/VP."
REASON_LOW_LIQUIDITY = "Moderate/low liquidity."
REASON_HIGH_VACANCY = f"Vacancy above {BRICK_REASON_VACANCY:.0f}%."
REASON_SMALL_MARKET_VALUE = "Smaller market value (more volatile)."
REASON_HIGH_YIELD = "Very high dividend yield (may signal risk)."


# ---------------------------------------------------------------------------
# Sub-scores (0-10 step functions)
# ---------------------------------------------------------------------------

def vacancy_score_brick(vacancy: float) -> float:
    if vacancy <= 5:
        return 10.0
    if vacancy <= 10:
        return 8.0
    if vacancy <= 15:
        return 6.0
    return 0.0


def liquidity_score(liquidity: float) -> float:
    if liquidity >= 2_000_000:
        return 10.0
    if liquidity >= 1_000_000:
        return 8.0
    if liquidity >= 500_000:
        return 6.0
    return 0.0


def market_value_score(market_value: float) -> float:
    if market_value >= 2_000_000_000:
        return 10.0
    if market_value >= 1_000_000_000:
        return 8.0
    if market_value >= 500_000_000:
        return 6.0
    return 4.0


def yield_score_brick(dy: float) -> float:
    if 8 <= dy <= 11:
        return 10.0
    if 7 <= dy < 8:
        return 8.0
    if 11 < dy <= 13:
        return 7.0
    if 6 <= dy < 7:
        return 6.0
    return 4.0


def yield_score_paper(dy: float) -> float:
    if 9 <= dy <= 13.5:
        return 10.0
    if 8 <= dy < 9:
        return 8.0
    if 13.5 < dy <= 16:
        return 7.0
    return 4.0


def valuation_score(pvp: float) -> float:
    """Best near book value (0.95-1.05); decays symmetrically either side."""
    if 0.95 <= pvp <= 1.05:
        return 10.0
    if 0.90 <= pvp < 0.95 or 1.05 < pvp <= 1.10:
        return 8.0
    if 0.85 <= pvp < 0.90 or 1.10 < pvp <= 1.20:
        return 6.0
    return 4.0


def property_count_score(count: int) -> float:
    if count >= 10:
        return 10.0
    if count >= 5:
        return 8.0
    if count >= 3:
        return 6.0
    return 4.0


def segment_bonus_brick(segment: str) -> float:
    """First matching keyword group wins; unmatched segments get 0."""
    label = fold_label(segment)
    for keywords, bonus in BRICK_SEGMENT_BONUS:
        if any(k in label for k in keywords):
            return bonus
    return 0.0


# ---------------------------------------------------------------------------
# Risk tier
# ---------------------------------------------------------------------------

def classify_risk(score: float) -> RiskTier:
    """≥8.0 conservative, ≥6.5 moderate, else aggressive."""
    if score >= RISK_CONSERVATIVE_MIN:
        return RiskTier.CONSERVATIVE
    if score >= RISK_MODERATE_MIN:
        return RiskTier.MODERATE
    return RiskTier.AGGRESSIVE


def _finalize(raw: float) -> float:
    return round(max(SCORE_MIN, min(SCORE_MAX, raw)), 2)


def _excluded(record: InstrumentRecord, asset_class: AssetClass, reason: str) -> ScoredInstrument:
    return ScoredInstrument(
        instrument=record,
        asset_class=asset_class,
        score=0.0,
        risk_tier=RiskTier.NOT_RATED,
        reasons=[reason],
    )


# ---------------------------------------------------------------------------
# Class rule sets
# ---------------------------------------------------------------------------

def brick_exclusion_reason(record: InstrumentRecord) -> str | None:
    if record.liquidity < BRICK_MIN_LIQUIDITY:
        return f"Liquidity < {BRICK_MIN_LIQUIDITY // 1000}k (excluded from ranking)."
    if record.dividend_yield < BRICK_MIN_YIELD:
        return f"Dividend yield < {BRICK_MIN_YIELD:.0f}% (excluded from ranking)."
    if record.vacancy > BRICK_MAX_VACANCY:
        return f"Vacancy > {BRICK_MAX_VACANCY:.0f}% (excluded from ranking)."
    return None


def score_brick(record: InstrumentRecord) -> ScoredInstrument:
    """Physical-property rule set."""
    excluded = brick_exclusion_reason(record)
    if excluded:
        return _excluded(record, AssetClass.BRICK, excluded)

    w = BRICK_WEIGHTS
    raw = (
        vacancy_score_brick(record.vacancy) * w["vacancy"]
        + liquidity_score(record.liquidity) * w["liquidity"]
        + market_value_score(record.market_value) * w["market_value"]
        + yield_score_brick(record.dividend_yield) * w["yield"]
        + valuation_score(record.price_to_book) * w["valuation"]
        + property_count_score(record.property_count) * w["properties"]
    )
    raw += segment_bonus_brick(record.segment)
    # Sub-scores are integers and weights are multiples of 0.05, so the
    # exact value has 2 decimals; tier the rounded score.
    score = _finalize(raw)

    reasons: list[str] = []
    if record.vacancy > BRICK_REASON_VACANCY:
        reasons.append(REASON_HIGH_VACANCY)
    if record.price_to_book > STRETCHED_VALUATION:
        reasons.append(REASON_STRETCHED_VALUATION)
    if record.market_value < BRICK_REASON_MARKET_VALUE:
        reasons.append(REASON_SMALL_MARKET_VALUE)
    if record.liquidity < BRICK_REASON_LIQUIDITY:
        reasons.append(REASON_LOW_LIQUIDITY)

    return ScoredInstrument(
        instrument=record,
        asset_class=AssetClass.BRICK,
        score=score,
        risk_tier=classify_risk(score),
        reasons=reasons,
    )


def paper_exclusion_reason(record: InstrumentRecord) -> str | None:
    if record.liquidity < PAPER_MIN_LIQUIDITY:
        return f"Liquidity < {PAPER_MIN_LIQUIDITY // 1000}k (excluded from ranking)."
    if record.dividend_yield < PAPER_MIN_YIELD:
        return f"Dividend yield < {PAPER_MIN_YIELD:.0f}% (excluded from paper ranking)."
    return None


def score_paper(record: InstrumentRecord) -> ScoredInstrument:
    """Receivables rule set. Vacancy only enters as a penalty."""
    excluded = paper_exclusion_reason(record)
    if excluded:
        return _excluded(record, AssetClass.PAPER, excluded)

    w = PAPER_WEIGHTS
    raw = (
        yield_score_paper(record.dividend_yield) * w["yield"]
        + liquidity_score(record.liquidity) * w["liquidity"]
        + market_value_score(record.market_value) * w["market_value"]
        + valuation_score(record.price_to_book) * w["valuation"]
    )
    if record.vacancy > PAPER_VACANCY_PENALTY_THRESHOLD:
        raw += PAPER_VACANCY_PENALTY
    score = _finalize(raw)

    reasons: list[str] = []
    if record.price_to_book > STRETCHED_VALUATION:
        reasons.append(REASON_STRETCHED_VALUATION)
    if record.dividend_yield > PAPER_REASON_HIGH_YIELD:
        reasons.append(REASON_HIGH_YIELD)
    if record.liquidity < PAPER_REASON_LIQUIDITY:
        reasons.append(REASON_LOW_LIQUIDITY)

    return ScoredInstrument(
        instrument=record,
        asset_class=AssetClass.PAPER,
        score=score,
        risk_tier=classify_risk(score),
        reasons=reasons,
    )


def score_as(record: InstrumentRecord, asset_class: AssetClass) -> ScoredInstrument:
    """Score with the rule set of *asset_class* (HYBRID has none -> paper rules)."""
    if asset_class == AssetClass.BRICK:
        return score_brick(record)
    scored = score_paper(record)
    if asset_class != AssetClass.PAPER:
        scored = scored.model_copy(update={"asset_class": asset_class})
    return scored


def score_instrument(record: InstrumentRecord) -> ScoredInstrument:
    """
    Detect the class and score a single instrument for display.

    BRICK uses brick rules; everything else (HYBRID included) is scored
    with paper rules. Rankings never include HYBRID.
    """
    return score_as(record, detect_asset_class(record.segment))

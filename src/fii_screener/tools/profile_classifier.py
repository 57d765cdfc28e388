"""
FII Screener Tool: Profile Classifier

Maps a scored instrument into one of four portfolio profiles, first
match wins:

1. CONTROLLED_RISK: score in [6.5, 7.7] with liquidity, size, yield and
   valuation guards
2. ANCHOR: score ≥ 8.0 and conservative tier
3. POTENTIAL: score in [7.0, 8.0)
4. HIGH_RISK: everything else, including no input

An instrument that qualifies for both CONTROLLED_RISK and ANCHOR is
CONTROLLED_RISK. Also builds the per-profile explanations shown next to
each instrument.
"""

from __future__ import annotations

import logging
from typing import Optional

from fii_screener.config.constants import (
    ANCHOR_MIN_SCORE,
    CONTROLLED_RISK_MAX_VALUATION,
    CONTROLLED_RISK_MIN_LIQUIDITY,
    CONTROLLED_RISK_MIN_MARKET_VALUE,
    CONTROLLED_RISK_MIN_YIELD,
    CONTROLLED_RISK_SCORE_RANGE,
    POTENTIAL_SCORE_RANGE,
)
from fii_screener.schemas.instrument_output import (
    InstrumentRecord,
    Profile,
    RiskTier,
    ScoredInstrument,
)
from fii_screener.tools.instrument_scorer import score_instrument

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Explanation thresholds
# ---------------------------------------------------------------------------

ANCHOR_REASON_MARKET_VALUE = 1_000_000_000
ANCHOR_REASON_LIQUIDITY = 1_500_000
ANCHOR_REASON_VALUATION_RANGE: tuple[float, float] = (0.98, 1.05)
ANCHOR_REASON_MAX_VACANCY = 10.0

POTENTIAL_REASON_MAX_VALUATION = 0.95
POTENTIAL_REASON_MIN_YIELD = 10.0
POTENTIAL_REASON_MIN_FFO_YIELD = 9.0

CONTROLLED_REASON_MIN_LIQUIDITY = 800_000

HIGH_RISK_REASON_LIQUIDITY = 800_000
HIGH_RISK_REASON_VACANCY = 15.0
HIGH_RISK_REASON_MARKET_VALUE = 300_000_000


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def is_controlled_risk(scored: ScoredInstrument) -> bool:
    """Mid-score window with enough liquidity, size and yield, not expensive."""
    low, high = CONTROLLED_RISK_SCORE_RANGE
    return (
        low <= scored.score <= high
        and scored.liquidity >= CONTROLLED_RISK_MIN_LIQUIDITY
        and scored.market_value >= CONTROLLED_RISK_MIN_MARKET_VALUE
        and scored.dividend_yield >= CONTROLLED_RISK_MIN_YIELD
        and scored.price_to_book <= CONTROLLED_RISK_MAX_VALUATION
    )


def classify_profile(scored: Optional[ScoredInstrument]) -> Profile:
    if scored is None:
        return Profile.HIGH_RISK
    if is_controlled_risk(scored):
        return Profile.CONTROLLED_RISK
    if scored.score >= ANCHOR_MIN_SCORE and scored.risk_tier == RiskTier.CONSERVATIVE:
        return Profile.ANCHOR
    low, high = POTENTIAL_SCORE_RANGE
    if low <= scored.score < high:
        return Profile.POTENTIAL
    return Profile.HIGH_RISK


# ---------------------------------------------------------------------------
# Explanations
# ---------------------------------------------------------------------------

def profile_reasons(scored: ScoredInstrument, profile: Profile) -> list[str]:
    """Profile-specific explanation lines. Never empty."""
    r = scored.instrument
    reasons: list[str] = []

    if profile == Profile.ANCHOR:
        low, high = ANCHOR_REASON_VALUATION_RANGE
        if r.market_value >= ANCHOR_REASON_MARKET_VALUE:
            reasons.append("Market value ≥ 1B (anchor)")
        if r.liquidity >= ANCHOR_REASON_LIQUIDITY:
            reasons.append("High liquidity (≥ 1.5M)")
        if low <= r.price_to_book <= high:
            reasons.append("P/VP close to 1 (anchor band)")
        if r.vacancy <= ANCHOR_REASON_MAX_VACANCY:
            reasons.append("Vacancy ≤ 10%")
    elif profile == Profile.POTENTIAL:
        if r.price_to_book < POTENTIAL_REASON_MAX_VALUATION:
            reasons.append("P/VP below 1 (discount / upside)")
        if r.dividend_yield >= POTENTIAL_REASON_MIN_YIELD:
            reasons.append("High dividend yield")
        if r.ffo_yield >= POTENTIAL_REASON_MIN_FFO_YIELD:
            reasons.append("High FFO yield")
    elif profile == Profile.CONTROLLED_RISK:
        reasons.append("Intermediate score (controlled-risk profile)")
        if r.liquidity >= CONTROLLED_REASON_MIN_LIQUIDITY:
            reasons.append("Reasonable liquidity (≥ 800k)")
    else:
        reasons.append("Classified as high risk by the rules")
        if r.liquidity < HIGH_RISK_REASON_LIQUIDITY:
            reasons.append("Low liquidity")
        if r.vacancy > HIGH_RISK_REASON_VACANCY:
            reasons.append("Vacancy above 15%")
        if r.market_value < HIGH_RISK_REASON_MARKET_VALUE:
            reasons.append("Low market value")

    if not reasons:
        reasons.append(
            f"Classified as '{profile.value}' by the rules "
            f"(type={scored.asset_class.value}, risk={scored.risk_tier.value}, "
            f"score={scored.score})."
        )
    return reasons


def merge_reasons(*groups: list[str]) -> list[str]:
    """Concatenate, drop blanks, de-duplicate case-insensitively (first wins)."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for reason in group:
            if not reason or not reason.strip():
                continue
            key = reason.casefold()
            if key in seen:
                continue
            seen.add(key)
            merged.append(reason)
    return merged


def explain_instrument(
    record: InstrumentRecord,
    forced_profile: Optional[Profile] = None,
) -> tuple[Profile, list[str]]:
    """
    Profile + merged score/profile reasons for one instrument.

    *forced_profile* overrides the computed profile; the profile
    portfolio uses it so explanations match the bucket an instrument
    was picked for.
    """
    scored = score_instrument(record)
    profile = forced_profile or classify_profile(scored)
    reasons = merge_reasons(scored.reasons, profile_reasons(scored, profile))
    if not reasons:
        reasons = [f"Classified as '{profile.value}' by the rules."]
    return profile, reasons

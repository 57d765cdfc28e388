"""
Instrument Schemas — records, scores and ranked views
FII Screener

Data contracts shared by the repository, scorer, ranker and
listing pipeline. An InstrumentRecord is an immutable snapshot of one
row of the source listing; every derived model wraps it rather than
copying its fields.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class AssetClass(str, Enum):
    """Coarse fund category derived from the free-text segment label."""
    BRICK = "BRICK"      # physical property (logistics, offices, malls...)
    PAPER = "PAPER"      # receivables / CRI
    HYBRID = "HYBRID"    # no scoring path; excluded from class rankings


class RiskTier(str, Enum):
    """3-valued ordinal derived from score breakpoints."""
    CONSERVATIVE = "Conservative"
    MODERATE = "Moderate"
    AGGRESSIVE = "Aggressive"
    NOT_RATED = "N/A"    # excluded by a scoring pre-filter


class Profile(str, Enum):
    """Portfolio bucket used for profile allocation."""
    ANCHOR = "Anchor"
    POTENTIAL = "Potential"
    CONTROLLED_RISK = "Controlled Risk"
    HIGH_RISK = "High Risk"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def normalize_identifier(identifier: Optional[str]) -> str:
    """Trim + uppercase. ``"hglg11 "`` and ``"HGLG11"`` normalize alike."""
    return (identifier or "").strip().upper()


class InstrumentRecord(BaseModel):
    """One fund as published in the listing table. Never mutated."""

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., min_length=1, description="Ticker, e.g. HGLG11")
    segment: str = Field("", description="Free-text category label")
    price: float = 0.0
    ffo_yield: float = 0.0
    dividend_yield: float = Field(0.0, description="Trailing yield, % p.a.")
    price_to_book: float = Field(0.0, description="P/VP valuation ratio")
    market_value: float = 0.0
    liquidity: float = Field(0.0, description="Average daily traded volume")
    property_count: int = 0
    price_per_m2: float = 0.0
    rent_per_m2: float = 0.0
    cap_rate: float = 0.0
    vacancy: float = Field(0.0, description="Average vacancy, %")
    distribution_12m: Optional[float] = Field(
        None, description="Trailing 12-month distribution per unit (detail page)"
    )

    @field_validator("identifier")
    @classmethod
    def identifier_uppercase(cls, v: str) -> str:
        return normalize_identifier(v)


class ScoredInstrument(BaseModel):
    """An instrument with its asset class, 0-10 score, risk tier and reasons."""

    instrument: InstrumentRecord
    asset_class: AssetClass
    score: float = Field(..., ge=0.0, le=10.0)
    risk_tier: RiskTier
    reasons: List[str] = Field(default_factory=list)

    @property
    def identifier(self) -> str:
        return self.instrument.identifier

    @property
    def liquidity(self) -> float:
        return self.instrument.liquidity

    @property
    def dividend_yield(self) -> float:
        return self.instrument.dividend_yield

    @property
    def price_to_book(self) -> float:
        return self.instrument.price_to_book

    @property
    def market_value(self) -> float:
        return self.instrument.market_value


class DualRankedInstrument(BaseModel):
    """Result row of the valuation/yield dual-criterion ranking."""

    instrument: InstrumentRecord
    rank_valuation: int = Field(..., ge=1, description="1 = lowest P/VP")
    rank_yield: int = Field(..., ge=1, description="1 = highest yield")
    combined_rank: float = Field(..., description="(rank_valuation + rank_yield) / 2")


class FilterBand(BaseModel):
    """Band rules applied before dual-criterion ranking."""

    benchmark_rate: float
    yield_min: float
    yield_max: float
    valuation_min: float
    valuation_max: float
    liquidity_min: float
    vacancy_max: float

    def accepts(self, record: InstrumentRecord) -> bool:
        return (
            self.yield_min <= record.dividend_yield <= self.yield_max
            and self.valuation_min <= record.price_to_book <= self.valuation_max
            and record.liquidity >= self.liquidity_min
            and record.vacancy <= self.vacancy_max
        )


# ---------------------------------------------------------------------------
# Read model
# ---------------------------------------------------------------------------

class IncomeMetrics(BaseModel):
    """Income projections derived from the trailing 12-month distribution."""

    monthly_income: float = 0.0
    monthly_yield_pct: float = 0.0
    daily_income: float = 0.0
    magic_number_units: int = Field(
        0, ge=0, description="Units whose monthly income buys one more unit"
    )
    magic_number_value: float = 0.0


class InstrumentView(BaseModel):
    """An instrument as presented to callers: record + detail + explanation."""

    instrument: InstrumentRecord
    distribution_12m: float = 0.0
    income: IncomeMetrics = Field(default_factory=IncomeMetrics)
    profile: Profile
    reasons: List[str] = Field(default_factory=list)
    rank_valuation: Optional[int] = None
    rank_yield: Optional[int] = None
    combined_rank: Optional[float] = None

    @property
    def identifier(self) -> str:
        return self.instrument.identifier

"""
Portfolio Schemas — allocation requests and weighted portfolios
FII Screener

Output contract for the portfolio pipelines. A portfolio is a list of
weighted line items whose weights always total exactly 100.00 when the
portfolio is non-empty.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from fii_screener.schemas.instrument_output import RiskTier


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TYPE_BUCKETS: tuple[str, ...] = ("BRICK", "PAPER", "RISK")
"""Buckets of the type-based allocations, in declaration order"""

PROFILE_BUCKETS: tuple[str, ...] = (
    "Anchor", "Potential", "Controlled Risk", "High Risk",
)
"""Buckets of the profile allocation, in declaration order"""

WEIGHT_TOLERANCE = 0.005
"""Half a rounding unit at two decimals"""


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class AllocationRequest(BaseModel):
    """Type-based allocation with explicit counts per bucket."""

    brick_weight: float
    paper_weight: float
    risk_weight: float
    brick_count: int
    paper_count: int
    risk_count: int

    @property
    def weights(self) -> list[float]:
        return [self.brick_weight, self.paper_weight, self.risk_weight]

    @property
    def counts(self) -> list[int]:
        return [self.brick_count, self.paper_count, self.risk_count]


class PercentageAllocationRequest(BaseModel):
    """Type-based allocation where counts are apportioned from a total."""

    brick_weight: float
    paper_weight: float
    risk_weight: float
    total_assets: int

    @property
    def weights(self) -> list[float]:
        return [self.brick_weight, self.paper_weight, self.risk_weight]


class ProfileAllocationRequest(BaseModel):
    """Profile-based allocation across the four portfolio profiles."""

    anchor_weight: float
    potential_weight: float
    controlled_risk_weight: float
    high_risk_weight: float
    total_assets: int

    @property
    def weights(self) -> list[float]:
        return [
            self.anchor_weight,
            self.potential_weight,
            self.controlled_risk_weight,
            self.high_risk_weight,
        ]


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

class PortfolioLineItem(BaseModel):
    """A single weighted holding."""

    identifier: str = Field(..., min_length=1)
    bucket: str = Field(..., description="BRICK / PAPER / RISK or a profile name")
    score: float = Field(..., ge=0.0, le=10.0)
    risk_tier: RiskTier
    weight_pct: float = Field(..., description="% of the portfolio")
    price: float = 0.0
    dividend_yield: float = 0.0
    price_to_book: float = 0.0
    liquidity: float = 0.0
    market_value: float = 0.0
    segment: Optional[str] = None
    reasons: List[str] = Field(default_factory=list)
    distribution_12m: Optional[float] = None

    @field_validator("identifier")
    @classmethod
    def identifier_uppercase(cls, v: str) -> str:
        return v.strip().upper()


class PortfolioOutput(BaseModel):
    """A weighted portfolio and the bucket weights that produced it."""

    bucket_weights: Dict[str, float]
    total_assets: int = Field(..., ge=0)
    items: List[PortfolioLineItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_total_assets(self) -> "PortfolioOutput":
        if self.total_assets != len(self.items):
            raise ValueError(
                f"total_assets={self.total_assets} but {len(self.items)} items"
            )
        return self

    @model_validator(mode="after")
    def validate_weights_total(self) -> "PortfolioOutput":
        """Non-empty portfolios total exactly 100.00."""
        if not self.items:
            return self
        total = round(sum(i.weight_pct for i in self.items), 2)
        if abs(total - 100.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Item weights total {total}, expected 100.00")
        return self

    @property
    def total_weight(self) -> float:
        return round(sum(i.weight_pct for i in self.items), 2)

    def items_in(self, bucket: str) -> list[PortfolioLineItem]:
        return [i for i in self.items if i.bucket == bucket]

"""
FII Screener Tool: Asset Classifier

Maps the free-text segment label to an AssetClass. Total: every label,
including None and "", maps to exactly one class. Unknown labels fall
back to BRICK, the dominant class of the listing.
"""

from __future__ import annotations

from typing import Optional

from fii_screener.config.constants import HYBRID_KEYWORDS, PAPER_KEYWORDS
from fii_screener.schemas.instrument_output import AssetClass
from fii_screener.tools.listing_parser import fold_label


def detect_asset_class(segment: Optional[str]) -> AssetClass:
    """
    Receivables vocabulary -> PAPER, hybrid vocabulary -> HYBRID, else BRICK.

    Matching is by substring on the lowercased, accent-free label, so
    "Recebíveis CRI" is PAPER and "Híbrido" is HYBRID.
    """
    label = fold_label(segment)
    if any(k in label for k in PAPER_KEYWORDS):
        return AssetClass.PAPER
    if any(k in label for k in HYBRID_KEYWORDS):
        return AssetClass.HYBRID
    return AssetClass.BRICK


def is_shopping(segment: Optional[str]) -> bool:
    """Shopping-mall segment check used by the anchor screen."""
    return "shopping" in fold_label(segment)

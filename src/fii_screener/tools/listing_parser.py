"""
FII Screener Tool: Listing Parser

Decodes source documents into records:
- Listing page -> one InstrumentRecord per row with a ticker
- Detail page  -> trailing 12-month distribution per unit

Header keys are normalized (uppercase, accent-free, spaces -> "_") and
numbers are read in pt-BR format ("1.234,56", "8,5%"). Missing or
unparseable numeric cells decode to 0; rows without a ticker are skipped.
"""

from __future__ import annotations

import logging
import math
import unicodedata
from io import StringIO
from typing import Any, Optional

import pandas as pd

from fii_screener.exceptions import ParseError
from fii_screener.schemas.instrument_output import InstrumentRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

IDENTIFIER_KEY = "PAPEL"
VALUATION_KEY = "P/VP"

# Normalized header -> InstrumentRecord field
FLOAT_FIELDS: dict[str, str] = {
    "COTACAO": "price",
    "FFO_YIELD": "ffo_yield",
    "DIVIDEND_YIELD": "dividend_yield",
    VALUATION_KEY: "price_to_book",
    "VALOR_DE_MERCADO": "market_value",
    "LIQUIDEZ": "liquidity",
    "PRECO_DO_M2": "price_per_m2",
    "ALUGUEL_POR_M2": "rent_per_m2",
    "CAP_RATE": "cap_rate",
    "VACANCIA_MEDIA": "vacancy",
}
INT_FIELDS: dict[str, str] = {"QTD_DE_IMOVEIS": "property_count"}

EMPTY_MARKERS: frozenset[str] = frozenset({"", "-", "—"})

DISTRIBUTION_LABELS: tuple[str, ...] = ("dividendo/cota", "div. por cota")
"""Detail page labels whose next cell holds the 12-month distribution"""

# pandas.read_html options for pt-BR pages
_READ_HTML_OPTS: dict[str, Any] = {
    "flavor": "lxml",
    "thousands": ".",
    "decimal": ",",
    "keep_default_na": False,
}


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def strip_accents(text: str) -> str:
    """NFKD-decompose and drop combining marks ("Logística" -> "Logistica", "m²" -> "m2")."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def fold_label(text: Optional[str]) -> str:
    """Lowercase, accent-free, trimmed. Total over None."""
    if text is None:
        return ""
    return strip_accents(str(text)).strip().lower()


def normalize_header(header: Any) -> str:
    """``"Qtd de imóveis"`` -> ``"QTD_DE_IMOVEIS"``."""
    text = strip_accents(str(header)).strip().upper()
    return "_".join(text.split())


def parse_decimal_br(value: Any) -> float:
    """
    Parse a pt-BR number. Empty, "-" and unparseable input yield 0.0.

    Cells already converted by pandas (int/float) pass through; NaN -> 0.0.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)

    text = str(value).strip().replace("%", "").strip()
    if text in EMPTY_MARKERS:
        return 0.0
    text = text.replace(".", "").replace(",", ".")
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_int_br(value: Any) -> int:
    return int(parse_decimal_br(value))


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

def _get(row: dict[str, Any], key: str) -> Any:
    if key in row:
        return row[key]
    if key == VALUATION_KEY:
        # The ratio header renders inconsistently across page versions.
        for k, v in row.items():
            if VALUATION_KEY in k or k == "PVP":
                return v
    return ""


def read_listing_rows(html: str) -> list[dict[str, Any]]:
    """
    Return the listing table as dicts keyed by normalized header.

    Raises:
        ParseError: no table, or no table with a ticker column.
    """
    try:
        tables = pd.read_html(StringIO(html), **_READ_HTML_OPTS)
    except ValueError as exc:
        raise ParseError(
            "Listing table not found; the page layout may have changed"
        ) from exc

    for df in tables:
        headers = [normalize_header(c) for c in df.columns]
        if IDENTIFIER_KEY in headers:
            df.columns = headers
            return df.to_dict(orient="records")

    raise ParseError(f"Listing table headers not found ({len(tables)} tables scanned)")


def record_from_row(row: dict[str, Any]) -> Optional[InstrumentRecord]:
    """Build a record from one normalized row; None when the ticker is blank."""
    identifier = str(_get(row, IDENTIFIER_KEY)).strip()
    if not identifier:
        return None

    fields: dict[str, Any] = {
        "identifier": identifier,
        "segment": str(_get(row, "SEGMENTO")).strip(),
    }
    for key, field in FLOAT_FIELDS.items():
        fields[field] = parse_decimal_br(_get(row, key))
    for key, field in INT_FIELDS.items():
        fields[field] = parse_int_br(_get(row, key))
    return InstrumentRecord(**fields)


def parse_listing(html: str) -> list[InstrumentRecord]:
    """Listing page -> records, in page order."""
    rows = read_listing_rows(html)
    records: list[InstrumentRecord] = []
    skipped = 0
    for row in rows:
        record = record_from_row(row)
        if record is None:
            skipped += 1
            continue
        records.append(record)

    logger.info(f"[Parser] Listing: {len(records)} records, {skipped} rows skipped")
    return records


# ---------------------------------------------------------------------------
# Detail page
# ---------------------------------------------------------------------------

def _is_distribution_label(cell: Any) -> bool:
    if not isinstance(cell, str):
        return False
    label = fold_label(cell).lstrip("?").strip()
    return any(target in label for target in DISTRIBUTION_LABELS)


def parse_detail_distribution(html: str) -> Optional[float]:
    """
    Find the 12-month distribution per unit on a detail page.

    Returns None when the page has no tables or no matching label.
    """
    try:
        tables = pd.read_html(StringIO(html), header=None, **_READ_HTML_OPTS)
    except ValueError:
        logger.debug("[Parser] Detail page has no tables")
        return None

    for df in tables:
        grid = [list(df.columns)] + [list(r) for r in df.itertuples(index=False)]
        for cells in grid:
            for i, cell in enumerate(cells[:-1]):
                if _is_distribution_label(cell):
                    return parse_decimal_br(cells[i + 1])

    logger.debug("[Parser] Distribution label not found on detail page")
    return None

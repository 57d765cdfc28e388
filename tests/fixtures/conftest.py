"""
Shared test fixtures for FII Screener tests.
Provides sample instruments, source HTML documents and network doubles.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Union

from fii_screener.schemas.instrument_output import InstrumentRecord


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def make_record(identifier: str = "TEST11", **overrides: Any) -> InstrumentRecord:
    """Build an InstrumentRecord with neutral defaults."""
    fields: dict[str, Any] = {
        "identifier": identifier,
        "segment": "Logística",
        "price": 100.0,
        "ffo_yield": 8.0,
        "dividend_yield": 9.0,
        "price_to_book": 1.0,
        "market_value": 2_000_000_000,
        "liquidity": 2_000_000,
        "property_count": 0,
        "price_per_m2": 0.0,
        "rent_per_m2": 0.0,
        "cap_rate": 0.0,
        "vacancy": 5.0,
    }
    fields.update(overrides)
    return InstrumentRecord(**fields)


# Snapshot order matters for stable sorts; scores noted per record.
SAMPLE_RECORDS: list[InstrumentRecord] = [
    # BRICK 10.00 (all ceilings + logistics bonus), Anchor
    make_record("HGLG11", price=160.0),
    # HYBRID: never ranked
    make_record(
        "KNRI11", segment="Híbrido", dividend_yield=8.0, price_to_book=0.95,
        liquidity=1_000_000, market_value=3_000_000_000, vacancy=3.0,
    ),
    # BRICK 8.40, Anchor
    make_record(
        "XPLG11", liquidity=1_200_000, market_value=1_500_000_000,
        dividend_yield=7.5, price_to_book=0.92, vacancy=8.0, property_count=12,
    ),
    # BRICK 7.00, Potential (liquidity too low for controlled risk)
    make_record(
        "HGRE11", segment="Lajes Corporativas", liquidity=600_000,
        market_value=800_000_000, dividend_yield=10.0, price_to_book=1.12,
        vacancy=12.0, property_count=6, ffo_yield=9.5,
    ),
    # BRICK 10.00, shopping -> not an anchor-screen candidate
    make_record(
        "VISC11", segment="Shoppings", liquidity=3_000_000,
        market_value=3_000_000_000, dividend_yield=8.5, price_to_book=0.99,
        vacancy=4.0, property_count=20,
    ),
    # BRICK excluded: liquidity < 500k
    make_record("LOWL11", liquidity=300_000),
    # PAPER 10.00, Anchor
    make_record(
        "KNCR11", segment="Recebíveis", liquidity=5_000_000,
        market_value=5_000_000_000, dividend_yield=12.0, price_to_book=1.01,
        vacancy=0.0,
    ),
    # PAPER 8.20, Anchor
    make_record(
        "MXRF11", segment="Papel", liquidity=900_000, market_value=700_000_000,
        dividend_yield=10.0, price_to_book=1.05, vacancy=0.0, price=10.0,
    ),
    # PAPER 6.75, Controlled Risk
    make_record(
        "CTRL11", segment="Títulos CRI", liquidity=900_000,
        market_value=700_000_000, dividend_yield=14.0, price_to_book=1.08,
        vacancy=0.0,
    ),
    # PAPER 3.00, High Risk
    make_record(
        "IRDM11", segment="Recebíveis", liquidity=450_000,
        market_value=400_000_000, dividend_yield=17.0, price_to_book=0.80,
        vacancy=0.0,
    ),
    # PAPER excluded: yield < 8
    make_record(
        "BADP11", segment="Recebíveis", liquidity=1_000_000,
        dividend_yield=7.0, price_to_book=0.90, vacancy=0.0,
    ),
]

SAMPLE_DETAILS: dict[str, str] = {
    "HGLG11": "13.20",
    "KNCR11": "12.00",
    "VISC11": "10.20",
    "HGRE11": "9.60",
    "CTRL11": "14.40",
    "MXRF11": "1.20",
}
"""Ticker -> detail payload understood by parse_stub_detail"""


def parse_stub_detail(text: str) -> Optional[float]:
    """Detail parser paired with StubFetcher payloads."""
    return float(text) if text else None


# ---------------------------------------------------------------------------
# Source documents
# ---------------------------------------------------------------------------

LISTING_HTML = """
<html><body>
<table id="tabelaResultado">
  <thead>
    <tr>
      <th>Papel</th><th>Segmento</th><th>Cotação</th><th>FFO Yield</th>
      <th>Dividend Yield</th><th>P/VP</th><th>Valor de Mercado</th>
      <th>Liquidez</th><th>Qtd de imóveis</th><th>Preço do m2</th>
      <th>Aluguel por m2</th><th>Cap Rate</th><th>Vacância Média</th>
    </tr>
  </thead>
  <tbody>
    <tr>
      <td>HGLG11</td><td>Logística</td><td>160,50</td><td>7,80%</td>
      <td>9,00%</td><td>1,00</td><td>2.000.000.000</td>
      <td>2.000.000</td><td>12</td><td>3.500,00</td>
      <td>25,40</td><td>8,10%</td><td>5,00%</td>
    </tr>
    <tr>
      <td>KNCR11</td><td>Recebíveis</td><td>101,20</td><td>12,10%</td>
      <td>12,00%</td><td>1,01</td><td>5.000.000.000</td>
      <td>5.000.000</td><td>0</td><td>0,00</td>
      <td>0,00</td><td>0,00%</td><td>0,00%</td>
    </tr>
    <tr>
      <td>HGRE11</td><td>Lajes Corporativas</td><td>120,00</td><td>-</td>
      <td>10,00%</td><td>1,12</td><td>800.000.000</td>
      <td>600.000</td><td>6</td><td>-</td>
      <td>-</td><td>-</td><td>12,00%</td>
    </tr>
    <tr>
      <td></td><td>Outros</td><td>1,00</td><td>0,00%</td>
      <td>0,00%</td><td>0,00</td><td>0</td>
      <td>0</td><td>0</td><td>0,00</td>
      <td>0,00</td><td>0,00%</td><td>0,00%</td>
    </tr>
  </tbody>
</table>
</body></html>
"""

LISTING_HTML_NO_TABLE = "<html><body><p>Manutenção programada</p></body></html>"

LISTING_HTML_NO_HEADERS = """
<html><body>
<table><tr><td>HGLG11</td><td>Logística</td></tr></table>
</body></html>
"""

DETAIL_HTML = """
<html><body>
<table class="w728">
  <tr>
    <td class="label"><span class="help">?</span><span class="txt">Papel</span></td>
    <td class="data"><span class="txt">HGLG11</span></td>
  </tr>
</table>
<table class="w728">
  <tr>
    <td class="label"><span class="txt">Indicadores</span></td>
    <td class="data"><span class="txt">Últimos 12 meses</span></td>
  </tr>
  <tr>
    <td class="label"><span class="help">?</span><span class="txt">FFO/Cota</span></td>
    <td class="data"><span class="txt">14,02</span></td>
  </tr>
  <tr>
    <td class="label"><span class="help">?</span><span class="txt">Dividendo/cota</span></td>
    <td class="data"><span class="txt">13,20</span></td>
  </tr>
</table>
</body></html>
"""

DETAIL_HTML_NO_LABEL = """
<html><body>
<table><tr><td>Papel</td><td>HGLG11</td></tr></table>
</body></html>
"""

BENCHMARK_JSON = '[{"data": "16/10/2026", "valor": "10.50"}]'


# ---------------------------------------------------------------------------
# Network doubles
# ---------------------------------------------------------------------------

class FakeResponse:
    """Minimal aiohttp response: status + text() + async context manager."""

    def __init__(self, status: int = 200, body: Union[str, bytes] = "", charset: str = "utf-8"):
        self.status = status
        self.body = body
        self.charset = charset

    async def text(self, encoding: Optional[str] = None, errors: str = "strict") -> str:
        if isinstance(self.body, bytes):
            return self.body.decode(encoding or self.charset, errors)
        return self.body

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class FakeSession:
    """
    Replays *outcomes* in order; each is a FakeResponse or an exception
    raised when the request is made.
    """

    def __init__(self, outcomes: list):
        self.outcomes = list(outcomes)
        self.requests: list[dict] = []
        self.closed = False

    def get(self, url: str, headers=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "timeout": timeout})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class LowRng:
    """random.Random stand-in that always returns the lower bound."""

    def uniform(self, a: float, b: float) -> float:
        return a


class StubFetcher:
    """
    In-memory SourceFetcher with call accounting.

    Each call yields to the loop (*delay* seconds) so concurrent callers
    genuinely overlap; max_in_flight records peak detail concurrency.
    """

    def __init__(
        self,
        listing_html: str = "<listing>",
        details: Optional[dict[str, str]] = None,
        benchmark_payload: str = BENCHMARK_JSON,
        delay: float = 0.01,
        error: Optional[BaseException] = None,
    ):
        self.listing_html = listing_html
        self.details = details if details is not None else dict(SAMPLE_DETAILS)
        self.benchmark_payload = benchmark_payload
        self.delay = delay
        self.error = error
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def count(self, prefix: str) -> int:
        return sum(1 for c in self.calls if c.startswith(prefix))

    async def fetch_listing(self) -> str:
        self.calls.append("listing")
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.listing_html

    async def fetch_detail(self, identifier: str) -> str:
        self.calls.append(f"detail:{identifier}")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if self.error is not None:
            raise self.error
        return self.details.get(identifier, "")

    async def fetch(self, url: str) -> str:
        self.calls.append(f"url:{url}")
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.benchmark_payload


def make_repository(
    records: Optional[list[InstrumentRecord]] = None,
    fetcher: Optional[StubFetcher] = None,
    cache=None,
):
    """Repository over StubFetcher with parsers that skip HTML."""
    from fii_screener.tools.cache_store import CacheStore
    from fii_screener.tools.instrument_repository import InstrumentRepository

    snapshot = list(SAMPLE_RECORDS if records is None else records)
    fetcher = fetcher or StubFetcher()
    cache = cache if cache is not None else CacheStore()
    repo = InstrumentRepository(
        fetcher, cache,
        listing_parser=lambda html: list(snapshot),
        detail_parser=parse_stub_detail,
    )
    return repo, fetcher, cache

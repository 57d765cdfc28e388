"""
Centralized configuration for the FII Screener

This module defines all magic numbers, thresholds, and configuration values
used throughout the screener. Centralizing these values makes it easier
to tune the scoring rules and understand decision boundaries.
"""

# ============================================================================
# DATA SOURCES
# ============================================================================

LISTING_URL = "https://www.fundamentus.com.br/fii_resultado.php"
"""Bulk FII listing table (one row per fund)"""

DETAIL_URL = "https://www.fundamentus.com.br/detalhes.php?papel="
"""Per-ticker detail page; the normalized, URL-encoded ticker is appended"""

BENCHMARK_URL = (
    "https://api.bcb.gov.br/dados/serie/bcdata.sgs.432/dados/ultimos/1?formato=json"
)
"""BCB SGS series 432 (SELIC target, % p.a.), latest observation"""

SOURCE_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html",
    "Accept-Language": "pt-BR,pt;q=0.9,en;q=0.8",
    "Referer": "https://www.fundamentus.com.br/",
}

# ============================================================================
# FETCH POLICY
# ============================================================================

FETCH_MAX_ATTEMPTS = 4
"""Total attempts per document (first try included)"""

FETCH_POLITE_DELAY_RANGE_S: tuple[float, float] = (0.9, 2.2)
"""Uniform random pause before every attempt"""

FETCH_BACKOFF_BASE_S = 2.0
"""Backoff between attempts is BASE ** (attempt - 1) seconds plus jitter"""

FETCH_BACKOFF_JITTER_S = 1.0
"""Upper bound of the uniform jitter added to every backoff"""

FETCH_TIMEOUT_S = 20.0
"""Total timeout for a single HTTP attempt"""

FETCH_RETRYABLE_STATUS = 429
"""Besides 5xx, the only status that is retried"""

# ============================================================================
# CACHE
# ============================================================================

SNAPSHOT_CACHE_KEY = "instruments:all"
INSTRUMENT_CACHE_NAMESPACE = "instrument"
DETAIL_CACHE_NAMESPACE = "detail"
BENCHMARK_CACHE_KEY = "benchmark:selic"

CACHE_TTL_S = 6 * 60 * 60
"""Every cache entry (snapshot, enriched record, detail, benchmark) lives 6h"""

DETAIL_MAX_CONCURRENCY = 4
"""Maximum in-flight detail lookups when enriching a batch"""

# ============================================================================
# LISTING DEFAULTS
# ============================================================================

DEFAULT_TOP = 10
"""Default slice size for listings and rankings"""

MIXED_PER_CLASS_MIN = 80
"""Each class contributes at least this many candidates to a mixed ranking"""

PROFILE_BASE_MIN = 120
"""Minimum mixed base used before filtering by profile"""

PROFILE_BASE_MULTIPLIER = 8

# ============================================================================
# ASSET CLASS DETECTION
# ============================================================================
# Substrings matched against the lowercased, accent-free segment label.

PAPER_KEYWORDS: tuple[str, ...] = ("cri", "receb", "papel")
HYBRID_KEYWORDS: tuple[str, ...] = ("hibr",)

# ============================================================================
# BRICK SCORING (physical property funds)
# ============================================================================

BRICK_MIN_LIQUIDITY = 500_000
BRICK_MIN_YIELD = 6.0
BRICK_MAX_VACANCY = 15.0

BRICK_WEIGHTS: dict[str, float] = {
    "vacancy": 0.25,
    "liquidity": 0.20,
    "market_value": 0.15,
    "yield": 0.20,
    "valuation": 0.15,
    "properties": 0.05,
}

BRICK_SEGMENT_BONUS: tuple[tuple[tuple[str, ...], float], ...] = (
    (("log",), 0.3),            # logistics
    (("hosp", "saud"), 0.3),    # hospitals / healthcare
    (("laje", "escr"), 0.1),    # corporate slabs / offices
    (("shop",), 0.0),           # shopping malls stay neutral
)

BRICK_REASON_VACANCY = 10.0
BRICK_REASON_MARKET_VALUE = 1_000_000_000
BRICK_REASON_LIQUIDITY = 1_000_000

# ============================================================================
# PAPER SCORING (receivables funds)
# ============================================================================

PAPER_MIN_LIQUIDITY = 400_000
PAPER_MIN_YIELD = 8.0

PAPER_WEIGHTS: dict[str, float] = {
    "yield": 0.35,
    "liquidity": 0.25,
    "market_value": 0.20,
    "valuation": 0.20,
}

PAPER_VACANCY_PENALTY_THRESHOLD = 30.0
PAPER_VACANCY_PENALTY = -0.3

PAPER_REASON_HIGH_YIELD = 16.0
PAPER_REASON_LIQUIDITY = 800_000

# Shared flag for both classes
STRETCHED_VALUATION = 1.15
"""Price/book above this is flagged as stretched"""

SCORE_MIN = 0.0
SCORE_MAX = 10.0

# ============================================================================
# RISK TIERS
# ============================================================================

RISK_CONSERVATIVE_MIN = 8.0
"""Score ≥ 8.0 is the conservative (low-risk) tier"""

RISK_MODERATE_MIN = 6.5
"""Score ≥ 6.5 is the moderate tier; below is aggressive"""

# ============================================================================
# PORTFOLIO PROFILES
# ============================================================================

CONTROLLED_RISK_SCORE_RANGE: tuple[float, float] = (6.5, 7.7)
CONTROLLED_RISK_MIN_LIQUIDITY = 800_000
CONTROLLED_RISK_MIN_MARKET_VALUE = 600_000_000
CONTROLLED_RISK_MIN_YIELD = 9.0
CONTROLLED_RISK_MAX_VALUATION = 1.10

ANCHOR_MIN_SCORE = 8.0
POTENTIAL_SCORE_RANGE: tuple[float, float] = (7.0, 8.0)
"""Half-open: [7.0, 8.0)"""

# Anchor candidate screen (rule-based, independent of scoring)
ANCHOR_SCREEN_MIN_LIQUIDITY = 1_500_000
ANCHOR_SCREEN_MIN_MARKET_VALUE = 1_000_000_000
ANCHOR_SCREEN_MIN_VALUATION = 0.98
ANCHOR_SCREEN_MAX_VACANCY = 10.0

# ============================================================================
# DUAL-CRITERION FILTER
# ============================================================================

FILTER_YIELD_SPREAD_BELOW_BENCHMARK = 3.0
"""Yield floor = benchmark rate − 3"""

FILTER_YIELD_MAX = 20.0
FILTER_VALUATION_RANGE: tuple[float, float] = (0.50, 1.00)
FILTER_MIN_LIQUIDITY = 400_000
FILTER_MAX_VACANCY = 100.0

# ============================================================================
# ALLOCATION
# ============================================================================

MAX_WEIGHT_PER_ASSET = 15.0
"""Per-instrument cap applied when splitting a bucket weight"""

PORTFOLIO_MIN_LIQUIDITY = 800_000
"""Class rankings feeding a portfolio are cut below this liquidity"""

PORTFOLIO_RANKING_BASE = 120
PORTFOLIO_BASE_PER_ASSET = 10

PROFILE_PORTFOLIO_BASE_MIN = 150
PROFILE_PORTFOLIO_BASE_PER_ASSET = 12

SUGGESTED_WEIGHTS: dict[str, float] = {"BRICK": 60.0, "PAPER": 35.0, "RISK": 5.0}
SUGGESTED_COUNTS: dict[str, int] = {"BRICK": 6, "PAPER": 5, "RISK": 2}

WEIGHT_TOTAL = 100.0

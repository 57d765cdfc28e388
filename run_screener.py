"""Run the FII Screener and write output to JSON + Excel.

Usage:
    python run_screener.py list                              first 10 funds by ticker
    python run_screener.py instrument HGLG11                 single fund view
    python run_screener.py filtered --top 20                 P/VP x DY dual ranking vs SELIC
    python run_screener.py anchor                            rule-based anchor screen
    python run_screener.py ranking brick --top 15            score ranking (brick/paper/mixed/...)
    python run_screener.py portfolio                         suggested 60/35/5 portfolio
    python run_screener.py portfolio --weights 70 20 10 --counts 5 3 1
    python run_screener.py portfolio --weights 70 20 10 --total 12
    python run_screener.py profiles --weights 40 30 20 10 --total 10
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Optional

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv
load_dotenv()

import pandas as pd
from openpyxl.styles import Font, PatternFill
from pydantic import BaseModel

from fii_screener.config.settings import ScreenerSettings, load_settings
from fii_screener.exceptions import (
    ConfigurationError,
    DataAcquisitionError,
    DataProcessingError,
    FiiScreenerException,
    ValidationError,
)
from fii_screener.pipelines.listing_pipeline import (
    RankingKind,
    run_anchor_pipeline,
    run_filtered_pipeline,
    run_instrument_pipeline,
    run_listing_pipeline,
    run_ranking_pipeline,
)
from fii_screener.pipelines.portfolio_pipeline import (
    run_parametrized_portfolio,
    run_percentage_portfolio,
    run_profile_portfolio,
    run_suggested_portfolio,
)
from fii_screener.schemas.instrument_output import (
    InstrumentRecord,
    InstrumentView,
    ScoredInstrument,
)
from fii_screener.schemas.portfolio_output import (
    AllocationRequest,
    PercentageAllocationRequest,
    PortfolioOutput,
    ProfileAllocationRequest,
)
from fii_screener.tools.allocator import parse_request
from fii_screener.tools.benchmark_client import BenchmarkClient
from fii_screener.tools.cache_store import CacheStore
from fii_screener.tools.instrument_repository import InstrumentRepository
from fii_screener.tools.source_fetcher import FetchPolicy, SourceFetcher

logger = logging.getLogger("run_screener")

EXIT_INVALID_INPUT = 1
EXIT_SERVICE_UNAVAILABLE = 2


# ---------------------------------------------------------------------------
# CLI Argument Parsing
# ---------------------------------------------------------------------------

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="FII Screener — listing, rankings and portfolio allocation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Usage:", 1)[1],
    )
    parser.add_argument(
        "--output", default="output",
        help="Output directory (default: output)",
    )
    parser.add_argument(
        "--log-level", default=None,
        help="Logging level (default: FII_LOG_LEVEL or INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="First N funds by ticker, with income metrics")
    p_list.add_argument("--top", type=int, default=10)

    p_inst = sub.add_parser("instrument", help="Single fund view")
    p_inst.add_argument("identifier")

    p_filt = sub.add_parser("filtered", help="Dual P/VP x dividend-yield ranking")
    p_filt.add_argument("--top", type=int, default=10)

    sub.add_parser("anchor", help="Rule-based anchor candidates")

    p_rank = sub.add_parser("ranking", help="Score ranking")
    p_rank.add_argument("kind", choices=[k.value for k in RankingKind])
    p_rank.add_argument("--top", type=int, default=10)

    p_port = sub.add_parser("portfolio", help="BRICK/PAPER/RISK portfolio")
    p_port.add_argument("--weights", type=float, nargs=3, metavar=("BRICK", "PAPER", "RISK"))
    group = p_port.add_mutually_exclusive_group()
    group.add_argument("--counts", type=int, nargs=3, metavar=("BRICK", "PAPER", "RISK"))
    group.add_argument("--total", type=int)

    p_prof = sub.add_parser("profiles", help="Anchor/Potential/Controlled/High-risk portfolio")
    p_prof.add_argument(
        "--weights", type=float, nargs=4, required=True,
        metavar=("ANCHOR", "POTENTIAL", "CONTROLLED", "HIGH"),
    )
    p_prof.add_argument("--total", type=int, required=True)

    args = parser.parse_args(argv)
    if args.command == "portfolio":
        if args.weights is None and (args.counts or args.total is not None):
            parser.error("--counts/--total require --weights")
        if args.weights is not None and not (args.counts or args.total is not None):
            parser.error("--weights requires --counts or --total")
    return args


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

async def run_command(args: argparse.Namespace, settings: ScreenerSettings) -> Any:
    """Wire fetcher -> cache -> repository and run one command."""
    cache = CacheStore()
    policy = FetchPolicy(timeout_s=settings.fetch_timeout_s)

    async with SourceFetcher(
        policy=policy,
        listing_url=settings.listing_url,
        detail_url=settings.detail_url,
    ) as fetcher:
        repository = InstrumentRepository(
            fetcher, cache,
            ttl_s=settings.cache_ttl_s,
            max_concurrency=settings.max_concurrency,
        )
        cmd = args.command

        if cmd == "list":
            return await run_listing_pipeline(repository, args.top)
        if cmd == "instrument":
            return await run_instrument_pipeline(repository, args.identifier)
        if cmd == "filtered":
            benchmark = BenchmarkClient(
                fetcher, cache, url=settings.benchmark_url, ttl_s=settings.cache_ttl_s,
            )
            return await run_filtered_pipeline(repository, benchmark, args.top)
        if cmd == "anchor":
            return await run_anchor_pipeline(repository)
        if cmd == "ranking":
            return await run_ranking_pipeline(repository, RankingKind(args.kind), args.top)
        if cmd == "portfolio":
            if args.weights is None:
                return await run_suggested_portfolio(repository)
            brick, paper, risk = args.weights
            weights = {"brick_weight": brick, "paper_weight": paper, "risk_weight": risk}
            if args.counts:
                req = parse_request(AllocationRequest, {
                    **weights,
                    "brick_count": args.counts[0],
                    "paper_count": args.counts[1],
                    "risk_count": args.counts[2],
                })
                return await run_parametrized_portfolio(repository, req)
            req = parse_request(
                PercentageAllocationRequest, {**weights, "total_assets": args.total},
            )
            return await run_percentage_portfolio(repository, req)
        if cmd == "profiles":
            anchor, potential, controlled, high = args.weights
            req = parse_request(ProfileAllocationRequest, {
                "anchor_weight": anchor,
                "potential_weight": potential,
                "controlled_risk_weight": controlled,
                "high_risk_weight": high,
                "total_assets": args.total,
            })
            return await run_profile_portfolio(repository, req, settings.max_concurrency)

    raise ValueError(f"Unknown command: {args.command}")


# ---------------------------------------------------------------------------
# Snapshot + Excel output
# ---------------------------------------------------------------------------

_GREEN = PatternFill(start_color="00CC00", end_color="00CC00", fill_type="solid")
_YELLOW = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")
_ORANGE = PatternFill(start_color="FFA500", end_color="FFA500", fill_type="solid")
_RED = PatternFill(start_color="FF0000", end_color="FF0000", fill_type="solid")
_DARK_GREEN = PatternFill(start_color="006400", end_color="006400", fill_type="solid")
_WHITE_FONT = Font(color="FFFFFF")

# Map column header -> {cell value -> (fill, use_white_font)}
_COLOR_MAP = {
    "Risk": {
        "Conservative": (_GREEN, False),
        "Moderate": (_YELLOW, False),
        "Aggressive": (_ORANGE, False),
        "N/A": (_RED, True),
    },
    "Profile": {
        "Anchor": (_DARK_GREEN, True),
        "Potential": (_GREEN, False),
        "Controlled Risk": (_YELLOW, False),
        "High Risk": (_RED, True),
    },
}


def _apply_color_formatting(ws) -> None:
    """Apply color fills to category columns based on cell values."""
    header_map = {}
    for col_idx in range(1, ws.max_column + 1):
        header = ws.cell(row=1, column=col_idx).value
        if header in _COLOR_MAP:
            header_map[col_idx] = _COLOR_MAP[header]

    for row_idx in range(2, ws.max_row + 1):
        for col_idx, value_map in header_map.items():
            cell = ws.cell(row=row_idx, column=col_idx)
            if cell.value in value_map:
                fill, use_white = value_map[cell.value]
                cell.fill = fill
                if use_white:
                    cell.font = _WHITE_FONT


def _record_row(r: InstrumentRecord) -> dict:
    return {
        "Ticker": r.identifier,
        "Segment": r.segment,
        "Price": r.price,
        "DY %": r.dividend_yield,
        "FFO Yield %": r.ffo_yield,
        "P/VP": r.price_to_book,
        "Market Value": r.market_value,
        "Liquidity": r.liquidity,
        "Properties": r.property_count,
        "Cap Rate %": r.cap_rate,
        "Vacancy %": r.vacancy,
    }


def _rows(result: Any) -> list[dict]:
    if isinstance(result, PortfolioOutput):
        return [
            {
                "Ticker": i.identifier,
                "Bucket": i.bucket,
                "Weight %": i.weight_pct,
                "Score": i.score,
                "Risk": i.risk_tier.value,
                "Price": i.price,
                "DY %": i.dividend_yield,
                "P/VP": i.price_to_book,
                "Liquidity": i.liquidity,
                "Market Value": i.market_value,
                "Segment": i.segment,
                "Div/Unit 12m": i.distribution_12m,
                "Reasons": "; ".join(i.reasons),
            }
            for i in result.items
        ]

    rows = []
    for item in result:
        if isinstance(item, InstrumentView):
            row = _record_row(item.instrument)
            row.update({
                "Div/Unit 12m": item.distribution_12m,
                "Monthly Income": item.income.monthly_income,
                "Monthly Yield %": item.income.monthly_yield_pct,
                "Daily Income": item.income.daily_income,
                "Magic Number": item.income.magic_number_units,
                "Magic Number Value": item.income.magic_number_value,
                "Profile": item.profile.value,
                "Rank P/VP": item.rank_valuation,
                "Rank DY": item.rank_yield,
                "Combined Rank": item.combined_rank,
                "Reasons": "; ".join(item.reasons),
            })
        elif isinstance(item, ScoredInstrument):
            row = {
                "Ticker": item.identifier,
                "Class": item.asset_class.value,
                "Score": item.score,
                "Risk": item.risk_tier.value,
            }
            row.update(_record_row(item.instrument))
            row["Reasons"] = "; ".join(item.reasons)
        else:
            row = _record_row(item)
        rows.append(row)
    return rows


def _save_snapshot(result: Any, name: str, out_path: Path) -> Path:
    """Save the command result as a JSON snapshot."""
    filepath = out_path / f"{name}.json"
    if isinstance(result, BaseModel):
        filepath.write_text(result.model_dump_json(indent=2), encoding="utf-8")
    else:
        payload = [item.model_dump(mode="json") for item in result]
        filepath.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return filepath


def _write_excel(result: Any, name: str, args: argparse.Namespace, out_path: Path) -> Path:
    filepath = out_path / f"{name}.xlsx"
    df_items = pd.DataFrame(_rows(result))

    summary_rows = [
        {"Field": "Command", "Value": args.command},
        {"Field": "Run Date", "Value": date.today().isoformat()},
        {"Field": "Rows", "Value": len(df_items)},
    ]
    if isinstance(result, PortfolioOutput):
        for bucket, weight in result.bucket_weights.items():
            summary_rows.append({"Field": f"Weight {bucket} %", "Value": weight})
        summary_rows.append({"Field": "Total Weight %", "Value": result.total_weight})
    df_summary = pd.DataFrame(summary_rows)

    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        df_summary.to_excel(writer, sheet_name="Summary", index=False)
        if not df_items.empty:
            df_items.to_excel(writer, sheet_name="Items", index=False)
            _apply_color_formatting(writer.sheets["Items"])

    return filepath


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"\nERROR: {e.message}")
        return EXIT_INVALID_INPUT

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    out_path = Path(args.output)
    out_path.mkdir(parents=True, exist_ok=True)

    print(f"[Screener] Running '{args.command}' ...")
    try:
        result = asyncio.run(run_command(args, settings))
    except (DataAcquisitionError, DataProcessingError) as e:
        print(f"\nERROR: service unavailable — {e.message}")
        return EXIT_SERVICE_UNAVAILABLE
    except (ValidationError, ConfigurationError) as e:
        print(f"\nERROR: {e.message}")
        return EXIT_INVALID_INPUT
    except FiiScreenerException as e:
        print(f"\nERROR: {e.error_code}: {e.message}")
        return EXIT_INVALID_INPUT

    if result is None:
        print(f"[Screener] '{args.identifier}' not found")
        return 0

    name = f"{args.command}_{date.today().isoformat()}"
    snapshot = _save_snapshot(result, name, out_path)
    excel = _write_excel(result if not isinstance(result, InstrumentView) else [result],
                         name, args, out_path)
    count = len(result.items) if isinstance(result, PortfolioOutput) else (
        1 if isinstance(result, BaseModel) else len(result)
    )
    print(f"[Screener] Done — {count} rows")
    print(f"[Screener] Saved: {snapshot}")
    print(f"[Screener] Saved: {excel}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

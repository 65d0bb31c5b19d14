# lobcross/cli.py
# =============================================================================
# Purpose:
#   Command-line interface for the order-book crossover backtester.
#   Wires configuration, snapshot ingestion, the signal generator, the
#   execution simulator and output artifacts together.
#
# Summary:
#   - backtest: load snapshot files, run generator + simulator, print the
#     return and the trade log, optionally save run artifacts
#   - estimate-latency: derive the latency offset from snapshot arrival rate
#
# Design Philosophy:
#   - Keep CLI thin; business logic lives in modules.
#   - All knobs are arguments, environment variables or a YAML file.
# =============================================================================
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, NoReturn, Sequence

from .backtest.costs import bps_to_rate
from .backtest.engine import BacktestResult, run_backtest
from .backtest.metrics import format_return, summarize
from .config import ConfigError, Settings, load_settings
from .data.contracts import SchemaViolationError
from .data.snapshots import estimate_latency_offset, load_snapshots
from .logging_setup import setup_app_logging
from .run_manager import new_run, write_config, write_metrics, write_trades
from .utils.yaml_safe import YAMLSafetyError

logger = logging.getLogger(__name__)

_OVERRIDE_KEYS = (
    "log_level",
    "symbol",
    "short_window",
    "long_window",
    "latency_offset",
    "latency_ms",
    "fee_rate",
    "initial_total",
    "base",
)


def _usage_error(message: str) -> NoReturn:
    print(f"error: {message}", file=sys.stderr)
    raise SystemExit(2)


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides = {key: getattr(args, key, None) for key in _OVERRIDE_KEYS}
    fee_bps = getattr(args, "fee_bps", None)
    if fee_bps is not None:
        overrides["fee_rate"] = bps_to_rate(fee_bps)
    return overrides


def _resolve_settings(args: argparse.Namespace) -> tuple[Settings, Dict[str, str]]:
    try:
        return load_settings(
            cli_overrides=_cli_overrides(args),
            config_file=getattr(args, "config", None),
            include_sources=True,
        )
    except YAMLSafetyError as err:
        _usage_error(str(err))


def _print_result(res: BacktestResult) -> None:
    cfg = res["config"]
    print("\n=== Backtest ===")
    print(f"decisions : {len(res['decisions'])}")
    print(f"trades    : {len(res['trade_log'])}")
    print(f"final     : {res['final_total']:.6f} (base {cfg.base:g})")
    print(f"return    : {format_return(res['return_pct'])}")
    print("\n=== Trade Log ===")
    trades = res["trades"]
    if trades.empty:
        print("(no trades)")
    else:
        print(trades.to_string(index=False))


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------
def cmd_backtest(args: argparse.Namespace) -> BacktestResult:
    """Run the crossover backtest over one or more contiguous snapshot files."""
    settings, sources = _resolve_settings(args)
    setup_app_logging(settings.log_level)
    logger.info("Starting backtest via CLI files=%d", len(args.files))

    try:
        frame = load_snapshots(args.files)
        config = settings.backtest_config(frame)
        res = run_backtest(frame, config)
    except (SchemaViolationError, ConfigError) as err:
        _usage_error(str(err))

    _print_result(res)

    if args.trades_out:
        path = write_trades(Path(args.trades_out), res["trades"])
        print(f"Saved trades -> {path}")

    if args.save_run:
        ctx = new_run(settings.symbol, root=Path(args.runs_dir) if args.runs_dir else None)
        write_config(ctx, config.as_dict(), sources=sources)
        write_metrics(ctx, summarize(res["trade_log"], res["final_total"], config.base))
        write_trades(ctx.trades_file, res["trades"])
        print(f"Run artifacts -> {ctx.run_dir}")

    return res


def cmd_estimate_latency(args: argparse.Namespace) -> int:
    """Print the latency offset implied by the files' snapshot arrival rate."""
    settings, _ = _resolve_settings(args)
    setup_app_logging(settings.log_level)
    try:
        frame = load_snapshots(args.files)
        offset = estimate_latency_offset(
            frame["receiving_time"], latency_ms=settings.latency_ms
        )
    except (SchemaViolationError, ValueError) as err:
        _usage_error(str(err))
    print(f"latency_offset: {offset} (latency_ms={settings.latency_ms:g}, rows={len(frame)})")
    return offset


# -----------------------------------------------------------------------------
# CLI entrypoint
# -----------------------------------------------------------------------------
def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("files", nargs="+", help="Snapshot CSV files (.csv or .csv.gz), in time order")
    p.add_argument("--config", default=None, help="YAML parameter file")
    p.add_argument("--log-level", dest="log_level", default=None, help="Logging level")
    p.add_argument(
        "--latency-ms",
        dest="latency_ms",
        type=float,
        default=None,
        help="Latency budget in milliseconds used by latency_offset=auto",
    )


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI parser so shim modules can reuse it."""
    parser = argparse.ArgumentParser(
        prog="lobcross", description="Order-book SMA crossover backtester"
    )
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("backtest", help="Run the crossover backtest")
    _add_common(p)
    p.add_argument("--symbol", default=None, help="Instrument label for run artifacts")
    p.add_argument("--short-window", dest="short_window", type=int, default=None)
    p.add_argument("--long-window", dest="long_window", type=int, default=None)
    p.add_argument(
        "--latency-offset",
        dest="latency_offset",
        default=None,
        help="Snapshots to shift reference prices forward, or 'auto'",
    )
    fees = p.add_mutually_exclusive_group()
    fees.add_argument("--fee-rate", dest="fee_rate", type=float, default=None)
    fees.add_argument(
        "--fee-bps",
        dest="fee_bps",
        type=float,
        default=None,
        help="Fee in basis points (1 bp = 0.0001)",
    )
    p.add_argument("--initial-total", dest="initial_total", type=float, default=None)
    p.add_argument("--base", type=float, default=None, help="Base capital for returns")
    p.add_argument("--trades-out", dest="trades_out", default=None, help="CSV path for the trade log")
    p.add_argument(
        "--save-run",
        dest="save_run",
        action="store_true",
        help="Write config/metrics/trades into a new runs/ directory",
    )
    p.add_argument("--runs-dir", dest="runs_dir", default=None, help="Override runs/ root")

    e = sub.add_parser("estimate-latency", help="Derive latency_offset from arrival rate")
    _add_common(e)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments and dispatch to subcommands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "backtest":
        cmd_backtest(args)
    elif args.command == "estimate-latency":
        cmd_estimate_latency(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()

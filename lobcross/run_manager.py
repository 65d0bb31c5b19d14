from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd
import yaml

from .paths import RUNS_DIR, safe_slug
from .utils.fs import atomic_write, atomic_write_text, ensure_dir

# Timestamp format: 2025-10-19_170244
TS_FMT = "%Y-%m-%d_%H%M%S"


@dataclass
class RunContext:
    run_id: str
    run_dir: Path
    config_file: Path
    metrics_file: Path
    trades_file: Path


def _compose_run_id(symbol: str | None, when: Optional[datetime] = None) -> str:
    ts = (when or datetime.now(timezone.utc)).strftime(TS_FMT)
    label = safe_slug(symbol) if symbol else "backtest"
    return f"{ts}_{label}_crossover"


def new_run(
    symbol: str | None,
    *,
    root: Path | None = None,
    when: Optional[datetime] = None,
) -> RunContext:
    """Create a fresh run directory for backtest artifacts."""
    run_id = _compose_run_id(symbol, when)
    run_dir = ensure_dir((root or RUNS_DIR) / run_id)
    return RunContext(
        run_id=run_id,
        run_dir=run_dir,
        config_file=run_dir / "config.yaml",
        metrics_file=run_dir / "metrics.json",
        trades_file=run_dir / "trades.csv",
    )


def write_config(ctx: RunContext, config: Dict[str, Any], sources: Dict[str, str] | None = None) -> None:
    """Persist the effective backtest parameters and where each came from."""
    payload: Dict[str, Any] = {"config": config}
    if sources:
        payload["sources"] = sources
    atomic_write_text(ctx.config_file, yaml.safe_dump(payload, sort_keys=False))


def write_metrics(ctx: RunContext, metrics: Dict[str, Any]) -> None:
    serializable = {
        key: (float(value) if isinstance(value, (int, float)) else value)
        for key, value in metrics.items()
    }
    atomic_write_text(ctx.metrics_file, json.dumps(serializable, indent=2))


def write_trades(path: Path, trades: pd.DataFrame) -> Path:
    """Atomically export a trade-log frame as CSV."""

    def _write_frame(fh: Any) -> None:
        trades.to_csv(fh, index=False)

    atomic_write(path, _write_frame, newline="")
    return path

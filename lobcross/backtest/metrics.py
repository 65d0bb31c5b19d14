# lobcross/backtest/metrics.py
# =============================================================================
# Purpose:
#   Reporting helpers for a finished backtest: return on base capital, the
#   display string, and a tabular trade log.
#
# Notes:
#   - return_pct = (final_total / base - 1) * 100
#   - Display rounds to 3 decimal places.
# =============================================================================
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Sequence

import pandas as pd

if TYPE_CHECKING:  # pragma: no cover
    from .engine import TradeLogEntry

TRADE_COLUMNS = ["action", "timestamp", "index", "shares", "price", "total", "fee"]


def return_pct(final_total: float, base: float) -> float:
    if base <= 0:
        raise ValueError(f"base must be > 0; got {base}")
    return (float(final_total) / float(base) - 1.0) * 100.0


def format_return(pct: float) -> str:
    value = round(float(pct), 3)
    if value == 0:
        value = 0.0  # avoid "-0.000%"
    return f"{value:.3f}%"


def trades_frame(trade_log: Sequence["TradeLogEntry"]) -> pd.DataFrame:
    if not trade_log:
        return pd.DataFrame(columns=TRADE_COLUMNS)
    return pd.DataFrame([entry.as_dict() for entry in trade_log], columns=TRADE_COLUMNS)


def summarize(
    trade_log: Sequence["TradeLogEntry"], final_total: float, base: float
) -> Dict[str, float]:
    buys = sum(1 for entry in trade_log if entry.action.value == "buy")
    return {
        "trades": float(len(trade_log)),
        "buys": float(buys),
        "sells": float(len(trade_log) - buys),
        "fees_paid": float(sum(entry.fee for entry in trade_log)),
        "final_total": float(final_total),
        "return_pct": return_pct(final_total, base),
    }

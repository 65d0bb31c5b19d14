# lobcross/backtest/costs.py
# =============================================================================
# Purpose:
#   Proportional transaction cost applied to traded notional.
#
# Notes:
#   - 1 bps = 0.01% = 0.0001 in fractional terms
#   - The default fee is 1 bp per trade, on both buys and sells
# =============================================================================
from __future__ import annotations

BPS = 10_000.0


def bps_to_rate(fee_bps: float) -> float:
    """Convert basis points into a fractional rate."""
    return float(fee_bps) / BPS


def net_of_fee(notional: float, fee_rate: float) -> float:
    """Notional left after paying the proportional fee."""
    return float(notional) * (1.0 - float(fee_rate))

# lobcross/backtest/engine.py
# =============================================================================
# Purpose:
#   Replay crossover decisions against a single long-only account and report
#   the final total, the trade log and the return net of fees.
#
# Model:
#   - Buy at the latency-shifted worst ask, sell at the worst bid
#   - Fully invested or fully flat; no partial sizing, shorting or leverage
#   - Proportional fee on traded notional (1 bp default), compounding
#   - A sell while already flat is skipped, not re-marked
#
# Bootstrap rules for a sequence that opens with a sell:
#   - the sell sizes its position as base / price and is left out of the log,
#     but its effect on the account is kept
#   - the first buy after it redeploys from base
# =============================================================================
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple, TypedDict

import pandas as pd

from lobcross.config import BacktestConfig
from lobcross.strategy.crossover import Action, Decision, SnapshotInput, generate_from_config

from .costs import net_of_fee
from .metrics import return_pct, trades_frame

logger = logging.getLogger(__name__)


@dataclass
class AccountState:
    """Running account; mutated one decision at a time by the simulator."""

    total: float
    base: float
    shares: float = 0.0
    processed: int = 0
    leading_sell: bool = False
    awaiting_first_buy: bool = False
    bootstrap_shares: Optional[float] = None
    skipped: int = 0

    @property
    def is_first_decision(self) -> bool:
        return self.processed == 0


@dataclass(frozen=True)
class TradeLogEntry:
    action: Action
    timestamp: pd.Timestamp
    index: int
    shares: float
    price: float
    total: float
    fee: float

    def as_dict(self) -> dict:
        return {
            "action": self.action.value,
            "timestamp": self.timestamp,
            "index": self.index,
            "shares": self.shares,
            "price": self.price,
            "total": self.total,
            "fee": self.fee,
        }


@dataclass(frozen=True)
class SimulationResult:
    final_total: float
    trade_log: Tuple[TradeLogEntry, ...]
    state: AccountState


class ExecutionSimulator:
    """Sequential account simulator for a stream of crossover decisions."""

    def __init__(self, initial_total: float, base: float, fee_rate: float) -> None:
        if not math.isfinite(base) or base <= 0:
            raise ValueError(f"base must be positive and finite; got {base}")
        if not math.isfinite(fee_rate) or not 0.0 <= fee_rate < 1.0:
            raise ValueError(f"fee_rate must be in [0, 1); got {fee_rate}")
        if not math.isfinite(initial_total):
            raise ValueError(f"initial_total must be finite; got {initial_total}")
        self.fee_rate = float(fee_rate)
        self.state = AccountState(total=float(initial_total), base=float(base))
        self._log: List[TradeLogEntry] = []

    @property
    def trade_log(self) -> Tuple[TradeLogEntry, ...]:
        return tuple(self._log)

    # ------------------------------------------------------------------
    def process(self, decision: Decision) -> TradeLogEntry | None:
        """Apply one decision; return the logged entry, if any."""

        if decision.action is Action.BUY:
            entry = self._buy(decision)
        else:
            entry = self._sell(decision)
        self.state.processed += 1
        return entry

    # ------------------------------------------------------------------
    def _buy(self, decision: Decision) -> TradeLogEntry | None:
        state = self.state
        if state.awaiting_first_buy:
            logger.info(
                "bootstrap_reset total=%.6f base=%.6f index=%d",
                state.total,
                state.base,
                decision.index,
            )
            state.total = state.base
            state.awaiting_first_buy = False
        if state.total <= 0:
            return self._skip(decision, "depleted")

        price = decision.ask_ref
        amount = net_of_fee(state.total, self.fee_rate)
        fee = state.total - amount
        state.shares = amount / price
        state.total = state.shares * price
        entry = TradeLogEntry(
            action=Action.BUY,
            timestamp=decision.timestamp,
            index=decision.index,
            shares=state.shares,
            price=price,
            total=state.total,
            fee=fee,
        )
        self._log.append(entry)
        logger.debug(
            "trade side=buy index=%d shares=%.8f price=%.6f total=%.6f",
            decision.index,
            state.shares,
            price,
            state.total,
        )
        return entry

    # ------------------------------------------------------------------
    def _sell(self, decision: Decision) -> TradeLogEntry | None:
        state = self.state
        opening = state.is_first_decision
        if opening:
            state.leading_sell = True
            state.awaiting_first_buy = True
        if state.total <= 0:
            return self._skip(decision, "depleted")
        if not opening and state.shares <= 0:
            return self._skip(decision, "flat")

        price = decision.bid_ref
        if opening:
            state.shares = state.base / price
            state.bootstrap_shares = state.shares
        sold = state.shares
        notional = sold * price
        state.total = net_of_fee(notional, self.fee_rate)
        state.shares = 0.0
        entry = TradeLogEntry(
            action=Action.SELL,
            timestamp=decision.timestamp,
            index=decision.index,
            shares=sold,
            price=price,
            total=state.total,
            fee=notional - state.total,
        )
        if opening:
            logger.info(
                "leading_sell_discarded index=%d bootstrap_shares=%.8f price=%.6f total=%.6f",
                decision.index,
                sold,
                price,
                state.total,
            )
            return None
        self._log.append(entry)
        logger.debug(
            "trade side=sell index=%d shares=%.8f price=%.6f total=%.6f",
            decision.index,
            sold,
            price,
            state.total,
        )
        return entry

    # ------------------------------------------------------------------
    def _skip(self, decision: Decision, reason: str) -> None:
        self.state.skipped += 1
        logger.warning(
            "trade_skipped reason=%s side=%s index=%d total=%.6f",
            reason,
            decision.action.value,
            decision.index,
            self.state.total,
        )
        return None

    # ------------------------------------------------------------------
    def result(self) -> SimulationResult:
        return SimulationResult(
            final_total=self.state.total,
            trade_log=self.trade_log,
            state=replace(self.state),
        )


def simulate(
    decisions: Iterable[Decision],
    initial_total: float,
    base: float,
    fee_rate: float,
) -> SimulationResult:
    """Consume decisions in order and return the final total and trade log."""

    sim = ExecutionSimulator(initial_total=initial_total, base=base, fee_rate=fee_rate)
    for decision in decisions:
        sim.process(decision)
    return sim.result()


class BacktestResult(TypedDict):
    decisions: List[Decision]
    trade_log: Tuple[TradeLogEntry, ...]
    trades: pd.DataFrame
    final_total: float
    return_pct: float
    state: AccountState
    config: BacktestConfig


def run_backtest(
    snapshots: SnapshotInput, config: BacktestConfig | None = None
) -> BacktestResult:
    """Generate crossover decisions from snapshots and simulate them."""

    cfg = config or BacktestConfig()
    decisions = list(generate_from_config(snapshots, cfg))
    sim = simulate(
        decisions,
        initial_total=cfg.initial_total,
        base=cfg.base,
        fee_rate=cfg.fee_rate,
    )
    # No decisions means no position was ever taken: flat return.
    pct = return_pct(sim.final_total, cfg.base) if decisions else 0.0
    logger.info(
        "backtest_complete decisions=%d trades=%d final_total=%.6f return_pct=%.3f",
        len(decisions),
        len(sim.trade_log),
        sim.final_total,
        pct,
    )
    return {
        "decisions": decisions,
        "trade_log": sim.trade_log,
        "trades": trades_frame(sim.trade_log),
        "final_total": sim.final_total,
        "return_pct": pct,
        "state": sim.state,
        "config": cfg,
    }

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from lobcross.config import (
    DEFAULT_LATENCY_OFFSET,
    DEFAULT_LONG_WINDOW,
    DEFAULT_SHORT_WINDOW,
    BacktestConfig,
    validate_windows,
)
from lobcross.data.snapshots import (
    Snapshot,
    price_series,
    snapshots_to_frame,
    validate_snapshot_frame,
)

logger = logging.getLogger(__name__)

SnapshotInput = Union[pd.DataFrame, Sequence[Snapshot]]


class Action(str, Enum):
    """Discrete trade decision emitted on a crossover."""

    BUY = "buy"
    SELL = "sell"


class Bias(str, Enum):
    """State of the crossover machine: which average currently leads."""

    LONG_BIAS = "long_bias"
    SHORT_BIAS = "short_bias"

    @classmethod
    def from_averages(cls, sma_short: float, sma_long: float) -> "Bias":
        # Ties count as long.
        return cls.LONG_BIAS if sma_short >= sma_long else cls.SHORT_BIAS

    @property
    def action(self) -> Action:
        return Action.BUY if self is Bias.LONG_BIAS else Action.SELL


@dataclass(frozen=True)
class Decision:
    """A crossover transition with the latency-shifted reference prices."""

    index: int
    timestamp: pd.Timestamp
    bid_ref: float
    ask_ref: float
    sma_short: float
    sma_long: float
    action: Action

    def as_dict(self) -> dict:
        return {
            "index": self.index,
            "timestamp": self.timestamp,
            "bid_ref": self.bid_ref,
            "ask_ref": self.ask_ref,
            "sma_short": self.sma_short,
            "sma_long": self.sma_long,
            "action": self.action.value,
        }


class CrossoverStateMachine:
    """Two-state machine with edge-triggered emission.

    ``observe`` returns the action for a bias change and ``None`` for a hold.
    The first observation has no predecessor and always emits.
    """

    def __init__(self) -> None:
        self.state: Bias | None = None

    def observe(self, bias: Bias) -> Action | None:
        previous = self.state
        self.state = bias
        if previous is bias:
            return None
        return bias.action

    def reset(self) -> None:
        self.state = None


def _as_frame(snapshots: SnapshotInput) -> pd.DataFrame:
    if isinstance(snapshots, pd.DataFrame):
        return validate_snapshot_frame(snapshots)
    return snapshots_to_frame(snapshots)


def moving_averages(
    series: pd.Series, short_window: int, long_window: int
) -> Tuple[pd.Series, pd.Series]:
    """Simple moving averages, NaN until each window has filled."""

    values = series.astype(float)
    sma_short = values.rolling(window=short_window, min_periods=short_window).mean()
    sma_long = values.rolling(window=long_window, min_periods=long_window).mean()
    return sma_short, sma_long


def generate(
    snapshots: SnapshotInput,
    short_window: int = DEFAULT_SHORT_WINDOW,
    long_window: int = DEFAULT_LONG_WINDOW,
    latency_offset: int = DEFAULT_LATENCY_OFFSET,
) -> Iterator[Decision]:
    """Lazily yield buy/sell decisions on short/long SMA crossovers of the worst bid.

    Reference prices are read ``latency_offset`` snapshots ahead of the
    decision index; indices whose shifted position runs past the end of the
    data are dropped. Fewer than ``long_window`` snapshots yields nothing.
    """

    validate_windows(short_window, long_window, latency_offset)
    frame = _as_frame(snapshots)
    return _emit(frame, int(short_window), int(long_window), int(latency_offset))


def generate_from_config(
    snapshots: SnapshotInput, config: BacktestConfig
) -> Iterator[Decision]:
    return generate(
        snapshots,
        short_window=config.short_window,
        long_window=config.long_window,
        latency_offset=config.latency_offset,
    )


def _emit(
    frame: pd.DataFrame, short_window: int, long_window: int, latency_offset: int
) -> Iterator[Decision]:
    n = len(frame)
    first = long_window - 1
    stop = n - latency_offset
    if first >= stop:
        logger.info(
            "crossover_insufficient_data rows=%d long_window=%d latency_offset=%d",
            n,
            long_window,
            latency_offset,
        )
        return

    worst_bid, worst_ask = price_series(frame)
    sma_short, sma_long = moving_averages(worst_bid, short_window, long_window)
    short_arr = sma_short.to_numpy()
    long_arr = sma_long.to_numpy()
    bid_arr = worst_bid.to_numpy()
    ask_arr = worst_ask.to_numpy()
    stamps = frame["receiving_time"].reset_index(drop=True)

    machine = CrossoverStateMachine()
    emitted = 0
    for i in range(first, stop):
        s_val, l_val = float(short_arr[i]), float(long_arr[i])
        if np.isnan(s_val) or np.isnan(l_val):
            continue
        action = machine.observe(Bias.from_averages(s_val, l_val))
        if action is None:
            continue
        emitted += 1
        shifted = i + latency_offset
        yield Decision(
            index=i,
            timestamp=stamps.iloc[i],
            bid_ref=float(bid_arr[shifted]),
            ask_ref=float(ask_arr[shifted]),
            sma_short=s_val,
            sma_long=l_val,
            action=action,
        )
    logger.info(
        "crossover_complete evaluated=%d decisions=%d", stop - first, emitted
    )

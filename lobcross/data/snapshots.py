# lobcross/data/snapshots.py
# =============================================================================
# Purpose:
#   Ingestion boundary for limit-order-book snapshots. Raw files become a
#   validated, time-ordered DataFrame with 43 named columns; malformed records
#   reject the whole run instead of leaking NaNs into the moving averages.
#
# Record layout (headerless CSV, optionally .gz):
#   matching_time, receiving_time, symbol,
#   then for level k = 1..10: bid_price_k, bid_qty_k, ask_price_k, ask_qty_k
#   Level 1 is the best quote, level 10 the worst displayed quote.
#
# Notes:
#   - Timestamps are parsed and floored to millisecond precision.
#   - Files are concatenated in the order given and must be time-contiguous;
#     nothing is re-sorted.
# =============================================================================
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence, Tuple

import pandas as pd

from lobcross.utils.data_hygiene import coerce_numeric, normalize_null_tokens

from .contracts import ColumnSpec, DataContract, SchemaViolationError

logger = logging.getLogger(__name__)

LEVELS = 10
WORST_LEVEL = LEVELS

DEFAULT_NULL_TOKENS: Tuple[str, ...] = ("", "null", "none", "nan", "na", "n/a", "-")

TIME_COLUMNS = ["matching_time", "receiving_time"]
SNAPSHOT_COLUMNS = TIME_COLUMNS + ["symbol"] + [
    name
    for level in range(1, LEVELS + 1)
    for name in (
        f"bid_price_{level}",
        f"bid_qty_{level}",
        f"ask_price_{level}",
        f"ask_qty_{level}",
    )
]
NUMERIC_COLUMNS = SNAPSHOT_COLUMNS[3:]

WORST_BID_COLUMN = f"bid_price_{WORST_LEVEL}"
WORST_ASK_COLUMN = f"ask_price_{WORST_LEVEL}"


def _column_spec(name: str) -> ColumnSpec:
    if name in TIME_COLUMNS:
        return ColumnSpec(name, "datetime")
    if name == "symbol":
        return ColumnSpec(name, "string")
    if "_price_" in name:
        return ColumnSpec(name, "float", positive=True)
    return ColumnSpec(name, "float", non_negative=True)


SNAPSHOT_CONTRACT = DataContract(
    "snapshots",
    tuple(_column_spec(name) for name in SNAPSHOT_COLUMNS),
    order_by="receiving_time",
)


Level = Tuple[float, float]


@dataclass(frozen=True)
class Snapshot:
    """One order-book observation; ``bids[0]``/``asks[0]`` are the best quotes."""

    matching_time: pd.Timestamp
    receiving_time: pd.Timestamp
    symbol: str
    bids: Tuple[Level, ...]
    asks: Tuple[Level, ...]

    def __post_init__(self) -> None:
        if len(self.bids) != LEVELS or len(self.asks) != LEVELS:
            raise SchemaViolationError(
                f"snapshot requires {LEVELS} bid and ask levels; "
                f"got {len(self.bids)} bids, {len(self.asks)} asks"
            )

    @property
    def best_bid(self) -> float:
        return self.bids[0][0]

    @property
    def best_ask(self) -> float:
        return self.asks[0][0]

    @property
    def worst_bid(self) -> float:
        return self.bids[-1][0]

    @property
    def worst_ask(self) -> float:
        return self.asks[-1][0]

    def to_row(self) -> dict:
        row: dict = {
            "matching_time": self.matching_time,
            "receiving_time": self.receiving_time,
            "symbol": self.symbol,
        }
        for level, ((bid_px, bid_qty), (ask_px, ask_qty)) in enumerate(
            zip(self.bids, self.asks), start=1
        ):
            row[f"bid_price_{level}"] = bid_px
            row[f"bid_qty_{level}"] = bid_qty
            row[f"ask_price_{level}"] = ask_px
            row[f"ask_qty_{level}"] = ask_qty
        return row

    @classmethod
    def from_row(cls, row: pd.Series) -> "Snapshot":
        bids = tuple(
            (float(row[f"bid_price_{level}"]), float(row[f"bid_qty_{level}"]))
            for level in range(1, LEVELS + 1)
        )
        asks = tuple(
            (float(row[f"ask_price_{level}"]), float(row[f"ask_qty_{level}"]))
            for level in range(1, LEVELS + 1)
        )
        return cls(
            matching_time=pd.Timestamp(row["matching_time"]),
            receiving_time=pd.Timestamp(row["receiving_time"]),
            symbol=str(row["symbol"]),
            bids=bids,
            asks=asks,
        )


def validate_snapshot_frame(frame: pd.DataFrame, *, source: str = "snapshots") -> pd.DataFrame:
    """Apply the 43-column contract and the single-instrument rule."""

    try:
        SNAPSHOT_CONTRACT.validate(frame)
    except SchemaViolationError as exc:
        raise SchemaViolationError(f"{source}: {exc}") from exc
    symbols = frame["symbol"].unique()
    if len(symbols) > 1:
        listed = ", ".join(sorted(str(sym) for sym in symbols))
        raise SchemaViolationError(f"{source}: expected a single instrument; got {listed}")
    return frame


def snapshots_to_frame(snapshots: Iterable[Snapshot]) -> pd.DataFrame:
    """Tabulate Snapshot records into the validated column layout."""

    rows = [snap.to_row() for snap in snapshots]
    frame = pd.DataFrame(rows, columns=SNAPSHOT_COLUMNS)
    if frame.empty:
        return _empty_frame()
    for col in TIME_COLUMNS:
        frame[col] = pd.to_datetime(frame[col]).dt.floor("ms")
    frame[NUMERIC_COLUMNS] = frame[NUMERIC_COLUMNS].astype(float)
    return validate_snapshot_frame(frame, source="snapshot records")


def iter_snapshots(frame: pd.DataFrame) -> Iterator[Snapshot]:
    for _, row in frame.iterrows():
        yield Snapshot.from_row(row)


def _empty_frame() -> pd.DataFrame:
    frame = pd.DataFrame({col: pd.Series(dtype=float) for col in SNAPSHOT_COLUMNS})
    for col in TIME_COLUMNS:
        frame[col] = pd.Series(dtype="datetime64[ns]")
    frame["symbol"] = pd.Series(dtype=object)
    return frame


def _parse_times(series: pd.Series, *, column: str, source: str) -> pd.Series:
    parsed = pd.to_datetime(series, errors="coerce", format="ISO8601")
    bad = parsed.isna()
    if bad.any():
        row = int(bad.to_numpy().argmax())
        raise SchemaViolationError(
            f"{source}: unparseable {column} at row {row}: {series.iloc[row]!r}"
        )
    return parsed.dt.floor("ms")


def _looks_like_header(first: pd.Series, null_tokens: Sequence[str]) -> bool:
    cells = first.iloc[3:].astype(str).str.strip()
    nulls = {token.strip().lower() for token in null_tokens}
    if cells.str.lower().isin(nulls).any():
        return False
    return bool(pd.to_numeric(cells, errors="coerce").isna().all())


def parse_snapshot_frame(
    raw: pd.DataFrame,
    *,
    null_tokens: Sequence[str] = DEFAULT_NULL_TOKENS,
    source: str = "snapshots",
) -> pd.DataFrame:
    """Turn a positional 43-field string frame into the validated layout."""

    if raw.shape[1] != len(SNAPSHOT_COLUMNS):
        raise SchemaViolationError(
            f"{source}: expected {len(SNAPSHOT_COLUMNS)} fields per record; got {raw.shape[1]}"
        )
    frame = raw.copy()
    frame.columns = SNAPSHOT_COLUMNS
    if not frame.empty and _looks_like_header(frame.iloc[0], null_tokens):
        frame = frame.iloc[1:]
    frame = frame.reset_index(drop=True)
    if frame.empty:
        return _empty_frame()

    frame = normalize_null_tokens(frame, null_tokens)
    for col in TIME_COLUMNS:
        frame[col] = _parse_times(frame[col], column=col, source=source)
    frame, bad = coerce_numeric(frame, NUMERIC_COLUMNS)
    if bad:
        raise SchemaViolationError(
            f"{source}: non-numeric values in columns: {', '.join(bad)}"
        )
    return validate_snapshot_frame(frame, source=source)


def read_snapshot_file(
    path: Path | str,
    *,
    null_tokens: Sequence[str] = DEFAULT_NULL_TOKENS,
) -> pd.DataFrame:
    """Read a single (optionally compressed) snapshot file."""

    path = Path(path)
    try:
        raw = pd.read_csv(
            path,
            header=None,
            dtype=str,
            keep_default_na=False,
            compression="infer",
        )
    except FileNotFoundError as exc:
        raise SchemaViolationError(f"snapshot file not found: {path}") from exc
    except pd.errors.EmptyDataError:
        raw = pd.DataFrame(columns=range(len(SNAPSHOT_COLUMNS)))
    except pd.errors.ParserError as exc:
        raise SchemaViolationError(f"{path}: malformed CSV: {exc}") from exc
    frame = parse_snapshot_frame(raw, null_tokens=null_tokens, source=str(path))
    logger.info("snapshots_loaded path=%s rows=%d", path, len(frame))
    return frame


def concat_contiguous(frames: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Concatenate frames in order, rejecting any backwards jump at the seams."""

    non_empty = [frame for frame in frames if not frame.empty]
    if not non_empty:
        return _empty_frame()
    for index, (prev, nxt) in enumerate(zip(non_empty, non_empty[1:]), start=1):
        last = prev["receiving_time"].iloc[-1]
        first = nxt["receiving_time"].iloc[0]
        if first < last:
            raise SchemaViolationError(
                f"segment {index} starts at {first} before previous segment ends at {last}"
            )
    combined = pd.concat(non_empty, ignore_index=True)
    return validate_snapshot_frame(combined, source="concatenated snapshots")


def load_snapshots(
    paths: Sequence[Path | str],
    *,
    null_tokens: Sequence[str] = DEFAULT_NULL_TOKENS,
) -> pd.DataFrame:
    """Load and join time-contiguous snapshot files into one ordered frame."""

    if not paths:
        raise SchemaViolationError("no snapshot files supplied")
    frames = [read_snapshot_file(path, null_tokens=null_tokens) for path in paths]
    combined = concat_contiguous(frames)
    logger.info("snapshots_ready files=%d rows=%d", len(frames), len(combined))
    return combined


def price_series(frame: pd.DataFrame) -> Tuple[pd.Series, pd.Series]:
    """Return the (worst bid, worst ask) reference price series."""

    return (
        frame[WORST_BID_COLUMN].astype(float).reset_index(drop=True),
        frame[WORST_ASK_COLUMN].astype(float).reset_index(drop=True),
    )


def estimate_latency_offset(receiving_times: pd.Series, latency_ms: float = 100.0) -> int:
    """Convert a latency budget into a snapshot count.

    offset = round(arrival_rate_per_second * latency_ms / 1000). Sequences too
    short (or too bursty) to measure a rate give 0.
    """

    if latency_ms < 0:
        raise ValueError(f"latency_ms must be >= 0; got {latency_ms}")
    times = pd.to_datetime(pd.Series(receiving_times)).reset_index(drop=True)
    if len(times) < 2:
        return 0
    span = (times.iloc[-1] - times.iloc[0]).total_seconds()
    if span <= 0:
        return 0
    rate = (len(times) - 1) / span
    return max(0, int(round(rate * latency_ms / 1000.0)))

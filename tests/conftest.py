import socket
import sys
from pathlib import Path
from typing import Callable, Generator, Sequence

import numpy as np
import pandas as pd
import pytest

# Ensure the project root is on sys.path so `import lobcross` works in tests.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lobcross.data.snapshots import LEVELS, SNAPSHOT_COLUMNS  # noqa: E402

TICK = 0.2


class NetworkAccessError(RuntimeError):
    """Raised when a test attempts to open an outbound socket."""


@pytest.fixture(scope="session", autouse=True)
def _block_outbound_sockets() -> Generator[None, None, None]:
    """Guard the test suite against unintended outbound network calls."""

    original_socket = socket.socket
    original_create_connection = socket.create_connection

    class GuardedSocket(socket.socket):
        def connect(self, address):  # type: ignore[override]
            raise NetworkAccessError(
                f"Outbound network disabled during tests: attempted connect to {address}"
            )

        def connect_ex(self, address):  # type: ignore[override]
            raise OSError(
                f"Outbound network disabled during tests: attempted connect to {address}"
            )

    def guarded_create_connection(*args: object, **kwargs: object) -> socket.socket:  # type: ignore[override]
        raise NetworkAccessError(
            f"Outbound network disabled during tests: attempted create_connection to {args[0]}"
        )

    setattr(socket, "socket", GuardedSocket)
    setattr(socket, "create_connection", guarded_create_connection)
    try:
        yield
    finally:
        setattr(socket, "socket", original_socket)
        setattr(socket, "create_connection", original_create_connection)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep LOBCROSS_* variables and any stray .env out of config resolution."""

    for key in [
        "LOG_LEVEL",
        "LOBCROSS_SYMBOL",
        "LOBCROSS_SHORT_WINDOW",
        "LOBCROSS_LONG_WINDOW",
        "LOBCROSS_LATENCY_OFFSET",
        "LOBCROSS_LATENCY_MS",
        "LOBCROSS_FEE_RATE",
        "LOBCROSS_INITIAL_TOTAL",
        "LOBCROSS_BASE",
    ]:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


def build_book_frame(
    worst_bid: Sequence[float],
    worst_ask: Sequence[float] | None = None,
    *,
    start: str = "2024-01-02 09:30:00",
    step_ms: int = 30,
    symbol: str = "IF2401",
) -> pd.DataFrame:
    """Synthetic snapshot frame whose level-10 quotes are the given series."""

    bids = np.asarray(worst_bid, dtype=float)
    asks = bids + 4.0 if worst_ask is None else np.asarray(worst_ask, dtype=float)
    n = len(bids)
    times = pd.date_range(start, periods=n, freq=f"{step_ms}ms")
    data: dict = {
        "matching_time": times,
        "receiving_time": times,
        "symbol": np.full(n, symbol, dtype=object),
    }
    qty = np.ones(n)
    for level in range(1, LEVELS + 1):
        depth = LEVELS - level
        data[f"bid_price_{level}"] = bids + depth * TICK
        data[f"bid_qty_{level}"] = qty
        data[f"ask_price_{level}"] = asks - depth * TICK
        data[f"ask_qty_{level}"] = qty
    return pd.DataFrame(data, columns=SNAPSHOT_COLUMNS)


@pytest.fixture
def book_frame() -> Callable[..., pd.DataFrame]:
    return build_book_frame


@pytest.fixture
def write_snapshot_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write a frame in the headerless 43-field file layout."""

    def _write(
        frame: pd.DataFrame,
        name: str = "snapshots.csv",
        *,
        header: bool = False,
    ) -> Path:
        path = tmp_path / name
        frame.to_csv(
            path,
            index=False,
            header=header,
            date_format="%Y-%m-%d %H:%M:%S.%f",
            compression="infer",
        )
        return path

    return _write


@pytest.fixture
def crossover_example_frame() -> pd.DataFrame:
    """60,100 snapshots: worst bid flat at 100, then 101/99 in 20,000-tick blocks."""

    flat = np.full(60_000, 100.0)
    tail_len = 100
    blocks = np.where((np.arange(tail_len) // 20_000) % 2 == 0, 101.0, 99.0)
    return build_book_frame(np.concatenate([flat, blocks[:tail_len]]))

"""Order-book snapshot ingestion and data contracts."""

from .contracts import ColumnSpec, DataContract, SchemaViolationError
from .snapshots import (
    SNAPSHOT_COLUMNS,
    SNAPSHOT_CONTRACT,
    Snapshot,
    estimate_latency_offset,
    iter_snapshots,
    load_snapshots,
    price_series,
    snapshots_to_frame,
)

__all__ = [
    "ColumnSpec",
    "DataContract",
    "SchemaViolationError",
    "SNAPSHOT_COLUMNS",
    "SNAPSHOT_CONTRACT",
    "Snapshot",
    "estimate_latency_offset",
    "iter_snapshots",
    "load_snapshots",
    "price_series",
    "snapshots_to_frame",
]

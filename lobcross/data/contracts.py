from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

import pandas as pd
from pandas.api import types as ptypes

__all__ = ["ColumnSpec", "DataContract", "SchemaViolationError"]


class SchemaViolationError(ValueError):
    """Raised when data does not satisfy the declared contract."""


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    dtype: str
    nullable: bool = False
    positive: bool = False
    non_negative: bool = False

    def validate(self, series: pd.Series) -> None:
        check = self._checker()
        if not check(series):
            raise SchemaViolationError(f"column '{self.name}' expected {self.dtype}")
        if not self.nullable and series.isna().any():
            first = int(series.isna().to_numpy().argmax())
            raise SchemaViolationError(
                f"column '{self.name}' contains nulls (first at row {first})"
            )
        if self.positive and (series.dropna() <= 0).any():
            raise SchemaViolationError(f"column '{self.name}' must be > 0")
        if self.non_negative and (series.dropna() < 0).any():
            raise SchemaViolationError(f"column '{self.name}' must be >= 0")

    def _checker(self) -> Callable[[pd.Series], bool]:
        kind = self.dtype.lower()
        if kind in {"float", "float64", "float32"}:
            return ptypes.is_float_dtype
        if kind in {"int", "int64", "int32"}:
            return ptypes.is_integer_dtype
        if kind in {"datetime", "datetime64"}:
            return ptypes.is_datetime64_any_dtype
        if kind in {"string", "object"}:
            return lambda s: ptypes.is_object_dtype(s) or ptypes.is_string_dtype(s)
        raise SchemaViolationError(f"unsupported dtype '{self.dtype}'")


@dataclass
class DataContract:
    """Column-level contract plus an optional non-decreasing ordering key."""

    name: str
    columns: Sequence[ColumnSpec]
    order_by: str | None = None
    allow_extra: bool = False

    @property
    def column_names(self) -> list[str]:
        return [spec.name for spec in self.columns]

    def validate(self, frame: pd.DataFrame) -> pd.DataFrame:
        if not isinstance(frame, pd.DataFrame):
            raise SchemaViolationError(f"{self.name}: payload must be a DataFrame")
        missing = [spec.name for spec in self.columns if spec.name not in frame.columns]
        if missing:
            joined = ", ".join(missing)
            raise SchemaViolationError(f"{self.name}: missing columns: {joined}")
        if not self.allow_extra:
            known = set(self.column_names)
            extras = [col for col in frame.columns if col not in known]
            if extras:
                joined = ", ".join(str(col) for col in extras)
                raise SchemaViolationError(f"{self.name}: unexpected columns: {joined}")
        for spec in self.columns:
            spec.validate(frame[spec.name])
        if self.order_by is not None and not frame[self.order_by].is_monotonic_increasing:
            raise SchemaViolationError(
                f"{self.name}: '{self.order_by}' must be non-decreasing"
            )
        return frame

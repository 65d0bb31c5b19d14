from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np
import pandas as pd
from pandas.api import types as ptypes


def normalize_null_tokens(df: pd.DataFrame, tokens: Iterable[str]) -> pd.DataFrame:
    """Replace vendor null markers (after stripping whitespace) with NaN."""
    lookup = {token.strip().lower() for token in tokens}
    df = df.copy()
    for col in df.columns:
        series = df[col]
        if not (ptypes.is_object_dtype(series) or ptypes.is_string_dtype(series)):
            continue
        stripped = series.astype(str).str.strip()
        mask = series.isna() | stripped.str.lower().isin(lookup)
        df[col] = stripped.mask(mask, np.nan)
    return df


def coerce_numeric(df: pd.DataFrame, cols: Sequence[str]) -> tuple[pd.DataFrame, list[str]]:
    """Convert *cols* to float64 and report the columns holding unparseable values.

    Unlike a cleaning pass, nothing is dropped: callers decide whether a bad
    cell rejects the whole frame.
    """
    df = df.copy()
    bad: list[str] = []
    for c in cols:
        original = df[c]
        converted = pd.to_numeric(original, errors="coerce").astype(float)
        converted = converted.replace([np.inf, -np.inf], np.nan)
        if (converted.isna() & original.notna()).any():
            bad.append(c)
        df[c] = converted
    return df, bad

from __future__ import annotations

import numpy as np
import pandas as pd

from lobcross.utils.data_hygiene import coerce_numeric, normalize_null_tokens


def test_normalize_null_tokens_strips_and_masks() -> None:
    df = pd.DataFrame({"px": [" 1.5 ", "NULL", "-", "2"], "n": [1, 2, 3, 4]})

    out = normalize_null_tokens(df, ["null", "-"])

    assert out["px"].tolist()[0] == "1.5"
    assert out["px"].isna().tolist() == [False, True, True, False]
    assert out["n"].tolist() == [1, 2, 3, 4]
    # Input is left untouched.
    assert df["px"].iloc[1] == "NULL"


def test_coerce_numeric_reports_bad_columns() -> None:
    df = pd.DataFrame({"a": ["1", "2.5", np.nan], "b": ["3", "x", "inf"]})

    out, bad = coerce_numeric(df, ["a", "b"])

    assert bad == ["b"]
    assert out["a"].dtype == float
    assert out["a"].iloc[1] == 2.5
    assert out["b"].isna().tolist() == [False, True, True]

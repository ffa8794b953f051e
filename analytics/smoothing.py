from __future__ import annotations

"""Smoothing utilities (EWMA of exam scores)."""

import pandas as pd


def ewma_scores(df: pd.DataFrame, span: int, value_col: str = "score") -> pd.DataFrame:
    """EWMA of `value_col` per subject over exam order.

    Returns a copy sorted by (subject_id, exam_idx) with a new column
    f"{value_col}_smooth". Groups a Series rather than the DataFrame to keep
    pandas from warning about DataFrameGroupBy.apply.
    """
    g = df.sort_values(["subject_id", "exam_idx"], kind="stable").copy()
    if g.empty:
        g[f"{value_col}_smooth"] = pd.Series(dtype="float32")
        return g
    smooth = g.groupby("subject_id", observed=True)[value_col].transform(lambda s: s.ewm(span=span).mean())
    g[f"{value_col}_smooth"] = smooth.astype("float32")
    return g

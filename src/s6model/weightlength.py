from __future__ import annotations

from typing import Any, Dict, Sequence
from warnings import warn

import numpy as np
import pandas as pd
from scipy.stats import linregress

__all__ = ["fit_wl", "l2w", "add_weight"]


def fit_wl(df: pd.DataFrame, colnames: Sequence[str] = ("Weight", "Length")) -> Dict[str, float]:
    """Fit W = a * L^b by linear regression of log(W) on log(L).

    `colnames` names the weight and length columns of `df`, in that order.
    """
    wcol, lcol = colnames
    sub = df[[wcol, lcol]].dropna()
    w = sub[wcol].to_numpy(dtype=float)
    length = sub[lcol].to_numpy(dtype=float)
    ok = (w > 0) & (length > 0)
    if np.count_nonzero(ok) < 2:
        raise ValueError("fit_wl needs at least two rows with positive weight and length.")
    fit = linregress(np.log(length[ok]), np.log(w[ok]))
    return {"a": float(np.exp(fit.intercept)), "b": float(fit.slope)}


def l2w(length: Any, a: float, b: float) -> Any:
    """Length to weight: a * length^b."""
    if isinstance(length, pd.Series):
        return a * length**b
    return a * np.asarray(length, dtype=float) ** b


def add_weight(df: pd.DataFrame, a: float, b: float, lengthcol: str = "Length") -> pd.DataFrame:
    """Return a copy of `df` with a Weight column computed from `lengthcol`.

    If `df` already has a Weight column it is returned unchanged, with a warning.
    """
    if "Weight" in df.columns:
        warn("Column `Weight` exists, the original data frame `df` is returned", UserWarning)
        return df
    out = df.copy()
    out["Weight"] = l2w(out[lengthcol], a, b)
    return out

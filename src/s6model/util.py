from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

import numpy as np
from scipy.stats import truncnorm


def _steps(x0: np.ndarray, step: Optional[float]) -> np.ndarray:
    step = 1e-4 if step is None else float(step)
    return step * (np.abs(x0) + 1.0)


def numdiff_hessian(
    func: Callable[[np.ndarray], float],
    x0: Any,
    step: Optional[float] = None,
) -> np.ndarray:
    """Central finite-difference Hessian of a scalar function.

    `step` is relative: eps_i = step * (|x0_i| + 1), default 1e-4.
    """
    x0 = np.asarray(x0, dtype=float).reshape(-1)
    npar = int(x0.shape[0])
    eps = _steps(x0, step)

    f0 = float(func(x0))
    hess = np.zeros((npar, npar), dtype=float)
    for i in range(npar):
        ei = np.zeros(npar, dtype=float)
        ei[i] = eps[i]
        fpp = float(func(x0 + ei))
        fmm = float(func(x0 - ei))
        hess[i, i] = (fpp - 2.0 * f0 + fmm) / (eps[i] ** 2)
        for j in range(i + 1, npar):
            ej = np.zeros(npar, dtype=float)
            ej[j] = eps[j]
            fpp = float(func(x0 + ei + ej))
            fpm = float(func(x0 + ei - ej))
            fmp = float(func(x0 - ei + ej))
            fmm = float(func(x0 - ei - ej))
            hij = (fpp - fpm - fmp + fmm) / (4.0 * eps[i] * eps[j])
            hess[i, j] = hij
            hess[j, i] = hij
    return hess


def numdiff_jacobian(
    func: Callable[[np.ndarray], float],
    x0: Any,
    step: Optional[float] = None,
) -> np.ndarray:
    """Central finite-difference Jacobian (gradient row) of a scalar function.

    Returns shape (1, P), matching the Jacobian of a one-output function.
    """
    x0 = np.asarray(x0, dtype=float).reshape(-1)
    npar = int(x0.shape[0])
    eps = _steps(x0, step)

    jac = np.zeros((1, npar), dtype=float)
    for i in range(npar):
        ei = np.zeros(npar, dtype=float)
        ei[i] = eps[i]
        jac[0, i] = (float(func(x0 + ei)) - float(func(x0 - ei))) / (2.0 * eps[i])
    return jac


def draw_truncated_normal(
    mean: float, sd: float, rng: np.random.Generator, lower: float = 0.0
) -> float:
    """One draw from Normal(mean, sd) truncated to (lower, inf)."""
    mean = float(mean)
    sd = float(sd)
    if sd <= 0:
        return mean
    a = (float(lower) - mean) / sd
    value = float(truncnorm.rvs(a, np.inf, loc=mean, scale=sd, random_state=rng))
    # truncnorm can return the boundary itself for extreme truncation
    if value <= lower:
        value = np.nextafter(float(lower), np.inf)
    return value


def spawn_seeds(
    random_seed: Optional[int], n_outer: int, n_inner: int
) -> List[List[np.random.SeedSequence]]:
    """Independent SeedSequences indexed [outer][inner]."""
    root = np.random.SeedSequence(random_seed)
    return [child.spawn(int(n_inner)) for child in root.spawn(int(n_outer))]


def nan_quantiles(values: np.ndarray, probs: np.ndarray) -> np.ndarray:
    """Quantiles ignoring NaN; all-NaN input gives an all-NaN result."""
    values = np.asarray(values, dtype=float).reshape(-1)
    probs = np.asarray(probs, dtype=float)
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return np.full(probs.shape, np.nan)
    return np.quantile(finite, probs)


def as_bounds(
    lower: np.ndarray, upper: np.ndarray
) -> List[Tuple[Optional[float], Optional[float]]]:
    """(lo, hi) arrays -> scipy bounds list with None for infinite ends."""
    out = []
    for lo_i, hi_i in zip(np.asarray(lower, dtype=float), np.asarray(upper, dtype=float)):
        out.append(
            (
                None if not np.isfinite(lo_i) else float(lo_i),
                None if not np.isfinite(hi_i) else float(hi_i),
            )
        )
    return out

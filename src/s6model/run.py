from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .params import ParameterSet

QUANTITIES: Tuple[str, ...] = ("FFmsy", "Fm", "Winf", "Wfs")
CI_COLUMNS: Tuple[str, ...] = ("Estimate", "Lower", "Upper")


def empty_ci(names) -> pd.DataFrame:
    """All-missing confidence-interval table for `names`."""
    return pd.DataFrame(
        np.full((len(names), len(CI_COLUMNS)), np.nan),
        index=pd.Index(list(names), name="parameter"),
        columns=list(CI_COLUMNS),
    )


@dataclass(frozen=True)
class EstimationResult:
    """Outcome of one maximum-likelihood estimation.

    `params` holds the free parameters at the optimum together with the fixed
    constants. `stderr` is None when the Hessian could not be inverted; `ci`
    is then all-missing while the point estimate stays usable.
    """

    params: ParameterSet
    names: Tuple[str, ...]
    theta: np.ndarray
    objective: float
    convergence: int = 0
    message: str = ""
    hessian: Optional[np.ndarray] = None
    jacobian: Optional[np.ndarray] = None
    stderr: Optional[np.ndarray] = None
    ci: Optional[pd.DataFrame] = None
    call: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.convergence == 0

    @property
    def estimates(self) -> Dict[str, float]:
        """Natural-scale values of the estimated parameters."""
        return {n: self.params.natural_value(n) for n in self.names}

    @property
    def vcm(self) -> Optional[np.ndarray]:
        """Variance-covariance matrix of theta (transformed scale)."""
        if self.stderr is None or self.hessian is None:
            return None
        return np.linalg.inv(self.hessian)

    def summary(self, digits: int = 4) -> str:
        """Return a human-readable summary string for the estimate."""
        status = "converged" if self.success else f"not converged ({self.message})"
        lines = [f"EstimationResult(objective={self.objective:.{digits}g}, {status})"]
        ci = self.ci if self.ci is not None else empty_ci(self.names)
        for name in self.names:
            est, lo, hi = (float(v) for v in ci.loc[name, list(CI_COLUMNS)])
            if not np.isfinite(lo):
                est = self.params.natural_value(name)
                lines.append(f"  {name:>10s}: {est:.{digits}g}")
            else:
                lines.append(
                    f"  {name:>10s}: {est:.{digits}g}  [{lo:.{digits}g}, {hi:.{digits}g}]"
                )
        return "\n".join(lines)


@dataclass(frozen=True)
class Assessment:
    """Batch assessment over several datasets.

    `table` has one row per dataset and the columns FFmsy, Fm, Winf, Wfs.
    `ci`, when uncertainty in `a` was propagated, maps each quantity to a
    DataFrame with one row per requested probability and one column per
    dataset.
    """

    table: pd.DataFrame
    ci: Optional[Dict[str, pd.DataFrame]] = None
    results: Dict[Any, Optional[EstimationResult]] = field(default_factory=dict)
    version: str = ""

    def __getitem__(self, key: str) -> pd.Series:
        return self.table[key]

    def __len__(self) -> int:
        return int(self.table.shape[0])

    @property
    def failed(self) -> Tuple[Any, ...]:
        """Names of datasets whose point estimate failed."""
        mask = self.table.isna().all(axis=1)
        return tuple(self.table.index[mask])

    def summary(self) -> str:
        if self.table.shape[0] == 0:
            body = "Object with no results"
        else:
            body = self.table.to_string()
        return f"{body}\n\nResults produced by: {self.version}"

    def __str__(self) -> str:
        return self.summary()

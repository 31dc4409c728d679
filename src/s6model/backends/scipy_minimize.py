from __future__ import annotations

from typing import Any, Callable, Tuple

import numpy as np
from scipy.optimize import minimize

from ..util import as_bounds
from .common import BackendResult

_BOUNDED_METHODS = ("L-BFGS-B", "TNC", "SLSQP", "Powell", "Nelder-Mead", "trust-constr")


class ScipyMinimizeBackend:
    name = "scipy.minimize"

    def minimize(
        self,
        *,
        objective: Callable[[np.ndarray], float],
        p0: np.ndarray,
        bounds: Tuple[np.ndarray, np.ndarray],
        options: dict[str, Any],
    ) -> BackendResult:
        """Minimise using scipy.optimize.minimize.

        Backend options:
        - method: a bounded optimizer name (default: L-BFGS-B)
        - options: dict forwarded to scipy.optimize.minimize
        """
        method = str(options.get("method", "L-BFGS-B"))
        if method not in _BOUNDED_METHODS:
            raise ValueError(
                f"Method {method!r} does not support bounds. Use one of {_BOUNDED_METHODS}."
            )
        scipy_opts = options.get("options", None) or {}

        def f(v: np.ndarray) -> float:
            value = float(objective(np.asarray(v, dtype=float)))
            return value if not np.isnan(value) else np.inf

        res = minimize(
            f,
            np.asarray(p0, dtype=float),
            method=method,
            bounds=as_bounds(*bounds),
            options=scipy_opts,
        )

        success = bool(res.success)
        status = 0 if success else int(getattr(res, "status", 1) or 1)
        return BackendResult(
            theta=np.asarray(res.x, dtype=float).reshape(-1),
            objective=float(res.fun),
            status=status,
            success=success,
            message=str(res.message),
            stats={
                "backend": self.name,
                "method": method,
                "nfev": int(getattr(res, "nfev", 0) or 0),
                "nit": int(getattr(res, "nit", 0) or 0),
            },
        )

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from warnings import warn

import numpy as np
import pandas as pd

from .backends import BackendResult, get_backend
from .inference import Density, build_multidata_objective, build_objective
from .inputs import as_observations, max_weight
from .model import pdf
from .params import merged, scale_of
from .run import CI_COLUMNS, EstimationResult, empty_ci
from .util import numdiff_hessian, numdiff_jacobian

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_NAMES",
    "ConvergenceWarning",
    "SingularHessianError",
    "estimate_param",
    "estimate_multidata",
    "infer_uncertainty",
]

DEFAULT_NAMES: Tuple[str, ...] = ("Fm", "Winf", "Wfs")

# 97.5% standard normal quantile
Z_95 = 1.96


class ConvergenceWarning(UserWarning):
    """The optimiser reported a non-zero convergence status."""


class SingularHessianError(np.linalg.LinAlgError):
    """The Hessian at the optimum cannot be inverted to a covariance matrix."""


# ---- asymptotic inference ----
def _standard_errors(hessian: np.ndarray) -> np.ndarray:
    """sqrt(diag(inv(H))), raising SingularHessianError when undefined."""
    if not np.all(np.isfinite(hessian)):
        raise SingularHessianError("Hessian contains non-finite entries.")
    if np.linalg.cond(hessian) > 1.0 / np.finfo(float).eps:
        raise SingularHessianError("Hessian is numerically singular.")
    try:
        vcm = np.linalg.inv(hessian)
    except np.linalg.LinAlgError as e:
        raise SingularHessianError(str(e)) from e
    var = np.diag(vcm)
    if not np.all(np.isfinite(var)) or np.any(var <= 0.0):
        raise SingularHessianError("Covariance diagonal is not positive.")
    return np.sqrt(var)


def infer_uncertainty(
    objective: Callable[[np.ndarray], float],
    theta: Any,
    names: Sequence[str],
    step: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray, Optional[np.ndarray], pd.DataFrame]:
    """Hessian, Jacobian, standard errors and 95% intervals at the optimum.

    Intervals are symmetric on the transformed scale, theta +/- 1.96 * se, and
    back-transformed with scale * exp(.), so they are asymmetric on the
    natural scale. When the Hessian cannot be inverted the standard errors are
    None and the interval table is all-missing.
    """
    theta = np.asarray(theta, dtype=float).reshape(-1)
    names = list(names)
    hessian = numdiff_hessian(objective, theta, step)
    jacobian = numdiff_jacobian(objective, theta, step)

    try:
        stderr = _standard_errors(hessian)
    except SingularHessianError as exc:
        logger.debug("No standard errors for %s: %s", names, exc)
        return hessian, jacobian, None, empty_ci(names)

    scales = np.array([scale_of(n) for n in names], dtype=float)
    half = Z_95 * stderr
    ci = pd.DataFrame(
        {
            "Estimate": scales * np.exp(theta),
            "Lower": scales * np.exp(theta - half),
            "Upper": scales * np.exp(theta + half),
        },
        index=pd.Index(names, name="parameter"),
        columns=list(CI_COLUMNS),
    )
    return hessian, jacobian, stderr, ci


# ---- optimiser driver ----
def _vector(value: Any, default: float, n: int, label: str) -> np.ndarray:
    """Broadcast a scalar/sequence/None argument to a float vector of length n."""
    if value is None:
        return np.full(n, float(default))
    arr = np.asarray(value, dtype=float).reshape(-1)
    if arr.size == 1:
        return np.full(n, float(arr[0]))
    if arr.size != n:
        raise ValueError(f"{label} has {arr.size} entries for {n} parameters.")
    return arr.copy()


def _run_optimiser(
    objective: Callable[[np.ndarray], float],
    names: List[str],
    start: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    backend: str,
    options: Dict[str, Any],
) -> BackendResult:
    """Minimise over log(start) with log-transformed bounds."""
    if np.any(start <= 0):
        raise ValueError("start values must be positive (they are log-transformed).")
    if np.any(lower < 0) or np.any(upper <= lower):
        raise ValueError("Require 0 <= lower < upper for every parameter.")

    with np.errstate(divide="ignore"):
        p0 = np.log(start)
        lo = np.log(lower)
        hi = np.log(upper)

    clipped = [n for n, v, a, b in zip(names, p0, lo, hi) if v < a or v > b]
    if clipped:
        warn("Clipped start values into bounds for: " + ", ".join(clipped), UserWarning)
        p0 = np.clip(p0, lo, hi)

    res = get_backend(backend).minimize(
        objective=objective, p0=p0, bounds=(lo, hi), options=options
    )
    if res.status != 0:
        warn(res.message, ConvergenceWarning, stacklevel=3)
    return res


def _result(
    objective: Callable[[np.ndarray], float],
    res: BackendResult,
    names: List[str],
    fixed_names: List[str],
    fixed_values: Optional[Sequence[float]],
    options: Dict[str, Any],
    verbose: bool,
    call: Dict[str, Any],
) -> EstimationResult:
    hessian, jacobian, stderr, ci = infer_uncertainty(
        objective, res.theta, names, step=options.get("hess_step")
    )
    if verbose:
        logger.info("Confidence intervals:\n%s", ci.to_string())
    return EstimationResult(
        params=merged(names, res.theta, fixed_names, fixed_values),
        names=tuple(names),
        theta=res.theta,
        objective=res.objective,
        convergence=res.status,
        message=res.message,
        hessian=hessian,
        jacobian=jacobian,
        stderr=stderr,
        ci=ci,
        call=call,
        stats=dict(res.stats),
    )


def estimate_param(
    data: Any,
    names: Sequence[str] = DEFAULT_NAMES,
    *,
    start: Any = None,
    lower: Any = None,
    upper: Any = None,
    fixed_names: Sequence[str] = (),
    fixed_values: Sequence[float] = (),
    is_survey: bool = False,
    verbose: bool = False,
    backend: str = "scipy.minimize",
    backend_options: Optional[Dict[str, Any]] = None,
    density: Density = pdf,
) -> EstimationResult:
    """Maximum-likelihood estimate from commercial or survey weights.

    Parameters
    ----------
    data : observations
        Raw weights or a weight-class table with columns Weight and Freq.
    names : sequence of str
        Parameters to estimate.
    start, lower, upper : scalar or sequence, optional
        Starting values and bounds on the scaled natural scale (natural value
        divided by the parameter's scale). The optimiser works on log(start)
        with log-transformed bounds. Defaults: start 0.5, lower 0, upper inf.
        The Winf start is always (max weight + 1) / scale(Winf).
    fixed_names, fixed_values : sequences
        Constants and their transformed values.
    is_survey : bool
        Treat the observations as survey samples.
    verbose : bool
        Log the confidence-interval table at INFO level.
    backend, backend_options
        Optimiser backend and its options (method, options, hess_step).
    density : callable
        density(weights, params, is_survey).

    Example:
        sim = simulate_data(ParameterSet.from_natural(Fm=0.3), samplesize=5000)
        res = estimate_param(sim.sample, names=["Fm"])
        res.ci
    """
    names = [str(n) for n in names]
    fixed_names = list(fixed_names)
    n = len(names)
    obs = as_observations(data)
    # Validates every name against the scale registry.
    merged(names, np.zeros(n), fixed_names, fixed_values)

    start_v = _vector(start, 0.5, n, "start")
    lower_v = _vector(lower, 0.0, n, "lower")
    upper_v = _vector(upper, np.inf, n, "upper")
    if "Winf" in names:
        start_v[names.index("Winf")] = (max_weight(obs) + 1.0) / scale_of("Winf")

    options = dict(backend_options or {})
    objective = build_objective(
        obs, names, fixed_names, fixed_values, is_survey=is_survey, density=density
    )
    res = _run_optimiser(objective, names, start_v, lower_v, upper_v, backend, options)

    call = {
        "estimator": "estimate_param",
        "names": tuple(names),
        "start": start_v,
        "lower": lower_v,
        "upper": upper_v,
        "fixed_names": tuple(fixed_names),
        "fixed_values": tuple(np.asarray(fixed_values, dtype=float).reshape(-1)),
        "is_survey": bool(is_survey),
        "backend": backend,
        "backend_options": options,
    }
    return _result(objective, res, names, fixed_names, fixed_values, options, verbose, call)


def estimate_multidata(
    survey: Any,
    commercial: Any,
    names: Sequence[str] = DEFAULT_NAMES,
    *,
    start: Any = None,
    lower: Any = None,
    upper: Any = None,
    fixed_names: Sequence[str] = (),
    fixed_values: Sequence[float] = (),
    verbose: bool = False,
    backend: str = "scipy.minimize",
    backend_options: Optional[Dict[str, Any]] = None,
    density: Density = pdf,
) -> EstimationResult:
    """Joint estimate from survey and commercial samples sharing one parameter set.

    Same conventions as `estimate_param`, except that `lower` defaults to 0.1
    for every parameter, eta_F is always bounded below by 1e-4, and the Winf
    start uses the largest weight over both sources.
    """
    names = [str(n) for n in names]
    fixed_names = list(fixed_names)
    n = len(names)
    sur = as_observations(survey)
    com = as_observations(commercial)
    merged(names, np.zeros(n), fixed_names, fixed_values)

    start_v = _vector(start, 0.5, n, "start")
    lower_v = _vector(lower, 0.1, n, "lower")
    upper_v = _vector(upper, np.inf, n, "upper")
    if "Winf" in names:
        wmax = max(max_weight(sur), max_weight(com))
        start_v[names.index("Winf")] = (wmax + 1.0) / scale_of("Winf")
    if "eta_F" in names:
        lower_v[names.index("eta_F")] = 1e-4

    options = dict(backend_options or {})
    objective = build_multidata_objective(
        sur, com, names, fixed_names, fixed_values, density=density
    )
    res = _run_optimiser(objective, names, start_v, lower_v, upper_v, backend, options)

    call = {
        "estimator": "estimate_multidata",
        "names": tuple(names),
        "start": start_v,
        "lower": lower_v,
        "upper": upper_v,
        "fixed_names": tuple(fixed_names),
        "fixed_values": tuple(np.asarray(fixed_values, dtype=float).reshape(-1)),
        "backend": backend,
        "backend_options": options,
    }
    return _result(objective, res, names, fixed_names, fixed_values, options, verbose, call)

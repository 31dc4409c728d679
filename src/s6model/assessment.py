from __future__ import annotations

import logging
import pickle
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from warnings import warn

import numpy as np
import pandas as pd

from ._version import __version__
from .estimation import DEFAULT_NAMES, estimate_param
from .model import Traits, calc_fmsy
from .params import to_transformed
from .run import QUANTITIES, Assessment, EstimationResult
from .util import draw_truncated_normal, nan_quantiles, spawn_seeds

logger = logging.getLogger(__name__)

__all__ = [
    "AssessmentOptions",
    "EstimationFailure",
    "estimate_once",
    "make_assessment",
]


class EstimationFailure(RuntimeError):
    """A single dataset (or Monte Carlo repeat) could not be estimated."""


@dataclass(frozen=True)
class AssessmentOptions:
    """Execution settings for `make_assessment`.

    use_parallel : run tasks in a process pool (falls back to sequential
        execution when the pool cannot be used).
    verbose : log progress and per-task failures at INFO level.
    random_seed : root seed; draws of `a` are seeded per dataset and repeat.
    max_workers : pool size (None lets concurrent.futures decide).
    timeout : seconds to wait for each parallel task before counting it as
        failed. Ignored for sequential execution.
    """

    use_parallel: bool = False
    verbose: bool = False
    random_seed: Optional[int] = None
    max_workers: Optional[int] = None
    timeout: Optional[float] = None


def estimate_once(
    data: Any,
    a: float = 0.35,
    names: Sequence[str] = DEFAULT_NAMES,
    **estimate_kwargs: Any,
) -> Tuple[Dict[str, float], EstimationResult]:
    """Estimate one dataset with the physiological mortality `a` held fixed.

    Returns the summary row (FFmsy, Fm, Winf, Wfs) and the full result.
    Any failure is raised as EstimationFailure.
    """
    if not (np.isfinite(a) and a > 0):
        raise EstimationFailure(f"a must be positive, got {a!r}.")
    fixed_names = list(estimate_kwargs.pop("fixed_names", ())) + ["a"]
    fixed_values = list(np.asarray(estimate_kwargs.pop("fixed_values", ()), dtype=float).reshape(-1))
    fixed_values.append(to_transformed("a", a))

    try:
        res = estimate_param(
            data,
            names,
            fixed_names=fixed_names,
            fixed_values=fixed_values,
            **estimate_kwargs,
        )
    except (ValueError, KeyError, FloatingPointError, np.linalg.LinAlgError) as e:
        raise EstimationFailure(str(e)) from e

    traits = Traits.from_params(res.params)
    fmsy = calc_fmsy(res.params)
    row = {
        "FFmsy": traits.Fm / fmsy,
        "Fm": traits.Fm,
        "Winf": traits.Winf,
        "Wfs": traits.Wfs,
    }
    bad = [k for k, v in row.items() if not np.isfinite(v)]
    if bad:
        raise EstimationFailure("Non-finite estimates for: " + ", ".join(bad))
    return row, res


# ---- task functions (module level so they pickle) ----
def _point_task(data: Any, a: float, kwargs: Dict[str, Any]):
    return estimate_once(data, a, **dict(kwargs))


def _repeat_task(
    data: Any,
    a_mean: float,
    a_sd: float,
    seed: np.random.SeedSequence,
    kwargs: Dict[str, Any],
) -> Dict[str, float]:
    rng = np.random.default_rng(seed)
    a = draw_truncated_normal(a_mean, a_sd, rng)
    row, _ = estimate_once(data, a, **dict(kwargs))
    return row


def _log_failure(label: str, exc: BaseException, verbose: bool) -> None:
    level = logging.INFO if verbose else logging.DEBUG
    logger.log(level, "%s failed: %s: %s", label, type(exc).__name__, exc)


def _run_sequential(
    fn: Callable[..., Any], tasks: List[Tuple[Any, ...]], labels: List[str], verbose: bool
) -> List[Optional[Any]]:
    out: List[Optional[Any]] = [None] * len(tasks)
    for i, args in enumerate(tasks):
        try:
            out[i] = fn(*args)
        except Exception as exc:
            _log_failure(labels[i], exc, verbose)
    return out


def _execute(
    fn: Callable[..., Any],
    tasks: List[Tuple[Any, ...]],
    labels: List[str],
    options: AssessmentOptions,
) -> List[Optional[Any]]:
    """Run independent tasks; failures (and timeouts) become None.

    Results are indexed like `tasks`, whatever the completion order.
    """
    if not options.use_parallel or len(tasks) < 2:
        return _run_sequential(fn, tasks, labels, options.verbose)

    try:
        for args in tasks:
            pickle.dumps((fn, args))
    except (pickle.PicklingError, TypeError, AttributeError) as exc:
        warn(f"Tasks cannot be sent to worker processes ({exc}); running sequentially.", UserWarning)
        return _run_sequential(fn, tasks, labels, options.verbose)

    out: List[Optional[Any]] = [None] * len(tasks)
    try:
        pool = ProcessPoolExecutor(max_workers=options.max_workers)
    except (OSError, NotImplementedError, ValueError) as exc:
        warn(f"Process pool unavailable ({exc}); running sequentially.", UserWarning)
        return _run_sequential(fn, tasks, labels, options.verbose)

    try:
        futures = [pool.submit(fn, *args) for args in tasks]
        for i, fut in enumerate(futures):
            try:
                out[i] = fut.result(timeout=options.timeout)
            except FuturesTimeoutError as exc:
                fut.cancel()
                _log_failure(labels[i] + " (timeout)", exc, options.verbose)
            except BrokenProcessPool:
                raise
            except Exception as exc:
                _log_failure(labels[i], exc, options.verbose)
    except BrokenProcessPool as exc:
        warn(f"Process pool broke ({exc}); running sequentially.", UserWarning)
        return _run_sequential(fn, tasks, labels, options.verbose)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
    return out


def _dataset_keys(datasets: Any) -> Tuple[List[Any], List[Any]]:
    if isinstance(datasets, Mapping):
        keys = list(datasets.keys())
        return keys, [datasets[k] for k in keys]
    items = list(datasets)
    return list(range(len(items))), items


def make_assessment(
    datasets: Any,
    a_mean: float = 0.35,
    a_sd: float = 0.175,
    nsample: int = 100,
    probs: Optional[Sequence[float]] = None,
    options: Optional[AssessmentOptions] = None,
    **estimate_kwargs: Any,
) -> Assessment:
    """Assess a collection of datasets, optionally propagating uncertainty in `a`.

    Step 1 estimates every dataset with a = a_mean. Step 2 (only if a_sd > 0)
    re-estimates each dataset `nsample` times with a drawn from a Normal(a_mean,
    a_sd) truncated to positive values, and summarises each quantity by the
    quantiles `probs` (sorted ascending; default 0, 0.01, ..., 1) across the
    repeats, ignoring failed repeats.

    Failed datasets give all-missing rows; datasets whose repeats all failed
    give all-missing quantile columns. This function never raises for
    per-dataset failures.

    Extra keyword arguments are forwarded to `estimate_param` (names,
    is_survey, start, lower, upper, backend_options, ...).
    """
    options = AssessmentOptions() if options is None else options
    probs_arr = np.sort(
        np.linspace(0.0, 1.0, 101) if probs is None else np.asarray(probs, dtype=float).reshape(-1)
    )
    if probs_arr.size == 0 or np.any(probs_arr < 0.0) or np.any(probs_arr > 1.0):
        raise ValueError("probs must be a non-empty sequence of values in [0, 1].")
    nsample = int(nsample)

    keys, items = _dataset_keys(datasets)
    kwargs = dict(estimate_kwargs)
    if options.verbose:
        logger.info("Assessing %d datasets (a = %g)", len(keys), a_mean)

    # Step 1: point estimates
    point = _execute(
        _point_task,
        [(data, float(a_mean), kwargs) for data in items],
        [f"dataset {k!r}" for k in keys],
        options,
    )
    missing = dict.fromkeys(QUANTITIES, np.nan)
    rows = [missing if out is None else out[0] for out in point]
    table = pd.DataFrame(rows, index=pd.Index(keys, name="dataset"), columns=list(QUANTITIES))
    results = {k: (None if out is None else out[1]) for k, out in zip(keys, point)}

    ci = None
    if a_sd > 0 and nsample > 0 and keys:
        seeds = spawn_seeds(options.random_seed, len(keys), nsample)
        tasks = []
        labels = []
        for i, (k, data) in enumerate(zip(keys, items)):
            for r in range(nsample):
                tasks.append((data, float(a_mean), float(a_sd), seeds[i][r], kwargs))
                labels.append(f"dataset {k!r} repeat {r}")
        if options.verbose:
            logger.info("Running %d Monte Carlo repeats", len(tasks))
        reps = _execute(_repeat_task, tasks, labels, options)

        ci = {}
        index = pd.Index(probs_arr, name="prob")
        for q in QUANTITIES:
            columns = {}
            for i, k in enumerate(keys):
                chunk = reps[i * nsample : (i + 1) * nsample]
                values = np.array([np.nan if row is None else row[q] for row in chunk], dtype=float)
                columns[k] = nan_quantiles(values, probs_arr)
            ci[q] = pd.DataFrame(columns, index=index, columns=keys)

    return Assessment(
        table=table,
        ci=ci,
        results=results,
        version=f"s6model {__version__}",
    )

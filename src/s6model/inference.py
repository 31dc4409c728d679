from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import numpy as np

from .inputs import InvalidDataError, Sample, WeightTable, as_observations
from .model import pdf
from .params import merged


__all__ = [
    "Density",
    "neg_loglike",
    "neg_loglike_multidata",
    "build_objective",
    "build_multidata_objective",
]

# density(weights, params, is_survey) -> array of probability densities
Density = Callable[..., np.ndarray]


def _nll(obs: Any, params: Any, is_survey: bool, density: Density) -> float:
    """Negative log-likelihood of one observation source under `params`."""
    if isinstance(obs, Sample):
        f = np.asarray(density(obs.weights, params, is_survey), dtype=float)
        return float(-np.sum(np.log(f)))
    if isinstance(obs, WeightTable):
        f = np.asarray(density(obs.weight, params, is_survey), dtype=float)
        return float(-np.sum(obs.frequency * np.log(f)))
    raise InvalidDataError(
        f"Observations must be a Sample or WeightTable, got {type(obs).__name__!r}."
    )


def neg_loglike(
    theta: Sequence[float],
    data: Any,
    names: Sequence[str],
    fixed_names: Optional[Sequence[str]] = None,
    fixed_values: Optional[Sequence[float]] = None,
    is_survey: bool = False,
    density: Density = pdf,
) -> float:
    """Negative log-likelihood for transformed parameters `theta`.

    Parameters
    ----------
    theta : sequence of float
        Transformed (log-scale) values of the parameters in `names`.
    data : observations
        Raw weights or a weight-class table (see `as_observations`).
    names : sequence of str
        Names of the entries of `theta`.
    fixed_names, fixed_values : sequences, optional
        Constants, with values on the transformed scale.
    is_survey : bool
        Evaluate the survey density instead of the commercial catch density.
    density : callable
        density(weights, params, is_survey) -> probability densities.
    """
    params = merged(names, theta, fixed_names, fixed_values)
    return _nll(as_observations(data), params, is_survey, density)


def neg_loglike_multidata(
    theta: Sequence[float],
    survey: Any,
    commercial: Any,
    names: Sequence[str],
    fixed_names: Optional[Sequence[str]] = None,
    fixed_values: Optional[Sequence[float]] = None,
    density: Density = pdf,
) -> float:
    """Joint negative log-likelihood of survey and commercial data.

    Both sources are evaluated under the same parameter set.
    """
    params = merged(names, theta, fixed_names, fixed_values)
    return _nll(as_observations(survey), params, True, density) + _nll(
        as_observations(commercial), params, False, density
    )


def build_objective(
    data: Any,
    names: Sequence[str],
    fixed_names: Optional[Sequence[str]] = None,
    fixed_values: Optional[Sequence[float]] = None,
    is_survey: bool = False,
    density: Density = pdf,
) -> Callable[[np.ndarray], float]:
    """Return f(theta) for a single observation source."""
    obs = as_observations(data)
    names = list(names)

    def objective(theta: np.ndarray) -> float:
        params = merged(names, theta, fixed_names, fixed_values)
        return _nll(obs, params, is_survey, density)

    return objective


def build_multidata_objective(
    survey: Any,
    commercial: Any,
    names: Sequence[str],
    fixed_names: Optional[Sequence[str]] = None,
    fixed_values: Optional[Sequence[float]] = None,
    density: Density = pdf,
) -> Callable[[np.ndarray], float]:
    """Return f(theta) summing the survey and commercial likelihoods."""
    sur = as_observations(survey)
    com = as_observations(commercial)
    names = list(names)

    def objective(theta: np.ndarray) -> float:
        params = merged(names, theta, fixed_names, fixed_values)
        return _nll(sur, params, True, density) + _nll(com, params, False, density)

    return objective

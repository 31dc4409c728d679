from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np

from .inputs import Sample, as_observations
from .model import SizeSpectrum
from .params import ParameterSet

_YLABELS = {
    "FFmsy": r"$F/F_{msy}$",
    "Fm": "F",
    "Winf": r"$W_\infty$",
    "Wfs": "50% retainment size",
}


def plot_fit(
    params: Any,
    data: Any,
    *,
    ax: Optional[Any] = None,
    is_survey: bool = False,
    bins: Any = 50,
    hist_kwargs: Optional[Mapping[str, Any]] = None,
    line_kwargs: Optional[Mapping[str, Any]] = None,
    show_params: bool = True,
    text_kwargs: Optional[Mapping[str, Any]] = None,
) -> Tuple[Any, Any]:
    """Plot the observed weight distribution with the fitted density.

    Parameters
    ----------
    params : ParameterSet or EstimationResult
        Parameters of the fitted model.
    data : observations
        Raw weights or a weight-class table.
    ax : matplotlib.axes.Axes, optional
        If None, a new figure/axes is created.
    is_survey : bool
        Draw the survey density instead of the commercial one.
    bins : int or sequence
        Histogram bins for raw samples.
    show_params : bool
        Annotate the estimates (with 95% intervals when available).
    """
    import matplotlib.pyplot as plt

    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    hist_kwargs = dict(hist_kwargs or {})
    line_kwargs = dict(line_kwargs or {})
    text_kwargs = dict(text_kwargs or {})

    result = None
    if not isinstance(params, ParameterSet):
        result = params
        params = result.params

    obs = as_observations(data)
    if isinstance(obs, Sample):
        hist_kwargs.setdefault("density", True)
        hist_kwargs.setdefault("alpha", 0.4)
        hist_kwargs.setdefault("label", "data")
        ax.hist(obs.weights, bins=bins, **hist_kwargs)
        wmax = float(np.max(obs.weights))
    else:
        classes = np.unique(obs.weight)
        width = float(np.min(np.diff(classes))) if classes.size > 1 else 1.0
        dens = obs.frequency / (obs.total * width)
        hist_kwargs.setdefault("alpha", 0.4)
        hist_kwargs.setdefault("label", "data")
        ax.bar(obs.weight, dens, width=width, **hist_kwargs)
        wmax = float(np.max(obs.weight))

    spectrum = SizeSpectrum(params, is_survey=is_survey)
    upper = max(wmax, spectrum.traits.Winf)
    wg = np.linspace(spectrum.lower, upper, 400)
    line_kwargs.setdefault("label", "fit")
    ax.plot(wg, spectrum.pdf(wg), **line_kwargs)
    ax.set_xlabel("Weight (g)")
    ax.set_ylabel("Density")

    if show_params and result is not None:
        lines = []
        for name in result.names:
            est = result.params.natural_value(name)
            row = None if result.ci is None else result.ci.loc[name]
            if row is None or not np.isfinite(row["Lower"]):
                lines.append(f"{name}={est:.3g}")
            else:
                lines.append(f"{name}={est:.3g} [{row['Lower']:.3g}, {row['Upper']:.3g}]")
        if lines:
            text_kwargs.setdefault("ha", "right")
            text_kwargs.setdefault("va", "top")
            text_kwargs.setdefault("fontsize", 9)
            text_kwargs.setdefault("transform", ax.transAxes)
            text_kwargs.setdefault(
                "bbox",
                {"boxstyle": "round", "facecolor": "white", "alpha": 0.7, "edgecolor": "none"},
            )
            ax.text(0.98, 0.98, "\n".join(lines), **text_kwargs)

    return fig, ax


def add_confidence_shading(ax: Any, x: Any, quantiles: Any) -> None:
    """Nested grey bands between symmetric quantile rows.

    `quantiles` has one row per probability (ascending) and one column per x.
    Outer bands are lighter; missing columns leave gaps.
    """
    q = np.asarray(quantiles, dtype=float)
    x = np.asarray(x, dtype=float)
    d = q.shape[0] - 1
    half = d // 2
    for i in range(half):
        lo = q[i]
        hi = q[d - i]
        ok = np.isfinite(lo) & np.isfinite(hi)
        grey = 1.0 - (i + 1) / max(half, 1)
        ax.fill_between(
            x, lo, hi, where=ok, color=str(min(max(grey, 0.0), 1.0)), linewidth=0, interpolate=False
        )


def plot_assessment(
    assessment: Any,
    what: str = "FFmsy",
    *,
    ax: Optional[Any] = None,
    use_index: bool = False,
    years: Optional[Sequence[float]] = None,
    xlabel: Optional[str] = None,
    ylabel: Optional[str] = None,
    add_default: bool = False,
    hline: Optional[float] = 1.0,
    hline_kwargs: Optional[Mapping[str, Any]] = None,
    version: bool = True,
) -> Tuple[Any, Any]:
    """Plot one assessed quantity across datasets with Monte Carlo shading.

    Parameters
    ----------
    assessment : Assessment
        Output of `make_assessment`.
    what : {"FFmsy", "Fm", "Winf", "Wfs"}
    use_index : bool
        Take x positions from the first number in each dataset name (e.g. a year).
    years : sequence, optional
        Explicit x positions (ignored when use_index is True).
    add_default : bool
        Draw the point estimates as a dashed white line over the shading.
    hline : float or None
        Reference line (1 for F/Fmsy).
    version : bool
        Stamp the package version in the corner.
    """
    import matplotlib.pyplot as plt

    if what not in _YLABELS:
        raise ValueError(
            f"Unidentified `what` argument {what!r}. Please select one of {tuple(_YLABELS)}."
        )

    if ax is None:
        fig, ax = plt.subplots()
    else:
        fig = ax.figure

    table = assessment.table
    n = table.shape[0]
    xs = np.arange(1, n + 1, dtype=float)
    if use_index:
        found = [re.search(r"[0-9]+", str(k)) for k in table.index]
        if any(m is None for m in found):
            raise ValueError("use_index=True needs a number in every dataset name.")
        xs = np.array([float(m.group(0)) for m in found])
    elif years is not None:
        xs = np.asarray(years, dtype=float)
        if xs.shape != (n,):
            raise ValueError(f"years has {xs.size} entries for {n} datasets.")

    ys = table[what].to_numpy(dtype=float)
    ci = None if assessment.ci is None else assessment.ci.get(what)
    if ci is not None:
        add_confidence_shading(ax, xs, ci.to_numpy(dtype=float))

    if add_default:
        ax.plot(xs, ys, linestyle="--", linewidth=3, color="white")
    else:
        ax.plot(xs, ys, marker="o", linestyle="-", color="tab:red")

    if hline is not None:
        hline_kwargs = dict(hline_kwargs or {})
        hline_kwargs.setdefault("linewidth", 2)
        hline_kwargs.setdefault("linestyle", "--")
        hline_kwargs.setdefault("color", "black")
        ax.axhline(hline, **hline_kwargs)

    ax.set_xlabel("Year" if xlabel is None else xlabel)
    ax.set_ylabel(_YLABELS[what] if ylabel is None else ylabel)

    if version and assessment.version:
        ax.text(
            1.0, -0.12, assessment.version,
            transform=ax.transAxes, ha="right", va="top", fontsize=7, color="grey",
        )

    return fig, ax

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import numpy as np
from scipy.integrate import cumulative_trapezoid, trapezoid
from scipy.optimize import minimize_scalar
from scipy.special import log_expit

from .inputs import WeightTable
from .params import ParameterSet


__all__ = [
    "W_EGG",
    "W_SURVEY",
    "Traits",
    "SizeSpectrum",
    "pdf",
    "SimulatedData",
    "simulate_data",
    "yield_per_recruit",
    "calc_fmsy",
]

W_EGG = 0.001  # egg weight (g); lower end of the size spectrum
W_SURVEY = 1.0  # smallest weight retained by survey gear (g)

# log of the smallest positive double: density floor outside the support
LOG_FLOOR = float(np.log(np.finfo(float).tiny))


@dataclass(frozen=True)
class Traits:
    """Natural-scale life-history values used by the steady-state model."""

    Winf: float
    Fm: float
    A: float
    n: float
    eta_m: float
    a: float
    epsilon_a: float
    epsilon_r: float
    u: float
    Wfs: float

    @staticmethod
    def from_params(params: ParameterSet) -> "Traits":
        """Resolve every trait, using registry defaults for absent names.

        The retention weight is Wfs when the set carries it, otherwise
        eta_F * Winf.
        """
        Winf = params.resolve("Winf")
        if "Wfs" in params:
            Wfs = params.natural_value("Wfs")
        else:
            Wfs = params.resolve("eta_F") * Winf
        return Traits(
            Winf=Winf,
            Fm=params.resolve("Fm"),
            A=params.resolve("A"),
            n=params.resolve("n"),
            eta_m=params.resolve("eta_m"),
            a=params.resolve("a"),
            epsilon_a=params.resolve("epsilon_a"),
            epsilon_r=params.resolve("epsilon_r"),
            u=params.resolve("u"),
            Wfs=Wfs,
        )

    # ---- life-history functions of weight ----
    def log_psi_m(self, w: np.ndarray) -> np.ndarray:
        """log maturation ogive."""
        return log_expit(self.u * np.log(w / (self.eta_m * self.Winf)))

    def log_psi_F(self, w: np.ndarray) -> np.ndarray:
        """log fishing retention ogive (50% at Wfs)."""
        return log_expit(self.u * np.log(w / self.Wfs))

    def growth(self, w: np.ndarray) -> np.ndarray:
        psi_m = np.exp(self.log_psi_m(w))
        reduction = (w / self.Winf) ** (1.0 - self.n) * (
            self.epsilon_a + (1.0 - self.epsilon_a) * psi_m
        )
        return self.A * w**self.n * (1.0 - reduction)

    def mortality(self, w: np.ndarray) -> np.ndarray:
        return self.a * self.A * w ** (self.n - 1.0) + self.Fm * np.exp(self.log_psi_F(w))

    def log_abundance(self, w: np.ndarray) -> np.ndarray:
        """log N(w) for a unit recruitment flux at W_EGG, on an increasing grid."""
        g = np.maximum(self.growth(w), np.finfo(float).tiny)
        log_w = np.log(w)
        integral = cumulative_trapezoid(self.mortality(w) / g * w, log_w, initial=0.0)
        return -np.log(g) - integral


def _grid(Winf: float, lower: float, n_log: int = 600, n_tail: int = 400) -> np.ndarray:
    """Log grid from W_EGG to Winf/2, refined geometrically towards Winf."""
    split = 0.5 * Winf
    body = np.geomspace(W_EGG, split, n_log, endpoint=False) if split > W_EGG else np.array([])
    tail = Winf * (1.0 - np.geomspace(0.5, 1e-7, n_tail))
    w = np.concatenate([body, tail, [lower]])
    w = w[(w >= W_EGG) & (w < Winf)]
    return np.unique(w)


class SizeSpectrum:
    """Steady-state weight distribution of the catch (or survey) for one ParameterSet.

    Commercial samples follow psi_F(w) N(w) on [W_EGG, Winf); survey samples
    follow N(w) on [W_SURVEY, Winf). The density is tabulated on a grid and
    interpolated in log-log space.
    """

    def __init__(self, params: ParameterSet, is_survey: bool = False):
        self.params = params
        self.is_survey = bool(is_survey)
        self.traits = Traits.from_params(params)
        self.lower = W_SURVEY if self.is_survey else W_EGG

        t = self.traits
        if not (t.Winf > self.lower * (1.0 + 1e-6)) or not np.isfinite(t.Winf):
            self.log_w = np.array([])
            self.logf = np.array([])
            return

        w = _grid(t.Winf, self.lower)
        log_n = t.log_abundance(w)
        if self.is_survey:
            log_sel = np.zeros_like(w)
        else:
            log_sel = t.log_psi_F(w)

        keep = w >= self.lower
        w = w[keep]
        log_fu = (log_sel + log_n)[keep]

        log_w = np.log(w)
        top = float(np.max(log_fu))
        z = trapezoid(np.exp(log_fu - top) * w, log_w)
        self.log_w = log_w
        self.logf = np.maximum(log_fu - top - np.log(z), LOG_FLOOR)

    @property
    def has_support(self) -> bool:
        return self.log_w.size > 1

    def logpdf(self, weights: Any) -> np.ndarray:
        w = np.asarray(weights, dtype=float)
        out = np.full(w.shape, LOG_FLOOR, dtype=float)
        if not self.has_support:
            return out
        inside = (w > 0) & (w >= np.exp(self.log_w[0])) & (w <= np.exp(self.log_w[-1]))
        out[inside] = np.interp(np.log(w[inside]), self.log_w, self.logf)
        return out

    def pdf(self, weights: Any) -> np.ndarray:
        return np.exp(self.logpdf(weights))

    def cdf_grid(self) -> np.ndarray:
        """Cumulative distribution at the grid points."""
        c = cumulative_trapezoid(np.exp(self.logf + self.log_w), self.log_w, initial=0.0)
        return c / c[-1]

    def sample(self, size: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Inverse-CDF draws of individual weights."""
        if not self.has_support:
            raise ValueError("Size spectrum has no support; check Winf.")
        rng = np.random.default_rng() if rng is None else rng
        c = self.cdf_grid()
        q = rng.uniform(0.0, 1.0, size=int(size))
        return np.exp(np.interp(q, c, self.log_w))


def pdf(weights: Any, params: ParameterSet, is_survey: bool = False) -> np.ndarray:
    """Probability density of observing each weight under `params`."""
    return SizeSpectrum(params, is_survey=is_survey).pdf(weights)


@dataclass(frozen=True)
class SimulatedData:
    sample: np.ndarray
    table: Optional[WeightTable]
    params: ParameterSet
    is_survey: bool = False


def simulate_data(
    params: Optional[ParameterSet] = None,
    samplesize: int = 1000,
    *,
    is_survey: bool = False,
    binsize: Optional[float] = None,
    rng: Optional[np.random.Generator] = None,
) -> SimulatedData:
    """Simulate a weight sample (and optionally a binned table) from the model.

    Example:
        sim = simulate_data(ParameterSet.from_natural(Fm=0.3), samplesize=5000,
                            rng=np.random.default_rng(0))
    """
    params = ParameterSet() if params is None else params
    spectrum = SizeSpectrum(params, is_survey=is_survey)
    sample = spectrum.sample(samplesize, rng=rng)

    table = None
    if binsize is not None:
        binsize = float(binsize)
        if binsize <= 0:
            raise ValueError("binsize must be positive.")
        nbins = max(1, int(np.ceil(float(np.max(sample)) / binsize)))
        edges = binsize * np.arange(nbins + 1)
        counts, edges = np.histogram(sample, bins=edges)
        table = WeightTable(weight=0.5 * (edges[:-1] + edges[1:]), frequency=counts)

    return SimulatedData(sample=sample, table=table, params=params, is_survey=is_survey)


def yield_per_recruit(traits: Traits) -> Dict[str, float]:
    """Yield and recruitment for the traits' fishing mortality.

    Recruitment follows Beverton-Holt with unit maximum: R = max(0, 1 - 1/Rp),
    where Rp is the lifetime egg production per recruit.
    """
    if not traits.Winf > W_EGG * (1.0 + 1e-6):
        return {"Rp": float("nan"), "R": float("nan"), "yield": float("nan")}
    w = _grid(traits.Winf, W_EGG)
    log_w = np.log(w)
    n_w = np.exp(traits.log_abundance(w))

    spawning = trapezoid(n_w * np.exp(traits.log_psi_m(w)) * w ** (traits.n + 1.0), log_w)
    rp = (
        traits.epsilon_r
        * (1.0 - traits.epsilon_a)
        * traits.A
        * traits.Winf ** (traits.n - 1.0)
        / W_EGG
        * spawning
    )
    recruitment = max(0.0, 1.0 - 1.0 / rp) if rp > 0 else 0.0
    fished = trapezoid(n_w * np.exp(traits.log_psi_F(w)) * w**2, log_w)
    return {
        "Rp": float(rp),
        "R": float(recruitment),
        "yield": float(traits.Fm * recruitment * fished),
    }


def calc_fmsy(params: ParameterSet, f_max: float = 5.0) -> float:
    """Fishing mortality giving maximum sustainable yield (NaN if no yield)."""
    base = Traits.from_params(params)

    def neg_yield(f: float) -> float:
        y = yield_per_recruit(replace(base, Fm=float(f)))["yield"]
        return -y if np.isfinite(y) else 0.0

    res = minimize_scalar(neg_yield, bounds=(0.0, float(f_max)), method="bounded")
    if not np.isfinite(res.fun) or -float(res.fun) <= 0.0:
        return float("nan")
    return float(res.x)

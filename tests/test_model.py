from dataclasses import replace

import numpy as np
import pytest
from scipy.integrate import trapezoid

from s6model import ParameterSet, SizeSpectrum, calc_fmsy, pdf, simulate_data
from s6model.model import W_EGG, W_SURVEY, Traits, yield_per_recruit


def _integral(spectrum: SizeSpectrum) -> float:
    w = np.exp(spectrum.log_w)
    return float(trapezoid(spectrum.pdf(w) * w, spectrum.log_w))


@pytest.mark.parametrize("is_survey", [False, True])
def test_density_integrates_to_one(is_survey: bool) -> None:
    spectrum = SizeSpectrum(ParameterSet.from_natural(Fm=0.3, Winf=2000.0), is_survey=is_survey)
    assert spectrum.has_support
    assert _integral(spectrum) == pytest.approx(1.0, rel=1e-6)


def test_density_is_floored_outside_support() -> None:
    params = ParameterSet.from_natural(Winf=1000.0)
    f = pdf(np.array([0.5, 10.0, 1000.0, 5000.0]), params, is_survey=True)
    assert np.all(f > 0)
    assert np.all(np.isfinite(np.log(f)))
    # below the survey cutoff and beyond Winf there is (almost) no mass
    assert f[0] < 1e-300
    assert f[2] < 1e-300
    assert f[3] < 1e-300
    assert f[1] > 1e-6


def test_survey_cutoff_and_commercial_lower_end() -> None:
    params = ParameterSet.from_natural(Fm=0.3)
    assert SizeSpectrum(params, is_survey=True).lower == W_SURVEY
    assert SizeSpectrum(params).lower == W_EGG


def test_no_support_when_winf_below_cutoff() -> None:
    spectrum = SizeSpectrum(ParameterSet.from_natural(Winf=0.5), is_survey=True)
    assert not spectrum.has_support
    with pytest.raises(ValueError):
        spectrum.sample(10)


def test_retention_weight_defaults_to_eta_f_times_winf() -> None:
    t = Traits.from_params(ParameterSet.from_natural(Winf=4000.0))
    assert t.Wfs == pytest.approx(0.05 * 4000.0)
    t = Traits.from_params(ParameterSet.from_natural(Winf=4000.0, Wfs=123.0))
    assert t.Wfs == pytest.approx(123.0)


def test_growth_vanishes_at_winf_without_maturation_term() -> None:
    t = Traits.from_params(ParameterSet.from_natural(epsilon_a=0.9999999))
    g = t.growth(np.array([t.Winf * (1.0 - 1e-9)]))
    assert abs(float(g[0])) < 1e-3


def test_simulate_data_sample_and_table() -> None:
    rng = np.random.default_rng(1)
    params = ParameterSet.from_natural(Fm=0.3, Winf=3000.0)
    sim = simulate_data(params, samplesize=2000, binsize=50.0, rng=rng)
    assert sim.sample.shape == (2000,)
    assert np.all(sim.sample >= W_EGG)
    assert np.all(sim.sample < 3000.0)
    assert sim.table is not None
    assert sim.table.total == pytest.approx(2000.0)
    assert np.allclose(np.diff(sim.table.weight), 50.0)

    sim = simulate_data(params, samplesize=500, is_survey=True, rng=rng)
    assert sim.table is None
    assert np.all(sim.sample >= W_SURVEY)


def test_simulate_data_is_reproducible() -> None:
    params = ParameterSet.from_natural(Fm=0.3)
    a = simulate_data(params, 100, rng=np.random.default_rng(7)).sample
    b = simulate_data(params, 100, rng=np.random.default_rng(7)).sample
    assert np.array_equal(a, b)


def test_simulate_data_rejects_bad_binsize() -> None:
    with pytest.raises(ValueError):
        simulate_data(samplesize=10, binsize=0.0, rng=np.random.default_rng(0))


def test_yield_is_zero_without_fishing() -> None:
    t = Traits.from_params(ParameterSet.from_natural(Fm=1e-12))
    out = yield_per_recruit(t)
    assert out["Rp"] > 1.0
    assert 0.0 < out["R"] < 1.0
    assert out["yield"] == pytest.approx(0.0, abs=1e-6)


def test_fmsy_is_interior_maximum() -> None:
    params = ParameterSet.from_natural(Winf=10000.0)
    fmsy = calc_fmsy(params)
    assert np.isfinite(fmsy)
    assert 0.0 < fmsy < 5.0

    base = Traits.from_params(params)
    y_best = yield_per_recruit(replace(base, Fm=fmsy))["yield"]
    for f in (0.5 * fmsy, 1.5 * fmsy):
        assert yield_per_recruit(replace(base, Fm=f))["yield"] <= y_best + 1e-12

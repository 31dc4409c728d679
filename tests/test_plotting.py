import numpy as np
import pandas as pd
import pytest

from s6model import Assessment, ParameterSet, estimate_param, simulate_data


def _agg():
    matplotlib = pytest.importorskip("matplotlib")
    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt

    return plt


def _assessment() -> Assessment:
    index = pd.Index(["y2001", "y2002", "y2003"], name="dataset")
    table = pd.DataFrame(
        {"FFmsy": [1.2, 0.9, np.nan], "Fm": [0.3, 0.25, np.nan], "Winf": [9e3, 1e4, np.nan], "Wfs": [450.0, 500.0, np.nan]},
        index=index,
    )
    probs = np.linspace(0.0, 1.0, 5)
    ci = {
        q: pd.DataFrame(
            {k: v * (0.8 + 0.4 * probs) for k, v in table[q].items()},
            index=pd.Index(probs, name="prob"),
        )
        for q in table.columns
    }
    return Assessment(table=table, ci=ci, version="s6model test")


def test_plot_fit_sample_and_table() -> None:
    plt = _agg()
    from s6model.plotting import plot_fit

    sim = simulate_data(
        ParameterSet.from_natural(Fm=0.3, Winf=2000.0),
        1000,
        binsize=50.0,
        rng=np.random.default_rng(0),
    )
    res = estimate_param(sim.sample, names=["Fm"], fixed_names=["Winf"], fixed_values=[np.log(0.2)])
    fig, ax = plot_fit(res, sim.sample)
    assert len(ax.lines) == 1
    assert len(ax.texts) == 1
    assert "Fm=" in ax.texts[0].get_text()
    plt.close(fig)

    fig, ax = plot_fit(sim.params, sim.table)
    assert len(ax.patches) > 0
    assert len(ax.texts) == 0
    plt.close(fig)


def test_plot_assessment_years_and_index() -> None:
    plt = _agg()
    from s6model.plotting import plot_assessment

    out = _assessment()
    fig, ax = plot_assessment(out, "FFmsy", use_index=True)
    xs = ax.lines[0].get_xdata()
    assert np.allclose(xs, [2001, 2002, 2003])
    assert ax.get_ylabel() == r"$F/F_{msy}$"
    assert any(t.get_text() == "s6model test" for t in ax.texts)
    plt.close(fig)

    fig, ax = plot_assessment(out, "Fm", years=[1, 2, 3], add_default=True, hline=None, version=False)
    assert len(ax.lines) == 1
    assert ax.lines[0].get_linestyle() == "--"
    assert len(ax.texts) == 0
    plt.close(fig)


def test_plot_assessment_rejects_unknown_quantity() -> None:
    _agg()
    from s6model.plotting import plot_assessment

    with pytest.raises(ValueError, match="Unidentified"):
        plot_assessment(_assessment(), "biomass")
    with pytest.raises(ValueError):
        plot_assessment(_assessment(), "Fm", years=[1, 2])

import logging
import time

import numpy as np
import pandas as pd
import pytest

from s6model import (
    Assessment,
    AssessmentOptions,
    EstimationFailure,
    ParameterSet,
    Sample,
    UnknownParameterError,
    estimate_once,
    make_assessment,
    simulate_data,
)


def slow_density(weights, params, is_survey):
    time.sleep(1.0)
    raise RuntimeError("density evaluated after the task timed out")


def _dataset(seed: int, n: int = 800, fm: float = 0.3) -> np.ndarray:
    params = ParameterSet.from_natural(Fm=fm)
    return simulate_data(params, n, rng=np.random.default_rng(seed)).sample


def test_estimate_once_row() -> None:
    row, res = estimate_once(_dataset(0), a=0.35, names=["Fm"])
    assert set(row) == {"FFmsy", "Fm", "Winf", "Wfs"}
    assert row["Fm"] == pytest.approx(res.estimates["Fm"])
    assert row["Wfs"] == pytest.approx(0.05 * row["Winf"])
    assert row["FFmsy"] > 0
    assert "a" in res.params
    assert res.params.natural_value("a") == pytest.approx(0.35)


def test_estimate_once_failures() -> None:
    with pytest.raises(EstimationFailure):
        estimate_once(np.array([]), names=["Fm"])
    with pytest.raises(EstimationFailure):
        estimate_once(_dataset(1, 100), a=-0.1, names=["Fm"])
    with pytest.raises(EstimationFailure) as info:
        estimate_once(_dataset(1, 100), names=["bogus"])
    assert isinstance(info.value.__cause__, UnknownParameterError)


def test_failed_dataset_gives_missing_row(caplog) -> None:
    datasets = {"y2001": _dataset(2), "y2002": np.array([])}
    with caplog.at_level(logging.INFO, logger="s6model.assessment"):
        out = make_assessment(
            datasets, a_sd=0.0, names=["Fm"], options=AssessmentOptions(verbose=True)
        )
    assert isinstance(out, Assessment)
    assert list(out.table.index) == ["y2001", "y2002"]
    assert list(out.table.columns) == ["FFmsy", "Fm", "Winf", "Wfs"]
    assert out.table.loc["y2001"].notna().all()
    assert out.table.loc["y2002"].isna().all()
    assert out.failed == ("y2002",)
    assert out.results["y2002"] is None
    assert out.ci is None
    assert "y2002" in caplog.text


def test_quantile_tables_have_one_row_per_probability() -> None:
    datasets = [_dataset(3), _dataset(4, fm=0.5)]
    probs = np.linspace(0.0, 1.0, 11)
    out = make_assessment(
        datasets,
        nsample=50,
        probs=probs[::-1],
        names=["Fm"],
        options=AssessmentOptions(random_seed=123),
    )
    assert list(out.table.index) == [0, 1]
    assert set(out.ci) == {"FFmsy", "Fm", "Winf", "Wfs"}
    for q, table in out.ci.items():
        assert isinstance(table, pd.DataFrame)
        assert table.shape == (11, 2)
        assert np.allclose(table.index.to_numpy(), probs)
        values = table.to_numpy()
        assert np.all(np.isfinite(values))
        assert np.all(np.diff(values, axis=0) >= 0)


def test_repeats_are_reproducible_with_seed() -> None:
    datasets = {"a": _dataset(5, 400)}
    kwargs = dict(nsample=4, probs=[0.1, 0.5, 0.9], names=["Fm"])
    one = make_assessment(datasets, options=AssessmentOptions(random_seed=42), **kwargs)
    two = make_assessment(datasets, options=AssessmentOptions(random_seed=42), **kwargs)
    for q in one.ci:
        pd.testing.assert_frame_equal(one.ci[q], two.ci[q])


def test_dataset_with_all_repeats_failed_has_missing_column() -> None:
    datasets = {"good": _dataset(6, 400), "bad": np.array([])}
    out = make_assessment(
        datasets, nsample=3, probs=[0.0, 1.0], names=["Fm"],
        options=AssessmentOptions(random_seed=1),
    )
    assert out.ci["Fm"]["good"].notna().all()
    assert out.ci["Fm"]["bad"].isna().all()


def test_probs_are_validated() -> None:
    with pytest.raises(ValueError):
        make_assessment({"a": _dataset(7, 100)}, probs=[0.5, 1.5], names=["Fm"])


def test_summary_text() -> None:
    empty = make_assessment({}, names=["Fm"])
    assert len(empty) == 0
    assert "Object with no results" in str(empty)
    assert "Results produced by: s6model" in empty.summary()

    out = make_assessment({"y": _dataset(8, 300)}, a_sd=0.0, names=["Fm"])
    assert "FFmsy" in out.summary()
    assert out["Fm"].shape == (1,)


def test_parallel_matches_sequential() -> None:
    datasets = {"a": _dataset(9, 300), "b": _dataset(10, 300)}
    kwargs = dict(nsample=2, probs=[0.0, 1.0], names=["Fm"])
    seq = make_assessment(datasets, options=AssessmentOptions(random_seed=5), **kwargs)
    par = make_assessment(
        datasets,
        options=AssessmentOptions(use_parallel=True, random_seed=5, max_workers=2),
        **kwargs,
    )
    pd.testing.assert_frame_equal(seq.table, par.table)
    for q in seq.ci:
        pd.testing.assert_frame_equal(seq.ci[q], par.ci[q])


def test_unpicklable_tasks_run_sequentially() -> None:
    def density(weights, params, is_survey):
        from s6model import pdf

        return pdf(weights, params, is_survey)

    datasets = {"a": _dataset(11, 300), "b": _dataset(12, 300)}
    with pytest.warns(UserWarning, match="running sequentially"):
        out = make_assessment(
            datasets,
            a_sd=0.0,
            names=["Fm"],
            density=density,
            options=AssessmentOptions(use_parallel=True),
        )
    assert out.table.notna().all().all()


def test_parallel_failed_dataset_gives_missing_row_and_column() -> None:
    datasets = {"good": _dataset(13, 300), "bad": np.array([])}
    out = make_assessment(
        datasets,
        nsample=3,
        probs=[0.0, 1.0],
        names=["Fm"],
        options=AssessmentOptions(use_parallel=True, random_seed=2, max_workers=2),
    )
    assert out.table.loc["good"].notna().all()
    assert out.table.loc["bad"].isna().all()
    assert out.failed == ("bad",)
    assert out.ci["Fm"]["good"].notna().all()
    assert out.ci["Fm"]["bad"].isna().all()


def test_parallel_timeout_marks_tasks_failed(caplog) -> None:
    datasets = {"a": _dataset(14, 100), "b": _dataset(15, 100)}
    with caplog.at_level(logging.DEBUG, logger="s6model.assessment"):
        out = make_assessment(
            datasets,
            a_sd=0.0,
            names=["Fm"],
            density=slow_density,
            options=AssessmentOptions(use_parallel=True, max_workers=2, timeout=0.2),
        )
    assert out.table.isna().all().all()
    assert out.failed == ("a", "b")
    assert "timeout" in caplog.text


def test_unpicklable_later_dataset_runs_sequentially() -> None:
    class LocalSample(Sample):
        pass

    datasets = {"a": _dataset(16, 300), "b": LocalSample(weights=_dataset(17, 300))}
    with pytest.warns(UserWarning, match="running sequentially"):
        out = make_assessment(
            datasets, a_sd=0.0, names=["Fm"], options=AssessmentOptions(use_parallel=True)
        )
    assert out.table.notna().all().all()

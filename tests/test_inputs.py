import numpy as np
import pandas as pd
import pytest

from s6model import DataBundle, InvalidDataError, Sample, WeightTable, as_observations
from s6model.inputs import max_weight


def test_raw_sequences_become_samples() -> None:
    for data in ([1.0, 2.0, 3.0], (1.0, 2.0), np.array([4.0, 5.0]), pd.Series([1.0, 9.0])):
        obs = as_observations(data)
        assert isinstance(obs, Sample)
    assert max_weight(as_observations([3.0, 7.5, 1.0])) == 7.5


def test_frames_become_tables() -> None:
    df = pd.DataFrame({"Weight": [10.0, 20.0, 30.0], "Freq": [3, 0, 2]})
    obs = as_observations(df)
    assert isinstance(obs, WeightTable)
    assert obs.total == 5.0
    # zero-frequency classes do not count as observed
    assert max_weight(obs) == 30.0
    df2 = pd.DataFrame({"Weight": [10.0, 20.0], "Frequency": [1.5, 2.5]})
    assert isinstance(as_observations(df2), WeightTable)


def test_bundle_prefers_table() -> None:
    table = pd.DataFrame({"Weight": [1.0, 2.0], "Freq": [1, 1]})
    obs = as_observations(DataBundle(sample=[5.0, 6.0], table=table))
    assert isinstance(obs, WeightTable)
    obs = as_observations({"sample": [5.0, 6.0]})
    assert isinstance(obs, Sample)


@pytest.mark.parametrize(
    "bad",
    [
        np.array([]),
        [1.0, -2.0],
        [1.0, np.nan],
        np.ones((2, 2)),
        "weights",
        pd.DataFrame({"Weight": [1.0], "Freq": [1], "Extra": [0]}),
        pd.DataFrame({"Length": [1.0], "Freq": [1]}),
        pd.DataFrame({"Weight": [1.0, 2.0], "Freq": [0, 0]}),
        {"other": [1.0]},
        DataBundle(),
        42,
    ],
)
def test_invalid_inputs_raise(bad) -> None:
    with pytest.raises(InvalidDataError):
        as_observations(bad)


def test_frame_round_trip() -> None:
    t = WeightTable(weight=[1.0, 2.0], frequency=[3.0, 4.0])
    df = t.to_frame()
    assert list(df.columns) == ["Weight", "Freq"]
    assert np.allclose(WeightTable.from_frame(df).frequency, [3.0, 4.0])

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import numpy as np
import pandas as pd


__all__ = [
    "InvalidDataError",
    "Sample",
    "WeightTable",
    "DataBundle",
    "Observations",
    "as_observations",
    "max_weight",
]


class InvalidDataError(ValueError):
    """Raised when an observation source is not a recognised shape."""


@dataclass(frozen=True)
class Sample:
    """Individual weights (grams) of sampled fish."""

    weights: np.ndarray

    def __post_init__(self) -> None:
        w = np.asarray(self.weights, dtype=float).reshape(-1)
        if w.size == 0:
            raise InvalidDataError("Sample contains no observations.")
        if not np.all(np.isfinite(w)) or np.any(w < 0):
            raise InvalidDataError("Sample weights must be finite and non-negative.")
        object.__setattr__(self, "weights", w)

    def __len__(self) -> int:
        return int(self.weights.size)


@dataclass(frozen=True)
class WeightTable:
    """Weight classes with (possibly fractional) frequencies."""

    weight: np.ndarray
    frequency: np.ndarray

    def __post_init__(self) -> None:
        w = np.asarray(self.weight, dtype=float).reshape(-1)
        f = np.asarray(self.frequency, dtype=float).reshape(-1)
        if w.shape != f.shape:
            raise InvalidDataError(
                f"Weight shape {w.shape} != Frequency shape {f.shape}."
            )
        if w.size == 0 or not np.any(f > 0):
            raise InvalidDataError("WeightTable contains no observations.")
        if not (np.all(np.isfinite(w)) and np.all(np.isfinite(f))):
            raise InvalidDataError("WeightTable must contain finite values only.")
        if np.any(w < 0) or np.any(f < 0):
            raise InvalidDataError("Weights and frequencies must be non-negative.")
        object.__setattr__(self, "weight", w)
        object.__setattr__(self, "frequency", f)

    @staticmethod
    def from_frame(df: pd.DataFrame) -> "WeightTable":
        """Build from a DataFrame with columns Weight and Freq (or Frequency)."""
        cols = list(df.columns)
        freq_col = "Freq" if "Freq" in cols else "Frequency"
        if len(cols) != 2 or "Weight" not in cols or freq_col not in cols:
            raise InvalidDataError(
                f"Expected a two-column table with Weight and Freq; got columns {cols}."
            )
        return WeightTable(
            weight=df["Weight"].to_numpy(dtype=float),
            frequency=df[freq_col].to_numpy(dtype=float),
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"Weight": self.weight, "Freq": self.frequency})

    @property
    def total(self) -> float:
        return float(np.sum(self.frequency))


Observations = Union[Sample, WeightTable]


@dataclass(frozen=True)
class DataBundle:
    """Raw sample and/or weight-class table for one dataset.

    When both are present the table is used for estimation.
    """

    sample: Optional[Any] = None
    table: Optional[Any] = None

    def resolve(self) -> Observations:
        if self.table is not None:
            return as_observations(self.table)
        if self.sample is not None:
            return as_observations(self.sample)
        raise InvalidDataError("DataBundle carries neither a sample nor a table.")


def as_observations(data: Any) -> Observations:
    """Coerce user input into a Sample or WeightTable.

    Accepted inputs:
    - Sample / WeightTable (returned as-is)
    - DataBundle, or a mapping with "sample"/"table" keys (table wins)
    - pandas DataFrame with columns Weight and Freq (or Frequency)
    - pandas Series, numpy array or list/tuple of numbers (raw sample)
    """
    if isinstance(data, (Sample, WeightTable)):
        return data
    if isinstance(data, DataBundle):
        return data.resolve()
    if isinstance(data, Mapping):
        if not ({"sample", "table"} & set(data.keys())):
            raise InvalidDataError(
                "Mapping input needs a 'sample' and/or 'table' entry."
            )
        return DataBundle(sample=data.get("sample"), table=data.get("table")).resolve()
    if isinstance(data, pd.DataFrame):
        return WeightTable.from_frame(data)
    if isinstance(data, pd.Series):
        return Sample(weights=data.to_numpy(dtype=float))
    if isinstance(data, (np.ndarray, list, tuple)):
        try:
            arr = np.asarray(data, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidDataError(f"Observations are not numeric: {e}") from e
        if arr.ndim != 1:
            raise InvalidDataError(
                f"Raw samples must be one-dimensional; got shape {arr.shape}."
            )
        return Sample(weights=arr)
    raise InvalidDataError(
        f"Unsupported observation type {type(data).__name__!r}; expected a numeric "
        "sequence or a table with columns Weight and Freq."
    )


def max_weight(obs: Observations) -> float:
    """Largest observed weight."""
    if isinstance(obs, Sample):
        return float(np.max(obs.weights))
    if isinstance(obs, WeightTable):
        return float(np.max(obs.weight[obs.frequency > 0]))
    raise InvalidDataError(f"Unsupported observation type {type(obs).__name__!r}.")

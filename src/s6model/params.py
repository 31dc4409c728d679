from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np


__all__ = [
    "SCALES",
    "ParameterSet",
    "UnknownParameterError",
    "scale_of",
    "to_transformed",
    "to_natural",
    "merged",
]


# Natural value = scale * exp(transformed). The scales are the default natural
# values, so a transformed value of 0 is the default parameterisation.
SCALES: Mapping[str, float] = {
    "Winf": 10000.0,
    "Fm": 0.25,
    "A": 4.47,
    "n": 0.75,
    "eta_F": 0.05,
    "eta_m": 0.25,
    "a": 0.35,
    "epsilon_a": 0.8,
    "epsilon_r": 0.1,
    "Wfs": 500.0,
    "u": 10.0,
}


class UnknownParameterError(KeyError):
    """Raised when a parameter name has no registered scale."""


def scale_of(name: str) -> float:
    """Return the registered scale for `name`."""
    try:
        return float(SCALES[name])
    except KeyError as e:
        raise UnknownParameterError(
            f"Unknown parameter {name!r}. Registered: {tuple(SCALES.keys())}"
        ) from e


def to_transformed(name: str, value: float) -> float:
    """Natural value -> log(value / scale)."""
    return float(np.log(float(value) / scale_of(name)))


def to_natural(name: str, value: float) -> float:
    """Transformed value -> scale * exp(value)."""
    return float(scale_of(name) * np.exp(float(value)))


@dataclass(frozen=True)
class ParameterSet:
    """Named parameters held on the transformed (log) scale.

    Only the names given at construction are stored. Names absent from the
    set resolve to their registered default through `resolve`.
    """

    values: Mapping[str, float] = field(default_factory=dict)

    # ---- constructors ----
    @staticmethod
    def build(
        names: Iterable[str],
        values: Iterable[float],
        transformed: bool = True,
    ) -> "ParameterSet":
        """Build a ParameterSet from parallel name/value sequences.

        With transformed=False the values are natural-scale and are converted
        with log(value / scale).
        """
        names = [str(n) for n in names]
        vals = np.atleast_1d(np.asarray(list(values), dtype=float))
        if len(names) != vals.shape[0]:
            raise ValueError(
                f"Got {len(names)} names but {vals.shape[0]} values."
            )
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate parameter names in {names}.")

        out: Dict[str, float] = {}
        for name, v in zip(names, vals):
            scale = scale_of(name)
            out[name] = float(v) if transformed else float(np.log(float(v) / scale))
        return ParameterSet(values=out)

    @staticmethod
    def from_natural(**natural: float) -> "ParameterSet":
        """ParameterSet.from_natural(Fm=0.3, Winf=5000.0)"""
        return ParameterSet.build(natural.keys(), natural.values(), transformed=False)

    # ---- access ----
    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __iter__(self):
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self.values.keys())

    def transformed_value(self, name: str) -> float:
        return float(self.values[name])

    def natural_value(self, name: str) -> float:
        """Return scale(name) * exp(transformed(name))."""
        return scale_of(name) * float(np.exp(self.values[name]))

    def all_natural(self) -> Dict[str, float]:
        return {n: self.natural_value(n) for n in self.values}

    def resolve(self, name: str) -> float:
        """Natural value of `name`, falling back to its registered default."""
        if name in self.values:
            return self.natural_value(name)
        return scale_of(name)

    # ---- builders (pure; return new set) ----
    def with_values(
        self,
        names: Sequence[str],
        values: Sequence[float],
        transformed: bool = True,
    ) -> "ParameterSet":
        """Return a new set with `names` added or overwritten."""
        other = ParameterSet.build(names, values, transformed=transformed)
        out = dict(self.values)
        out.update(other.values)
        return ParameterSet(values=out)

    def replace(self, **natural: float) -> "ParameterSet":
        """Return a new set with natural-scale overrides."""
        return self.with_values(list(natural.keys()), list(natural.values()), transformed=False)

    def __repr__(self) -> str:
        inner = ", ".join(f"{n}={v:.6g}" for n, v in self.all_natural().items())
        return f"ParameterSet({inner})"


def merged(
    names: Sequence[str],
    theta: Sequence[float],
    fixed_names: Optional[Sequence[str]] = None,
    fixed_values: Optional[Sequence[float]] = None,
) -> ParameterSet:
    """Merge free (transformed) and fixed (transformed) values into one set."""
    fixed_names = [] if fixed_names is None else list(fixed_names)
    fixed_values = (
        [] if fixed_values is None else np.asarray(fixed_values, dtype=float).reshape(-1).tolist()
    )
    return ParameterSet.build(
        list(names) + fixed_names,
        np.asarray(theta, dtype=float).reshape(-1).tolist() + fixed_values,
        transformed=True,
    )

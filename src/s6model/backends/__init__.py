"""Backend implementations + registry."""

from __future__ import annotations

from typing import Dict

from .common import Backend, BackendResult
from .scipy_minimize import ScipyMinimizeBackend

_BACKENDS: Dict[str, Backend] = {
    "scipy.minimize": ScipyMinimizeBackend(),
}


def get_backend(name: str) -> Backend:
    """Return a backend implementation by name."""
    try:
        return _BACKENDS[name]
    except KeyError as e:
        raise ValueError(
            f"Unknown backend {name!r}. Available: {tuple(_BACKENDS.keys())}"
        ) from e


AVAILABLE_BACKENDS = tuple(_BACKENDS.keys())

__all__ = ["AVAILABLE_BACKENDS", "Backend", "BackendResult", "get_backend"]

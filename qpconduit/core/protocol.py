"""
Capability interfaces shared by the dense and sparse implementations.

The two variants are unrelated concrete classes; these protocols describe the
surface they both provide so callers can be written once against either.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np

from .results import Results
from .settings import Settings


@runtime_checkable
class ModelLike(Protocol):
    """Problem data container with fixed dimensions."""

    dim: int
    n_eq: int
    n_in: int

    @property
    def n_total(self) -> int: ...

    def is_valid(self) -> bool: ...

    def __eq__(self, other: object) -> bool: ...


@runtime_checkable
class QPObject(Protocol):
    """Lifecycle shared by ``qpconduit.dense.QP`` and ``qpconduit.sparse.QP``."""

    model: Any
    settings: Settings
    results: Results

    def init(
        self,
        H: Any = None,
        g: Optional[np.ndarray] = None,
        A: Any = None,
        b: Optional[np.ndarray] = None,
        C: Any = None,
        l: Optional[np.ndarray] = None,
        u: Optional[np.ndarray] = None,
        compute_preconditioner: bool = True,
        rho: Optional[float] = None,
        mu_eq: Optional[float] = None,
        mu_in: Optional[float] = None,
    ) -> None: ...

    def update(
        self,
        H: Any = None,
        g: Optional[np.ndarray] = None,
        A: Any = None,
        b: Optional[np.ndarray] = None,
        C: Any = None,
        l: Optional[np.ndarray] = None,
        u: Optional[np.ndarray] = None,
        update_preconditioner: Optional[bool] = None,
        rho: Optional[float] = None,
        mu_eq: Optional[float] = None,
        mu_in: Optional[float] = None,
    ) -> None: ...

    def solve(
        self,
        x: Optional[np.ndarray] = None,
        y: Optional[np.ndarray] = None,
        z: Optional[np.ndarray] = None,
    ) -> None: ...

    def cleanup(self) -> None: ...


__all__ = ["ModelLike", "QPObject"]

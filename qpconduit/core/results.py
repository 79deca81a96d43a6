"""
Solution containers.

``Results`` owns the primal solution ``x``, the equality multipliers ``y`` and
the inequality multipliers ``z`` expressed in the caller's (unscaled)
coordinates, plus an ``Info`` record with status and statistics. The
multipliers follow the sign convention of the Lagrangian

    L(x, y, z) = ½ xᵀHx + gᵀx + yᵀ(Ax - b) + zᵀ(Cx - clip(Cx, l, u))

so that at a solution ``Hx + g + Aᵀy + Cᵀz = 0`` with ``z_i > 0`` on active
upper bounds and ``z_i < 0`` on active lower bounds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

import numpy as np

from .status import QPStatus


@dataclass
class Info:
    """
    Statistics of the last solve.

    Attributes:
        status: Terminal state of the last solve.
        iter: Number of primal-dual iterations performed.
        mu_updates: Number of proximal parameter adaptations.
        rho: Primal proximal parameter in use at exit.
        mu_eq: Equality dual proximal parameter in use at exit.
        mu_in: Inequality dual proximal parameter in use at exit.
        setup_time: Seconds spent in the last ``init``/``update``.
        solve_time: Seconds spent iterating in the last ``solve``.
        run_time: ``setup_time + solve_time``.
        objective: Objective value at ``x``.
        pri_res: Primal residual (infinity norm, original units).
        dua_res: Dual residual (infinity norm, original units).
        duality_gap: Absolute duality gap at exit.
    """

    status: QPStatus = QPStatus.NOT_RUN
    iter: int = 0
    mu_updates: int = 0
    rho: float = 0.0
    mu_eq: float = 0.0
    mu_in: float = 0.0
    setup_time: float = 0.0
    solve_time: float = 0.0
    run_time: float = 0.0
    objective: float = math.nan
    pri_res: float = math.nan
    dua_res: float = math.nan
    duality_gap: float = math.nan

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Info):
            return NotImplemented
        for f in fields(self):
            a, b = getattr(self, f.name), getattr(other, f.name)
            if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
                continue
            if a != b:
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["status"] = self.status.value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Info":
        values = dict(data)
        values["status"] = QPStatus(values["status"])
        return cls(**values)


def _nan_vector(size: int) -> np.ndarray:
    return np.full(size, np.nan)


def _arrays_equal(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return a.shape == b.shape and bool(np.array_equal(a, b, equal_nan=True))


@dataclass(eq=False)
class Results:
    """
    Solution, multipliers, certificate and statistics of a QP object.

    A fresh instance (or one after :meth:`reset`) holds NaN-filled vectors and
    ``status == QPStatus.NOT_RUN``; that is the "unsolved" sentinel.

    Attributes:
        x: Primal solution (length ``n``).
        y: Equality multipliers (length ``n_eq``).
        z: Inequality multipliers (length ``n_in``).
        certificate: ``None`` unless the last solve proved infeasibility. For
            ``PRIMAL_INFEASIBLE`` it is the dual ray ``[dy; dz]`` (length
            ``n_eq + n_in``), for ``DUAL_INFEASIBLE`` the primal ray ``dx``.
        info: Status and statistics.
    """

    n: int
    n_eq: int
    n_in: int
    x: np.ndarray = field(init=False)
    y: np.ndarray = field(init=False)
    z: np.ndarray = field(init=False)
    certificate: Optional[np.ndarray] = field(init=False, default=None)
    info: Info = field(init=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Return to the unsolved state. Idempotent."""

        self.x = _nan_vector(self.n)
        self.y = _nan_vector(self.n_eq)
        self.z = _nan_vector(self.n_in)
        self.certificate = None
        self.info = Info()

    def has_solution(self) -> bool:
        """Return True if ``x`` holds values from a previous solve."""

        return self.n == 0 or not bool(np.isnan(self.x).any())

    def copy(self) -> "Results":
        out = Results(self.n, self.n_eq, self.n_in)
        out.x = self.x.copy()
        out.y = self.y.copy()
        out.z = self.z.copy()
        out.certificate = None if self.certificate is None else self.certificate.copy()
        out.info = Info(**{f.name: getattr(self.info, f.name) for f in fields(Info)})
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Results):
            return NotImplemented
        return (
            (self.n, self.n_eq, self.n_in) == (other.n, other.n_eq, other.n_in)
            and _arrays_equal(self.x, other.x)
            and _arrays_equal(self.y, other.y)
            and _arrays_equal(self.z, other.z)
            and _arrays_equal(self.certificate, other.certificate)
            and self.info == other.info
        )

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n": self.n,
            "n_eq": self.n_eq,
            "n_in": self.n_in,
            "x": self.x.tolist(),
            "y": self.y.tolist(),
            "z": self.z.tolist(),
            "certificate": None if self.certificate is None else self.certificate.tolist(),
            "info": self.info.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Results":
        out = cls(int(data["n"]), int(data["n_eq"]), int(data["n_in"]))
        out.x = np.asarray(data["x"], dtype=float).reshape(out.n)
        out.y = np.asarray(data["y"], dtype=float).reshape(out.n_eq)
        out.z = np.asarray(data["z"], dtype=float).reshape(out.n_in)
        if data["certificate"] is not None:
            out.certificate = np.asarray(data["certificate"], dtype=float).reshape(-1)
        out.info = Info.from_dict(data["info"])
        return out


__all__ = ["Info", "Results"]

"""
Dense QP model.

Stores ``H, g, A, b, C, l, u`` as NumPy arrays whose shapes are fixed by the
dimensions ``(dim, n_eq, n_in)`` given at construction.
"""

from __future__ import annotations

from typing import Any, Dict

import numpy as np

from ..core.errors import ConstructionError


class Model:
    """
    Problem data of a dense QP.

    Attributes:
        dim: Primal dimension ``n``.
        n_eq: Number of equality constraints.
        n_in: Number of inequality constraints.
        H: ``(n, n)`` symmetric cost matrix.
        g: Linear cost of length ``n``.
        A: ``(n_eq, n)`` equality matrix.
        b: Equality right-hand side of length ``n_eq``.
        C: ``(n_in, n)`` inequality matrix.
        l: Lower bounds of length ``n_in``.
        u: Upper bounds of length ``n_in``.
    """

    def __init__(self, n: int = 0, n_eq: int = 0, n_in: int = 0) -> None:
        if n < 0 or n_eq < 0 or n_in < 0:
            raise ConstructionError(f"Dimensions must be non-negative, got {(n, n_eq, n_in)}")
        self.dim = int(n)
        self.n_eq = int(n_eq)
        self.n_in = int(n_in)
        self.H = np.zeros((n, n))
        self.g = np.zeros(n)
        self.A = np.zeros((n_eq, n))
        self.b = np.zeros(n_eq)
        self.C = np.zeros((n_in, n))
        self.l = np.zeros(n_in)
        self.u = np.zeros(n_in)

    @property
    def n_total(self) -> int:
        return self.n_eq + self.n_in

    def is_valid(self) -> bool:
        """Return True if every field matches the dimensions and ``l <= u``."""

        n, n_eq, n_in = self.dim, self.n_eq, self.n_in
        expected = {
            "H": (n, n),
            "g": (n,),
            "A": (n_eq, n),
            "b": (n_eq,),
            "C": (n_in, n),
            "l": (n_in,),
            "u": (n_in,),
        }
        for name, shape in expected.items():
            if np.shape(getattr(self, name)) != shape:
                return False
        return bool(np.all(self.l <= self.u))

    def copy(self) -> "Model":
        out = Model(self.dim, self.n_eq, self.n_in)
        for name in ("H", "g", "A", "b", "C", "l", "u"):
            setattr(out, name, getattr(self, name).copy())
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        if (self.dim, self.n_eq, self.n_in) != (other.dim, other.n_eq, other.n_in):
            return False
        return all(
            np.array_equal(getattr(self, name), getattr(other, name))
            for name in ("H", "g", "A", "b", "C", "l", "u")
        )

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"dense.Model(dim={self.dim}, n_eq={self.n_eq}, n_in={self.n_in})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dim": self.dim,
            "n_eq": self.n_eq,
            "n_in": self.n_in,
            "H": self.H.tolist(),
            "g": self.g.tolist(),
            "A": self.A.tolist(),
            "b": self.b.tolist(),
            "C": self.C.tolist(),
            "l": self.l.tolist(),
            "u": self.u.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Model":
        n, n_eq, n_in = int(data["dim"]), int(data["n_eq"]), int(data["n_in"])
        model = cls(n, n_eq, n_in)
        model.H = np.asarray(data["H"], dtype=float).reshape(n, n)
        model.g = np.asarray(data["g"], dtype=float).reshape(n)
        model.A = np.asarray(data["A"], dtype=float).reshape(n_eq, n)
        model.b = np.asarray(data["b"], dtype=float).reshape(n_eq)
        model.C = np.asarray(data["C"], dtype=float).reshape(n_in, n)
        model.l = np.asarray(data["l"], dtype=float).reshape(n_in)
        model.u = np.asarray(data["u"], dtype=float).reshape(n_in)
        return model

    def __getstate__(self) -> Dict[str, Any]:
        return self.to_dict()

    def __setstate__(self, state: Dict[str, Any]) -> None:
        restored = Model.from_dict(state)
        self.__dict__.update(restored.__dict__)


__all__ = ["Model"]

"""
Ruiz equilibration of the QP data.

The preconditioner computes diagonal scalings ``D`` (primal), ``E``
(equality rows), ``F`` (inequality rows) and a scalar cost scaling ``c`` so
that the columns of the symmetric KKT matrix

    [[H, Aᵀ, Cᵀ],
     [A,  0,  0],
     [C,  0,  0]]

have infinity norms close to one. The solver iterates on the scaled problem

    H̄ = c D H D,  ḡ = c D g,  Ā = E A D,  b̄ = E b,  C̄ = F C D,  l̄ = F l,  ū = F u

and maps iterates back through ``x = D x̄``, ``y = E ȳ / c``, ``z = F z̄ / c``.
Dense NumPy and sparse CSC data are handled by the same code path.

References:
    - Ruiz, *A scaling algorithm to equilibrate both rows and columns norms
      in matrices* (2001)
    - Stellato et al., *OSQP: an operator splitting solver for quadratic
      programs* (2020)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from .logging import get_logger
from .utils import col_inf_norms, inf_norm, row_inf_norms, scale_rows_cols

logger = get_logger(__name__)

MIN_SCALING = 1e-4
MAX_SCALING = 1e4
_ZERO_NORM = 1e-8


@dataclass
class ScaledQP:
    """Problem data after equilibration."""

    H: Any
    g: np.ndarray
    A: Any
    b: np.ndarray
    C: Any
    l: np.ndarray
    u: np.ndarray


def _limit(norms: np.ndarray) -> np.ndarray:
    norms = np.where(norms < _ZERO_NORM, 1.0, norms)
    return np.clip(norms, MIN_SCALING, MAX_SCALING)


class RuizEquilibration:
    """
    Diagonal equilibration state owned by a QP object.

    A freshly constructed instance is the identity scaling. :meth:`compute`
    derives new factors from a model; :meth:`scale` applies the stored
    factors, which is how stale reuse on ``update(update_preconditioner=False)``
    works.
    """

    def __init__(self, n: int, n_eq: int, n_in: int) -> None:
        self.dim = n
        self.n_eq = n_eq
        self.n_in = n_in
        self.reset()

    def reset(self) -> None:
        """Return to the identity scaling."""

        self.delta = np.ones(self.dim + self.n_eq + self.n_in)
        self.c = 1.0
        self.iterations = 0

    @property
    def D(self) -> np.ndarray:
        return self.delta[: self.dim]

    @property
    def E(self) -> np.ndarray:
        return self.delta[self.dim : self.dim + self.n_eq]

    @property
    def F(self) -> np.ndarray:
        return self.delta[self.dim + self.n_eq :]

    def compute(self, model, max_iter: int = 10, accuracy: float = 1e-3) -> ScaledQP:
        """
        Derive new scaling factors from ``model`` and return the scaled data.

        Args:
            model: Dense or sparse model.
            max_iter: Maximum number of equilibration passes.
            accuracy: Stop once ``max |1 - delta_k| <= accuracy``.
        """

        n, n_eq = self.dim, self.n_eq
        H, A, C = model.H, model.A, model.C
        g = np.array(model.g, dtype=float, copy=True)
        delta = np.ones_like(self.delta)
        c = 1.0

        iterations = 0
        for iterations in range(1, max_iter + 1):
            norm_x = np.maximum.reduce([col_inf_norms(H), col_inf_norms(A), col_inf_norms(C)])
            norms = np.concatenate([norm_x, row_inf_norms(A), row_inf_norms(C)])
            step = 1.0 / np.sqrt(_limit(norms))

            d_x, d_eq, d_in = step[:n], step[n : n + n_eq], step[n + n_eq :]
            H = scale_rows_cols(H, d_x, d_x)
            A = scale_rows_cols(A, d_eq, d_x)
            C = scale_rows_cols(C, d_in, d_x)
            g = d_x * g
            delta *= step

            h_cols = col_inf_norms(H)
            cost_norm = max(float(np.mean(h_cols)) if h_cols.size else 0.0, inf_norm(g))
            gamma = 1.0 / float(_limit(np.array([cost_norm]))[0])
            H = H * gamma
            g = g * gamma
            c *= gamma

            if inf_norm(1.0 - step) <= accuracy:
                break

        self.delta = delta
        self.c = c
        self.iterations = iterations
        logger.debug(
            "Ruiz equilibration: %d passes, delta in [%.3e, %.3e], c=%.3e",
            iterations,
            float(delta.min()) if delta.size else 1.0,
            float(delta.max()) if delta.size else 1.0,
            c,
        )
        return self.scale(model)

    def scale(self, model) -> ScaledQP:
        """Apply the stored factors to ``model``."""

        D, E, F, c = self.D, self.E, self.F, self.c
        return ScaledQP(
            H=scale_rows_cols(model.H, D, D) * c,
            g=c * D * model.g,
            A=scale_rows_cols(model.A, E, D),
            b=E * model.b,
            C=scale_rows_cols(model.C, F, D),
            l=F * model.l,
            u=F * model.u,
        )

    def scale_primal(self, x: np.ndarray) -> np.ndarray:
        return x / self.D

    def scale_dual_eq(self, y: np.ndarray) -> np.ndarray:
        return self.c * y / self.E

    def scale_dual_in(self, z: np.ndarray) -> np.ndarray:
        return self.c * z / self.F

    def unscale_primal(self, x: np.ndarray) -> np.ndarray:
        return self.D * x

    def unscale_dual_eq(self, y: np.ndarray) -> np.ndarray:
        return self.E * y / self.c

    def unscale_dual_in(self, z: np.ndarray) -> np.ndarray:
        return self.F * z / self.c

    def copy(self) -> "RuizEquilibration":
        out = RuizEquilibration(self.dim, self.n_eq, self.n_in)
        out.delta = self.delta.copy()
        out.c = self.c
        out.iterations = self.iterations
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuizEquilibration):
            return NotImplemented
        return (
            (self.dim, self.n_eq, self.n_in) == (other.dim, other.n_eq, other.n_in)
            and np.array_equal(self.delta, other.delta)
            and self.c == other.c
        )

    __hash__ = None  # type: ignore[assignment]

    def to_dict(self) -> Dict[str, Any]:
        return {"delta": self.delta.tolist(), "c": self.c, "iterations": self.iterations}

    def load_dict(self, data: Dict[str, Any]) -> None:
        delta = np.asarray(data["delta"], dtype=float).reshape(-1)
        if delta.shape != self.delta.shape:
            raise ValueError(f"delta must have length {self.delta.size}, got {delta.size}")
        self.delta = delta
        self.c = float(data["c"])
        self.iterations = int(data["iterations"])


__all__ = ["RuizEquilibration", "ScaledQP", "MIN_SCALING", "MAX_SCALING"]

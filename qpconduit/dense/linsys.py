"""
Dense linear algebra for the proximal iteration.

The primal step solves the reduced, symmetric positive definite system

    (H + rho I + Mᵀ diag(r) M) x = rhs

where ``M`` stacks the equality and inequality matrices and ``r`` holds the
row penalties ``1/mu_eq`` and ``1/mu_in``. The matrix is factorized once per
proximal parameter triple with a Cholesky decomposition.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import scipy.linalg as la

from ..logging import get_logger
from ..utils import stable_solve

logger = get_logger(__name__)


def stack_constraints(A: np.ndarray, C: np.ndarray) -> np.ndarray:
    """Return ``[A; C]``."""

    return np.vstack([A, C])


class KKTFactorization:
    """Cholesky factorization of the reduced proximal KKT matrix."""

    def __init__(self, H: np.ndarray, M: np.ndarray, rho: float, penalties: np.ndarray) -> None:
        n = H.shape[0]
        matrix = H + rho * np.eye(n) + M.T @ (penalties[:, None] * M)
        self._matrix = matrix
        self._cho = None
        if n == 0:
            return
        try:
            self._cho = la.cho_factor(matrix, lower=True, check_finite=False)
        except la.LinAlgError:
            logger.warning("Cholesky factorization failed; falling back to a regularized solve")

    def solve(self, rhs: np.ndarray) -> np.ndarray:
        if self._matrix.shape[0] == 0:
            return np.zeros(0)
        if self._cho is not None:
            return la.cho_solve(self._cho, rhs, check_finite=False)
        return stable_solve(self._matrix, rhs)


def solve_equality_kkt(
    H: np.ndarray,
    g: np.ndarray,
    A: np.ndarray,
    b: np.ndarray,
    rho: float,
    mu_eq: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve the regularized equality-constrained KKT system

        [[H + rho I, Aᵀ], [A, -mu_eq I]] [x; y] = [-g; b]

    used to seed the iterates when inequalities are ignored.
    """

    n, n_eq = H.shape[0], A.shape[0]
    kkt = np.block([[H + rho * np.eye(n), A.T], [A, -mu_eq * np.eye(n_eq)]])
    sol = stable_solve(kkt, np.concatenate([-g, b]))
    return sol[:n], sol[n:]


__all__ = ["KKTFactorization", "stack_constraints", "solve_equality_kkt"]

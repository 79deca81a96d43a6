"""
Sparse linear algebra for the proximal iteration.

Same reduced system as the dense backend, assembled in CSC format and
factorized with SuperLU. The structure of the reduced matrix only depends on
the sparsity structure of the model, which is fixed across updates.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from ..logging import get_logger

logger = get_logger(__name__)


def stack_constraints(A: sp.csc_matrix, C: sp.csc_matrix) -> sp.csc_matrix:
    """Return ``[A; C]`` in CSC format."""

    return sp.csc_matrix(sp.vstack([A, C], format="csc"))


def _eye(n: int) -> sp.csc_matrix:
    return sp.identity(n, format="csc")


class KKTFactorization:
    """SuperLU factorization of the reduced proximal KKT matrix."""

    def __init__(self, H: sp.csc_matrix, M: sp.csc_matrix, rho: float, penalties: np.ndarray) -> None:
        n = H.shape[0]
        self._n = n
        if n == 0:
            self._lu = None
            return
        weighted = M.T @ sp.diags(penalties) @ M if M.shape[0] else sp.csc_matrix((n, n))
        matrix = sp.csc_matrix(H + rho * _eye(n) + weighted)
        try:
            self._lu = spla.splu(matrix)
        except RuntimeError:
            logger.warning("SuperLU reported a singular matrix; adding a diagonal shift")
            self._lu = spla.splu(sp.csc_matrix(matrix + 1e-8 * _eye(n)))

    def solve(self, rhs: np.ndarray) -> np.ndarray:
        if self._n == 0:
            return np.zeros(0)
        return self._lu.solve(rhs)


def solve_equality_kkt(
    H: sp.csc_matrix,
    g: np.ndarray,
    A: sp.csc_matrix,
    b: np.ndarray,
    rho: float,
    mu_eq: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve the regularized equality-constrained KKT system

        [[H + rho I, Aᵀ], [A, -mu_eq I]] [x; y] = [-g; b]

    in sparse arithmetic.
    """

    n, n_eq = H.shape[0], A.shape[0]
    if n == 0:
        return np.zeros(0), np.zeros(n_eq)
    if n_eq == 0:
        x = spla.spsolve(sp.csc_matrix(H + rho * _eye(n)), -g)
        return np.atleast_1d(x), np.zeros(0)
    kkt = sp.bmat([[H + rho * _eye(n), A.T], [A, -mu_eq * _eye(n_eq)]], format="csc")
    sol = spla.spsolve(kkt, np.concatenate([-g, b]))
    sol = np.atleast_1d(sol)
    return sol[:n], sol[n:]


__all__ = ["KKTFactorization", "stack_constraints", "solve_equality_kkt"]

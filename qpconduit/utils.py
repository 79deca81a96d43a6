"""
Numerical helper routines shared by the dense and sparse solvers.

Matrices handed to these helpers may be NumPy arrays or SciPy sparse
matrices; the norm helpers dispatch on ``scipy.sparse.issparse`` so that the
preconditioner and the residual computations are written once.
"""

from __future__ import annotations

import numpy as np
import scipy.sparse as sp

from .core.errors import ConstructionError


def stable_solve(matrix: np.ndarray, rhs: np.ndarray, reg: float = 1e-12) -> np.ndarray:
    """
    Solve ``M x = r`` with regularization fallbacks.

    Tries ``np.linalg.solve`` first, then retries with ``reg`` added to the
    diagonal, and finally falls back to a least-squares solve.
    """

    try:
        return np.linalg.solve(matrix, rhs)
    except np.linalg.LinAlgError:
        if reg > 0.0:
            augmented = matrix + reg * np.eye(matrix.shape[0], dtype=matrix.dtype)
            try:
                return np.linalg.solve(augmented, rhs)
            except np.linalg.LinAlgError:
                pass
    sol, *_ = np.linalg.lstsq(matrix, rhs, rcond=None)
    return sol


def inf_norm(vec: np.ndarray) -> float:
    """Infinity norm that returns 0 for empty vectors."""

    if vec.size == 0:
        return 0.0
    return float(np.max(np.abs(vec)))


def col_inf_norms(matrix) -> np.ndarray:
    """Column-wise infinity norms of a dense or sparse matrix."""

    if matrix.shape[0] == 0 or matrix.shape[1] == 0:
        return np.zeros(matrix.shape[1])
    if sp.issparse(matrix):
        return np.asarray(abs(matrix).max(axis=0).todense()).ravel()
    return np.max(np.abs(matrix), axis=0)


def row_inf_norms(matrix) -> np.ndarray:
    """Row-wise infinity norms of a dense or sparse matrix."""

    if matrix.shape[0] == 0 or matrix.shape[1] == 0:
        return np.zeros(matrix.shape[0])
    if sp.issparse(matrix):
        return np.asarray(abs(matrix).max(axis=1).todense()).ravel()
    return np.max(np.abs(matrix), axis=1)


def scale_rows_cols(matrix, row_scale: np.ndarray, col_scale: np.ndarray):
    """Return ``diag(row_scale) @ matrix @ diag(col_scale)`` keeping the storage type."""

    if matrix.shape[0] == 0 or matrix.shape[1] == 0:
        return matrix.copy()
    if sp.issparse(matrix):
        scaled = sp.diags(row_scale) @ matrix @ sp.diags(col_scale)
        return sp.csc_matrix(scaled)
    return row_scale[:, None] * matrix * col_scale[None, :]


def as_vector(value, size: int, name: str) -> np.ndarray:
    """
    Convert ``value`` to a float vector of length ``size``.

    Raises:
        ConstructionError: On a length mismatch or NaN entries.
    """

    arr = np.asarray(value, dtype=float).reshape(-1)
    if arr.shape[0] != size:
        raise ConstructionError(f"{name} must have length {size}, got {arr.shape[0]}")
    if np.isnan(arr).any():
        raise ConstructionError(f"{name} contains NaN entries")
    return arr.copy()


def as_dense_matrix(value, rows: int, cols: int, name: str) -> np.ndarray:
    """
    Convert ``value`` (array-like or sparse) to a dense ``rows x cols`` float matrix.

    A flat input with ``rows * cols`` entries is accepted when one of the
    dimensions is 1, which covers single-row constraint matrices.

    Raises:
        ConstructionError: On a shape mismatch or non-finite entries.
    """

    if sp.issparse(value):
        arr = np.asarray(value.todense(), dtype=float)
    else:
        arr = np.asarray(value, dtype=float)
    if arr.ndim == 1 and arr.size == rows * cols and (rows == 1 or cols == 1):
        arr = arr.reshape(rows, cols)
    if arr.ndim == 0 and rows == 1 and cols == 1:
        arr = arr.reshape(1, 1)
    if arr.shape != (rows, cols):
        raise ConstructionError(f"{name} must have shape {(rows, cols)}, got {arr.shape}")
    if not np.isfinite(arr).all():
        raise ConstructionError(f"{name} contains non-finite entries")
    return arr.copy()


__all__ = [
    "stable_solve",
    "inf_norm",
    "col_inf_norms",
    "row_inf_norms",
    "scale_rows_cols",
    "as_vector",
    "as_dense_matrix",
]

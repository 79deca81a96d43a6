"""
Sparse QP model.

``H``, ``A`` and ``C`` are stored as ``scipy.sparse.csc_matrix`` with sorted
indices. Each matrix has a *structure* (the set of stored positions, explicit
zeros included) which, once fixed, every later assignment must respect:
values may change, positions may not. ``H_nnz``, ``A_nnz`` and ``C_nnz``
record the structural non-zero counts.
"""

from __future__ import annotations

from typing import Any, Dict

import numpy as np
import scipy.sparse as sp

from ..core.errors import ConstructionError, SparsityViolation

_MATRICES = ("H", "A", "C")
_VECTORS = ("g", "b", "l", "u")


def _canonical_csc(matrix) -> sp.csc_matrix:
    out = sp.csc_matrix(matrix, dtype=float, copy=True)
    out.sum_duplicates()
    out.sort_indices()
    return out


def _structure_keys(matrix: sp.csc_matrix) -> np.ndarray:
    """Linear keys ``col * n_rows + row`` of the stored entries, in storage order."""

    cols = np.repeat(np.arange(matrix.shape[1], dtype=np.int64), np.diff(matrix.indptr))
    return cols * matrix.shape[0] + matrix.indices.astype(np.int64)


def _mask_to_structure(mask, shape, name: str) -> sp.csc_matrix:
    if sp.issparse(mask):
        pattern = sp.csc_matrix(mask)
        pattern.eliminate_zeros()
    else:
        pattern = sp.csc_matrix(np.asarray(mask, dtype=bool))
    if pattern.shape != shape:
        raise ConstructionError(f"{name} must have shape {shape}, got {pattern.shape}")
    pattern.sort_indices()
    return sp.csc_matrix(
        (np.zeros(pattern.nnz), pattern.indices.copy(), pattern.indptr.copy()),
        shape=shape,
    )


class Model:
    """
    Problem data of a sparse QP.

    Attributes:
        dim: Primal dimension ``n``.
        n_eq: Number of equality constraints.
        n_in: Number of inequality constraints.
        H, A, C: CSC matrices with a fixed structure.
        g, b, l, u: Dense vectors.
        H_nnz, A_nnz, C_nnz: Structural non-zero counts.
        masked: True when the structure was fixed by boolean masks at
            construction, in which case even ``init`` must respect it.
    """

    def __init__(self, n: int = 0, n_eq: int = 0, n_in: int = 0) -> None:
        if n < 0 or n_eq < 0 or n_in < 0:
            raise ConstructionError(f"Dimensions must be non-negative, got {(n, n_eq, n_in)}")
        self.dim = int(n)
        self.n_eq = int(n_eq)
        self.n_in = int(n_in)
        self.H = sp.csc_matrix((n, n))
        self.A = sp.csc_matrix((n_eq, n))
        self.C = sp.csc_matrix((n_in, n))
        self.g = np.zeros(n)
        self.b = np.zeros(n_eq)
        self.l = np.zeros(n_in)
        self.u = np.zeros(n_in)
        self.H_nnz = 0
        self.A_nnz = 0
        self.C_nnz = 0
        self.masked = False

    @classmethod
    def from_masks(cls, H_mask, A_mask, C_mask) -> "Model":
        """
        Build a model whose structure is fixed by boolean masks.

        Dimensions are read from the mask shapes: ``H_mask`` is ``(n, n)``,
        ``A_mask`` is ``(n_eq, n)`` and ``C_mask`` is ``(n_in, n)``.
        """

        n = H_mask.shape[0]
        n_eq = A_mask.shape[0] if A_mask is not None else 0
        n_in = C_mask.shape[0] if C_mask is not None else 0
        model = cls(n, n_eq, n_in)
        model.H = _mask_to_structure(H_mask, (n, n), "H_mask")
        if A_mask is not None:
            model.A = _mask_to_structure(A_mask, (n_eq, n), "A_mask")
        if C_mask is not None:
            model.C = _mask_to_structure(C_mask, (n_in, n), "C_mask")
        model._refresh_nnz()
        model.masked = True
        return model

    @property
    def n_total(self) -> int:
        return self.n_eq + self.n_in

    def shape_of(self, name: str) -> tuple:
        return {"H": (self.dim, self.dim), "A": (self.n_eq, self.dim), "C": (self.n_in, self.dim)}[name]

    def _refresh_nnz(self) -> None:
        self.H_nnz = int(self.H.nnz)
        self.A_nnz = int(self.A.nnz)
        self.C_nnz = int(self.C.nnz)

    def set_structure(self, name: str, value) -> None:
        """Replace matrix ``name`` and its structure with the stored entries of ``value``."""

        matrix = _canonical_csc(value)
        if matrix.shape != self.shape_of(name):
            raise ConstructionError(f"{name} must have shape {self.shape_of(name)}, got {matrix.shape}")
        if not np.isfinite(matrix.data).all():
            raise ConstructionError(f"{name} contains non-finite entries")
        if not sp.issparse(value):
            matrix.eliminate_zeros()
        setattr(self, name, matrix)
        self._refresh_nnz()

    def fill(self, name: str, value) -> sp.csc_matrix:
        """
        Return a copy of matrix ``name`` holding the values of ``value``.

        Positions of the current structure that ``value`` leaves empty become
        explicit zeros.

        Raises:
            ConstructionError: On a shape mismatch or non-finite entries.
            SparsityViolation: If ``value`` has a non-zero outside the structure.
        """

        current = getattr(self, name)
        incoming = _canonical_csc(value)
        if incoming.shape != current.shape:
            raise ConstructionError(f"{name} must have shape {current.shape}, got {incoming.shape}")
        if not np.isfinite(incoming.data).all():
            raise ConstructionError(f"{name} contains non-finite entries")

        nonzero = incoming.data != 0.0
        keys = _structure_keys(incoming)[nonzero]
        structure = _structure_keys(current)
        pos = np.searchsorted(structure, keys)
        inside = pos < structure.size
        inside[inside] = structure[pos[inside]] == keys[inside]
        if not inside.all():
            bad = int(keys[~inside][0])
            row, col = bad % current.shape[0], bad // current.shape[0]
            raise SparsityViolation(
                f"{name} has a non-zero at ({row}, {col}) outside its fixed sparsity structure"
            )
        data = np.zeros(structure.size)
        data[pos] = incoming.data[nonzero]
        return sp.csc_matrix((data, current.indices.copy(), current.indptr.copy()), shape=current.shape)

    def is_valid(self) -> bool:
        """Return True if shapes, ``l <= u`` and the ``*_nnz`` counters are consistent."""

        for name in _MATRICES:
            matrix = getattr(self, name)
            if not sp.issparse(matrix) or matrix.shape != self.shape_of(name):
                return False
        vector_sizes = {"g": self.dim, "b": self.n_eq, "l": self.n_in, "u": self.n_in}
        for name, size in vector_sizes.items():
            if np.shape(getattr(self, name)) != (size,):
                return False
        if (self.H_nnz, self.A_nnz, self.C_nnz) != (self.H.nnz, self.A.nnz, self.C.nnz):
            return False
        return bool(np.all(self.l <= self.u))

    def copy(self) -> "Model":
        out = Model(self.dim, self.n_eq, self.n_in)
        for name in _MATRICES + _VECTORS:
            setattr(out, name, getattr(self, name).copy())
        out._refresh_nnz()
        out.masked = self.masked
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        if (self.dim, self.n_eq, self.n_in) != (other.dim, other.n_eq, other.n_in):
            return False
        if (self.H_nnz, self.A_nnz, self.C_nnz) != (other.H_nnz, other.A_nnz, other.C_nnz):
            return False
        for name in _MATRICES:
            a, b = getattr(self, name), getattr(other, name)
            if not (
                np.array_equal(a.indptr, b.indptr)
                and np.array_equal(a.indices, b.indices)
                and np.array_equal(a.data, b.data)
            ):
                return False
        return all(np.array_equal(getattr(self, name), getattr(other, name)) for name in _VECTORS)

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"sparse.Model(dim={self.dim}, n_eq={self.n_eq}, n_in={self.n_in}, "
            f"H_nnz={self.H_nnz}, A_nnz={self.A_nnz}, C_nnz={self.C_nnz})"
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "dim": self.dim,
            "n_eq": self.n_eq,
            "n_in": self.n_in,
            "masked": self.masked,
        }
        for name in _MATRICES:
            matrix = getattr(self, name)
            out[name] = {
                "indptr": matrix.indptr.tolist(),
                "indices": matrix.indices.tolist(),
                "data": matrix.data.tolist(),
            }
        for name in _VECTORS:
            out[name] = getattr(self, name).tolist()
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Model":
        model = cls(int(data["dim"]), int(data["n_eq"]), int(data["n_in"]))
        for name in _MATRICES:
            entry = data[name]
            matrix = sp.csc_matrix(
                (
                    np.asarray(entry["data"], dtype=float),
                    np.asarray(entry["indices"], dtype=np.int32),
                    np.asarray(entry["indptr"], dtype=np.int32),
                ),
                shape=model.shape_of(name),
            )
            setattr(model, name, matrix)
        for name in _VECTORS:
            setattr(model, name, np.asarray(data[name], dtype=float).reshape(-1))
        model._refresh_nnz()
        model.masked = bool(data["masked"])
        return model

    def __getstate__(self) -> Dict[str, Any]:
        return self.to_dict()

    def __setstate__(self, state: Dict[str, Any]) -> None:
        restored = Model.from_dict(state)
        self.__dict__.update(restored.__dict__)


__all__ = ["Model"]

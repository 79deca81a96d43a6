"""
Sparse QP object.

The structure of ``H``, ``A`` and ``C`` is fixed either by boolean masks at
construction or by the matrices passed to the first :meth:`QP.init`. Later
``update`` calls may change values on that structure only; a non-zero
outside it raises :class:`~qpconduit.core.errors.SparsityViolation`.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import numpy as np
import scipy.sparse as sp

from ..core.errors import ConstructionError
from ..core.results import Results
from ..core.settings import Settings
from ..lifecycle import (
    check_bounds,
    override_warm_parameters,
    precondition,
    resolve_proximal,
    starting_point,
)
from ..logging import get_logger
from ..preconditioner import RuizEquilibration
from ..solver import ProximalParameters, ProximalSolver
from ..utils import as_vector
from .linsys import KKTFactorization, solve_equality_kkt, stack_constraints
from .model import Model

logger = get_logger(__name__)


def _as_mask(mask):
    if mask is None or isinstance(mask, (int, np.integer)):
        return None
    if sp.issparse(mask):
        return mask
    return np.asarray(mask, dtype=bool)


class QP:
    """
    Sparse convex QP ``min ½xᵀHx + gᵀx`` s.t. ``Ax = b``, ``l <= Cx <= u``.

    Construct either from dimensions, ``QP(n, n_eq, n_in)``, or from boolean
    sparsity masks, ``QP(H_mask, A_mask, C_mask)`` (equivalently
    :meth:`from_masks`).
    """

    def __init__(self, n: Any = 0, n_eq: Any = 0, n_in: Any = 0) -> None:
        if isinstance(n, (int, np.integer)):
            model = Model(int(n), int(n_eq), int(n_in))
        else:
            model = Model.from_masks(_as_mask(n), _as_mask(n_eq), _as_mask(n_in))
        self._setup(model)

    @classmethod
    def from_masks(cls, H_mask, A_mask=None, C_mask=None) -> "QP":
        qp = cls.__new__(cls)
        qp._setup(Model.from_masks(_as_mask(H_mask), _as_mask(A_mask), _as_mask(C_mask)))
        return qp

    def _setup(self, model: Model) -> None:
        n, n_eq, n_in = model.dim, model.n_eq, model.n_in
        self.model = model
        self.settings = Settings()
        self.results = Results(n, n_eq, n_in)
        self._preconditioner = RuizEquilibration(n, n_eq, n_in)
        self._solver = ProximalSolver(KKTFactorization, stack_constraints)
        self._scaled = None
        self._prox = resolve_proximal(self.settings, None, None, None)
        self._prox_setup = ProximalParameters(*self._prox.as_tuple())
        self._initialized = False

    def _assign(self, model: Model, H, g, A, b, C, l, u, keep_structure: bool) -> None:
        for name, value in (("H", H), ("A", A), ("C", C)):
            if value is None:
                continue
            if keep_structure:
                setattr(model, name, model.fill(name, value))
            else:
                model.set_structure(name, value)
        if g is not None:
            model.g = as_vector(g, model.dim, "g")
        if b is not None:
            model.b = as_vector(b, model.n_eq, "b")
        if l is not None:
            model.l = as_vector(l, model.n_in, "l")
        if u is not None:
            model.u = as_vector(u, model.n_in, "u")
        check_bounds(model.l, model.u)
        if not model.is_valid():
            raise ConstructionError(f"Invalid model {model!r}")

    def init(
        self,
        H=None,
        g: Optional[np.ndarray] = None,
        A=None,
        b: Optional[np.ndarray] = None,
        C=None,
        l: Optional[np.ndarray] = None,
        u: Optional[np.ndarray] = None,
        compute_preconditioner: bool = True,
        rho: Optional[float] = None,
        mu_eq: Optional[float] = None,
        mu_in: Optional[float] = None,
    ) -> None:
        """
        Replace the model data and prepare the solver.

        On a mask-built QP the matrices are filled into the mask structure;
        otherwise their stored entries define the structure used by every
        later :meth:`update`. Omitted matrices are empty, omitted ``l``/``u``
        are ``-inf``/``+inf``.

        Raises:
            ConstructionError: On dimension mismatch, ``l > u``, NaN data or an
                out-of-range settings field.
            SparsityViolation: If a mask-built QP receives a non-zero outside
                its mask.
        """

        start = time.perf_counter()
        self.settings.validate()
        current = self.model
        if current.masked:
            model = current.copy()
            for name in ("H", "A", "C"):
                setattr(model, name, model.fill(name, sp.csc_matrix(model.shape_of(name))))
            model.g = np.zeros(model.dim)
            model.b = np.zeros(model.n_eq)
        else:
            model = Model(current.dim, current.n_eq, current.n_in)
        model.l = np.full(model.n_in, -np.inf)
        model.u = np.full(model.n_in, np.inf)
        self._assign(model, H, g, A, b, C, l, u, keep_structure=model.masked)
        prox = resolve_proximal(self.settings, rho, mu_eq, mu_in)

        self.model = model
        self._prox = prox
        self._prox_setup = ProximalParameters(*prox.as_tuple())
        self.results.reset()
        if not compute_preconditioner:
            self._preconditioner.reset()
        self._scaled = precondition(self._preconditioner, model, self.settings, compute_preconditioner)
        self._solver.invalidate()
        self._initialized = True
        if self.settings.compute_timings:
            self.results.info.setup_time = time.perf_counter() - start
        logger.debug("sparse QP initialized: %r", model)

    def update(
        self,
        H=None,
        g: Optional[np.ndarray] = None,
        A=None,
        b: Optional[np.ndarray] = None,
        C=None,
        l: Optional[np.ndarray] = None,
        u: Optional[np.ndarray] = None,
        update_preconditioner: Optional[bool] = None,
        rho: Optional[float] = None,
        mu_eq: Optional[float] = None,
        mu_in: Optional[float] = None,
    ) -> None:
        """
        Change values of the supplied fields on the fixed structure.

        Raises:
            RuntimeError: If :meth:`init` was never called.
            ConstructionError: On dimension mismatch, ``l > u``, NaN data or an
                out-of-range settings field.
            SparsityViolation: If a matrix has a non-zero outside its structure.
                The QP is left unchanged.
        """

        if not self._initialized:
            raise RuntimeError("QP.update called before QP.init")
        self.settings.validate()
        start = time.perf_counter()
        if update_preconditioner is None:
            update_preconditioner = self.settings.update_preconditioner
        model = self.model.copy()
        self._assign(model, H, g, A, b, C, l, u, keep_structure=True)
        self._prox = resolve_proximal(self.settings, rho, mu_eq, mu_in, current=self._prox)
        self._prox_setup = ProximalParameters(*self._prox.as_tuple())
        self.model = model
        override_warm_parameters(self.results, rho, mu_eq, mu_in)

        self._scaled = precondition(self._preconditioner, model, self.settings, update_preconditioner)
        if update_preconditioner or any(m is not None for m in (H, A, C)):
            self._solver.invalidate()
        if self.settings.compute_timings:
            self.results.info.setup_time = time.perf_counter() - start

    def solve(
        self,
        x: Optional[np.ndarray] = None,
        y: Optional[np.ndarray] = None,
        z: Optional[np.ndarray] = None,
    ) -> None:
        """Run the solver from an optional warm start; see ``dense.QP.solve``."""

        if not self._initialized:
            raise RuntimeError("QP.solve called before QP.init")
        settings = self.settings.copy()
        settings.validate()
        x0, y0, z0, prox = starting_point(
            settings, self.results, self.model, self._prox_setup, solve_equality_kkt, x, y, z
        )
        setup_time = self.results.info.setup_time
        self.results.reset()
        self.results.info.setup_time = setup_time
        self._solver.run(self.model, self._scaled, self._preconditioner, settings, prox, x0, y0, z0, self.results)

    def cleanup(self) -> None:
        """Reset results and workspace. Idempotent."""

        self.results.reset()
        self._solver.invalidate()

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return (
            self.model == other.model
            and self.settings == other.settings
            and self.results == other.results
            and self._preconditioner == other._preconditioner
            and self._prox_setup == other._prox_setup
        )

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"sparse.QP(n={self.model.dim}, n_eq={self.model.n_eq}, n_in={self.model.n_in}, "
            f"masked={self.model.masked})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.to_dict(),
            "settings": self.settings.to_dict(),
            "results": self.results.to_dict(),
            "preconditioner": self._preconditioner.to_dict(),
            "prox": list(self._prox_setup.as_tuple()),
            "initialized": self._initialized,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QP":
        qp = cls.__new__(cls)
        model = Model.from_dict(data["model"])
        qp._setup(model)
        qp.settings = Settings.from_dict(data["settings"])
        qp.results = Results.from_dict(data["results"])
        qp._preconditioner.load_dict(data["preconditioner"])
        qp._prox_setup = ProximalParameters(*data["prox"])
        qp._prox = ProximalParameters(*data["prox"])
        qp._initialized = bool(data["initialized"])
        if qp._initialized:
            qp._scaled = qp._preconditioner.scale(model)
        return qp

    def __getstate__(self) -> Dict[str, Any]:
        return self.to_dict()

    def __setstate__(self, state: Dict[str, Any]) -> None:
        restored = QP.from_dict(state)
        self.__dict__.update(restored.__dict__)


def solve(
    H=None,
    g: Optional[np.ndarray] = None,
    A=None,
    b: Optional[np.ndarray] = None,
    C=None,
    l: Optional[np.ndarray] = None,
    u: Optional[np.ndarray] = None,
    x: Optional[np.ndarray] = None,
    y: Optional[np.ndarray] = None,
    z: Optional[np.ndarray] = None,
    compute_preconditioner: bool = True,
    rho: Optional[float] = None,
    mu_eq: Optional[float] = None,
    mu_in: Optional[float] = None,
    **settings: Any,
) -> Results:
    """Build, initialize and solve a sparse QP in one call; see ``dense.solve``."""

    if H is not None:
        n = H.shape[0]
    elif g is not None:
        n = int(np.size(g))
    else:
        raise ConstructionError("Either H or g is needed to infer the primal dimension")
    n_eq = 0 if A is None else A.shape[0]
    n_in = 0 if C is None else C.shape[0]
    qp = QP(int(n), int(n_eq), int(n_in))
    qp.settings.apply_overrides(settings)
    qp.init(H, g, A, b, C, l, u, compute_preconditioner, rho, mu_eq, mu_in)
    qp.solve(x, y, z)
    return qp.results


__all__ = ["QP", "solve"]

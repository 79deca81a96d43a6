"""
Dense QP object.

Example:
    >>> import numpy as np
    >>> from qpconduit import dense
    >>> qp = dense.QP(2, 0, 0)
    >>> qp.init(H=np.eye(2), g=np.array([1.0, 1.0]))
    >>> qp.solve()
    >>> qp.results.x
    array([-1., -1.])
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import numpy as np

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
from ..utils import as_dense_matrix, as_vector
from .linsys import KKTFactorization, solve_equality_kkt, stack_constraints
from .model import Model

logger = get_logger(__name__)


class QP:
    """
    Dense convex QP ``min ½xᵀHx + gᵀx`` s.t. ``Ax = b``, ``l <= Cx <= u``.

    The object owns one :class:`Model`, one :class:`Settings`, one
    :class:`Results` and the solver workspace (preconditioner, proximal
    parameters, cached factorization). It is not thread-safe; distinct
    instances share no state.

    Args:
        n: Primal dimension.
        n_eq: Number of equality constraints.
        n_in: Number of inequality constraints.
    """

    def __init__(self, n: int = 0, n_eq: int = 0, n_in: int = 0) -> None:
        self.model = Model(n, n_eq, n_in)
        self.settings = Settings()
        self.results = Results(n, n_eq, n_in)
        self._preconditioner = RuizEquilibration(n, n_eq, n_in)
        self._solver = ProximalSolver(KKTFactorization, stack_constraints)
        self._scaled = None
        self._prox = resolve_proximal(self.settings, None, None, None)
        self._prox_setup = ProximalParameters(*self._prox.as_tuple())
        self._initialized = False

    # ------------------------------------------------------------------ data
    def _matrix(self, value, rows: int, name: str) -> np.ndarray:
        return as_dense_matrix(value, rows, self.model.dim, name)

    def _assign(self, model: Model, H, g, A, b, C, l, u) -> None:
        n, n_eq, n_in = model.dim, model.n_eq, model.n_in
        if H is not None:
            model.H = self._matrix(H, n, "H")
        if g is not None:
            model.g = as_vector(g, n, "g")
        if A is not None:
            model.A = self._matrix(A, n_eq, "A")
        if b is not None:
            model.b = as_vector(b, n_eq, "b")
        if C is not None:
            model.C = self._matrix(C, n_in, "C")
        if l is not None:
            model.l = as_vector(l, n_in, "l")
        if u is not None:
            model.u = as_vector(u, n_in, "u")
        check_bounds(model.l, model.u)
        if not model.is_valid():
            raise ConstructionError(f"Invalid model for dimensions {(n, n_eq, n_in)}")

    # ------------------------------------------------------------- lifecycle
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
        Replace the model with new data and prepare the solver.

        Omitted matrices and ``g``/``b`` are zero, an omitted ``l`` is
        ``-inf`` and an omitted ``u`` is ``+inf``. Results are reset.

        Raises:
            ConstructionError: On any dimension mismatch, ``l > u``, NaN data
                or non-positive proximal parameters. The object is left
                unchanged in that case.
        """

        start = time.perf_counter()
        self.settings.validate()
        model = Model(self.model.dim, self.model.n_eq, self.model.n_in)
        model.l = np.full(model.n_in, -np.inf)
        model.u = np.full(model.n_in, np.inf)
        self._assign(model, H, g, A, b, C, l, u)
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
        logger.debug("dense QP initialized: %r", model)

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
        Change the supplied entries of the model in place.

        Omitted fields keep their values and the previous results stay
        available as a warm start. With ``update_preconditioner=False`` the
        stored equilibration is reused on the new data.

        Raises:
            RuntimeError: If :meth:`init` was never called.
            ConstructionError: As for :meth:`init`, or if a settings field is out
                of range.
        """

        if not self._initialized:
            raise RuntimeError("QP.update called before QP.init")
        self.settings.validate()
        start = time.perf_counter()
        if update_preconditioner is None:
            update_preconditioner = self.settings.update_preconditioner
        model = self.model.copy()
        self._assign(model, H, g, A, b, C, l, u)
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
        """
        Run the solver; the outcome is reported in ``self.results``.

        Args:
            x, y, z: Optional warm start in original coordinates. Omitted
                entries follow ``settings.initial_guess``.

        Raises:
            RuntimeError: If :meth:`init` was never called.
            ConstructionError: If a warm start vector has the wrong length.
        """

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
        """Reset results and workspace; model and settings are kept. Idempotent."""

        self.results.reset()
        self._solver.invalidate()

    # ----------------------------------------------------------- comparison
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
        return f"dense.QP(n={self.model.dim}, n_eq={self.model.n_eq}, n_in={self.model.n_in})"

    # -------------------------------------------------------- serialization
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
        model = Model.from_dict(data["model"])
        qp = cls(model.dim, model.n_eq, model.n_in)
        qp.model = model
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
    """
    Build, initialize and solve a dense QP in one call.

    Dimensions are read from ``H`` (or ``g``), ``A`` and ``C``. Remaining
    keyword arguments are :class:`Settings` fields.

    Returns:
        The :class:`Results` of the solve.
    """

    n = _infer_dim(H, g)
    n_eq = 0 if A is None else np.atleast_2d(np.asarray(A)).shape[0]
    n_in = 0 if C is None else np.atleast_2d(np.asarray(C)).shape[0]
    qp = QP(n, n_eq, n_in)
    qp.settings.apply_overrides(settings)
    qp.init(H, g, A, b, C, l, u, compute_preconditioner, rho, mu_eq, mu_in)
    qp.solve(x, y, z)
    return qp.results


def _infer_dim(H, g) -> int:
    if H is not None:
        return int(np.shape(H)[0])
    if g is not None:
        return int(np.size(g))
    raise ConstructionError("Either H or g is needed to infer the primal dimension")


__all__ = ["QP", "solve"]

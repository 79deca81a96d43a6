"""
Proximal augmented-Lagrangian solver core shared by the dense and sparse QPs.

The iteration is the ADMM form of the proximal method of multipliers applied
to the equilibrated problem. With ``M = [Ā; C̄]``, bounds ``lo = [b̄; l̄]``,
``hi = [b̄; ū]`` and row penalties ``r = [1/mu_eq; 1/mu_in]`` one step reads

    x̃ = (H̄ + ρI + Mᵀ diag(r) M)⁻¹ (ρx − ḡ + Mᵀ(r∘w − λ))
    x ← αx̃ + (1−α)x,       ŵ = αMx̃ + (1−α)w
    w ← clip(ŵ + λ/r, lo, hi)
    λ ← λ + r∘(ŵ − w)

Residuals, tolerances and infeasibility certificates are always evaluated on
the unscaled iterates against the caller's data. The dual proximal
parameters are rebalanced from the ratio of the normalized primal and dual
residuals every ``Settings.mu_update_interval`` iterations.

References:
    - Bambade et al., *PROX-QP: Yet another Quadratic Programming Solver for
      Robotics and beyond* (RSS 2022)
    - Stellato et al., *OSQP: an operator splitting solver for quadratic
      programs* (2020)
    - Banjac et al., *Infeasibility detection in the alternating direction
      method of multipliers for convex optimization* (2019)
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .core.results import Results
from .core.settings import Settings
from .core.status import QPStatus
from .kkt import box_support, kkt_residuals, objective_value
from .logging import format_iteration, get_logger
from .preconditioner import RuizEquilibration, ScaledQP
from .utils import inf_norm

logger = get_logger(__name__)

_TINY = 1e-10


@dataclass
class ProximalParameters:
    """Primal (``rho``) and dual (``mu_eq``, ``mu_in``) proximal parameters."""

    rho: float
    mu_eq: float
    mu_in: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.rho, self.mu_eq, self.mu_in)


def _farkas_primal(model, dy: np.ndarray, dz: np.ndarray, eps: float) -> bool:
    """Return True if ``(dy, dz)`` certifies that no ``x`` satisfies the constraints."""

    norm = max(inf_norm(dy), inf_norm(dz))
    if norm <= _TINY:
        return False
    ray = model.A.T @ dy + model.C.T @ dz
    if inf_norm(ray) > eps * norm:
        return False
    support = float(model.b @ dy) + box_support(dz, model.l, model.u)
    return support < -eps * norm


def _farkas_dual(model, dx: np.ndarray, eps: float) -> bool:
    """Return True if ``dx`` is a descent direction along which the problem is unbounded."""

    norm = inf_norm(dx)
    if norm <= _TINY:
        return False
    threshold = eps * norm
    if inf_norm(model.H @ dx) > threshold:
        return False
    if float(model.g @ dx) >= -threshold:
        return False
    if inf_norm(model.A @ dx) > threshold:
        return False
    cdx = model.C @ dx
    upper_ok = np.all((cdx <= threshold) | ~np.isfinite(model.u))
    lower_ok = np.all((cdx >= -threshold) | ~np.isfinite(model.l))
    return bool(upper_ok and lower_ok)


class ProximalSolver:
    """
    Iteration engine plus its reusable workspace.

    The workspace caches the constraint stack of the scaled problem and the
    factorization of the reduced KKT matrix keyed by the proximal parameters;
    :meth:`invalidate` must be called whenever the scaled data change.

    Args:
        factorization: Callable ``(H, M, rho, penalties) -> obj`` with a
            ``solve(rhs)`` method (dense Cholesky or sparse LU backend).
        stack: Callable returning ``[A; C]`` in the backend's storage format.
    """

    def __init__(self, factorization: Callable, stack: Callable) -> None:
        self._factorization = factorization
        self._stack = stack
        self.invalidate()

    def invalidate(self) -> None:
        """Drop the cached constraint stack and factorization."""

        self._stacked = None
        self._factor = None
        self._factor_key: Optional[Tuple[float, float, float]] = None

    def _penalties(self, n_eq: int, n_in: int, prox: ProximalParameters) -> np.ndarray:
        return np.concatenate([np.full(n_eq, 1.0 / prox.mu_eq), np.full(n_in, 1.0 / prox.mu_in)])

    def _factor_for(self, scaled: ScaledQP, penalties: np.ndarray, prox: ProximalParameters):
        key = prox.as_tuple()
        if self._factor is None or self._factor_key != key:
            self._factor = self._factorization(scaled.H, self._stacked, prox.rho, penalties)
            self._factor_key = key
        return self._factor

    def run(
        self,
        model,
        scaled: ScaledQP,
        precond: RuizEquilibration,
        settings: Settings,
        prox: ProximalParameters,
        x0: np.ndarray,
        y0: np.ndarray,
        z0: np.ndarray,
        results: Results,
    ) -> None:
        """
        Iterate from ``(x0, y0, z0)`` (original coordinates) and fill ``results``.

        ``results`` must already be reset by the caller. Never raises on
        numerical outcomes; the terminal state is written to
        ``results.info.status``.
        """

        start = time.perf_counter()
        n_eq, n_in = model.n_eq, model.n_in
        if self._stacked is None:
            self._stacked = self._stack(scaled.A, scaled.C)
        M = self._stacked
        lo = np.concatenate([scaled.b, scaled.l])
        hi = np.concatenate([scaled.b, scaled.u])

        x = precond.scale_primal(x0)
        lam = np.concatenate([precond.scale_dual_eq(y0), precond.scale_dual_in(z0)])
        w = np.clip(M @ x, lo, hi)

        penalties = self._penalties(n_eq, n_in, prox)
        factor = self._factor_for(scaled, penalties, prox)
        alpha = settings.alpha

        status = QPStatus.MAX_ITER_REACHED
        certificate: Optional[np.ndarray] = None
        residuals: Dict[str, float] = {}
        x_prev: Optional[np.ndarray] = None
        lam_prev: Optional[np.ndarray] = None
        mu_updates = 0
        iteration = 0

        while True:
            x_orig = precond.unscale_primal(x)
            y_orig = precond.unscale_dual_eq(lam[:n_eq])
            z_orig = precond.unscale_dual_in(lam[n_eq:])
            residuals = kkt_residuals(
                model.H, model.g, model.A, model.b, model.C, model.l, model.u, x_orig, y_orig, z_orig
            )
            if settings.verbose:
                logger.info(
                    format_iteration(
                        iteration, residuals["primal"], residuals["dual"], prox.rho, prox.mu_eq, prox.mu_in
                    )
                )

            if self._converged(residuals, settings):
                status = QPStatus.SOLVED
                break

            if x_prev is not None and lam_prev is not None:
                d_lam = lam - lam_prev
                dy = precond.unscale_dual_eq(d_lam[:n_eq])
                dz = precond.unscale_dual_in(d_lam[n_eq:])
                if _farkas_primal(model, dy, dz, settings.eps_primal_inf):
                    status = QPStatus.PRIMAL_INFEASIBLE
                    certificate = np.concatenate([dy, dz])
                    break
                dx = precond.unscale_primal(x - x_prev)
                if _farkas_dual(model, dx, settings.eps_dual_inf):
                    status = QPStatus.DUAL_INFEASIBLE
                    certificate = dx
                    break

            if iteration >= settings.max_iter:
                break

            if iteration > 0 and iteration % settings.mu_update_interval == 0 and n_eq + n_in > 0:
                if self._adapt(residuals, settings, prox):
                    mu_updates += 1
                    penalties = self._penalties(n_eq, n_in, prox)
                    factor = self._factor_for(scaled, penalties, prox)

            x_prev, lam_prev = x, lam
            rhs = prox.rho * x - scaled.g + M.T @ (penalties * w - lam)
            x_tilde = factor.solve(rhs)
            w_relaxed = alpha * (M @ x_tilde) + (1.0 - alpha) * w
            x = alpha * x_tilde + (1.0 - alpha) * x
            w = np.clip(w_relaxed + lam / penalties, lo, hi)
            lam = lam + penalties * (w_relaxed - w)
            iteration += 1

        results.x = x_orig
        results.y = y_orig
        results.z = z_orig
        results.certificate = certificate
        info = results.info
        info.status = status
        info.iter = iteration
        info.mu_updates = mu_updates
        info.rho, info.mu_eq, info.mu_in = prox.as_tuple()
        info.objective = objective_value(model.H, model.g, x_orig)
        info.pri_res = residuals["primal"]
        info.dua_res = residuals["dual"]
        info.duality_gap = residuals["duality_gap"]
        if settings.compute_timings:
            info.solve_time = time.perf_counter() - start
            info.run_time = info.setup_time + info.solve_time

        logger.debug(
            "solve finished: status=%s iter=%d pri_res=%.3e dua_res=%.3e",
            status.value,
            iteration,
            info.pri_res,
            info.dua_res,
        )

    @staticmethod
    def _converged(residuals: Dict[str, float], settings: Settings) -> bool:
        primal_ok = residuals["primal"] <= settings.eps_abs + settings.eps_rel * residuals["primal_scale"]
        dual_ok = residuals["dual"] <= settings.eps_abs + settings.eps_rel * residuals["dual_scale"]
        if not (primal_ok and dual_ok):
            return False
        if settings.check_duality_gap:
            gap_scale = max(residuals["primal_scale"], residuals["dual_scale"])
            return residuals["duality_gap"] <= (
                settings.eps_duality_gap_abs + settings.eps_duality_gap_rel * gap_scale
            )
        return True

    @staticmethod
    def _adapt(residuals: Dict[str, float], settings: Settings, prox: ProximalParameters) -> bool:
        """Rebalance ``mu_eq``/``mu_in``; return True if they changed."""

        primal = residuals["primal"] / (residuals["primal_scale"] + _TINY)
        dual = residuals["dual"] / (residuals["dual_scale"] + _TINY)
        if primal <= 0.0 or dual <= 0.0:
            return False
        ratio = math.sqrt(primal / dual)
        tol = settings.mu_update_tolerance
        if 1.0 / tol < ratio < tol:
            return False
        mu_in = min(max(prox.mu_in / ratio, settings.mu_min_in), settings.mu_max)
        mu_eq = min(max(prox.mu_eq / ratio, settings.mu_min_eq), settings.mu_max)
        if (mu_eq, mu_in) == (prox.mu_eq, prox.mu_in):
            return False
        prox.mu_eq, prox.mu_in = mu_eq, mu_in
        return True


__all__ = ["ProximalParameters", "ProximalSolver"]

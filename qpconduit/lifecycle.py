"""
Helpers shared by the dense and sparse QP objects.

Both QP classes compose these functions instead of inheriting from a common
base: proximal parameter resolution, preconditioning and construction of the
starting iterate follow the same rules regardless of the storage format.
"""

from __future__ import annotations

from typing import Callable, Optional, Tuple

import numpy as np

from .core.errors import ConstructionError
from .core.results import Results
from .core.settings import Settings
from .core.status import InitialGuess
from .preconditioner import RuizEquilibration, ScaledQP
from .solver import ProximalParameters
from .utils import as_vector


def resolve_proximal(
    settings: Settings,
    rho: Optional[float],
    mu_eq: Optional[float],
    mu_in: Optional[float],
    current: Optional[ProximalParameters] = None,
) -> ProximalParameters:
    """
    Resolve proximal parameters: explicit value > ``current`` > settings default.

    ``current`` is the value in force before an ``update``; ``init`` passes
    ``None`` so that omitted parameters fall back to the settings defaults.
    """

    base = current or ProximalParameters(settings.default_rho, settings.default_mu_eq, settings.default_mu_in)
    resolved = ProximalParameters(
        rho=base.rho if rho is None else float(rho),
        mu_eq=base.mu_eq if mu_eq is None else float(mu_eq),
        mu_in=base.mu_in if mu_in is None else float(mu_in),
    )
    for name, value in zip(("rho", "mu_eq", "mu_in"), resolved.as_tuple()):
        if not value > 0.0:
            raise ConstructionError(f"{name} must be positive, got {value!r}")
    return resolved


def precondition(
    precond: RuizEquilibration,
    model,
    settings: Settings,
    recompute: bool,
) -> ScaledQP:
    """Recompute the equilibration when ``recompute`` is set, else reuse the stored factors."""

    if recompute:
        return precond.compute(
            model,
            max_iter=settings.preconditioner_max_iter,
            accuracy=settings.preconditioner_accuracy,
        )
    return precond.scale(model)


def check_bounds(l: np.ndarray, u: np.ndarray) -> None:
    """Raise :class:`ConstructionError` naming the first index with ``l > u``."""

    bad = np.flatnonzero(l > u)
    if bad.size:
        i = int(bad[0])
        raise ConstructionError(f"Inconsistent bounds: l[{i}] = {l[i]} > u[{i}] = {u[i]}")


def starting_point(
    settings: Settings,
    results: Results,
    model,
    prox_setup: ProximalParameters,
    equality_solve: Callable,
    x: Optional[np.ndarray] = None,
    y: Optional[np.ndarray] = None,
    z: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, ProximalParameters]:
    """
    Build the starting iterate (original coordinates) and proximal parameters.

    Explicit ``x``, ``y``, ``z`` always take precedence; the remaining entries
    come from ``settings.initial_guess``.

    Raises:
        ConstructionError: If an explicit warm start has the wrong length.
    """

    n, n_eq, n_in = model.dim, model.n_eq, model.n_in
    x0, y0, z0 = np.zeros(n), np.zeros(n_eq), np.zeros(n_in)
    prox = ProximalParameters(*prox_setup.as_tuple())
    policy = settings.initial_guess

    if policy in (InitialGuess.WARM_START_WITH_PREVIOUS_RESULT, InitialGuess.COLD_START_WITH_PREVIOUS_RESULT):
        if results.has_solution():
            x0 = np.nan_to_num(results.x.copy())
            y0 = np.nan_to_num(results.y.copy())
            z0 = np.nan_to_num(results.z.copy())
            info = results.info
            if policy is InitialGuess.WARM_START_WITH_PREVIOUS_RESULT and min(info.rho, info.mu_eq, info.mu_in) > 0.0:
                prox = ProximalParameters(info.rho, info.mu_eq, info.mu_in)
    elif policy is InitialGuess.EQUALITY_CONSTRAINED_INITIAL_GUESS and n > 0:
        x0, y0 = equality_solve(model.H, model.g, model.A, model.b, prox.rho, prox.mu_eq)

    if x is not None:
        x0 = as_vector(x, n, "x")
    if y is not None:
        y0 = as_vector(y, n_eq, "y")
    if z is not None:
        z0 = as_vector(z, n_in, "z")
    return x0, y0, z0, prox


def override_warm_parameters(results: Results, rho, mu_eq, mu_in) -> None:
    """Make explicit proximal overrides win over the values adapted by the last solve."""

    if not results.has_solution():
        return
    info = results.info
    if rho is not None:
        info.rho = float(rho)
    if mu_eq is not None:
        info.mu_eq = float(mu_eq)
    if mu_in is not None:
        info.mu_in = float(mu_in)


__all__ = ["resolve_proximal", "precondition", "check_bounds", "starting_point", "override_warm_parameters"]

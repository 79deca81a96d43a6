"""
Solver configuration.

Proximal parameters follow the proximal method of multipliers convention:
``rho`` is the primal proximal weight while ``mu_eq`` and ``mu_in`` are the
dual proximal weights, i.e. the inverses of the augmented-Lagrangian penalties
applied to equality and inequality rows.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, fields
from typing import Any, Dict

from .errors import ConstructionError
from .status import InitialGuess


@dataclass
class Settings:
    """
    Tunable parameters of a QP object.

    Settings may be edited freely between calls; ``solve`` works on a
    snapshot taken at entry so a single solve always sees one configuration.

    Attributes:
        default_rho: Primal proximal parameter used when ``init`` gets none.
        default_mu_eq: Equality dual proximal parameter default.
        default_mu_in: Inequality dual proximal parameter default.
        alpha: Over-relaxation factor of the primal-dual step, in (0, 2).
        eps_abs: Absolute tolerance on primal and dual residuals.
        eps_rel: Relative tolerance on primal and dual residuals.
        max_iter: Iteration cap.
        mu_update_interval: Iterations between proximal parameter adaptations.
        mu_update_tolerance: Width (> 1) of the residual ratio band
            ``[1/tol, tol]`` inside which ``mu`` is left unchanged.
        mu_min_eq: Lower clamp of ``mu_eq``.
        mu_min_in: Lower clamp of ``mu_in``.
        mu_max: Upper clamp of both dual proximal parameters.
        eps_primal_inf: Tolerance of the primal infeasibility certificate.
        eps_dual_inf: Tolerance of the dual infeasibility certificate.
        check_duality_gap: Require the duality gap to converge as well.
        eps_duality_gap_abs: Absolute duality gap tolerance.
        eps_duality_gap_rel: Relative duality gap tolerance.
        preconditioner_max_iter: Maximum Ruiz equilibration passes.
        preconditioner_accuracy: Ruiz stopping threshold on ``|1 - delta|``.
        initial_guess: Starting point policy, see :class:`InitialGuess`.
        compute_timings: Record setup, solve and run times.
        verbose: Log one line per iteration at INFO level.
        update_preconditioner: Default of ``update(update_preconditioner=...)``.
    """

    default_rho: float = 1e-6
    default_mu_eq: float = 1e-3
    default_mu_in: float = 1e-1
    alpha: float = 1.6
    eps_abs: float = 1e-5
    eps_rel: float = 0.0
    max_iter: int = 10000
    mu_update_interval: int = 25
    mu_update_tolerance: float = 5.0
    mu_min_eq: float = 1e-9
    mu_min_in: float = 1e-8
    mu_max: float = 1e6
    eps_primal_inf: float = 1e-4
    eps_dual_inf: float = 1e-4
    check_duality_gap: bool = False
    eps_duality_gap_abs: float = 1e-4
    eps_duality_gap_rel: float = 0.0
    preconditioner_max_iter: int = 10
    preconditioner_accuracy: float = 1e-3
    initial_guess: InitialGuess = InitialGuess.WARM_START_WITH_PREVIOUS_RESULT
    compute_timings: bool = True
    verbose: bool = False
    update_preconditioner: bool = True

    def validate(self) -> None:
        """Raise :class:`ConstructionError` if any field is out of range."""

        for name in ("default_rho", "default_mu_eq", "default_mu_in", "mu_min_eq", "mu_min_in", "mu_max"):
            if not getattr(self, name) > 0.0:
                raise ConstructionError(f"Settings.{name} must be positive, got {getattr(self, name)!r}")
        for name in (
            "eps_abs",
            "eps_rel",
            "eps_primal_inf",
            "eps_dual_inf",
            "eps_duality_gap_abs",
            "eps_duality_gap_rel",
            "preconditioner_accuracy",
        ):
            if getattr(self, name) < 0.0:
                raise ConstructionError(f"Settings.{name} must be non-negative, got {getattr(self, name)!r}")
        if self.max_iter < 1:
            raise ConstructionError(f"Settings.max_iter must be >= 1, got {self.max_iter}")
        if self.mu_update_interval < 1:
            raise ConstructionError("Settings.mu_update_interval must be >= 1")
        if not self.mu_update_tolerance > 1.0:
            raise ConstructionError(
                f"Settings.mu_update_tolerance must be > 1, got {self.mu_update_tolerance!r}"
            )
        if self.preconditioner_max_iter < 0:
            raise ConstructionError("Settings.preconditioner_max_iter must be >= 0")
        if not 0.0 < self.alpha < 2.0:
            raise ConstructionError(f"Settings.alpha must lie in (0, 2), got {self.alpha}")
        if not isinstance(self.initial_guess, InitialGuess):
            raise ConstructionError(f"Settings.initial_guess must be an InitialGuess, got {self.initial_guess!r}")

    def copy(self) -> "Settings":
        return copy.copy(self)

    def apply_overrides(self, overrides: Dict[str, Any]) -> None:
        """Set several fields at once; unknown keys raise :class:`ConstructionError`."""

        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConstructionError(f"Unknown settings: {unknown}")
        for key, value in overrides.items():
            if key == "initial_guess" and isinstance(value, str):
                value = InitialGuess(value)
            setattr(self, key, value)
        self.validate()

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["initial_guess"] = self.initial_guess.value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        settings = cls()
        settings.apply_overrides(dict(data))
        return settings


__all__ = ["Settings"]

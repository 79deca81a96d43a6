"""
Karush-Kuhn-Tucker diagnostics for box-constrained QPs.

The problem is ``min ½xᵀHx + gᵀx`` s.t. ``Ax = b`` and ``l <= Cx <= u``. All
matrices may be NumPy arrays or SciPy sparse matrices.
"""

from __future__ import annotations

from typing import Dict

import numpy as np

from .utils import inf_norm


def box_support(z: np.ndarray, l: np.ndarray, u: np.ndarray) -> float:
    """Support function of the box ``[l, u]`` evaluated at ``z``."""

    if z.size == 0:
        return 0.0
    with np.errstate(invalid="ignore"):
        upper = np.where(z > 0.0, u * z, 0.0)
        lower = np.where(z < 0.0, l * z, 0.0)
    return float(np.sum(upper) + np.sum(lower))


def objective_value(H, g: np.ndarray, x: np.ndarray) -> float:
    """Return ``½ xᵀHx + gᵀx``."""

    return float(0.5 * x @ (H @ x) + g @ x)


def kkt_residuals(
    H,
    g: np.ndarray,
    A,
    b: np.ndarray,
    C,
    l: np.ndarray,
    u: np.ndarray,
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
) -> Dict[str, float]:
    """
    Compute infinity-norm KKT residuals and the scales used by relative tolerances.

    The inequality residual is ``‖Cx − Π_[l,u](Cx + z)‖∞``. It vanishes only
    when ``Cx`` lies in the box and ``z`` is in the normal cone of the box at
    ``Cx``, so a non-zero multiplier on an inactive row counts as a violation.

    Returns:
        Dictionary with ``primal_eq``, ``primal_in``, ``primal`` (their max),
        ``dual``, ``primal_scale``, ``dual_scale`` and ``duality_gap``.
    """

    hx = H @ x
    ax = A @ x
    cx = C @ x
    aty = A.T @ y
    ctz = C.T @ z

    primal_eq = inf_norm(ax - b)
    primal_in = inf_norm(cx - np.clip(cx + z, l, u))
    dual = inf_norm(hx + g + aty + ctz)

    gap = float(x @ hx + g @ x + b @ y) + box_support(z, l, u)
    return {
        "primal_eq": primal_eq,
        "primal_in": primal_in,
        "primal": max(primal_eq, primal_in),
        "dual": dual,
        "primal_scale": max(inf_norm(ax), inf_norm(b), inf_norm(cx)),
        "dual_scale": max(inf_norm(hx), inf_norm(g), inf_norm(aty), inf_norm(ctz)),
        "duality_gap": abs(gap) if np.isfinite(gap) else float("inf"),
    }


def is_kkt_optimal(
    H,
    g: np.ndarray,
    A,
    b: np.ndarray,
    C,
    l: np.ndarray,
    u: np.ndarray,
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    tol: float = 1e-6,
) -> bool:
    """Return True if the primal (complementarity included) and dual residuals are below ``tol``."""

    residuals = kkt_residuals(H, g, A, b, C, l, u, x, y, z)
    return residuals["primal"] <= tol and residuals["dual"] <= tol


__all__ = ["box_support", "objective_value", "kkt_residuals", "is_kkt_optimal"]

"""PyTorch autograd integration: QP solutions as differentiable layers."""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import torch

from qpconduit.core.status import QPStatus
from qpconduit.dense import QP
from qpconduit.logging import get_logger

logger = get_logger(__name__)

_INPUTS = ("H", "g", "A", "b", "C", "l", "u")
_EXPECTED_NDIM = {"H": 2, "g": 1, "A": 2, "b": 1, "C": 2, "l": 1, "u": 1}


def _batch_size(tensors: List[Optional[torch.Tensor]]) -> Tuple[int, bool]:
    sizes = set()
    for name, t in zip(_INPUTS, tensors):
        if t is not None and t.dim() == _EXPECTED_NDIM[name] + 1:
            sizes.add(t.shape[0])
    if len(sizes) > 1:
        raise ValueError(f"Inconsistent batch sizes {sorted(sizes)}")
    if sizes:
        return sizes.pop(), True
    return 1, False


def _batched(t: torch.Tensor, ndim: int, batch: int) -> torch.Tensor:
    if t.dim() == ndim:
        t = t.unsqueeze(0)
    return t.expand(batch, *t.shape[1:])


def _empty_inputs(n: int, tensors: List[Optional[torch.Tensor]], like: torch.Tensor) -> List[torch.Tensor]:
    """Replace missing constraint data with empty or infinite tensors."""

    opts = {"dtype": like.dtype, "device": like.device}
    H, g, A, b, C, l, u = tensors
    n_eq = A.shape[-2] if A is not None else 0
    n_in = C.shape[-2] if C is not None else 0
    if A is None:
        A = torch.zeros(0, n, **opts)
    if b is None:
        b = torch.zeros(n_eq, **opts)
    if C is None:
        C = torch.zeros(0, n, **opts)
    if l is None:
        l = torch.full((n_in,), -float("inf"), **opts)
    if u is None:
        u = torch.full((n_in,), float("inf"), **opts)
    return [H, g, A, b, C, l, u]


def _numpy(t: torch.Tensor) -> np.ndarray:
    return t.detach().cpu().to(dtype=torch.float64).numpy()


def QPFunction(
    eps: float = 1e-9,
    max_iter: int = 1000,
    eps_backward: float = 1e-4,
    rho_backward: float = 1e-6,
    mu_backward: float = 1e-6,
):
    """
    Build a differentiable QP layer.

    The returned callable maps ``(H, g, A, b, C, l, u)`` to the primal
    solution ``x`` and multipliers ``y``, ``z`` of

        min ½xᵀHx + gᵀx  s.t.  Ax = b,  l <= Cx <= u.

    Each argument may carry a leading batch dimension; unbatched arguments are
    broadcast. ``A``/``b``/``C``/``l``/``u`` may be ``None``.

    The backward pass differentiates the KKT conditions restricted to the
    active set (inequalities with ``|z_i| > eps_backward``), regularized by
    ``rho_backward`` on the primal block and ``mu_backward`` on the dual
    blocks.

    Args:
        eps: Absolute tolerance of the forward solves.
        max_iter: Iteration limit of the forward solves.
        eps_backward: Threshold on ``|z_i|`` defining the active set.
        rho_backward: Primal regularization of the backward KKT system.
        mu_backward: Dual regularization of the backward KKT system.

    Example:
        >>> layer = QPFunction()
        >>> x, y, z = layer(H, g, A, b, C, l, u)
        >>> x.sum().backward()
    """

    class QPFunctionFn(torch.autograd.Function):
        @staticmethod
        def forward(ctx, H, g, A, b, C, l, u):
            raw = [H, g, A, b, C, l, u]
            batch, is_batched = _batch_size(raw)
            n = g.shape[-1]
            present = [t is not None for t in raw]
            filled = _empty_inputs(n, raw, g)
            data = [_batched(t, _EXPECTED_NDIM[name], batch) for name, t in zip(_INPUTS, filled)]
            n_eq, n_in = data[2].shape[1], data[4].shape[1]

            xs, ys, zs = [], [], []
            for i in range(batch):
                qp = QP(n, n_eq, n_in)
                qp.settings.eps_abs = eps
                qp.settings.max_iter = max_iter
                qp.init(*[_numpy(t[i]) for t in data])
                qp.solve()
                if qp.results.info.status is not QPStatus.SOLVED:
                    logger.warning(
                        "QP %d of %d finished with status %s", i, batch, qp.results.info.status.value
                    )
                xs.append(qp.results.x)
                ys.append(qp.results.y)
                zs.append(qp.results.z)

            opts = {"dtype": g.dtype, "device": g.device}
            x = torch.as_tensor(np.stack(xs), **opts)
            y = torch.as_tensor(np.stack(ys).reshape(batch, n_eq), **opts)
            z = torch.as_tensor(np.stack(zs).reshape(batch, n_in), **opts)

            ctx.solution = [t.detach() for t in data] + [x, y, z]
            ctx.shapes = [None if t is None else t.shape for t in raw]
            ctx.present = present
            ctx.is_batched = is_batched
            if not is_batched:
                return x[0].clone(), y[0].clone(), z[0].clone()
            return x, y, z

        @staticmethod
        def backward(ctx, grad_x, grad_y, grad_z):
            H, g, A, b, C, l, u, x, y, z = ctx.solution
            batch, n = x.shape
            n_eq, n_in = y.shape[1], z.shape[1]
            opts = {"dtype": torch.float64, "device": x.device}

            def _grad_or_zero(grad, size):
                if grad is None:
                    return torch.zeros(batch, size, **opts)
                grad = grad.to(torch.float64)
                return grad if ctx.is_batched else grad.unsqueeze(0)

            gx = _grad_or_zero(grad_x, n)
            gy = _grad_or_zero(grad_y, n_eq)
            gz = _grad_or_zero(grad_z, n_in)

            grads = {name: [] for name in _INPUTS}
            for i in range(batch):
                Hi, Ai, Ci = H[i].to(torch.float64), A[i].to(torch.float64), C[i].to(torch.float64)
                xi, yi, zi = x[i].to(torch.float64), y[i].to(torch.float64), z[i].to(torch.float64)
                active = torch.abs(zi) > eps_backward
                Ca = Ci[active]
                n_act = Ca.shape[0]

                K = torch.zeros(n + n_eq + n_act, n + n_eq + n_act, **opts)
                K[:n, :n] = 0.5 * (Hi + Hi.T) + rho_backward * torch.eye(n, **opts)
                K[:n, n : n + n_eq] = Ai.T
                K[n : n + n_eq, :n] = Ai
                K[:n, n + n_eq :] = Ca.T
                K[n + n_eq :, :n] = Ca
                K[n:, n:] = -mu_backward * torch.eye(n_eq + n_act, **opts)

                rhs = torch.cat([gx[i], gy[i], gz[i][active]])
                w = torch.linalg.solve(K, rhs)
                wx, wy, wz_act = w[:n], w[n : n + n_eq], w[n + n_eq :]
                wz = torch.zeros(n_in, **opts)
                wz[active] = wz_act

                upper = active & (zi > 0)
                lower = active & (zi < 0)
                grads["H"].append(-0.5 * (torch.outer(wx, xi) + torch.outer(xi, wx)))
                grads["g"].append(-wx)
                grads["A"].append(-(torch.outer(yi, wx) + torch.outer(wy, xi)))
                grads["b"].append(wy)
                grads["C"].append(-(torch.outer(zi, wx) + torch.outer(wz, xi)))
                grads["l"].append(torch.where(lower, wz, torch.zeros_like(wz)))
                grads["u"].append(torch.where(upper, wz, torch.zeros_like(wz)))

            out = []
            for index, name in enumerate(_INPUTS):
                shape = ctx.shapes[index]
                if not ctx.present[index] or not ctx.needs_input_grad[index]:
                    out.append(None)
                    continue
                stacked = torch.stack(grads[name])
                if len(shape) == _EXPECTED_NDIM[name]:
                    stacked = stacked.sum(dim=0)
                out.append(stacked.to(dtype=x.dtype))
            return tuple(out)

    return QPFunctionFn.apply


__all__ = ["QPFunction"]

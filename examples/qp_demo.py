"""
Example: Quadratic programming with qpconduit

This example walks through the solver lifecycle on small problems: a
portfolio QP, a receding-horizon loop that re-solves with warm starts, a
sparse QP with a fixed sparsity structure, infeasibility detection and a
differentiable QP layer inside a PyTorch training step.
"""

import numpy as np
import scipy.sparse as sp
import torch

from qpconduit import QPStatus, SparsityViolation, dense, sparse
from qpconduit.torch import QPFunction


def example_portfolio():
    """Example: Minimum-variance portfolio with a return target."""
    print("=" * 60)
    print("Example 1: Dense QP - Portfolio Optimization")
    print("=" * 60)

    # Minimize risk 0.5 * x^T S x
    # Subject to: sum(x) = 1, mu^T x >= 0.08, 0 <= x <= 0.6
    S = np.array([[0.10, 0.02, 0.01], [0.02, 0.08, 0.03], [0.01, 0.03, 0.12]])
    mu = np.array([0.06, 0.09, 0.12])
    n = 3

    qp = dense.QP(n, 1, n + 1)
    qp.settings.eps_abs = 1e-8
    qp.init(
        H=S,
        g=np.zeros(n),
        A=np.ones((1, n)),
        b=np.array([1.0]),
        C=np.vstack([np.eye(n), mu]),
        l=np.concatenate([np.zeros(n), [0.08]]),
        u=np.concatenate([0.6 * np.ones(n), [np.inf]]),
    )
    qp.solve()
    info = qp.results.info
    print(f"Status: {info.status.value}")
    print(f"Weights: {np.round(qp.results.x, 4)}")
    print(f"Risk: {info.objective:.6f}  iterations: {info.iter}")
    print()


def example_receding_horizon():
    """Example: Re-solving a tracking problem with warm starts."""
    print("=" * 60)
    print("Example 2: Warm-Started Re-solves")
    print("=" * 60)

    n = 10
    D = np.eye(n) - np.eye(n, k=1)
    H = np.eye(n) + 5.0 * D.T @ D
    qp = dense.QP(n, 0, n)
    qp.init(H=H, g=np.zeros(n), C=np.eye(n), l=-np.ones(n), u=np.ones(n))
    qp.solve()

    for step in range(5):
        reference = 1.5 * np.sin(0.4 * np.arange(n) + 0.1 * step)
        qp.update(g=-reference, update_preconditioner=False)
        qp.solve()
        cold = dense.solve(H=H, g=-reference, C=np.eye(n), l=-np.ones(n), u=np.ones(n))
        print(
            f"step {step}: warm iterations {qp.results.info.iter:4d}, "
            f"cold iterations {cold.info.iter:4d}"
        )
    print()


def example_sparse_structure():
    """Example: Sparse QP whose sparsity pattern is fixed by masks."""
    print("=" * 60)
    print("Example 3: Sparse QP with a Fixed Structure")
    print("=" * 60)

    n = 50
    H = sp.diags([-1.0, 2.5, -1.0], [-1, 0, 1], shape=(n, n), format="csc")
    A = sp.csc_matrix(np.ones((1, n)))
    qp = sparse.QP(H != 0, A != 0, None)
    qp.init(H=H, g=np.linspace(-1.0, 1.0, n), A=A, b=np.array([0.0]))
    qp.solve()
    print(f"Status: {qp.results.info.status.value}, H_nnz = {qp.model.H_nnz}")

    try:
        qp.update(H=sp.identity(n, format="csc") + sp.csc_matrix(([1.0], ([0], [n - 1])), shape=(n, n)))
    except SparsityViolation as exc:
        print(f"Rejected update: {exc}")
    print()


def example_infeasibility():
    """Example: Infeasible and unbounded problems are reported, not raised."""
    print("=" * 60)
    print("Example 4: Infeasibility Certificates")
    print("=" * 60)

    qp = dense.QP(1, 2, 0)
    qp.init(A=np.array([[1.0], [1.0]]), b=np.array([1.0, -1.0]))
    qp.solve()
    print(f"x = 1 and x = -1: {qp.results.info.status.value}, certificate {qp.results.certificate}")

    results = dense.solve(H=np.zeros((1, 1)), g=np.array([1.0]))
    print(f"min x: {results.info.status.value}, ray {results.certificate}")
    assert results.info.status is QPStatus.DUAL_INFEASIBLE
    print()


def example_differentiable_layer():
    """Example: Learning a linear cost through a QP layer."""
    print("=" * 60)
    print("Example 5: Differentiable QP Layer")
    print("=" * 60)

    H = torch.eye(2, dtype=torch.float64)
    C = torch.eye(2, dtype=torch.float64)
    l = -torch.ones(2, dtype=torch.float64)
    u = torch.ones(2, dtype=torch.float64)
    target = torch.tensor([0.5, -0.25], dtype=torch.float64)
    g = torch.zeros(2, dtype=torch.float64, requires_grad=True)

    layer = QPFunction()
    optimizer = torch.optim.SGD([g], lr=0.5)
    for epoch in range(20):
        optimizer.zero_grad()
        x, _, _ = layer(H, g, None, None, C, l, u)
        loss = ((x - target) ** 2).sum()
        loss.backward()
        optimizer.step()
    print(f"Learned g = {g.detach().numpy()}, loss = {loss.item():.2e}")
    print()


if __name__ == "__main__":
    example_portfolio()
    example_receding_horizon()
    example_sparse_structure()
    example_infeasibility()
    example_differentiable_layer()
    print("All examples completed.")

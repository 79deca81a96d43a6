"""
Integration tests for the qpconduit package.

Exercises the public API through top-level imports in realistic sequences:
receding-horizon re-solves with warm starts, dense/sparse interchangeability
behind the shared protocol, and persistence of a live solver.
"""

import numpy as np
import scipy.sparse as sp

import qpconduit
from qpconduit import (
    QPObject,
    QPStatus,
    dense,
    from_bytes,
    is_kkt_optimal,
    sparse,
    to_bytes,
)


def test_main_package_imports():
    """Test that the main APIs are accessible from the package root."""
    assert qpconduit.__version__
    assert dense.QP is not None
    assert sparse.QP is not None
    assert qpconduit.Settings is not None
    assert qpconduit.RuizEquilibration is not None
    assert qpconduit.ConstructionError is not None


def _tracking_problem(n):
    """Box-constrained tracking of a reference with a smoothness penalty."""
    D = np.eye(n) - np.eye(n, k=1)
    H = np.eye(n) + 10.0 * D.T @ D
    C = np.eye(n)
    return H, C, -np.ones(n), np.ones(n)


def test_receding_horizon_warm_starts():
    n = 8
    H, C, l, u = _tracking_problem(n)
    qp = dense.QP(n, 0, n)
    qp.init(H=H, g=np.zeros(n), C=C, l=l, u=u)
    qp.solve()
    cold_iters = []
    warm_iters = []
    for step in range(1, 5):
        reference = 2.0 * np.sin(0.3 * np.arange(n) + 0.05 * step)
        g = -reference
        qp.update(g=g, update_preconditioner=False)
        qp.solve()
        assert qp.results.info.status is QPStatus.SOLVED
        assert np.all(qp.results.x <= u + 1e-4)
        assert np.all(qp.results.x >= l - 1e-4)
        warm_iters.append(qp.results.info.iter)

        cold = dense.solve(H=H, g=g, C=C, l=l, u=u)
        assert np.allclose(qp.results.x, cold.x, atol=1e-3)
        cold_iters.append(cold.info.iter)
    assert sum(warm_iters) <= sum(cold_iters)


def test_dense_and_sparse_share_protocol(random_qp):
    def run(qp: QPObject, data):
        qp.settings.eps_abs = 1e-8
        qp.init(**data)
        qp.solve()
        return qp.results

    sparse_data = dict(random_qp)
    for name in ("H", "A", "C"):
        sparse_data[name] = sp.csc_matrix(random_qp[name])

    dense_results = run(dense.QP(6, 2, 4), random_qp)
    sparse_results = run(sparse.QP(6, 2, 4), sparse_data)
    assert np.allclose(dense_results.x, sparse_results.x, atol=1e-6)
    for results in (dense_results, sparse_results):
        assert is_kkt_optimal(
            random_qp["H"], random_qp["g"], random_qp["A"], random_qp["b"],
            random_qp["C"], random_qp["l"], random_qp["u"],
            results.x, results.y, results.z, tol=1e-6,
        )


def test_persisted_solver_resumes_with_same_answer(random_qp):
    qp = dense.QP(6, 2, 4)
    qp.init(**random_qp)
    qp.solve()
    restored = from_bytes(to_bytes(qp))
    restored.solve()
    qp.solve()
    assert restored.results.info.status is QPStatus.SOLVED
    assert np.allclose(restored.results.x, qp.results.x, atol=1e-6)

import numpy as np
import pytest
import scipy.sparse as sp

from qpconduit import dense, sparse
from qpconduit.preconditioner import RuizEquilibration
from qpconduit.utils import col_inf_norms


def _badly_scaled_model():
    model = dense.Model(2, 1, 1)
    model.H = np.diag([1e4, 1e-2])
    model.g = np.array([1.0, -1.0])
    model.A = np.array([[100.0, 1.0]])
    model.b = np.array([3.0])
    model.C = np.array([[0.0, 0.01]])
    model.l = np.array([-1.0])
    model.u = np.array([1.0])
    return model


def test_fresh_preconditioner_is_identity():
    precond = RuizEquilibration(2, 1, 1)
    assert np.array_equal(precond.delta, np.ones(4))
    assert precond.c == 1.0
    x = np.array([1.0, 2.0])
    assert np.array_equal(precond.scale_primal(x), x)


def test_compute_equilibrates_kkt_columns():
    model = _badly_scaled_model()
    precond = RuizEquilibration(2, 1, 1)
    scaled = precond.compute(model, max_iter=30, accuracy=1e-6)
    kkt = np.block(
        [
            [scaled.H / precond.c, scaled.A.T, scaled.C.T],
            [scaled.A, np.zeros((1, 1)), np.zeros((1, 1))],
            [scaled.C, np.zeros((1, 1)), np.zeros((1, 1))],
        ]
    )
    before = col_inf_norms(np.block([[model.H, model.A.T, model.C.T]]))
    after = col_inf_norms(kkt)
    assert np.ptp(np.log10(after)) < np.ptp(np.log10(before))
    assert precond.iterations >= 1
    assert np.all(precond.delta > 0.0)


def test_scale_matches_definition():
    model = _badly_scaled_model()
    precond = RuizEquilibration(2, 1, 1)
    scaled = precond.compute(model)
    D, E, F, c = precond.D, precond.E, precond.F, precond.c
    assert np.allclose(scaled.H, c * np.diag(D) @ model.H @ np.diag(D))
    assert np.allclose(scaled.g, c * D * model.g)
    assert np.allclose(scaled.A, np.diag(E) @ model.A @ np.diag(D))
    assert np.allclose(scaled.b, E * model.b)
    assert np.allclose(scaled.C, np.diag(F) @ model.C @ np.diag(D))
    assert np.allclose(scaled.l, F * model.l)


def test_primal_and_dual_maps_are_inverse():
    precond = RuizEquilibration(2, 1, 1)
    precond.compute(_badly_scaled_model())
    x = np.array([0.3, -2.0])
    y = np.array([1.5])
    z = np.array([-0.25])
    assert np.allclose(precond.unscale_primal(precond.scale_primal(x)), x)
    assert np.allclose(precond.unscale_dual_eq(precond.scale_dual_eq(y)), y)
    assert np.allclose(precond.unscale_dual_in(precond.scale_dual_in(z)), z)


def test_sparse_and_dense_scaling_agree():
    model = _badly_scaled_model()
    sparse_model = sparse.Model(2, 1, 1)
    for name in ("H", "A", "C"):
        sparse_model.set_structure(name, sp.csc_matrix(getattr(model, name)))
    sparse_model.g, sparse_model.b = model.g, model.b
    sparse_model.l, sparse_model.u = model.l, model.u

    dense_pre = RuizEquilibration(2, 1, 1)
    sparse_pre = RuizEquilibration(2, 1, 1)
    dense_pre.compute(model)
    sparse_pre.compute(sparse_model)
    assert np.allclose(dense_pre.delta, sparse_pre.delta)
    assert dense_pre.c == pytest.approx(sparse_pre.c)


def test_stale_preconditioner_reuse_keeps_factors():
    qp = dense.QP(2, 1, 1)
    model = _badly_scaled_model()
    qp.init(model.H, model.g, model.A, model.b, model.C, model.l, model.u)
    delta = qp._preconditioner.delta.copy()
    c = qp._preconditioner.c

    qp.update(H=np.diag([1.0, 1.0]), update_preconditioner=False)
    assert np.array_equal(qp._preconditioner.delta, delta)
    assert qp._preconditioner.c == c

    qp.update(H=np.diag([1.0, 1.0]), update_preconditioner=True)
    assert not np.array_equal(qp._preconditioner.delta, delta)


def test_load_dict_rejects_wrong_length():
    precond = RuizEquilibration(2, 0, 0)
    with pytest.raises(ValueError):
        precond.load_dict({"delta": [1.0], "c": 1.0, "iterations": 0})

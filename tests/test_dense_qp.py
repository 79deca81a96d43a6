import numpy as np
import pytest

from qpconduit import dense
from qpconduit.core import ConstructionError, InitialGuess, QPObject, QPStatus
from qpconduit.kkt import is_kkt_optimal


def _solve_random(random_qp, **settings):
    qp = dense.QP(6, 2, 4)
    qp.settings.apply_overrides(settings)
    qp.init(**random_qp)
    qp.solve()
    return qp


def test_unconstrained_quadratic():
    qp = dense.QP(2, 0, 0)
    qp.init(H=np.eye(2), g=np.array([1.0, 1.0]))
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert np.allclose(qp.results.x, [-1.0, -1.0], atol=1e-4)
    assert qp.results.info.objective == pytest.approx(-1.0, abs=1e-4)


def test_active_lower_bound():
    qp = dense.QP(1, 0, 1)
    qp.init(H=np.array([[1.0]]), g=np.array([0.0]), C=np.array([[1.0]]), l=np.array([2.0]), u=np.array([10.0]))
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert qp.results.x[0] == pytest.approx(2.0, abs=1e-4)
    assert qp.results.z[0] == pytest.approx(-2.0, abs=1e-3)
    assert qp.results.info.iter > 1


def test_lower_bounds_active_in_every_coordinate():
    lb = np.array([1.0, 2.0, 3.0])
    results = dense.solve(H=np.eye(3), g=np.zeros(3), C=np.eye(3), l=lb, u=np.array([4.0, 5.0, 6.0]))
    assert results.info.status is QPStatus.SOLVED
    assert np.allclose(results.x, lb, atol=1e-4)
    assert np.allclose(results.z, -lb, atol=1e-3)


def test_random_qp_multipliers_are_complementary(random_qp):
    qp = _solve_random(random_qp, eps_abs=1e-7)
    assert qp.results.info.status is QPStatus.SOLVED
    cx = random_qp["C"] @ qp.results.x
    z = qp.results.z
    projected = np.clip(cx + z, random_qp["l"], random_qp["u"])
    assert np.max(np.abs(cx - projected)) <= 1e-6
    upper = z > 1e-6
    lower = z < -1e-6
    assert np.allclose(cx[upper], random_qp["u"][upper], atol=1e-5)
    assert np.allclose(cx[lower], random_qp["l"][lower], atol=1e-5)


def test_inconsistent_equalities_are_primal_infeasible():
    qp = dense.QP(1, 2, 0)
    qp.init(A=np.array([[1.0], [1.0]]), b=np.array([1.0, -1.0]))
    qp.solve()
    assert qp.results.info.status is QPStatus.PRIMAL_INFEASIBLE
    certificate = qp.results.certificate
    assert certificate is not None
    assert certificate.shape == (2,)
    assert np.max(np.abs(certificate)) > 0.0
    # Farkas: Aᵀdy ~ 0 and bᵀdy < 0
    assert abs(certificate[0] + certificate[1]) <= 1e-4 * np.max(np.abs(certificate))
    assert np.array([1.0, -1.0]) @ certificate < 0.0


def test_unbounded_linear_program_is_dual_infeasible():
    qp = dense.QP(1, 0, 0)
    qp.init(H=np.zeros((1, 1)), g=np.array([1.0]))
    qp.solve()
    assert qp.results.info.status is QPStatus.DUAL_INFEASIBLE
    assert qp.results.certificate is not None
    assert qp.results.certificate[0] < 0.0


def test_equality_constrained_minimum():
    qp = dense.QP(2, 1, 0)
    qp.init(H=np.eye(2), A=np.array([[1.0, 1.0]]), b=np.array([1.0]))
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert np.allclose(qp.results.x, [0.5, 0.5], atol=1e-4)
    assert qp.results.y[0] == pytest.approx(-0.5, abs=1e-3)


def test_box_projection_signs_multipliers():
    target = np.array([1.5, -0.5, 0.2])
    lb = np.zeros(3)
    ub = np.array([1.0, 1.0, 0.5])
    qp = dense.QP(3, 0, 3)
    qp.init(H=np.eye(3), g=-target, C=np.eye(3), l=lb, u=ub)
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert np.allclose(qp.results.x, np.clip(target, lb, ub), atol=1e-4)
    assert qp.results.z[0] > 0.0
    assert qp.results.z[1] < 0.0
    assert abs(qp.results.z[2]) < 1e-3


def test_random_qp_satisfies_kkt(random_qp):
    qp = _solve_random(random_qp, eps_abs=1e-7)
    assert qp.results.info.status is QPStatus.SOLVED
    r = qp.results
    assert is_kkt_optimal(
        random_qp["H"], random_qp["g"], random_qp["A"], random_qp["b"],
        random_qp["C"], random_qp["l"], random_qp["u"], r.x, r.y, r.z, tol=1e-6,
    )
    assert r.info.pri_res <= 1e-7
    assert r.info.dua_res <= 1e-7


def test_empty_problem_solves_immediately():
    qp = dense.QP(0, 0, 0)
    qp.init()
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert qp.results.info.iter == 0


def test_max_iter_reached(random_qp):
    qp = _solve_random(random_qp, max_iter=1)
    assert qp.results.info.status is QPStatus.MAX_ITER_REACHED
    assert qp.results.info.iter == 1
    assert not np.isnan(qp.results.x).any()


def test_duality_gap_check(random_qp):
    qp = _solve_random(random_qp, check_duality_gap=True, eps_duality_gap_abs=1e-6)
    assert qp.results.info.status is QPStatus.SOLVED
    assert qp.results.info.duality_gap <= 1e-6


def test_warm_start_after_unchanged_update(random_qp):
    qp = _solve_random(random_qp)
    first = qp.results.info.iter
    qp.update(g=random_qp["g"])
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert qp.results.info.iter <= first


def test_warm_start_after_small_change(random_qp):
    qp = _solve_random(random_qp)
    cold = dense.QP(6, 2, 4)
    perturbed = dict(random_qp, g=random_qp["g"] + 1e-3)
    cold.init(**perturbed)
    cold.solve()

    qp.update(g=perturbed["g"])
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert np.allclose(qp.results.x, cold.results.x, atol=1e-3)


def test_explicit_warm_start_at_solution():
    qp = dense.QP(2, 0, 0)
    qp.init(H=np.eye(2), g=np.array([1.0, 1.0]))
    qp.solve(x=np.array([-1.0, -1.0]))
    assert qp.results.info.status is QPStatus.SOLVED
    assert qp.results.info.iter == 0


def test_explicit_warm_start_wrong_length():
    qp = dense.QP(2, 0, 0)
    qp.init(H=np.eye(2))
    with pytest.raises(ConstructionError):
        qp.solve(x=np.zeros(3))


@pytest.mark.parametrize("policy", list(InitialGuess))
def test_every_initial_guess_policy_converges(random_qp, policy):
    qp = _solve_random(random_qp, initial_guess=policy)
    assert qp.results.info.status is QPStatus.SOLVED
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED


def test_no_initial_guess_repeats_cold_solve(random_qp):
    qp = _solve_random(random_qp, initial_guess=InitialGuess.NO_INITIAL_GUESS)
    first = qp.results.x.copy(), qp.results.info.iter
    qp.solve()
    assert qp.results.info.iter == first[1]
    assert np.array_equal(qp.results.x, first[0])


def test_cleanup_is_idempotent(random_qp):
    qp = _solve_random(random_qp)
    model = qp.model.copy()
    qp.cleanup()
    once = qp.results.copy()
    qp.cleanup()
    assert qp.results == once
    assert qp.results.info.status is QPStatus.NOT_RUN
    assert np.isnan(qp.results.x).all()
    assert qp.model == model


def test_cleanup_then_solve_again(random_qp):
    qp = _solve_random(random_qp)
    x = qp.results.x.copy()
    qp.cleanup()
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    assert np.allclose(qp.results.x, x, atol=1e-4)


def test_init_rejects_bad_data_and_leaves_object_unchanged():
    qp = dense.QP(2, 0, 1)
    qp.init(H=np.eye(2), C=np.array([[1.0, 0.0]]), l=np.array([0.0]), u=np.array([1.0]))
    before = qp.model.copy()
    with pytest.raises(ConstructionError, match="g must have length 2"):
        qp.init(H=np.eye(2), g=np.zeros(3))
    with pytest.raises(ConstructionError, match="l\\[0\\]"):
        qp.init(H=np.eye(2), C=np.array([[1.0, 0.0]]), l=np.array([2.0]), u=np.array([1.0]))
    with pytest.raises(ConstructionError, match="shape"):
        qp.init(H=np.eye(3))
    with pytest.raises(ConstructionError, match="positive"):
        qp.init(H=np.eye(2), rho=0.0)
    assert qp.model == before


def test_init_defaults_for_omitted_bounds():
    qp = dense.QP(2, 0, 2)
    qp.init(H=np.eye(2), C=np.eye(2))
    assert np.all(np.isneginf(qp.model.l))
    assert np.all(np.isposinf(qp.model.u))
    assert qp.model.is_valid()


def test_solve_and_update_before_init_raise():
    qp = dense.QP(2, 0, 0)
    with pytest.raises(RuntimeError):
        qp.solve()
    with pytest.raises(RuntimeError):
        qp.update(g=np.ones(2))


def test_update_keeps_omitted_fields(random_qp):
    qp = _solve_random(random_qp)
    new_u = random_qp["u"] + 1.0
    qp.update(u=new_u)
    assert np.array_equal(qp.model.u, new_u)
    assert np.array_equal(qp.model.H, random_qp["H"])
    assert np.array_equal(qp.model.l, random_qp["l"])
    assert qp.results.info.status is QPStatus.SOLVED


def test_update_with_proximal_overrides(random_qp):
    qp = _solve_random(random_qp)
    qp.update(rho=1e-5, mu_eq=1e-2)
    assert qp.results.info.rho == pytest.approx(1e-5)
    assert qp.results.info.mu_eq == pytest.approx(1e-2)
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED
    with pytest.raises(ConstructionError):
        qp.update(mu_in=-1.0)


def test_update_validates_settings(random_qp):
    qp = _solve_random(random_qp)
    qp.settings.mu_update_tolerance = 0.0
    with pytest.raises(ConstructionError, match="mu_update_tolerance"):
        qp.update(g=random_qp["g"])


def test_solve_rejects_degenerate_mu_update_band(random_qp):
    qp = dense.QP(6, 2, 4)
    qp.init(**random_qp)
    qp.settings.mu_update_tolerance = 0.0
    qp.settings.mu_update_interval = 1
    with pytest.raises(ConstructionError):
        qp.solve()


def test_init_with_explicit_proximal_parameters():
    qp = dense.QP(2, 0, 0)
    qp.init(H=np.eye(2), g=np.ones(2), rho=1e-3)
    qp.solve()
    assert qp.results.info.rho == pytest.approx(1e-3)


def test_init_without_preconditioner_uses_identity(random_qp):
    qp = dense.QP(6, 2, 4)
    qp.init(**random_qp, compute_preconditioner=False)
    assert np.array_equal(qp._preconditioner.delta, np.ones(12))
    qp.solve()
    assert qp.results.info.status is QPStatus.SOLVED


def test_timings_follow_settings():
    qp = dense.QP(2, 0, 0)
    qp.init(H=np.eye(2), g=np.ones(2))
    qp.solve()
    info = qp.results.info
    assert info.setup_time >= 0.0
    assert info.run_time == pytest.approx(info.setup_time + info.solve_time)

    qp.settings.compute_timings = False
    qp.init(H=np.eye(2), g=np.ones(2))
    qp.solve()
    assert qp.results.info.solve_time == 0.0


def test_qp_equality():
    a = dense.QP(2, 0, 0)
    b = dense.QP(2, 0, 0)
    assert a == b
    a.init(H=np.eye(2), g=np.ones(2))
    assert a != b
    b.init(H=np.eye(2), g=np.ones(2))
    a.results.info.setup_time = b.results.info.setup_time
    assert a == b


def test_qp_satisfies_protocol():
    assert isinstance(dense.QP(1, 0, 0), QPObject)


def test_one_shot_solve():
    results = dense.solve(
        H=np.eye(2),
        g=np.array([1.0, 1.0]),
        C=np.eye(2),
        l=np.array([-0.5, -2.0]),
        u=np.array([0.5, 2.0]),
        eps_abs=1e-8,
    )
    assert results.info.status is QPStatus.SOLVED
    assert np.allclose(results.x, [-0.5, -1.0], atol=1e-6)


def test_one_shot_solve_rejects_unknown_setting():
    with pytest.raises(ConstructionError):
        dense.solve(H=np.eye(1), g=np.zeros(1), tolerance=1.0)

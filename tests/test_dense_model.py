import pickle

import numpy as np

from qpconduit import dense


def test_fresh_model_is_valid():
    model = dense.Model(3, 1, 2)
    assert model.is_valid()
    assert model.n_total == 3
    assert model.H.shape == (3, 3)
    assert model.C.shape == (2, 3)


def test_model_invalid_on_shape_mismatch():
    model = dense.Model(2, 0, 1)
    model.g = np.zeros(3)
    assert not model.is_valid()


def test_model_invalid_when_lower_exceeds_upper():
    model = dense.Model(1, 0, 1)
    model.l = np.array([1.0])
    model.u = np.array([0.0])
    assert not model.is_valid()


def test_model_equality_is_structural():
    a = dense.Model(2, 1, 0)
    b = dense.Model(2, 1, 0)
    assert a == b
    assert a == a
    b.g = np.array([0.0, 1.0])
    assert a != b
    assert dense.Model(2, 1, 0) != dense.Model(2, 0, 1)


def test_model_copy_is_independent():
    model = dense.Model(2, 0, 0)
    clone = model.copy()
    clone.H[0, 0] = 4.0
    assert model.H[0, 0] == 0.0
    assert clone != model


def test_model_pickle_round_trip():
    model = dense.Model(2, 1, 1)
    model.H = np.eye(2)
    model.l = np.array([-np.inf])
    model.u = np.array([3.0])
    restored = pickle.loads(pickle.dumps(model))
    assert restored == model

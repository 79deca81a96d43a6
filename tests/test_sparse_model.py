import pickle

import numpy as np
import pytest
import scipy.sparse as sp

from qpconduit import sparse
from qpconduit.core import ConstructionError, SparsityViolation


def test_fresh_sparse_model_is_valid():
    model = sparse.Model(3, 1, 1)
    assert model.is_valid()
    assert (model.H_nnz, model.A_nnz, model.C_nnz) == (0, 0, 0)
    assert not model.masked


def test_from_masks_records_structure():
    H_mask = np.array([[1, 0, 0], [0, 1, 1], [0, 1, 1]], dtype=bool)
    A_mask = np.array([[1, 1, 0]], dtype=bool)
    model = sparse.Model.from_masks(H_mask, A_mask, None)
    assert model.masked
    assert (model.dim, model.n_eq, model.n_in) == (3, 1, 0)
    assert model.H_nnz == 5
    assert model.A_nnz == 2
    assert model.is_valid()


def test_set_structure_drops_dense_zeros_and_keeps_sparse_ones():
    model = sparse.Model(2, 0, 0)
    model.set_structure("H", np.array([[1.0, 0.0], [0.0, 2.0]]))
    assert model.H_nnz == 2
    explicit = sp.csc_matrix(
        (np.array([1.0, 0.0, 2.0]), np.array([0, 1, 1]), np.array([0, 2, 3])), shape=(2, 2)
    )
    model.set_structure("H", explicit)
    assert model.H_nnz == 3


def test_fill_respects_structure():
    model = sparse.Model.from_masks(np.eye(2, dtype=bool), None, None)
    filled = model.fill("H", np.diag([3.0, 0.0]))
    assert filled.nnz == 2
    assert np.allclose(filled.toarray(), np.diag([3.0, 0.0]))


def test_fill_outside_structure_raises():
    model = sparse.Model.from_masks(np.eye(2, dtype=bool), None, None)
    with pytest.raises(SparsityViolation, match=r"\(0, 1\)"):
        model.fill("H", np.array([[1.0, 1.0], [0.0, 1.0]]))


def test_sparsity_violation_is_construction_error():
    assert issubclass(SparsityViolation, ConstructionError)


def test_fill_shape_mismatch_raises():
    model = sparse.Model(2, 0, 0)
    with pytest.raises(ConstructionError, match="shape"):
        model.fill("H", np.eye(3))


def test_sparse_model_equality_and_copy():
    model = sparse.Model.from_masks(np.eye(2, dtype=bool), None, None)
    clone = model.copy()
    assert clone == model
    clone.g = np.array([1.0, 0.0])
    assert clone != model


def test_sparse_model_pickle_round_trip():
    model = sparse.Model.from_masks(np.ones((2, 2), dtype=bool), np.array([[1, 0]], dtype=bool), None)
    model.H = model.fill("H", np.array([[2.0, 1.0], [1.0, 2.0]]))
    restored = pickle.loads(pickle.dumps(model))
    assert restored == model
    assert restored.masked

"""Pytest configuration and shared fixtures for qpconduit tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Small random QP generators used across test modules
"""

import os
from typing import Dict

import numpy as np
import pytest
import torch


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).

    Returns:
        A seeded numpy.random.Generator instance.
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function")
def torch_rng() -> torch.Generator:
    """Provide a deterministic torch RNG for tests.

    Returns:
        A seeded CPU torch.Generator instance.
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    generator = torch.Generator(device="cpu")
    generator.manual_seed(seed)
    return generator


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds(rng: np.random.Generator, torch_rng: torch.Generator) -> None:
    """Auto-use fixture to set global random seeds for reproducibility."""
    np.random.seed(int(os.environ.get("TEST_RNG_SEED", "0")))
    torch.manual_seed(int(os.environ.get("TEST_RNG_SEED", "0")))


@pytest.fixture
def random_qp(rng: np.random.Generator) -> Dict[str, np.ndarray]:
    """Strictly convex, feasible QP with 6 variables, 2 equalities and 4 box rows.

    Feasibility is guaranteed by building the constraints around a known point.
    """
    n, n_eq, n_in = 6, 2, 4
    M = rng.standard_normal((n, n))
    H = M @ M.T + np.eye(n)
    g = rng.standard_normal(n)
    A = rng.standard_normal((n_eq, n))
    C = rng.standard_normal((n_in, n))
    x_feas = rng.standard_normal(n)
    b = A @ x_feas
    cx = C @ x_feas
    l = cx - rng.uniform(0.1, 1.0, n_in)
    u = cx + rng.uniform(0.1, 1.0, n_in)
    return {"H": H, "g": g, "A": A, "b": b, "C": C, "l": l, "u": u}

"""Sparse QP backend: SciPy CSC storage with fixed structure, SuperLU factorization."""

from .model import Model
from .wrapper import QP, solve

__all__ = ["Model", "QP", "solve"]

"""Dense QP backend: NumPy storage, Cholesky factorization."""

from .model import Model
from .wrapper import QP, solve

__all__ = ["Model", "QP", "solve"]

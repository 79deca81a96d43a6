"""Status enums, settings, results and error types shared by all solvers."""

from .errors import ConstructionError, SerializationError, SparsityViolation
from .protocol import ModelLike, QPObject
from .results import Info, Results
from .settings import Settings
from .status import InitialGuess, QPStatus

__all__ = [
    "QPStatus",
    "InitialGuess",
    "Settings",
    "Info",
    "Results",
    "ModelLike",
    "QPObject",
    "ConstructionError",
    "SparsityViolation",
    "SerializationError",
]

"""QP Conduit - proximal augmented-Lagrangian convex QP solvers on NumPy and SciPy."""

__version__ = "0.1.0"

# Dense and sparse backends
from . import dense, sparse

# Core abstractions
from .core import (
    ConstructionError,
    Info,
    InitialGuess,
    ModelLike,
    QPObject,
    QPStatus,
    Results,
    SerializationError,
    Settings,
    SparsityViolation,
)

# Serialization
from .io import from_bytes, model_from_dict, model_to_dict, qp_from_dict, qp_to_dict, to_bytes

# Diagnostics
from .kkt import is_kkt_optimal, kkt_residuals

# Logging
from .logging import configure_logging, get_logger, set_log_level

# Preconditioning
from .preconditioner import RuizEquilibration

__all__ = [
    # Version
    "__version__",
    # Backends
    "dense",
    "sparse",
    # Core
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
    # Serialization
    "to_bytes",
    "from_bytes",
    "qp_to_dict",
    "qp_from_dict",
    "model_to_dict",
    "model_from_dict",
    # Diagnostics
    "kkt_residuals",
    "is_kkt_optimal",
    # Preconditioning
    "RuizEquilibration",
    # Logging
    "get_logger",
    "set_log_level",
    "configure_logging",
]

"""Serialization of QP objects and models."""

from .serialization import (
    FORMAT_VERSION,
    from_bytes,
    model_from_dict,
    model_to_dict,
    qp_from_dict,
    qp_to_dict,
    to_bytes,
)

__all__ = [
    "FORMAT_VERSION",
    "to_bytes",
    "from_bytes",
    "qp_to_dict",
    "qp_from_dict",
    "model_to_dict",
    "model_from_dict",
]

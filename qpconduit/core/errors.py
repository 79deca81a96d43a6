"""Exceptions raised for structural and precondition violations."""

from __future__ import annotations


class ConstructionError(ValueError):
    """Problem data or settings inconsistent with the declared dimensions.

    Raised synchronously by ``init``/``update`` (and by ``Settings.validate``),
    never deferred to ``solve``.
    """


class SparsityViolation(ConstructionError):
    """A sparse update supplies a non-zero outside the fixed sparsity mask."""


class SerializationError(ValueError):
    """A byte document cannot be decoded into a qpconduit object."""


__all__ = ["ConstructionError", "SparsityViolation", "SerializationError"]

"""
Byte serialization of QP objects and models.

The document is UTF-8 encoded JSON of the form::

    {"version": "qpconduit-json-1.0", "kind": "dense.QP", "payload": {...}}

``kind`` is one of ``dense.QP``, ``sparse.QP``, ``dense.Model`` and
``sparse.Model``. Non-finite floats (infinite bounds, NaN results of an
unsolved QP) are written with the JSON extensions understood by :mod:`json`.
The cached factorization is never stored; it is rebuilt on the next solve.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Union

from ..core.errors import SerializationError
from ..dense import Model as DenseModel
from ..dense import QP as DenseQP
from ..sparse import Model as SparseModel
from ..sparse import QP as SparseQP

FORMAT_VERSION = "qpconduit-json-1.0"

_KINDS = {
    "dense.QP": DenseQP,
    "sparse.QP": SparseQP,
    "dense.Model": DenseModel,
    "sparse.Model": SparseModel,
}

Serializable = Union[DenseQP, SparseQP, DenseModel, SparseModel]


def _kind_of(obj: Any) -> str:
    for kind, cls in _KINDS.items():
        if type(obj) is cls:
            return kind
    raise TypeError(f"Cannot serialize object of type {type(obj).__name__}")


def qp_to_dict(qp: Union[DenseQP, SparseQP]) -> Dict[str, Any]:
    """Return the tagged dictionary form of a dense or sparse QP."""

    kind = _kind_of(qp)
    if not kind.endswith(".QP"):
        raise TypeError(f"Expected a QP object, got {type(qp).__name__}")
    return {"version": FORMAT_VERSION, "kind": kind, "payload": qp.to_dict()}


def model_to_dict(model: Union[DenseModel, SparseModel]) -> Dict[str, Any]:
    """Return the tagged dictionary form of a dense or sparse model."""

    kind = _kind_of(model)
    if not kind.endswith(".Model"):
        raise TypeError(f"Expected a Model object, got {type(model).__name__}")
    return {"version": FORMAT_VERSION, "kind": kind, "payload": model.to_dict()}


def _from_dict(obj: Dict[str, Any], suffix: str) -> Serializable:
    if not isinstance(obj, dict):
        raise SerializationError(f"Expected a JSON object, got {type(obj).__name__}")
    version = obj.get("version")
    if version != FORMAT_VERSION:
        raise SerializationError(f"Unsupported format version {version!r}, expected {FORMAT_VERSION!r}")
    kind = obj.get("kind")
    if kind not in _KINDS or not kind.endswith(suffix):
        raise SerializationError(f"Unexpected document kind {kind!r}")
    try:
        return _KINDS[kind].from_dict(obj["payload"])
    except (KeyError, TypeError, ValueError) as exc:
        raise SerializationError(f"Malformed {kind} payload: {exc}") from exc


def qp_from_dict(obj: Dict[str, Any]) -> Union[DenseQP, SparseQP]:
    """Rebuild a QP from :func:`qp_to_dict` output.

    Raises:
        SerializationError: On a foreign version, wrong kind or malformed payload.
    """

    return _from_dict(obj, ".QP")


def model_from_dict(obj: Dict[str, Any]) -> Union[DenseModel, SparseModel]:
    """Rebuild a model from :func:`model_to_dict` output."""

    return _from_dict(obj, ".Model")


def to_bytes(obj: Serializable) -> bytes:
    """Serialize a QP or model to bytes."""

    if _kind_of(obj).endswith(".QP"):
        document = qp_to_dict(obj)
    else:
        document = model_to_dict(obj)
    return json.dumps(document, separators=(",", ":")).encode("utf-8")


def from_bytes(data: bytes) -> Serializable:
    """
    Deserialize bytes produced by :func:`to_bytes`.

    Raises:
        SerializationError: If ``data`` is not a qpconduit document.
    """

    try:
        document = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, ValueError, TypeError) as exc:
        raise SerializationError(f"Not a qpconduit document: {exc}") from exc
    return _from_dict(document, "")


__all__ = [
    "FORMAT_VERSION",
    "qp_to_dict",
    "qp_from_dict",
    "model_to_dict",
    "model_from_dict",
    "to_bytes",
    "from_bytes",
]

"""Logging for qpconduit.

Loggers live under the ``qpconduit`` namespace and are handed out by
:func:`get_logger`. They write to stderr and stay out of the root logger so
an application's own logging setup never duplicates solver output.

What gets logged:

* DEBUG: setup summaries from ``init`` and a one-line summary after each solve.
* INFO: the per-iteration trace (:func:`format_iteration`), only when
  ``Settings.verbose`` is set.
* WARNING: factorization fallbacks and unsolved layer instances in
  :mod:`qpconduit.torch`.

Iteration traces are therefore invisible until ``set_log_level("INFO")`` or
``configure_logging(level="INFO")``.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

_DEFAULT_LEVEL = logging.WARNING
_DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

_format = _DEFAULT_FORMAT
_stream: Optional[object] = None
_loggers: dict[str, logging.Logger] = {}


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def _make_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(_stream if _stream is not None else sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_format))
    return handler


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the cached ``qpconduit`` logger for a module.

    Names outside the package are nested under it, so ``get_logger("demo")``
    yields ``qpconduit.demo``.

    Args:
        name: Usually ``__name__``. ``None`` gives the package logger.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.debug("refactorizing for rho=%g", 1e-6)
    """
    if name is None:
        name = "qpconduit"
    if name == "qpconduit" or name.startswith("qpconduit."):
        logger_name = name
    else:
        logger_name = f"qpconduit.{name}"

    if logger_name in _loggers:
        return _loggers[logger_name]

    logger = logging.getLogger(logger_name)
    if not logger.handlers:
        logger.setLevel(_DEFAULT_LEVEL)
        logger.addHandler(_make_handler(_DEFAULT_LEVEL))
        logger.propagate = False

    _loggers[logger_name] = logger
    return logger


def set_log_level(level: int | str) -> None:
    """Change the threshold of solver logging; ``"INFO"`` shows iteration traces."""
    global _DEFAULT_LEVEL
    level = _coerce_level(level)
    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
    _DEFAULT_LEVEL = level


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[object] = None,
) -> None:
    """Route all solver logging to one stream with one format.

    Existing loggers get a fresh handler. Loggers created afterwards use the
    same level, format and stream.

    Args:
        level: Threshold, as a ``logging`` constant or its name.
        format_string: ``logging.Formatter`` format; the package default when
            omitted.
        stream: Target stream; ``sys.stderr`` when omitted.
    """
    global _DEFAULT_LEVEL, _format, _stream
    _DEFAULT_LEVEL = _coerce_level(level)
    _format = format_string or _DEFAULT_FORMAT
    _stream = stream
    for logger in _loggers.values():
        logger.setLevel(_DEFAULT_LEVEL)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.addHandler(_make_handler(_DEFAULT_LEVEL))


def format_iteration(
    iteration: int,
    pri_res: float,
    dua_res: float,
    rho: float,
    mu_eq: float,
    mu_in: float,
) -> str:
    """Trace line for one iteration: residuals, then proximal parameters."""
    return (
        f"iter {iteration:5d} | pri_res {pri_res:.3e} | dua_res {dua_res:.3e} | "
        f"rho {rho:.1e} | mu_eq {mu_eq:.1e} | mu_in {mu_in:.1e}"
    )


__all__ = ["get_logger", "set_log_level", "configure_logging", "format_iteration"]

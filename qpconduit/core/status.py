"""
Status enumerations shared by the dense and sparse solvers.

``QPStatus`` is the terminal state written to ``Results.info.status`` after a
solve; it is a value, never an exception. ``InitialGuess`` selects how the
iterates are seeded when ``solve`` is called.
"""

from __future__ import annotations

from enum import Enum


class QPStatus(Enum):
    """Solver exit status."""

    SOLVED = "solved"
    MAX_ITER_REACHED = "max_iter_reached"
    PRIMAL_INFEASIBLE = "primal_infeasible"
    DUAL_INFEASIBLE = "dual_infeasible"
    NOT_RUN = "not_run"


class InitialGuess(Enum):
    """Policy used to build the starting iterate of a solve."""

    NO_INITIAL_GUESS = "no_initial_guess"
    EQUALITY_CONSTRAINED_INITIAL_GUESS = "equality_constrained_initial_guess"
    WARM_START_WITH_PREVIOUS_RESULT = "warm_start_with_previous_result"
    WARM_START = "warm_start"
    COLD_START_WITH_PREVIOUS_RESULT = "cold_start_with_previous_result"


__all__ = ["QPStatus", "InitialGuess"]

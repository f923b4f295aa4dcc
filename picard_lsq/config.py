"""
Solver Configuration

Numeric constants shared by the auto-regularized solvers. They are
collected in an immutable ``SolverConfig`` so that every entry point can
receive them explicitly instead of reading module globals.
"""

from typing import NamedTuple


class SolverConfig(NamedTuple):
    """
    Constants driving rank detection, lambda calibration and constraint handling.

    Parameters
    ----------
    assumed_err : float
        Relative accuracy assumed for the input data (default: 1e-9).
        Rows of a projected system smaller than this times the largest
        row norm are neglected.
    rank_eps : float
        Relative floor for the numerical rank (default: 1e-14). A singular
        value below ``S[0] * max(m, n) * rank_eps`` is treated as zero.
    explosion_factor : float
        Jump over the smoothed minimum of the Picard vector that stops
        the first-stage rank search (default: 25).
    small_decay_up : float
        Tracker decay when the Picard vector rises above the minimum tracker.
    small_decay_down : float
        Tracker decay when the Picard vector falls below the minimum tracker.
    local_decay : float
        Decay of the local (symmetric) tracker.
    lambda_ceiling : float
        Upper bracket for lambda as a fraction of ``S[0]`` (default: 0.33).
    max_bisections : int
        Iteration budget of the lambda bisection (default: 50).
    bisection_rtol : float
        Relative residual match that ends the bisection early.
    """

    assumed_err: float = 1.0e-9
    rank_eps: float = 1.0e-14
    explosion_factor: float = 25.0
    small_decay_up: float = 0.10
    small_decay_down: float = 0.40
    local_decay: float = 0.40
    lambda_ceiling: float = 0.33
    max_bisections: int = 50
    bisection_rtol: float = 1.0e-9


DEFAULT_CONFIG = SolverConfig()

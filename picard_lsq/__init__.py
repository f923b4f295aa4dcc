"""
picard-lsq: Automatically Regularized Least Squares

Solves linear systems Ax = b of any shape, detecting ill-conditioning from
the Discrete Picard Condition and applying Tikhonov regularization only
when the data call for it. Optional constraints: non-negativity, exact
equalities, inequalities and solution shape.

Main components:
- solve_auto: unconstrained auto-regularized solver
- solve_nonnegative, solve_with_equality, solve_with_inequality,
  solve_general, solve_shape: constrained variants
- AutoRegularizedSolver: reusable factorization for many right-hand sides
- SolverConfig: numeric constants
"""

__version__ = "0.1.0"

from .config import SolverConfig, DEFAULT_CONFIG
from .core import (
    ArlsResult,
    SVDResult,
    DimensionError,
    FactorizationError,
    factorize_svd,
    solve_auto,
    solve_auto_from_svd,
)
from .constrained import (
    solve_nonnegative,
    solve_with_equality,
    solve_with_inequality,
    solve_general,
    solve_shape,
)
from .model import AutoRegularizedSolver
from . import core
from . import constrained
from . import utils

__all__ = [
    'SolverConfig',
    'DEFAULT_CONFIG',
    'ArlsResult',
    'SVDResult',
    'DimensionError',
    'FactorizationError',
    'factorize_svd',
    'solve_auto',
    'solve_auto_from_svd',
    'solve_nonnegative',
    'solve_with_equality',
    'solve_with_inequality',
    'solve_general',
    'solve_shape',
    'AutoRegularizedSolver',
    'core',
    'constrained',
    'utils',
]

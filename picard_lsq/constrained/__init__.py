"""
Constrained solvers for picard-lsq

- nonneg: x >= 0 by column deletion
- equality: Ex == f exactly, by orthogonal projection
- inequality: Gx >= h by an active-set loop, plus shape constraints
"""

from .nonneg import solve_nonnegative
from .equality import (
    orthogonalize_constraints,
    project_out,
    solve_with_equality,
)
from .inequality import (
    most_violated,
    solve_with_inequality,
    solve_general,
    solve_shape,
)

__all__ = [
    'solve_nonnegative',
    'orthogonalize_constraints',
    'project_out',
    'solve_with_equality',
    'most_violated',
    'solve_with_inequality',
    'solve_general',
    'solve_shape',
]

"""
Core components for picard-lsq

- linalg: tensor coercion, shape checks and the SVD capability
- rank: usable-rank detection from the Picard vector
- solver: Tikhonov kernel, lambda calibration and the auto-regularized solver
"""

from .linalg import (
    DimensionError,
    FactorizationError,
    SVDResult,
    as_matrix,
    as_vector,
    check_system,
    factorize_svd,
    is_zero,
    rms,
)
from .rank import (
    decide_width,
    decide_multiple,
    moving_sums,
    split_a,
    split_b,
    usable_rank,
    picard_vector,
)
from .solver import (
    ArlsResult,
    solve_with_lambda,
    calibrate_lambda,
    solve_auto,
    solve_auto_from_svd,
)

__all__ = [
    'DimensionError',
    'FactorizationError',
    'SVDResult',
    'as_matrix',
    'as_vector',
    'check_system',
    'factorize_svd',
    'is_zero',
    'rms',
    'decide_width',
    'decide_multiple',
    'moving_sums',
    'split_a',
    'split_b',
    'usable_rank',
    'picard_vector',
    'ArlsResult',
    'solve_with_lambda',
    'calibrate_lambda',
    'solve_auto',
    'solve_auto_from_svd',
]

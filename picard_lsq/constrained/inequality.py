"""
Inequality-Constrained Auto-Regularized Solver

Solves the triple system

    Ax =  b  (least squares)
    Ex == f  (exact)
    Gx >= h  (inequalities)

with an active-set loop around solve_with_equality: the most violated row
of Gx >= h is moved into the equality set and the problem is re-solved,
until no inequality is violated. A "less than" row is expressed by negating
both sides.
"""

import torch
from typing import Optional

from ..config import SolverConfig, DEFAULT_CONFIG
from ..core.linalg import (
    ArrayLike,
    DimensionError,
    check_system,
    factorize_svd,
    is_zero,
)
from ..core.solver import ArlsResult, Factorizer, solve_auto
from .equality import solve_with_equality


def most_violated(G: torch.Tensor, h: torch.Tensor, x: torch.Tensor) -> Optional[int]:
    """
    Row of Gx >= h with the largest violation h[i] - (Gx)[i] > 0.

    Returns None when no row is violated (or G has no rows). Ties go to
    the first row.
    """
    if G.shape[0] < 1:
        return None

    deficit = h - G @ x
    p = int(torch.argmax(deficit).item())
    if deficit[p].item() <= 0:
        return None
    return p


def solve_with_inequality(A: ArrayLike,
                          b: ArrayLike,
                          E: Optional[ArrayLike],
                          f: Optional[ArrayLike],
                          G: ArrayLike,
                          h: ArrayLike,
                          config: SolverConfig = DEFAULT_CONFIG,
                          factorize: Factorizer = factorize_svd,
                          verbose: bool = False) -> ArlsResult:
    """
    Solve Ax = b subject to Ex == f and Gx >= h.

    Each of the three systems may be under-, exactly or over-determined,
    though E should usually have few rows compared to A.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix
    b : array_like, shape (m,)
        Right-hand side
    E : array_like, shape (me, n), or None
        Equality constraint matrix
    f : array_like, shape (me,), or None
        Equality constraint right-hand side
    G : array_like, shape (mg, n)
        Inequality constraint matrix
    h : array_like, shape (mg,)
        Inequality lower bounds
    config : SolverConfig, optional
        Numeric constants
    factorize : callable, optional
        SVD capability
    verbose : bool, optional
        Print solver diagnostics (default: False)

    Returns
    -------
    result : ArlsResult
        x, plus the diagnostics of the final equality-constrained solve

    Raises
    ------
    DimensionError
        If the six arrays do not have consistent shapes.

    Notes
    -----
    Every iteration moves one row of G into the equality set, so the loop
    runs at most mg times; that count is also its explicit iteration cap.

    Examples
    --------
    For A = [[1, 1, 1], [0, 1, 1], [1, 0, 1]], b = [5.9, 5.0, 3.9] the
    least-squares solution is [0.9, 2, 3]. Requiring every x[i] >= 1
    (G = I, h = [1, 1, 1]) gives [1.0, 2.05, 2.9].
    """
    A, b = check_system(A, b)
    n = A.shape[1]

    if E is None:
        E = torch.zeros((0, n), dtype=A.dtype, device=A.device)
        f = torch.zeros(0, dtype=A.dtype, device=A.device)
    E, f = check_system(E, f, names=('E', 'f'))
    G, h = check_system(G, h, names=('G', 'h'))
    if E.shape[1] != n or G.shape[1] != n:
        raise DimensionError(
            f"A, E and G must have the same column count, got {n}, {E.shape[1]} and {G.shape[1]}"
        )
    E, f = E.to(A.device), f.to(A.device)
    G, h = G.to(A.device), h.to(A.device)

    # get initial solution... it might actually be ok
    result = solve_with_equality(A, b, E, f, config=config, factorize=factorize)
    if is_zero(G):
        return result

    # rows of Gx >= h still treated as inequalities, and those promoted
    remaining = list(range(G.shape[0]))
    promoted = []

    for _ in range(G.shape[0]):
        p = most_violated(G[remaining], h[remaining], result.x)
        if p is None:
            break

        # move the row into the equality set and re-solve
        promoted.append(remaining.pop(p))
        EE = torch.cat([E, G[promoted]], dim=0)
        ff = torch.cat([f, h[promoted]], dim=0)
        result = solve_with_equality(A, b, EE, ff, config=config, factorize=factorize)

    if verbose:
        print(f"Inequality-constrained solve:")
        print(f"  System size: {A.shape[0]} rows × {n} columns")
        print(f"  Equality constraints: {E.shape[0]}, inequality constraints: {G.shape[0]}")
        print(f"  Inequalities made active: {promoted}")
        print(f"  Numerical rank: {result.nr}, usable rank: {result.ur}")
        print(f"  Estimated sigma: {result.sigma:.4e}, lambda: {result.lam:.4e}")

    return result


def solve_general(A: ArrayLike,
                  b: ArrayLike,
                  G: ArrayLike,
                  h: ArrayLike,
                  config: SolverConfig = DEFAULT_CONFIG,
                  factorize: Factorizer = factorize_svd,
                  verbose: bool = False) -> ArlsResult:
    """Solve Ax = b subject to Gx >= h (solve_with_inequality without Ex == f)."""
    return solve_with_inequality(A, b, None, None, G, h,
                                 config=config, factorize=factorize, verbose=verbose)


def solve_shape(A: ArrayLike,
                b: ArrayLike,
                nonneg: bool = False,
                slope: int = 0,
                curve: int = 0,
                config: SolverConfig = DEFAULT_CONFIG,
                factorize: Factorizer = factorize_svd,
                verbose: bool = False) -> ArlsResult:
    """
    Solve Ax = b with constraints on the shape of the solution.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix
    b : array_like, shape (m,)
        Right-hand side
    nonneg : bool, optional
        Require x >= 0
    slope : int, optional
        1 for a non-decreasing solution, -1 for non-increasing, 0 for none
    curve : int, optional
        1 for concave up (like y = x^2), -1 for concave down, 0 for none
    config : SolverConfig, optional
        Numeric constants
    factorize : callable, optional
        SVD capability
    verbose : bool, optional
        Print solver diagnostics (default: False)

    Returns
    -------
    result : ArlsResult
        Solution and diagnostics from solve_general

    Raises
    ------
    ValueError
        If slope or curve is not -1, 0 or 1.

    Notes
    -----
    Start with a single constraint and add more only if needed: a highly
    ill-conditioned and highly constrained system may not meet every
    requirement accurately. For non-negativity alone, solve_nonnegative is
    faster and more robust.
    """
    if slope not in (-1, 0, 1) or curve not in (-1, 0, 1):
        raise ValueError(f"Invalid shape request: slope={slope}, curve={curve}")

    A, b = check_system(A, b)
    n = A.shape[1]
    if is_zero(A) or is_zero(b):
        return ArlsResult(torch.zeros(n, dtype=A.dtype, device=A.device), 0, 0, 0.0, 0.0)

    rows = []
    if nonneg:
        rows.append(torch.eye(n, dtype=A.dtype))
    if slope != 0 and n > 1:
        D1 = torch.zeros((n - 1, n), dtype=A.dtype)
        idx = torch.arange(n - 1)
        D1[idx, idx] = -1.0
        D1[idx, idx + 1] = 1.0
        rows.append(slope * D1)
    if curve != 0 and n > 2:
        D2 = torch.zeros((n - 2, n), dtype=A.dtype)
        idx = torch.arange(n - 2)
        D2[idx, idx] = 1.0
        D2[idx, idx + 1] = -2.0
        D2[idx, idx + 2] = 1.0
        rows.append(curve * D2)

    if not rows:
        return solve_auto(A, b, config=config, factorize=factorize, verbose=verbose)

    G = torch.cat(rows, dim=0).to(A.device)
    h = torch.zeros(G.shape[0], dtype=A.dtype, device=A.device)
    x, nr, ur, sigma, lam = solve_general(A, b, G, h, config=config, factorize=factorize, verbose=verbose)

    # assure nonnegativity regardless
    if nonneg:
        x = x.clamp(min=0.0)

    return ArlsResult(x, nr, ur, sigma, lam)

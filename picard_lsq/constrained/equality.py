"""
Equality-Constrained Auto-Regularized Solver

Solves the pair of systems

    Ax = b   (least squares)
    Ex == f  (exact)

The constraint rows are orthonormalized (inconsistent or redundant ones are
discarded on the way), every row of Ax = b has its projection onto the
constraint rows removed, and the two independent pieces are added:

    x = xt + xe,   xe = E'^T f',   xt = solve_auto(A', b')

Because the rows of A' are orthogonal to the rows of E', xt does not
disturb E'x = f'.
"""

import torch
from typing import Optional, Tuple

from ..config import SolverConfig, DEFAULT_CONFIG
from ..core.linalg import (
    ArrayLike,
    DimensionError,
    check_system,
    exchange_rows,
    factorize_svd,
    find_max_row_norm,
    find_max_sense,
    is_zero,
    row_norms,
    scale_row,
)
from ..core.rank import split_a, split_b
from ..core.solver import ArlsResult, Factorizer, solve_auto


def orthogonalize_constraints(E: ArrayLike,
                              f: ArrayLike,
                              config: SolverConfig = DEFAULT_CONFIG) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Orthonormalize and order the rows of Ex = f.

    The best-determined equation (largest |f[i]| / ||E[i]||) goes first,
    then the remaining rows are taken by largest remaining norm. Each
    chosen row is normalized (or zeroed when nothing independent is left
    of it) and its projection is subtracted from the rows after it.
    With more than two rows, the usable-rank detector is run on |f'| and
    the rows past the usable rank are discarded: this is how inconsistent
    or redundant constraints are dropped.

    Parameters
    ----------
    E : array_like, shape (me, n)
        Constraint matrix
    f : array_like, shape (me,)
        Constraint right-hand side
    config : SolverConfig, optional
        Numeric constants

    Returns
    -------
    E_orth : torch.Tensor, shape (k, n)
        Orthonormal (or zero) rows, k <= me
    f_orth : torch.Tensor, shape (k,)
        Matching right-hand side
    """
    E, f = check_system(E, f, names=('E', 'f'))
    if is_zero(E):
        return E, f

    m, n = E.shape
    tiny = row_norms(E).max().item() * max(m, n) * config.rank_eps

    for i in range(m):
        # determine new best row and put it next
        if i == 0:
            imax = find_max_sense(E, f)
        else:
            imax = find_max_row_norm(E, i)
        exchange_rows(E, i, imax)
        f[[i, imax]] = f[[imax, i]]

        # normalize
        rin = torch.linalg.norm(E[i]).item()
        if rin > tiny:
            scale = 1.0 / rin
            scale_row(E, i, scale)
            f[i] *= scale
        else:
            E[i] = 0.0
            f[i] = 0.0

        # subtract projections onto E[i]
        if i + 1 < m:
            d = E[i + 1:] @ E[i]
            E[i + 1:] -= torch.outer(d, E[i])
            f[i + 1:] -= d * f[i]

    # reject ill-conditioned rows
    if m > 2:
        g = torch.abs(f)
        m1 = split_a(g, m, config)
        mm = split_b(g, m1)
        if mm < m:
            E = E[:mm]
            f = f[:mm]

    return E, f


def project_out(A: ArrayLike,
                b: ArrayLike,
                E: ArrayLike,
                f: ArrayLike,
                neglect: float) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Subtract from Ax = b its projection onto the rows of Ex = f.

    E should normally come from orthogonalize_constraints. Rows of A whose
    remainder has norm below ``neglect`` carry no information beyond the
    constraints and are dropped; the others are normalized.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix
    b : array_like, shape (m,)
        Right-hand side
    E : array_like, shape (me, n)
        Constraint rows, same column count as A
    f : array_like, shape (me,)
        Constraint right-hand side
    neglect : float
        Row-norm threshold below which a projected row is dropped

    Returns
    -------
    A_proj : torch.Tensor, shape (k, n)
        Surviving rows, each orthogonal to every row of E
    b_proj : torch.Tensor, shape (k,)
        Matching right-hand side
    """
    A, b = check_system(A, b)
    E, f = check_system(E, f, names=('E', 'f'))
    if A.shape[1] != E.shape[1]:
        raise DimensionError(
            f"A has {A.shape[1]} columns but E has {E.shape[1]}"
        )
    E = E.to(A.device)
    f = f.to(A.device)

    keep = []
    for i in range(A.shape[0]):
        for j in range(E.shape[0]):
            d = torch.dot(A[i], E[j])
            A[i] -= d * E[j]
            b[i] -= d * f[j]

        nm = torch.linalg.norm(A[i]).item()
        if nm == 0.0 or nm < neglect:
            continue
        scale_row(A, i, 1.0 / nm)
        b[i] /= nm
        keep.append(i)

    keep = torch.tensor(keep, dtype=torch.long, device=A.device)
    return A[keep], b[keep]


def solve_with_equality(A: ArrayLike,
                        b: ArrayLike,
                        E: Optional[ArrayLike],
                        f: Optional[ArrayLike],
                        config: SolverConfig = DEFAULT_CONFIG,
                        factorize: Factorizer = factorize_svd,
                        verbose: bool = False) -> ArlsResult:
    """
    Solve Ax = b in the least-squares sense subject to Ex == f exactly.

    Equations of Ex = f that cannot be satisfied together, or that repeat
    others, are discarded until the remaining ones can be met exactly
    within round-off.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix
    b : array_like, shape (m,)
        Right-hand side
    E : array_like, shape (me, n), or None
        Equality constraint matrix; None or all zero means unconstrained
    f : array_like, shape (me,), or None
        Equality constraint right-hand side
    config : SolverConfig, optional
        Numeric constants
    factorize : callable, optional
        SVD capability
    verbose : bool, optional
        Print solver diagnostics (default: False)

    Returns
    -------
    result : ArlsResult
        x, plus nr, ur, sigma and lam of the projected problem A'x = b'

    Raises
    ------
    DimensionError
        If A, b, E and f do not have consistent shapes.

    Examples
    --------
    With A = [[1, 2], [2, 3]], b = [5.3, 7.8] and the exact constraint
    x + y = 3 (E = [[1, 1]], f = [3]), plain least squares gives
    [-0.3, 2.8]; solve_with_equality gives [0.95, 2.05], the best fit on
    the line x + y = 3.
    """
    A, b = check_system(A, b)
    m, n = A.shape

    if E is None:
        E = torch.zeros((0, n), dtype=A.dtype, device=A.device)
        f = torch.zeros(0, dtype=A.dtype, device=A.device)
    E, f = check_system(E, f, names=('E', 'f'))
    if E.shape[1] != n:
        raise DimensionError(f"A has {n} columns but E has {E.shape[1]}")

    if is_zero(E):
        return solve_auto(A, b, config=config, factorize=factorize, verbose=verbose)

    neglect = row_norms(A).max().item() * config.assumed_err if m > 0 else 0.0

    EE, ff = orthogonalize_constraints(E, f, config)
    AA, bb = project_out(A, b, EE, ff, neglect)

    EE = EE.to(A.device)
    ff = ff.to(A.device)
    xe = EE.T @ ff
    xt, nr, ur, sigma, lam = solve_auto(AA, bb, config=config, factorize=factorize)

    if verbose:
        print(f"Equality-constrained solve:")
        print(f"  System size: {m} rows × {n} columns, {E.shape[0]} constraints")
        print(f"  Constraints kept: {EE.shape[0]}")
        print(f"  Projected rows kept: {AA.shape[0]}")
        print(f"  Numerical rank: {nr}, usable rank: {ur}")
        print(f"  Estimated sigma: {sigma:.4e}, lambda: {lam:.4e}")

    return ArlsResult(xt + xe, nr, ur, sigma, lam)

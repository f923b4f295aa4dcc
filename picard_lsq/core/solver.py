"""
Auto-Regularized Least Squares

Solves Ax = b for any shape of A (under-, exactly or over-determined)
without error estimates, iteration limits or condition thresholds.

With A = U diag(S) V^T the solver:

1. computes the Picard vector g = |U^T b / S| and the numerical rank nr
2. finds the usable rank ur (see rank.py)
3. if ur < nr, estimates the noise level sigma from the discarded
   coefficients (U^T b)[ur:nr] and bisects for the Tikhonov lambda whose
   residual RMS matches sigma
4. returns the filtered solution x = V diag(p) U^T b with
   p[i] = 1 / (S[i] + lambda^2 / S[i]) for i < ur

Example
-------
The nearly singular system

    x +      y = 2
    x + 1.01 y = 3

has the least-squares solution [-98, 100]. Its Picard vector explodes at
the second direction, so solve_auto returns the regularized
[1.122, 1.128] instead.
"""

import torch
from typing import Callable, NamedTuple, Tuple

from ..config import SolverConfig, DEFAULT_CONFIG
from .linalg import (
    ArrayLike,
    DimensionError,
    SVDResult,
    as_vector,
    check_system,
    factorize_svd,
    is_zero,
    rms,
    zeros_like_solution,
)
from .rank import picard_vector, usable_rank


Factorizer = Callable[[torch.Tensor], SVDResult]


class ArlsResult(NamedTuple):
    """
    Solution and diagnostics of an auto-regularized solve.

    Attributes
    ----------
    x : torch.Tensor, shape (n,)
        The solution
    nr : int
        Numerical rank of A (an attribute of the matrix)
    ur : int
        Usable rank of the problem Ax = b (an attribute of the problem)
    sigma : float
        Estimated RMS error of b (0 when no regularization was needed)
    lam : float
        Tikhonov regularization parameter (0 when none was needed)
    """
    x: torch.Tensor
    nr: int
    ur: int
    sigma: float
    lam: float


def solve_with_lambda(b: torch.Tensor,
                      U: torch.Tensor,
                      S: torch.Tensor,
                      V: torch.Tensor,
                      ur: int,
                      lam: float) -> Tuple[torch.Tensor, float]:
    """
    Tikhonov-filtered solution truncated at the usable rank.

    Parameters
    ----------
    b : torch.Tensor, shape (m,)
        Right-hand side
    U, S, V : torch.Tensor
        Thin SVD of A
    ur : int
        Usable rank; directions ur and beyond are dropped regardless of lam
    lam : float
        Tikhonov parameter, lam >= 0

    Returns
    -------
    x : torch.Tensor, shape (n,)
        V @ diag(p) @ U^T @ b with p[i] = 1 / (S[i] + lam^2 / S[i])
    residual_rms : float
        ||b - U diag(S) V^T x|| / sqrt(m)
    """
    keep = (torch.arange(S.shape[0], device=S.device) < ur) & (S > 0)
    safe_S = torch.where(keep, S, torch.ones_like(S))
    p = torch.where(keep, 1.0 / (safe_S + lam * lam / safe_S), torch.zeros_like(S))

    x = V @ (p * (U.T @ b))

    Ax = U @ (S * (V.T @ x))
    residual_rms = rms(b - Ax)

    return x, residual_rms


def calibrate_lambda(b: torch.Tensor,
                     U: torch.Tensor,
                     S: torch.Tensor,
                     V: torch.Tensor,
                     ur: int,
                     target_sigma: float,
                     config: SolverConfig = DEFAULT_CONFIG) -> float:
    """
    Bisect for the lambda whose residual RMS equals target_sigma.

    The bracket is [0, lambda_ceiling * S[0]]. The residual is assumed
    non-decreasing in lambda. The search stops when the residual matches
    within ``bisection_rtol * target_sigma`` or after ``max_bisections``
    steps, returning the last midpoint either way.
    """
    lo = 0.0
    hi = config.lambda_ceiling * S[0].item()
    lam = 0.0

    # bisect until we get the residual we want...but quit eventually
    for _ in range(config.max_bisections):
        lam = 0.5 * (lo + hi)
        _, check = solve_with_lambda(b, U, S, V, ur, lam)
        if abs(check - target_sigma) < config.bisection_rtol * target_sigma:
            break
        if check > target_sigma:
            hi = lam
        else:
            lo = lam

    return lam


def solve_auto_from_svd(svd: SVDResult,
                        b: ArrayLike,
                        config: SolverConfig = DEFAULT_CONFIG,
                        verbose: bool = False) -> ArlsResult:
    """
    Auto-regularized solve of Ax = b from a precomputed SVD of A.

    Factoring A is the dominant cost of solve_auto. Computing
    ``factorize_svd(A)`` once and calling this routine for each
    right-hand side avoids repeating it.

    Parameters
    ----------
    svd : SVDResult
        (U, S, V) with A = U @ diag(S) @ V.T
    b : array_like, shape (m,)
        Right-hand side; m must equal the row count of U
    config : SolverConfig, optional
        Numeric constants
    verbose : bool, optional
        Print solver diagnostics (default: False)

    Returns
    -------
    result : ArlsResult
        (x, nr, ur, sigma, lam)

    Raises
    ------
    DimensionError
        If b does not match the row count of U.
    """
    U, S, V = svd
    b = as_vector(b).to(U.device)
    m, n = U.shape[0], V.shape[0]
    if b.shape[0] != m:
        raise DimensionError(f"U has {m} rows but b has {b.shape[0]} entries")

    if is_zero(b):
        return ArlsResult(zeros_like_solution(n, U), 0, 0, 0.0, 0.0)

    # compute sensitivity vector
    Utb = U.T @ b
    g, nr = picard_vector(Utb, S, (m, n), config)
    if nr < 1:
        return ArlsResult(zeros_like_solution(n, U), 0, 0, 0.0, 0.0)

    ur = usable_rank(g, config)

    if ur >= nr:
        sigma, lam = 0.0, 0.0
        x, residual = solve_with_lambda(b, U, S, V, ur, 0.0)
    else:
        sigma = rms(Utb[ur:nr])
        lam = calibrate_lambda(b, U, S, V, ur, sigma, config)
        x, residual = solve_with_lambda(b, U, S, V, ur, lam)

    if verbose:
        print(f"Auto-regularized solve:")
        print(f"  System size: {m} rows × {n} columns")
        print(f"  Numerical rank: {nr}, usable rank: {ur}")
        print(f"  Estimated sigma: {sigma:.4e}")
        print(f"  Lambda: {lam:.4e}")
        print(f"  Residual RMS: {residual:.4e}")

    return ArlsResult(x, nr, ur, sigma, lam)


def solve_auto(A: ArrayLike,
               b: ArrayLike,
               config: SolverConfig = DEFAULT_CONFIG,
               factorize: Factorizer = factorize_svd,
               verbose: bool = False) -> ArlsResult:
    """
    Solve Ax = b, regularizing automatically when it is ill-conditioned.

    - Consistent equations are solved exactly within round-off.
    - Inconsistent equations are solved in the least-squares sense.
    - Inconsistent equations that violate the Discrete Picard Condition are
      regularized; the residual is then usually larger than the
      least-squares residual.
    - If A or b is entirely zero, x is zero and all diagnostics are 0.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix, any shape
    b : array_like, shape (m,)
        Right-hand side
    config : SolverConfig, optional
        Numeric constants
    factorize : callable, optional
        SVD capability, ``factorize(A) -> SVDResult`` (default: torch SVD)
    verbose : bool, optional
        Print solver diagnostics (default: False)

    Returns
    -------
    result : ArlsResult
        (x, nr, ur, sigma, lam)

    Raises
    ------
    DimensionError
        If A and b do not have the same number of rows.
    FactorizationError
        If the SVD of A fails.

    Notes
    -----
    The method works best when the rows of A are scaled so that the
    entries of b have similar expected errors. It favours robustness over
    accuracy and tends to produce slightly over-smooth solutions.

    Examples
    --------
    >>> A = [[1.0, 1.0], [1.0, 1.01]]
    >>> result = solve_auto(A, [2.0, 3.0])
    >>> result.x  # approximately tensor([1.1222, 1.1278])
    """
    A, b = check_system(A, b)
    n = A.shape[1]

    if is_zero(A) or is_zero(b):
        return ArlsResult(zeros_like_solution(n, A), 0, 0, 0.0, 0.0)

    svd = factorize(A)
    return solve_auto_from_svd(svd, b, config=config, verbose=verbose)

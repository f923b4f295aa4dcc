"""
Non-Negative Auto-Regularized Solver

Solves Ax = b with x >= 0 by removing variables rather than zeroing them:
the most negative component's column is deleted, the reduced matrix is
re-factored, and the system is re-solved with the lambda calibrated on the
full problem. Removing columns keeps every SVD well posed and favours
changing as few variables as possible over the smallest residual.
"""

import torch

from ..config import SolverConfig, DEFAULT_CONFIG
from ..core.linalg import ArrayLike, check_system, factorize_svd
from ..core.solver import ArlsResult, Factorizer, solve_auto, solve_with_lambda


def solve_nonnegative(A: ArrayLike,
                      b: ArrayLike,
                      config: SolverConfig = DEFAULT_CONFIG,
                      factorize: Factorizer = factorize_svd,
                      verbose: bool = False) -> ArlsResult:
    """
    Solve Ax = b in the least-squares sense subject to x >= 0.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix
    b : array_like, shape (m,)
        Right-hand side
    config : SolverConfig, optional
        Numeric constants
    factorize : callable, optional
        SVD capability used for the initial and every reduced solve
    verbose : bool, optional
        Print solver diagnostics (default: False)

    Returns
    -------
    result : ArlsResult
        (x, nr, ur, sigma, lam) where nr, ur, sigma and lam describe the
        unconstrained problem and every entry of x is >= 0

    Examples
    --------
    For

        A = [[2, 2, 1],     b = [3.9,
             [2, 1, 0],          3.0,
             [1, 1, 0]]          2.0]

    any least-squares solver gives [1, 1, -0.1]; solve_nonnegative gives
    [1.04, 0.92, 0.0].
    """
    A, b = check_system(A, b)
    n = A.shape[1]

    # get initial solution and Tikhonov parameter
    x, nr, ur, sigma, lam = solve_auto(A, b, config=config, factorize=factorize)
    if n == 0 or x.min().item() >= 0:
        return ArlsResult(x, nr, ur, sigma, lam)

    # active[j] is the original column of reduced column j
    active = list(range(n))
    xt = x
    removed = []

    while True:
        # choose a column to remove
        p = int(torch.argmin(xt).item())
        if xt[p].item() >= 0:
            break

        removed.append(active.pop(p))
        U, S, V = factorize(A[:, active])
        xt, _ = solve_with_lambda(b, U, S, V, S.shape[0], lam)

        if len(active) < 2:
            break

    # degenerate case: a single remaining column
    xt = xt.clamp(min=0.0)

    # rebuild full solution vector
    x = torch.zeros(n, dtype=A.dtype, device=A.device)
    x[active] = xt

    if verbose:
        print(f"Non-negative solve:")
        print(f"  System size: {A.shape[0]} rows × {n} columns")
        print(f"  Columns removed: {removed}")
        print(f"  Lambda (from unconstrained solve): {lam:.4e}")

    return ArlsResult(x, nr, ur, sigma, lam)

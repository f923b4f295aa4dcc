"""
Utility Functions for picard-lsq

Helpers for checking solutions, inspecting the Picard condition of a
problem, and building standard test matrices.
"""

import torch
import numpy as np
import xarray as xr
from typing import Tuple

from .config import SolverConfig, DEFAULT_CONFIG
from .core.linalg import ArrayLike, SVDResult, as_vector, check_system, factorize_svd
from .core.rank import picard_vector
from .core.solver import solve_auto_from_svd


def compute_residual(A: ArrayLike,
                     x: ArrayLike,
                     b: ArrayLike) -> Tuple[float, float]:
    """
    Compute solution residual ||Ax - b||.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix
    x : array_like, shape (n,)
        Solution
    b : array_like, shape (m,)
        Right-hand side

    Returns
    -------
    residual : float
        Absolute residual ||Ax - b||
    rel_residual : float
        Relative residual ||Ax - b|| / ||b|| (0 when b is zero)
    """
    A, b = check_system(A, b)
    x = as_vector(x, 'x').to(A.device)

    residual = torch.linalg.norm(A @ x - b).item()
    b_norm = torch.linalg.norm(b).item()
    rel_residual = residual / b_norm if b_norm > 0 else 0.0

    return residual, rel_residual


def compute_relative_error(pred: ArrayLike,
                           target: ArrayLike,
                           eps: float = 1e-10) -> float:
    """
    Compute relative L2 error ||pred - target|| / ||target||.

    Parameters
    ----------
    pred : array_like
        Computed values
    target : array_like
        Reference values
    eps : float, optional
        Small value to avoid division by zero

    Returns
    -------
    error : float
        Relative L2 error
    """
    pred = as_vector(pred, 'pred')
    target = as_vector(target, 'target').to(pred.device)

    numerator = torch.linalg.norm(pred - target)
    denominator = torch.linalg.norm(target) + eps

    return (numerator / denominator).item()


def condition_number(A: ArrayLike) -> float:
    """
    Condition number S[0] / S[-1] of A, inf when A is singular.

    Examples
    --------
    >>> condition_number(hilbert(6, 6))  # about 1.5e7
    """
    A, _ = check_system(A, np.zeros(np.shape(A)[0]))
    S = torch.linalg.svdvals(A)
    if S.numel() == 0 or S[-1].item() == 0:
        return float('inf')
    return (S[0] / S[-1]).item()


def picard_diagnostics(svd: SVDResult,
                       b: ArrayLike,
                       config: SolverConfig = DEFAULT_CONFIG) -> xr.Dataset:
    """
    Picard condition diagnostics of Ax = b as an xarray Dataset.

    Parameters
    ----------
    svd : SVDResult
        Thin SVD of A
    b : array_like, shape (m,)
        Right-hand side
    config : SolverConfig, optional
        Numeric constants

    Returns
    -------
    ds : xr.Dataset
        Variables over the ``direction`` dimension:
        - 'singular_value': S
        - 'utb': U^T b
        - 'picard': |U^T b / S|, NaN past the numerical rank
        Attributes: nr, ur, sigma, lam, n_rows, n_cols

    Examples
    --------
    >>> ds = picard_diagnostics(factorize_svd(A), b)
    >>> ds.picard.plot.line(yscale='log')
    """
    U, S, V = svd
    b = as_vector(b).to(U.device)
    m, n = U.shape[0], V.shape[0]

    Utb = U.T @ b
    g, nr = picard_vector(Utb, S, (m, n), config)
    result = solve_auto_from_svd(svd, b, config=config)

    picard = np.full(S.shape[0], np.nan)
    picard[:nr] = g.cpu().numpy()

    return xr.Dataset(
        data_vars={
            'singular_value': ('direction', S.cpu().numpy()),
            'utb': ('direction', Utb.cpu().numpy()),
            'picard': ('direction', picard),
        },
        coords={'direction': np.arange(S.shape[0])},
        attrs={
            'nr': result.nr,
            'ur': result.ur,
            'sigma': result.sigma,
            'lam': result.lam,
            'n_rows': m,
            'n_cols': n,
        },
    )


def diagnose_system(A: ArrayLike,
                    b: ArrayLike,
                    config: SolverConfig = DEFAULT_CONFIG) -> xr.Dataset:
    """Factor A and return picard_diagnostics for Ax = b."""
    A, b = check_system(A, b)
    return picard_diagnostics(factorize_svd(A), b, config=config)


def hilbert(m: int, n: int) -> torch.Tensor:
    """
    Hilbert matrix H[i, j] = 1 / (1 + i + j), shape (m, n).

    A classic severely ill-conditioned test matrix.
    """
    i = torch.arange(m, dtype=torch.float64).unsqueeze(1)
    j = torch.arange(n, dtype=torch.float64).unsqueeze(0)
    return 1.0 / (1.0 + i + j)

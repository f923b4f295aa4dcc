"""
Cached-SVD Solver

AutoRegularizedSolver factors a coefficient matrix once and then solves
Ax = b for any number of right-hand sides, each with its own usable rank
and Tikhonov lambda.
"""

import torch
import xarray as xr
from typing import List, Tuple

from .config import SolverConfig, DEFAULT_CONFIG
from .core.linalg import ArrayLike, DimensionError, as_matrix, as_vector, factorize_svd, is_zero
from .core.rank import picard_vector
from .core.solver import ArlsResult, Factorizer, solve_auto_from_svd
from .utils import picard_diagnostics


class AutoRegularizedSolver:
    """
    Auto-regularized least-squares solver with a reusable factorization.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix, any shape
    config : SolverConfig, optional
        Numeric constants
    factorize : callable, optional
        SVD capability, ``factorize(A) -> SVDResult`` (default: torch SVD)
    verbose : bool, optional
        Print solver diagnostics (default: False)

    Attributes
    ----------
    A : torch.Tensor
        Private float64 copy of the matrix
    svd : SVDResult or None
        Thin SVD of A; None when A is entirely zero

    Examples
    --------
    >>> solver = AutoRegularizedSolver(hilbert(7, 6))
    >>> x1 = solver.solve(b1).x
    >>> X, results = solver.solve_many(torch.stack([b1, b2], dim=1))
    """

    def __init__(self,
                 A: ArrayLike,
                 config: SolverConfig = DEFAULT_CONFIG,
                 factorize: Factorizer = factorize_svd,
                 verbose: bool = False):
        self.A = as_matrix(A)
        self.config = config
        self.verbose = verbose

        # A zero matrix solves to zero for every b, no SVD needed
        self.svd = None if is_zero(self.A) else factorize(self.A)

        if verbose:
            print(f"AutoRegularizedSolver: factored {self.shape[0]} × {self.shape[1]} matrix")
            print(f"  Numerical rank: {self.numerical_rank}")

    @property
    def shape(self) -> Tuple[int, int]:
        return tuple(self.A.shape)

    @property
    def singular_values(self) -> torch.Tensor:
        """Singular values of A, descending (empty when A is zero)."""
        if self.svd is None:
            return torch.zeros(0, dtype=torch.float64, device=self.A.device)
        return self.svd.S

    @property
    def numerical_rank(self) -> int:
        """Count of singular values above the relative rank floor."""
        S = self.singular_values
        _, nr = picard_vector(S.new_zeros(S.shape[0]), S, self.shape, self.config)
        return nr

    @property
    def condition_number(self) -> float:
        """S[0] / S[-1], inf when A is singular."""
        S = self.singular_values
        if S.numel() == 0 or S[-1].item() == 0:
            return float('inf')
        return (S[0] / S[-1]).item()

    def solve(self, b: ArrayLike) -> ArlsResult:
        """
        Solve Ax = b with the cached factorization.

        Parameters
        ----------
        b : array_like, shape (m,)
            Right-hand side

        Returns
        -------
        result : ArlsResult
            (x, nr, ur, sigma, lam), identical to solve_auto(A, b)
        """
        b = as_vector(b).to(self.A.device)
        if self.svd is None:
            if b.shape[0] != self.shape[0]:
                raise DimensionError(f"A has {self.shape[0]} rows but b has {b.shape[0]} entries")
            return ArlsResult(torch.zeros(self.shape[1], dtype=torch.float64, device=self.A.device),
                              0, 0, 0.0, 0.0)
        return solve_auto_from_svd(self.svd, b, config=self.config, verbose=self.verbose)

    def solve_many(self, B: ArrayLike) -> Tuple[torch.Tensor, List[ArlsResult]]:
        """
        Solve for every column of B.

        Parameters
        ----------
        B : array_like, shape (m, k)
            One right-hand side per column

        Returns
        -------
        X : torch.Tensor, shape (n, k)
            Solutions, column j solving A x = B[:, j]
        results : list of ArlsResult
            Per-column diagnostics
        """
        B = as_matrix(B, 'B')
        results = [self.solve(B[:, j]) for j in range(B.shape[1])]

        if results:
            X = torch.stack([r.x for r in results], dim=1)
        else:
            X = torch.zeros((self.shape[1], 0), dtype=torch.float64, device=self.A.device)

        return X, results

    def diagnose(self, b: ArrayLike) -> xr.Dataset:
        """
        Picard diagnostics for Ax = b (see utils.picard_diagnostics).

        Raises
        ------
        RuntimeError
            If A is entirely zero and has no factorization.
        """
        if self.svd is None:
            raise RuntimeError("A is zero; no singular directions to diagnose")
        return picard_diagnostics(self.svd, b, config=self.config)

    def __repr__(self) -> str:
        return (f"AutoRegularizedSolver(shape={self.shape}, "
                f"numerical_rank={self.numerical_rank})")

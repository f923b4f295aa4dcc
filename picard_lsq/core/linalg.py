"""
Dense Linear Algebra Helpers

Tensor coercion, shape checking and the SVD capability used by the
auto-regularized solvers. All matrices are handled as float64 torch tensors;
inputs are always copied so that callers' arrays are never modified.
"""

import torch
import numpy as np
from typing import NamedTuple, Optional, Tuple, Union


ArrayLike = Union[torch.Tensor, np.ndarray, list, tuple]


class DimensionError(ValueError):
    """Raised when the shapes of a linear system do not agree."""


class FactorizationError(RuntimeError):
    """Raised when the singular value decomposition cannot be computed."""


class SVDResult(NamedTuple):
    """
    Thin singular value decomposition ``A = U @ diag(S) @ V.T``.

    Attributes
    ----------
    U : torch.Tensor, shape (m, k)
        Left singular vectors
    S : torch.Tensor, shape (k,)
        Singular values, non-negative and descending, k = min(m, n)
    V : torch.Tensor, shape (n, k)
        Right singular vectors (not transposed)
    """
    U: torch.Tensor
    S: torch.Tensor
    V: torch.Tensor


def as_matrix(A: ArrayLike, name: str = 'A') -> torch.Tensor:
    """
    Convert an array-like to a private float64 matrix.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Matrix to convert
    name : str, optional
        Name used in error messages

    Returns
    -------
    A : torch.Tensor, shape (m, n)
        float64 copy of the input
    """
    if torch.is_tensor(A):
        A = A.detach().to(dtype=torch.float64).clone()
    else:
        A = torch.tensor(np.asarray(A, dtype=np.float64))

    if A.ndim != 2:
        raise DimensionError(f"{name} must be 2-D, got shape {tuple(A.shape)}")

    return A


def as_vector(b: ArrayLike, name: str = 'b') -> torch.Tensor:
    """
    Convert an array-like to a private float64 vector.

    A column of shape (m, 1) is accepted and squeezed to (m,).
    """
    if torch.is_tensor(b):
        b = b.detach().to(dtype=torch.float64).clone()
    else:
        b = torch.tensor(np.asarray(b, dtype=np.float64))

    # Ensure b is 1D
    if b.ndim == 2 and b.shape[1] == 1:
        b = b.squeeze(1)

    if b.ndim != 1:
        raise DimensionError(f"{name} must be 1-D, got shape {tuple(b.shape)}")

    return b


def check_system(A: ArrayLike,
                 b: ArrayLike,
                 names: Tuple[str, str] = ('A', 'b')) -> Tuple[torch.Tensor, torch.Tensor]:
    """
    Coerce a system Ax = b and verify that its shapes agree.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Coefficient matrix
    b : array_like, shape (m,)
        Right-hand side
    names : tuple of str, optional
        Names used in error messages

    Returns
    -------
    A, b : torch.Tensor
        Private float64 copies, with b on the device of A

    Raises
    ------
    DimensionError
        If A is not 2-D, b is not 1-D, or their row counts differ.
    """
    A = as_matrix(A, names[0])
    b = as_vector(b, names[1]).to(A.device)

    if A.shape[0] != b.shape[0]:
        raise DimensionError(
            f"{names[0]} has {A.shape[0]} rows but {names[1]} has {b.shape[0]} entries"
        )

    return A, b


def is_zero(t: torch.Tensor) -> bool:
    """True if t is empty or every entry is exactly zero."""
    if t.numel() == 0:
        return True
    return not bool(torch.any(t != 0))


def rms(v: torch.Tensor) -> float:
    """Root-mean-square of a vector, 0 for an empty vector."""
    if v.numel() == 0:
        return 0.0
    return (torch.linalg.norm(v) / np.sqrt(v.numel())).item()


def row_norms(A: torch.Tensor) -> torch.Tensor:
    """2-norm of every row of A."""
    return torch.linalg.norm(A, dim=1)


def find_max_row_norm(A: torch.Tensor, start: int = 0) -> int:
    """
    Index of the row of A with the largest 2-norm, searching from ``start``.

    Ties go to the first such row; ``start`` is returned for an empty range.
    """
    if start >= A.shape[0]:
        return start
    return start + int(torch.argmax(row_norms(A[start:])).item())


def find_max_sense(A: torch.Tensor, b: torch.Tensor) -> int:
    """
    Row of Ax = b with the largest ratio |b[i]| / ||A[i]||.

    Zero rows are skipped; 0 is returned when every row is zero.
    """
    norms = row_norms(A)
    best, imax = -1.0, 0
    for i, (rn, bi) in enumerate(zip(norms.tolist(), b.tolist())):
        if rn > 0:
            sense = abs(bi) / rn
            if sense > best:
                best, imax = sense, i
    return imax


def exchange_rows(A: torch.Tensor, i: int, j: int) -> None:
    """Swap rows i and j of A in place."""
    if i != j:
        A[[i, j]] = A[[j, i]]


def scale_row(A: torch.Tensor, i: int, r: float) -> None:
    """Multiply row i of A by r in place."""
    A[i] *= r


def factorize_svd(A: torch.Tensor) -> SVDResult:
    """
    Thin singular value decomposition of A.

    Parameters
    ----------
    A : torch.Tensor, shape (m, n)
        Matrix to factor

    Returns
    -------
    svd : SVDResult
        (U, S, V) with A = U @ diag(S) @ V.T

    Raises
    ------
    FactorizationError
        If A has non-finite entries or LAPACK fails to converge.

    Notes
    -----
    SVD failure is the only numerical failure mode of the solvers. It is
    never retried; the error propagates to the caller.
    """
    if not bool(torch.isfinite(A).all()):
        raise FactorizationError("SVD failed to factorize A: matrix has non-finite entries")

    try:
        U, S, Vh = torch.linalg.svd(A, full_matrices=False)
    except RuntimeError as err:
        raise FactorizationError(f"SVD failed to factorize A: {err}") from err

    if not bool(torch.isfinite(S).all()):
        raise FactorizationError("SVD failed to factorize A: non-finite singular values")

    return SVDResult(U=U, S=S, V=Vh.mT)


def zeros_like_solution(n: int, like: Optional[torch.Tensor] = None) -> torch.Tensor:
    """Zero solution vector of length n on the device of ``like``."""
    device = like.device if like is not None else None
    return torch.zeros(n, dtype=torch.float64, device=device)

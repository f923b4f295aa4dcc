"""
Usable Rank Detection

The usable rank of a problem Ax = b is the number of leading singular
directions whose coefficients still obey the Discrete Picard Condition.
With U, S, V the SVD of A, the Picard vector is

    g[i] = |(U^T b)[i] / S[i]|

which stays roughly flat while the data carries signal and rises once noise
dominates. Two detectors look for that rise:

- split_a: an abrupt jump relative to a smoothed running minimum
- split_b: a gradual rise of a moving sum over the squared vector

and the smaller of their answers is the usable rank.
"""

import torch
from typing import Optional, Tuple

from ..config import SolverConfig, DEFAULT_CONFIG


# (upper bound on vector length, window width)
_WIDTH_TABLE = (
    (8, 2),
    (12, 3),
    (20, 4),
    (28, 5),
    (36, 6),
    (50, 7),
    (64, 8),
    (80, 9),
    (200, 10),
    (300, 12),
    (400, 14),
    (1000, 16),
)


def decide_width(mg: int) -> int:
    """
    Moving-sum window width for a Picard vector of length mg.

    The width grows roughly logarithmically: 1 for mg < 3, then
    2, 3, 4, ... up to 20 for mg > 1000.

    Examples
    --------
    >>> decide_width(5)
    2
    >>> decide_width(150)
    10
    """
    if mg < 3:
        return 1
    for bound, width in _WIDTH_TABLE:
        if mg <= bound:
            return width
    return 20


def decide_multiple(width: int) -> float:
    """Factor over the lowest moving sum that marks a rise as bad."""
    if width < 3:
        return 30.0
    if width <= 10:
        return 20.0
    if width <= 20:
        return 15.0
    return 7.0


def moving_sums(g: torch.Tensor, w: int) -> torch.Tensor:
    """
    Sums of every run of w consecutive entries of g.

    Parameters
    ----------
    g : torch.Tensor, shape (mg,)
        Input vector
    w : int
        Window width, 1 <= w <= mg

    Returns
    -------
    sums : torch.Tensor, shape (mg - w + 1,)
        sums[i] = g[i] + ... + g[i + w - 1]
    """
    return g.unfold(0, w, 1).sum(dim=1)


def split_a(g: torch.Tensor,
            mg: Optional[int] = None,
            config: SolverConfig = DEFAULT_CONFIG) -> int:
    """
    First-stage usable rank: stop at an explosion of the Picard vector.

    Two exponentially smoothed trackers follow g. The "small" tracker is
    biased toward minima (it decays faster downward than upward); the
    "local" tracker is symmetric. From index w = decide_width(mg) on, a
    value above both ``explosion_factor * small`` and ``local`` ends the
    search.

    Parameters
    ----------
    g : torch.Tensor
        Picard vector
    mg : int, optional
        Number of leading entries of g to consider (default: all)
    config : SolverConfig, optional
        Tracker constants

    Returns
    -------
    urank : int
        Count of leading entries accepted, between 1 and mg
        (mg itself when mg < 2)
    """
    if mg is None:
        mg = g.shape[0]
    if mg < 2:
        return mg

    values = g[:mg].tolist()
    w = decide_width(mg)
    small = local = values[0]
    urank = 1

    # look for sensitivity explosion
    for i in range(1, mg):
        sensitivity = values[i]
        if i >= w and sensitivity > config.explosion_factor * small and sensitivity > local:
            break
        if sensitivity < small:
            small += config.small_decay_down * (sensitivity - small)
        else:
            small += config.small_decay_up * (sensitivity - small)
        local += config.local_decay * (sensitivity - local)
        urank = i + 1

    return urank


def split_b(g: torch.Tensor, mg: Optional[int] = None) -> int:
    """
    Second-stage usable rank: stop at a sustained rise after the low point.

    The leading mg entries of g are squared to magnify divergence, and
    isolated dropouts (a value under 0.2 times both neighbours) are raised
    to half the smaller neighbour. The first moving sum after the lowest one
    that exceeds ``decide_multiple(w)`` times that lowest sum marks the end
    of the usable range.

    Parameters
    ----------
    g : torch.Tensor
        Picard vector
    mg : int, optional
        Number of leading entries of g to consider (default: all)

    Returns
    -------
    urank : int
        Usable rank, mg if no rise is found or the window is too narrow
    """
    if mg is None:
        mg = g.shape[0]
    w = decide_width(mg)
    if w < 2:
        return mg

    # magnify any divergence by squaring
    gg = g[:mg].square()

    # suppress dropouts
    for i in range(1, mg - 1):
        gmin = min(gg[i - 1].item(), gg[i + 1].item())
        if gg[i].item() < 0.2 * gmin:
            gg[i] = 0.5 * gmin

    sums = moving_sums(gg, w)
    ilow = int(torch.argmin(sums).item())
    bad = decide_multiple(w) * sums[ilow].item()

    # look for unexpected rise
    rises = torch.nonzero(sums[ilow + 1:] > bad)
    if rises.numel() == 0:
        return mg
    ibad = ilow + 1 + int(rises[0].item())
    return ibad + w - 1


def usable_rank(g: torch.Tensor, config: SolverConfig = DEFAULT_CONFIG) -> int:
    """
    Usable rank of a Picard vector: the tighter of split_a and split_b.

    split_b only examines the prefix already accepted by split_a.
    Always satisfies 0 <= usable_rank(g) <= len(g).
    """
    nr = g.shape[0]
    ura = split_a(g, nr, config)
    urb = split_b(g, ura)
    return min(ura, urb)


def picard_vector(Utb: torch.Tensor,
                  S: torch.Tensor,
                  shape: Tuple[int, int],
                  config: SolverConfig = DEFAULT_CONFIG) -> Tuple[torch.Tensor, int]:
    """
    Picard vector and numerical rank from the transformed right-hand side.

    Parameters
    ----------
    Utb : torch.Tensor, shape (k,)
        U^T b
    S : torch.Tensor, shape (k,)
        Singular values, descending
    shape : tuple of int
        (m, n), the shape of A
    config : SolverConfig, optional
        Supplies the relative rank floor

    Returns
    -------
    g : torch.Tensor, shape (nr,)
        |Utb[i] / S[i]| for the numerically significant directions
    nr : int
        Numerical rank: number of leading S[i] not below
        eps = S[0] * max(m, n) * rank_eps (or rank_eps if that is zero)
    """
    if S.numel() == 0:
        return S.new_zeros(0), 0

    eps = S[0].item() * max(shape) * config.rank_eps
    if eps == 0:
        eps = config.rank_eps

    below = torch.nonzero(S < eps)
    nr = int(below[0].item()) if below.numel() > 0 else S.shape[0]

    g = torch.abs(Utb[:nr] / S[:nr])
    return g, nr

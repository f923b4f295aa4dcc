"""
Test Suite for the Constrained Solvers

Tests for:
- Non-negativity by column deletion
- Constraint orthogonalization and projection
- Equality-constrained solve
- Inequality active-set loop and shape constraints

Run with: python -m pytest tests/test_constrained.py -v
"""

import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import torch
import numpy as np
import pytest

from picard_lsq import solve_auto, DimensionError
from picard_lsq.core import factorize_svd
from picard_lsq.constrained import (
    solve_nonnegative,
    orthogonalize_constraints,
    project_out,
    solve_with_equality,
    most_violated,
    solve_with_inequality,
    solve_general,
    solve_shape,
)
from picard_lsq.utils import hilbert


def noisy_hilbert_system():
    """Hilbert(7, 6) system with answer [4, 3, 2, 1, 0, -1] and small noise."""
    A = hilbert(7, 6)
    ans = torch.tensor([4.0, 3.0, 2.0, 1.0, 0.0, -1.0], dtype=torch.float64)
    i = torch.arange(7, dtype=torch.float64)
    b = A @ ans + 1e-6 * torch.abs(torch.sin(2.0 * 7 + 2.0 * i))
    return A, b, ans


class TestNonNegative:
    """Test solve_nonnegative."""

    def test_removes_negative_column(self):
        A = [[2.0, 2.0, 1.0], [2.0, 1.0, 0.0], [1.0, 1.0, 0.0]]
        b = [3.9, 3.0, 2.0]

        unconstrained = solve_auto(A, b).x
        assert torch.allclose(unconstrained, torch.tensor([1.0, 1.0, -0.1], dtype=torch.float64), atol=1e-10)

        x = solve_nonnegative(A, b).x
        assert torch.allclose(x, torch.tensor([1.04, 0.92, 0.0], dtype=torch.float64), atol=1e-10)

    def test_all_negative_gives_zero(self):
        x = solve_nonnegative(torch.eye(3, dtype=torch.float64), -torch.ones(3, dtype=torch.float64)).x
        assert torch.equal(x, torch.zeros(3, dtype=torch.float64))

    def test_unreachable_rhs_gives_zero(self):
        x = solve_nonnegative([[1.0, 1.0, 1.0], [0.0, 0.0, 0.0]], [0.0, 1.0]).x
        assert torch.allclose(x, torch.zeros(3, dtype=torch.float64))

    def test_nonnegative_solution_is_unchanged(self):
        A = [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]
        b = [1.0, 2.0, 3.0]

        assert torch.allclose(solve_nonnegative(A, b).x, solve_auto(A, b).x)

    def test_diagnostics_describe_unconstrained_problem(self):
        A = [[2.0, 2.0, 1.0], [2.0, 1.0, 0.0], [1.0, 1.0, 0.0]]
        b = [3.9, 3.0, 2.0]
        _, nr, ur, sigma, lam = solve_nonnegative(A, b)
        _, nr0, ur0, sigma0, lam0 = solve_auto(A, b)

        assert (nr, ur, sigma, lam) == (nr0, ur0, sigma0, lam0)

    def test_hilbert(self):
        A, b, _ = noisy_hilbert_system()
        x = solve_nonnegative(A, b).x

        assert x.shape == (6,)
        assert x.min().item() >= 0.0

    def test_verbose_lists_removed_columns(self, capsys):
        A = [[2.0, 2.0, 1.0], [2.0, 1.0, 0.0], [1.0, 1.0, 0.0]]
        solve_nonnegative(A, [3.9, 3.0, 2.0], verbose=True)

        assert "Columns removed: [2]" in capsys.readouterr().out


class TestOrthogonalize:
    """Test constraint preprocessing."""

    def test_reconstructs_constrained_point(self):
        """E'^T f' recovers x when E is square and nonsingular."""
        E = torch.tensor([[1.0, 0.0, 0.0], [1.0, 1.0, 1.0], [1.0, 1.0, 0.0]], dtype=torch.float64)
        x = torch.tensor([4.0, 0.0, 1.0], dtype=torch.float64)
        EE, ff = orthogonalize_constraints(E, E @ x)

        assert EE.shape == (3, 3)
        assert torch.allclose(EE.T @ ff, x, atol=1e-12)
        assert torch.allclose(EE @ EE.T, torch.eye(3, dtype=torch.float64), atol=1e-12)

    def test_best_determined_row_first(self):
        E = [[1.0, 1.0, 1.0], [2.0, 0.0, 0.0]]
        f = [1.0, 10.0]
        EE, ff = orthogonalize_constraints(E, f)

        assert torch.allclose(EE[0], torch.tensor([1.0, 0.0, 0.0], dtype=torch.float64))
        assert abs(ff[0].item() - 5.0) < 1e-12

    def test_redundant_row_is_zeroed(self):
        EE, ff = orthogonalize_constraints([[1.0, 1.0], [2.0, 2.0]], [2.0, 4.0])

        assert torch.allclose(EE[1], torch.zeros(2, dtype=torch.float64))
        assert ff[1].item() == 0.0

    def test_zero_constraints_pass_through(self):
        EE, ff = orthogonalize_constraints(np.zeros((2, 3)), [0.0, 0.0])

        assert torch.equal(EE, torch.zeros((2, 3), dtype=torch.float64))
        assert torch.equal(ff, torch.zeros(2, dtype=torch.float64))

    def test_inputs_are_not_modified(self):
        E = torch.tensor([[1.0, 1.0], [1.0, -1.0]], dtype=torch.float64)
        f = torch.tensor([2.0, 0.0], dtype=torch.float64)
        E0, f0 = E.clone(), f.clone()

        orthogonalize_constraints(E, f)

        assert torch.equal(E, E0)
        assert torch.equal(f, f0)


class TestProjectOut:
    """Test removal of the constraint component from Ax = b."""

    def test_rows_orthogonal_to_constraints(self):
        torch.manual_seed(4)
        E = torch.randn(2, 5, dtype=torch.float64)
        f = torch.randn(2, dtype=torch.float64)
        A = torch.randn(6, 5, dtype=torch.float64)
        b = torch.randn(6, dtype=torch.float64)

        EE, ff = orthogonalize_constraints(E, f)
        AA, bb = project_out(A, b, EE, ff, 1e-9)

        assert AA.shape == (6, 5)
        assert torch.allclose(AA @ EE.T, torch.zeros((6, 2), dtype=torch.float64), atol=1e-12)
        assert torch.allclose(torch.linalg.norm(AA, dim=1), torch.ones(6, dtype=torch.float64))

    def test_consistency_preserved(self):
        """A point satisfying both systems still satisfies the projected one."""
        torch.manual_seed(5)
        x = torch.randn(5, dtype=torch.float64)
        E = torch.randn(5, 5, dtype=torch.float64)[:3]
        A = torch.randn(4, 5, dtype=torch.float64)

        EE, ff = orthogonalize_constraints(E, E @ x)
        AA, bb = project_out(A, A @ x, EE, ff, 1e-9)

        assert torch.allclose(AA @ x, bb, atol=1e-10)

    def test_rows_inside_constraint_span_are_dropped(self):
        EE = torch.tensor([[1.0, 0.0, 0.0]], dtype=torch.float64)
        ff = torch.tensor([1.0], dtype=torch.float64)
        A = [[2.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
        AA, bb = project_out(A, [2.0, 3.0], EE, ff, 1e-9)

        assert AA.shape == (1, 3)
        assert torch.allclose(AA[0], torch.tensor([0.0, 1.0, 0.0], dtype=torch.float64))
        assert abs(bb[0].item() - 3.0) < 1e-12

    def test_column_mismatch(self):
        with pytest.raises(DimensionError):
            project_out(np.eye(3), np.ones(3), np.eye(2), np.ones(2), 0.0)


class TestEquality:
    """Test solve_with_equality."""

    def test_line_constraint(self):
        A = [[1.0, 2.0], [2.0, 3.0]]
        b = [5.3, 7.8]
        E = [[1.0, 1.0]]
        f = [3.0]

        x = solve_with_equality(A, b, E, f).x

        assert abs(x.sum().item() - 3.0) < 1e-12
        assert torch.allclose(x, torch.tensor([0.95, 2.05], dtype=torch.float64), atol=1e-6)
        assert torch.allclose(x, torch.tensor([1.0, 2.0], dtype=torch.float64), atol=0.06)

    def test_no_constraints_matches_solve_auto(self):
        A = [[1.0, 1.0], [1.0, 1.01]]
        b = [2.0, 3.0]
        expected = solve_auto(A, b).x

        assert torch.allclose(solve_with_equality(A, b, None, None).x, expected)
        assert torch.allclose(solve_with_equality(A, b, np.zeros((1, 2)), [0.0]).x, expected)

    def test_identity_with_growing_constraints(self):
        """Each constrained component takes its required value."""
        n = 5
        A = torch.eye(n, dtype=torch.float64)
        b = torch.ones(n, dtype=torch.float64)

        for k in range(1, n + 1):
            E = torch.eye(n, dtype=torch.float64)[:k]
            f = 2.0 * torch.ones(k, dtype=torch.float64)
            x = solve_with_equality(A, b, E, f).x

            assert torch.allclose(x[:k], 2.0 * torch.ones(k, dtype=torch.float64), atol=1e-12)
            assert torch.allclose(x[k:], torch.ones(n - k, dtype=torch.float64), atol=1e-12)

    def test_redundant_constraint(self):
        x = solve_with_equality([[1.0, 0.0], [0.0, 1.0]], [3.0, 0.0],
                                [[1.0, 1.0], [1.0, 1.0]], [2.0, 2.0]).x

        assert abs(x.sum().item() - 2.0) < 1e-12
        assert torch.allclose(x, torch.tensor([2.5, -0.5], dtype=torch.float64), atol=1e-10)

    def test_hilbert(self):
        A, b, ans = noisy_hilbert_system()
        E = torch.zeros((2, 6), dtype=torch.float64)
        E[0] = 1.0
        E[1, 0] = 1.0
        f = torch.tensor([ans.sum().item(), 5.0], dtype=torch.float64)

        x = solve_with_equality(A, b, E, f).x

        assert abs(x.sum().item() - ans.sum().item()) < 1e-8
        assert abs(x[0].item() - 5.0) < 1e-8

    def test_column_mismatch(self):
        with pytest.raises(DimensionError):
            solve_with_equality(np.eye(2), np.ones(2), np.ones((1, 3)), [1.0])


class TestInequality:
    """Test the active-set inequality solver."""

    def test_most_violated(self):
        G = torch.eye(3, dtype=torch.float64)
        h = torch.zeros(3, dtype=torch.float64)

        assert most_violated(G, h, torch.tensor([1.0, -2.0, -3.0], dtype=torch.float64)) == 2
        assert most_violated(G, h, torch.tensor([1.0, 2.0, 0.0], dtype=torch.float64)) is None
        assert most_violated(G, h, torch.tensor([-1.0, -1.0, 5.0], dtype=torch.float64)) == 0
        assert most_violated(G[:0], h[:0], torch.ones(3, dtype=torch.float64)) is None

    def test_lower_bounds(self):
        A = [[1.0, 1.0, 1.0], [0.0, 1.0, 1.0], [1.0, 0.0, 1.0]]
        b = [5.9, 5.0, 3.9]
        G = np.eye(3)
        h = np.ones(3)

        unconstrained = solve_auto(A, b).x
        assert torch.allclose(unconstrained, torch.tensor([0.9, 2.0, 3.0], dtype=torch.float64), atol=1e-10)

        x = solve_general(A, b, G, h).x
        assert torch.allclose(x, torch.tensor([1.0, 2.05, 2.9], dtype=torch.float64), atol=1e-6)
        assert x.min().item() >= 1.0 - 1e-10

    def test_zero_inequalities_match_equality_solve(self):
        A = [[1.0, 2.0], [2.0, 3.0]]
        b = [5.3, 7.8]
        expected = solve_with_equality(A, b, [[1.0, 1.0]], [3.0]).x
        x = solve_with_inequality(A, b, [[1.0, 1.0]], [3.0], np.zeros((2, 2)), [1.0, 1.0]).x

        assert torch.allclose(x, expected)

    def test_equality_and_inequality_together(self):
        A = [[1.0, 2.0], [2.0, 3.0]]
        b = [5.3, 7.8]
        E = [[1.0, 1.0]]
        f = [3.0]
        G = [[1.0, 0.0]]
        h = [1.5]

        x = solve_with_inequality(A, b, E, f, G, h).x

        assert abs(x.sum().item() - 3.0) < 1e-10
        assert abs(x[0].item() - 1.5) < 1e-10

    def test_nonnegativity_as_inequalities(self):
        A, b, _ = noisy_hilbert_system()
        x = solve_general(A, b, np.eye(6), np.zeros(6)).x

        assert x.min().item() >= -1e-9

    def test_less_than_by_negation(self):
        """x[i] <= 2 is written as -x[i] >= -2."""
        A = np.eye(3)
        b = [1.0, 3.0, 5.0]
        x = solve_general(A, b, -np.eye(3), -2.0 * np.ones(3)).x

        assert x.max().item() <= 2.0 + 1e-10
        assert abs(x[0].item() - 1.0) < 1e-10

    def test_shape_mismatch(self):
        with pytest.raises(DimensionError):
            solve_general(np.eye(3), np.ones(3), np.eye(2), np.ones(2))
        with pytest.raises(DimensionError):
            solve_general(np.eye(3), np.ones(3), np.eye(3), np.ones(2))


class TestShape:
    """Test solve_shape."""

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            solve_shape(np.eye(3), np.ones(3), slope=2)
        with pytest.raises(ValueError):
            solve_shape(np.eye(3), np.ones(3), curve=-3)

    def test_no_constraints_matches_solve_auto(self):
        A = [[1.0, 1.0], [1.0, 1.01]]
        b = [2.0, 3.0]

        assert torch.allclose(solve_shape(A, b).x, solve_auto(A, b).x)

    def test_increasing(self):
        b = [1.0, 3.0, 2.0, 4.0, 5.0]
        x = solve_shape(np.eye(5), b, slope=1).x

        assert torch.all(x[1:] - x[:-1] >= -1e-9)

    def test_decreasing(self):
        b = [5.0, 4.0, 4.5, 2.0, 1.0]
        x = solve_shape(np.eye(5), b, slope=-1).x

        assert torch.all(x[1:] - x[:-1] <= 1e-9)

    def test_concave_up(self):
        b = [4.0, 1.0, 0.0, 1.5, 4.0]
        x = solve_shape(np.eye(5), b, curve=1).x
        second = x[:-2] - 2.0 * x[1:-1] + x[2:]

        assert torch.all(second >= -1e-9)

    def test_nonnegative(self):
        x = solve_shape(np.eye(3), [1.0, -2.0, 3.0], nonneg=True).x

        assert x.min().item() >= 0.0
        assert torch.allclose(x, torch.tensor([1.0, 0.0, 3.0], dtype=torch.float64), atol=1e-10)

    def test_zero_rhs(self):
        x, nr, ur, sigma, lam = solve_shape(np.eye(3), np.zeros(3), slope=1)

        assert torch.equal(x, torch.zeros(3, dtype=torch.float64))
        assert (nr, ur, sigma, lam) == (0, 0, 0.0, 0.0)


if __name__ == '__main__':
    pytest.main([__file__, '-v', '--tb=short'])

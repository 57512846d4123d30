"""Tests for RootSolver: bracketing, bisection, budgets and failure results."""

import math

import pytest

from pivot_matrix.core.numerics import RootResult, RootSolver


class TestRootResult:
    def test_found_keeps_value(self):
        r = RootResult.found(2.5, 3)
        assert r.converged
        assert r.or_fallback(1.0) == 2.5

    def test_failed_uses_fallback(self):
        r = RootResult.failed(7)
        assert not r.converged
        assert r.value is None
        assert r.iterations == 7
        assert r.or_fallback(1.0) == 1.0


class TestRootSolver:
    def test_upward_search(self):
        r = RootSolver().find_root_pos(1.0, 1.0, lambda x: x - 10.0)
        assert r.converged
        assert r.value == pytest.approx(10.0, rel=1e-8)

    def test_downward_search(self):
        r = RootSolver().find_root_pos(100.0, -1.0, lambda x: x - 10.0)
        assert r.converged
        assert r.value == pytest.approx(10.0, rel=1e-8)

    def test_zero_hint_falls_back_to_lower_branch(self):
        # Root lies below the guess, so the upward branch cannot bracket it
        r = RootSolver().find_root_pos(100.0, 0.0, lambda x: x - 10.0)
        assert r.converged
        assert r.value == pytest.approx(10.0, rel=1e-8)

    def test_guess_is_root(self):
        r = RootSolver().find_root_pos(10.0, 1.0, lambda x: x - 10.0)
        assert r.converged
        assert r.value == 10.0
        assert r.iterations == 0

    def test_exact_hit_during_expansion(self):
        r = RootSolver().find_root_to_inf(1.0, lambda x: x - 4.0)
        assert r.converged
        assert r.value == 4.0

    def test_to_zero(self):
        r = RootSolver(iterations=15).find_root_to_zero(100.0, lambda x: x * x - 2.0)
        assert r.converged
        assert r.value == pytest.approx(math.sqrt(2.0), rel=1e-3)

    def test_no_root_fails(self):
        r = RootSolver().find_root_pos(1.0, 1.0, lambda x: x + 1.0)
        assert not r.converged
        assert r.or_fallback(7.0) == 7.0

    def test_budget_exhausted(self):
        r = RootSolver(iterations=3).find_root_to_inf(1.0, lambda x: x - 1000.0)
        assert not r.converged
        assert r.iterations == 3

    def test_nan_fails(self):
        r = RootSolver().find_root_pos(1.0, 1.0, lambda x: math.nan)
        assert not r.converged

    def test_arithmetic_error_fails(self):
        r = RootSolver().find_root_pos(1.0, 1.0, lambda x: 1.0 / (x - x))
        assert not r.converged

    @pytest.mark.parametrize("start", [0.0, -1.0, math.inf, math.nan])
    def test_start_outside_domain_fails(self, start):
        r = RootSolver().find_root_to_zero(start, lambda x: x - 1.0)
        assert not r.converged

    def test_iterations_bounded(self):
        solver = RootSolver()
        r = solver.find_root_pos(1e-3, 1.0, lambda x: x - 1e3)
        assert r.converged
        assert r.iterations <= 2 * solver.iterations

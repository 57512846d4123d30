"""Bounded root search used to invert the pivot curves.

The curves are only piecewise monotonic, so "find the pivot for a target value
or position" is a bracketed search: expand geometrically from a guess until f
changes sign, then bisect in log space. Both phases have a fixed step budget,
so the worst-case cost is known up front.

Outcomes are explicit RootResult values. A failed search never produces NaN;
callers pick the fallback with RootResult.or_fallback().
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

import numpy as np

DEFAULT_ITERATIONS = 32
RANGE_ITERATIONS = 15
DEFAULT_TOLERANCE = 1e-14
EXPANSION_FACTOR = 2.0

RootFunction = Callable[[float], float]


@dataclass(frozen=True)
class RootResult:
    """Result of a root search. value is None when converged is False."""

    value: float | None
    converged: bool
    iterations: int = 0

    @classmethod
    def found(cls, value: float, iterations: int) -> RootResult:
        return cls(float(value), True, iterations)

    @classmethod
    def failed(cls, iterations: int) -> RootResult:
        return cls(None, False, iterations)

    def or_fallback(self, fallback: float) -> float:
        return self.value if self.converged else fallback


def _evaluate(f: RootFunction, x: float) -> float | None:
    """f(x) as a finite float, or None for anything outside the domain."""
    if not (x > 0 and math.isfinite(x)):
        return None
    try:
        y = float(f(x))
    except (ArithmeticError, ValueError):
        return None
    return y if math.isfinite(y) else None


class RootSolver:
    """Deterministic, budgeted root finder over x > 0."""

    def __init__(
        self,
        iterations: int = DEFAULT_ITERATIONS,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> None:
        self._iterations = iterations
        self._tolerance = tolerance

    @property
    def iterations(self) -> int:
        return self._iterations

    def find_root_pos(self, guess: float, hint: float, f: RootFunction) -> RootResult:
        """Root of f next to guess.

        hint > 0 searches above guess, hint < 0 below. With hint == 0 the
        upper branch is tried first, then the lower one.
        """
        if hint > 0:
            return self._search(guess, f, upward=True)
        if hint < 0:
            return self._search(guess, f, upward=False)
        result = self._search(guess, f, upward=True)
        if result.converged:
            return result
        return self._search(guess, f, upward=False)

    def find_root_to_zero(self, start: float, f: RootFunction) -> RootResult:
        """Nearest root of f in (0, start]."""
        return self._search(start, f, upward=False)

    def find_root_to_inf(self, start: float, f: RootFunction) -> RootResult:
        """Nearest root of f in [start, inf)."""
        return self._search(start, f, upward=True)

    def _search(self, start: float, f: RootFunction, upward: bool) -> RootResult:
        steps = 0
        with np.errstate(all="ignore"):
            f_near = _evaluate(f, start)
            if f_near is None:
                return RootResult.failed(steps)
            if abs(f_near) <= self._tolerance:
                return RootResult.found(start, steps)

            # Phase 1: expand until the sign flips
            near = start
            far = None
            f_far = 0.0
            for _ in range(self._iterations):
                steps += 1
                candidate = near * EXPANSION_FACTOR if upward else near / EXPANSION_FACTOR
                f_candidate = _evaluate(f, candidate)
                if f_candidate is None:
                    return RootResult.failed(steps)
                if f_candidate == 0 or (f_candidate > 0) != (f_near > 0):
                    far, f_far = candidate, f_candidate
                    break
                near, f_near = candidate, f_candidate

            if far is None:
                return RootResult.failed(steps)
            if abs(f_far) <= self._tolerance:
                return RootResult.found(far, steps)

            # Phase 2: bisect [near, far] in log space
            for _ in range(self._iterations):
                steps += 1
                mid = math.sqrt(near * far)
                f_mid = _evaluate(f, mid)
                if f_mid is None:
                    return RootResult.failed(steps)
                if abs(f_mid) <= self._tolerance:
                    return RootResult.found(mid, steps)
                if (f_mid > 0) == (f_near > 0):
                    near, f_near = mid, f_mid
                else:
                    far = mid

            return RootResult.found(math.sqrt(near * far), steps)

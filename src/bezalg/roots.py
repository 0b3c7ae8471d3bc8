"""Root finding on the curve parameter domain [0, 1].

Two strategies are provided:

* ``RootSolver.polynomial_roots`` extracts all real roots of a polynomial as eigenvalues
  of its companion matrix. It is exact up to floating point conditioning and is the
  strategy used by curves for roots, extrema and point projection.
* ``RootSolver.iterate`` / ``RootSolver.seeded_roots`` refine seeds with Newton or Halley
  steps. Seeded scanning can miss roots closer together than the seed step, but it works
  for any smooth function, e.g. arc length which is not a polynomial.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from bezalg.coeffs import CoefficientCache, default_cache

logger = logging.getLogger(__name__)

# f(t) -> (f, f', f'') where f'' may be None for a plain Newton step
ScalarFunction = Callable[[float], Tuple[float, float, Optional[float]]]

_TRIM_RELATIVE_EPS: float = 1.0e-12
_DENOMINATOR_EPS: float = 1.0e-14


class RootSolver:
    """Iterative and exact root finding for scalar functions of the curve parameter."""

    def __init__(self, cache: Optional[CoefficientCache] = None) -> None:
        self.cache = cache if cache is not None else default_cache()

    ###########################################################################
    # Iterative
    ###########################################################################

    @staticmethod
    def iterate(
        func: ScalarFunction,
        t0: float,
        epsilon: float,
        max_iter: int,
    ) -> Tuple[float, bool]:
        """Refine a root estimate with Halley steps (Newton if no second derivative is known).

        Updates leaving [0, 1] are rejected and the best in-range estimate is kept.
        A vanishing denominator ends the iteration the same way.

        Args:
            func: Function returning (f, f', f'') at t; f'' may be None.
            t0: Initial estimate inside [0, 1].
            epsilon: Convergence threshold on |f|.
            max_iter: Iteration cap.

        Returns:
            Tuple (t, converged) with the best estimate found.
        """
        t = min(max(float(t0), 0.0), 1.0)
        best_t, best_f = t, math.inf
        for _ in range(max_iter + 1):
            f, f_d, f_d2 = func(t)
            if abs(f) < best_f:
                best_t, best_f = t, abs(f)
            if abs(f) < epsilon:
                return t, True

            if f_d2 is None:
                numerator, denominator = f, f_d
            else:
                numerator, denominator = 2.0 * f * f_d, 2.0 * f_d * f_d - f * f_d2
            if abs(denominator) < _DENOMINATOR_EPS:
                break

            t_next = t - numerator / denominator
            if not 0.0 <= t_next <= 1.0 or not math.isfinite(t_next):
                break
            t = t_next
        else:
            logger.debug("iteration cap of %d exhausted, best |f|=%g at t=%g", max_iter, best_f, best_t)
        return best_t, best_f < epsilon

    @classmethod
    def seeded_roots(
        cls,
        func: ScalarFunction,
        step: float,
        epsilon: float,
        max_iter: int,
    ) -> NDArray[np.float64]:
        """Find roots in [0, 1] by starting an iteration at every multiple of ``step``.

        Roots closer to each other than ``epsilon`` are reported once.
        """
        found: List[float] = []
        num_seeds = int(math.floor(1.0 / step + 1.0e-9)) + 1
        for seed in np.linspace(0.0, step * (num_seeds - 1), num_seeds):
            t, converged = cls.iterate(func, float(seed), epsilon, max_iter)
            if converged and all(abs(t - other) >= epsilon for other in found):
                found.append(t)
        return np.array(sorted(found), dtype=np.float64)

    ###########################################################################
    # Exact
    ###########################################################################

    @staticmethod
    def trim_coefficients(coeffs: Union[Sequence[float], NDArray[np.float64]]) -> NDArray[np.float64]:
        """Drop trailing coefficients that vanish relative to the largest one (true degree detection)."""
        values = np.asarray(coeffs, dtype=np.float64)
        if values.size == 0:
            return values
        scale = float(np.max(np.abs(values)))
        if scale == 0.0:
            return values[:0]
        significant = np.nonzero(np.abs(values) > _TRIM_RELATIVE_EPS * scale)[0]
        return values[: significant[-1] + 1]

    @classmethod
    def polynomial_roots(
        cls,
        coeffs: Union[Sequence[float], NDArray[np.float64]],
        epsilon: float = 1.0e-9,
        imag_tolerance: float = 1.0e-6,
    ) -> NDArray[np.float64]:
        """Real roots in [0, 1] of a polynomial given lowest degree first.

        Roots are the eigenvalues of the companion matrix. A root within ``epsilon`` outside
        the interval is clipped onto it, and roots closer than ``epsilon`` are merged.
        Constant and identically zero polynomials have no isolated roots.

        Returns:
            Sorted NDArray[np.float64] of roots.
        """
        trimmed = cls.trim_coefficients(coeffs)
        if trimmed.size < 2:
            return np.zeros(0, dtype=np.float64)
        if trimmed.size == 2:
            candidates = np.array([-trimmed[0] / trimmed[1]], dtype=np.complex128)
        else:
            companion = np.polynomial.polynomial.polycompanion(trimmed)
            candidates = np.linalg.eigvals(companion)

        real = candidates[np.abs(candidates.imag) <= imag_tolerance].real
        real = real[(real >= -epsilon) & (real <= 1.0 + epsilon)]
        return cls.unique_sorted(np.clip(real, 0.0, 1.0), epsilon)

    def bernstein_roots(
        self,
        values: NDArray[np.float64],
        epsilon: float = 1.0e-9,
        imag_tolerance: float = 1.0e-6,
    ) -> NDArray[np.float64]:
        """Roots in [0, 1] of a one-dimensional Bezier function given by its Bernstein coefficients."""
        coeffs = self.cache.bernstein(values.shape[0]) @ values
        return self.polynomial_roots(coeffs, epsilon, imag_tolerance)

    @staticmethod
    def unique_sorted(values: NDArray[np.float64], epsilon: float) -> NDArray[np.float64]:
        """Sort values and collapse runs closer than ``epsilon`` to their first element."""
        result: List[float] = []
        for value in np.sort(np.asarray(values, dtype=np.float64)):
            if not result or value - result[-1] >= epsilon:
                result.append(float(value))
        return np.array(result, dtype=np.float64)

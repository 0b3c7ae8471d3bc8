"""Arc length of Bezier curves and inversion of arc length into curve parameters."""

from __future__ import annotations

import functools
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from bezalg.basis import BasisTransform
from bezalg.roots import RootSolver


@functools.lru_cache(maxsize=None)
def gauss_legendre(order: int) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Abscissae and weights of the Gauss-Legendre rule of the given order on [-1, 1]."""
    abscissae, weights = np.polynomial.legendre.leggauss(order)
    abscissae.setflags(write=False)
    weights.setflags(write=False)
    return abscissae, weights


class ArcLengthEngine:
    """Arc length by fixed-order Gauss-Legendre quadrature of the speed ``|B'(t)|``."""

    def __init__(self, basis: BasisTransform, order: int = 64) -> None:
        self.basis = basis
        self.order = order

    def length(self, derivative_points: NDArray[np.float64], t1: float = 0.0, t2: float = 1.0) -> float:
        """Length of the curve between t1 and t2, given the control points of its derivative.

        The result is negative if t2 < t1.
        """
        abscissae, weights = gauss_legendre(self.order)
        half_span = (t2 - t1) / 2.0
        nodes = abscissae * half_span + (t1 + t2) / 2.0
        speeds = np.linalg.norm(self.basis.values_at(derivative_points, nodes), axis=1)
        return float(np.dot(weights, speeds) * half_span)

    def iterate_by_length(
        self,
        derivative_points: NDArray[np.float64],
        second_derivative_points: NDArray[np.float64],
        t: float,
        s: float,
        epsilon: float,
        max_iter: int,
    ) -> float:
        """Parameter reached by travelling arc length ``s`` along the curve starting at ``t``.

        Solves ``length(0, t') - length(0, t) - s = 0`` with Halley steps. Targets before the
        start or past the end of the curve give 0 or 1.

        Args:
            derivative_points: Control points of the first derivative.
            second_derivative_points: Control points of the second derivative.
            t: Start parameter.
            s: Signed arc length to travel.
            epsilon: Tolerance on the length error.
            max_iter: Iteration cap.

        Returns:
            float: parameter in [0, 1]
        """
        total = self.length(derivative_points)
        target = self.length(derivative_points, 0.0, t) + s
        if target < 0.0:
            return 0.0
        if target > total:
            return 1.0
        if total <= 0.0:
            return min(max(float(t), 0.0), 1.0)

        def residual(param: float) -> Tuple[float, float, Optional[float]]:
            velocity = self.basis.value_at(derivative_points, param)
            speed = float(np.linalg.norm(velocity))
            f = self.length(derivative_points, 0.0, param) - target
            if speed == 0.0:
                return f, 0.0, None
            acceleration = self.basis.value_at(second_derivative_points, param)
            return f, speed, float(np.dot(velocity, acceleration)) / speed

        guess = target / total
        result, _ = RootSolver.iterate(residual, guess, epsilon, max_iter)
        return result

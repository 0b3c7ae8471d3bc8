"""Subdivision of Bezier curves and adaptive flattening into polylines."""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from bezalg.coeffs import CoefficientCache, default_cache


class Subdivider:
    """Split curves with the cached subdivision matrices of a ``CoefficientCache``."""

    def __init__(self, cache: Optional[CoefficientCache] = None) -> None:
        self.cache = cache if cache is not None else default_cache()

    def split(
        self, points: NDArray[np.float64], z: float = 0.5
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Split control points at parameter z.

        Args:
            points: Control points of shape (n, 2).
            z: Split parameter.

        Returns:
            Tuple of control points of the sub-curves on [0, z] and [z, 1].
        """
        n = points.shape[0]
        return self.cache.split_left(n, z) @ points, self.cache.split_right(n, z) @ points

    def segment(self, points: NDArray[np.float64], t0: float, t1: float) -> NDArray[np.float64]:
        """Control points of the sub-curve restricted to [t0, t1], with 0 <= t0 < t1 <= 1."""
        n = points.shape[0]
        left = points if t1 >= 1.0 else self.cache.split_left(n, t1) @ points
        if t0 <= 0.0:
            return left
        return self.cache.split_right(n, t0 / t1) @ left

    def polyline(self, points: NDArray[np.float64], smoothness: float, precision: float) -> NDArray[np.float64]:
        """Flatten a curve by recursive bisection.

        A sub-curve becomes a polyline leaf when its control polygon is at most
        ``smoothness`` times longer than its chord, or when the control polygon is not longer
        than ``precision``. An explicit stack is used instead of recursion.

        Args:
            points: Control points of shape (n, 2).
            smoothness: Allowed ratio of hull length to chord length (>= 1).
            precision: Control polygon length below which a sub-curve is not split further.

        Returns:
            NDArray[np.float64] of shape (m, 2) starting at the first and ending at the last control point.
        """
        n = points.shape[0]
        left = self.cache.split_left(n)
        right = self.cache.split_right(n)

        result: List[NDArray[np.float64]] = [points[0]]
        stack: List[NDArray[np.float64]] = [points]
        while stack:
            sub_points = stack.pop()
            chord_length = float(np.linalg.norm(sub_points[-1] - sub_points[0]))
            hull_length = float(np.sum(np.linalg.norm(np.diff(sub_points, axis=0), axis=1)))

            # a closed sub-curve has a zero chord, only its hull decides
            if hull_length <= smoothness * chord_length or hull_length <= precision:
                result.append(sub_points[-1])
            else:
                # LIFO: push the second half first so the first half is flattened first
                stack.append(right @ sub_points)
                stack.append(left @ sub_points)

        polyline = np.array(result, dtype=np.float64)
        polyline[-1] = points[-1]
        return polyline

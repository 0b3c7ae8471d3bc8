"""Evaluation of Bezier curves through power-basis / Bernstein-basis conversion."""

from __future__ import annotations

from typing import Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from bezalg.coeffs import CoefficientCache, default_cache


class BasisTransform:
    """Evaluate curves given by control points using cached Bernstein matrices.

    A curve with n control points ``P`` is evaluated as ``[1, t, ..., t^(n-1)] @ B(n) @ P``.
    """

    def __init__(self, cache: Optional[CoefficientCache] = None) -> None:
        self.cache = cache if cache is not None else default_cache()

    @staticmethod
    def power_basis(t: float, n: int) -> NDArray[np.float64]:
        """Row vector ``[1, t, t^2, ..., t^(n-1)]``."""
        return np.power(float(t), np.arange(n, dtype=np.float64))

    @staticmethod
    def power_basis_batch(ts: Union[Sequence[float], NDArray[np.float64]], n: int) -> NDArray[np.float64]:
        """Matrix with one power-basis row per parameter, shape (len(ts), n)."""
        params = np.asarray(ts, dtype=np.float64).reshape(-1, 1)
        return np.power(params, np.arange(n, dtype=np.float64)[np.newaxis, :])

    def power_coefficients(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Power-basis polynomial coefficients of each coordinate, lowest degree first, shape (n, 2)."""
        return self.cache.bernstein(points.shape[0]) @ points

    def value_at(self, points: NDArray[np.float64], t: float) -> NDArray[np.float64]:
        """Point of the curve at parameter t. A curve without control points evaluates to the origin."""
        n = points.shape[0]
        if n == 0:
            return np.zeros(2, dtype=np.float64)
        return self.power_basis(t, n) @ self.cache.bernstein(n) @ points

    def values_at(
        self, points: NDArray[np.float64], ts: Union[Sequence[float], NDArray[np.float64]]
    ) -> NDArray[np.float64]:
        """Points of the curve at many parameters in one matrix product, shape (len(ts), 2)."""
        n = points.shape[0]
        params = np.asarray(ts, dtype=np.float64).reshape(-1)
        if n == 0:
            return np.zeros((params.shape[0], 2), dtype=np.float64)
        return self.power_basis_batch(params, n) @ (self.cache.bernstein(n) @ points)

"""Coefficient matrices for Bezier curves, built once per curve order and cached.

All matrices act on a control-point matrix ``P`` of shape (n, 2) from the left:

    power_coefficients = bernstein(n) @ P
    left_points        = split_left(n, z) @ P
    elevated_points    = elevate(n) @ P

Entries are stored as read-only arrays, so a matrix handed out once stays valid
for the lifetime of the cache.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional

import numpy as np
import scipy.linalg
from numpy.typing import NDArray
from scipy.special import comb

logger = logging.getLogger(__name__)

_SPLIT_HALF = 0.5


def pascal_alternating(n: int) -> NDArray[np.float64]:
    """Lower triangular Pascal matrix with alternating signs, ``A[i, j] = (-1)^(i-j) C(i, j)``.

    Computed as the matrix exponential of the sub-diagonal matrix ``-[1, 2, ..., n-1]``.
    The entries are integers, the result is rounded to remove Pade noise.

    Args:
        n: Size of the square matrix.

    Returns:
        NDArray[np.float64] of shape (n, n)
    """
    if n <= 0:
        return np.zeros((0, 0), dtype=np.float64)
    generator = np.diag(-np.arange(1, n, dtype=np.float64), k=-1)
    return np.rint(scipy.linalg.expm(generator))


class CoefficientCache:
    """Memoized mapping from curve order to coefficient matrices.

    One instance is normally shared by all curves of a process (see ``default_cache``),
    but an explicit instance can be passed to curves, e.g. to isolate tests.
    Insertion is guarded by a single re-entrant lock, lookups of existing entries are lock-free.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._bernstein: Dict[int, NDArray[np.float64]] = {}
        self._bernstein_inverse: Dict[int, NDArray[np.float64]] = {}
        self._split_left: Dict[int, NDArray[np.float64]] = {}
        self._split_right: Dict[int, NDArray[np.float64]] = {}
        self._elevate: Dict[int, NDArray[np.float64]] = {}
        self._lower: Dict[int, NDArray[np.float64]] = {}

    def _get_or_build(
        self,
        table: Dict[int, NDArray[np.float64]],
        n: int,
        builder: Callable[[int], NDArray[np.float64]],
    ) -> NDArray[np.float64]:
        matrix = table.get(n)
        if matrix is not None:
            return matrix
        with self._lock:
            matrix = table.get(n)
            if matrix is None:
                matrix = builder(n)
                matrix.setflags(write=False)
                table[n] = matrix
                logger.debug("built %s coefficients for n=%d", builder.__name__, n)
        return matrix

    def __len__(self) -> int:
        return sum(
            len(table)
            for table in (
                self._bernstein,
                self._bernstein_inverse,
                self._split_left,
                self._split_right,
                self._elevate,
                self._lower,
            )
        )

    ###########################################################################
    # Bernstein basis
    ###########################################################################

    def bernstein(self, n: int) -> NDArray[np.float64]:
        """Matrix converting Bernstein control points of n points into power-basis coefficients.

        Row k holds the weights of ``t^k``: ``B[k, j] = C(n-1, k) * C(k, j) * (-1)^(k-j)``.
        """
        return self._get_or_build(self._bernstein, n, self._build_bernstein)

    def bernstein_inverse(self, n: int) -> NDArray[np.float64]:
        """Exact inverse of ``bernstein(n)``, mapping power-basis coefficients back to control points."""
        return self._get_or_build(self._bernstein_inverse, n, self._build_bernstein_inverse)

    @staticmethod
    def _build_bernstein(n: int) -> NDArray[np.float64]:
        binomials = comb(n - 1, np.arange(n), exact=False)
        return pascal_alternating(n) * binomials[:, np.newaxis]

    @staticmethod
    def _build_bernstein_inverse(n: int) -> NDArray[np.float64]:
        # inverse of the alternating Pascal matrix is the plain Pascal matrix
        binomials = comb(n - 1, np.arange(n), exact=False)
        return np.abs(pascal_alternating(n)) / binomials[np.newaxis, :]

    ###########################################################################
    # Subdivision
    ###########################################################################

    def split_left(self, n: int, z: float = _SPLIT_HALF) -> NDArray[np.float64]:
        """Matrix mapping control points onto the control points of the sub-curve on [0, z].

        Only z = 0.5 is cached; other values are computed on every call.
        """
        if z == _SPLIT_HALF:
            return self._get_or_build(self._split_left, n, self._build_split_left_half)
        return self._compute_split_left(n, z)

    def split_right(self, n: int, z: float = _SPLIT_HALF) -> NDArray[np.float64]:
        """Matrix mapping control points onto the control points of the sub-curve on [z, 1].

        Only z = 0.5 is cached; other values are computed on every call.
        """
        if z == _SPLIT_HALF:
            return self._get_or_build(self._split_right, n, self._build_split_right_half)
        return self._mirror_split_left(self._compute_split_left(n, z))

    def _compute_split_left(self, n: int, z: float) -> NDArray[np.float64]:
        if n == 0:
            return np.zeros((0, 0), dtype=np.float64)
        powers = np.power(float(z), np.arange(n, dtype=np.float64))
        return self.bernstein_inverse(n) @ (powers[:, np.newaxis] * self.bernstein(n))

    @staticmethod
    def _mirror_split_left(left: NDArray[np.float64]) -> NDArray[np.float64]:
        # row k of the right matrix is row n-1-k of the left matrix, shifted by k columns
        n = left.shape[0]
        right = np.zeros_like(left)
        for k in range(n):
            right[k, k:] = left[n - 1 - k, : n - k]
        return right

    def _build_split_left_half(self, n: int) -> NDArray[np.float64]:
        return self._compute_split_left(n, _SPLIT_HALF)

    def _build_split_right_half(self, n: int) -> NDArray[np.float64]:
        return self._mirror_split_left(np.array(self.split_left(n, _SPLIT_HALF)))

    ###########################################################################
    # Order elevation and reduction
    ###########################################################################

    def elevate(self, n: int) -> NDArray[np.float64]:
        """(n+1, n) matrix raising a curve of n control points to n+1 control points.

        The elevated curve is exactly the same geometric curve.
        """
        return self._get_or_build(self._elevate, n, self._build_elevate)

    def lower(self, n: int) -> NDArray[np.float64]:
        """(n-1, n) matrix lowering a curve of n control points to n-1 control points.

        This is the least-squares pseudo-inverse of ``elevate(n-1)``. Lowering is an
        approximation: it reproduces the original curve only if that curve could have
        been produced by elevation.
        """
        return self._get_or_build(self._lower, n, self._build_lower)

    @staticmethod
    def _build_elevate(n: int) -> NDArray[np.float64]:
        matrix = np.zeros((n + 1, n), dtype=np.float64)
        k = np.arange(n, dtype=np.float64)
        matrix[np.arange(n), np.arange(n)] = 1.0 - k / n
        matrix[np.arange(1, n + 1), np.arange(n)] = (k + 1.0) / n
        return matrix

    def _build_lower(self, n: int) -> NDArray[np.float64]:
        elevation = self.elevate(n - 1)
        return np.linalg.solve(elevation.T @ elevation, elevation.T)


_default_cache: Optional[CoefficientCache] = None
_default_cache_lock = threading.Lock()


def default_cache() -> CoefficientCache:
    """Return the process-wide coefficient cache, creating it on first use."""
    global _default_cache  # pylint: disable=global-statement
    if _default_cache is None:
        with _default_cache_lock:
            if _default_cache is None:
                _default_cache = CoefficientCache()
    return _default_cache

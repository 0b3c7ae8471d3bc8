"""Test module for CoefficientCache and BasisTransform in bezalg

The tests are run using pytest.
These tests ensure that the cached coefficient matrices keep their closed forms
and that evaluation through the Bernstein basis stays exact at the end points.
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from scipy.special import comb

from bezalg.basis import BasisTransform
from bezalg.coeffs import CoefficientCache, default_cache, pascal_alternating


def de_casteljau_split(points: np.ndarray, z: float):
    """Reference subdivision by repeated linear interpolation."""
    left = [points[0]]
    right = [points[-1]]
    level = points.copy()
    while level.shape[0] > 1:
        level = (1 - z) * level[:-1] + z * level[1:]
        left.append(level[0])
        right.append(level[-1])
    return np.array(left), np.array(right[::-1])


def bernstein_reference(points: np.ndarray, t: float) -> np.ndarray:
    """Reference evaluation with explicit Bernstein polynomials."""
    n = points.shape[0] - 1
    weights = np.array([comb(n, i) * t**i * (1 - t) ** (n - i) for i in range(n + 1)])
    return weights @ points


###############################################################################
# Closed forms
###############################################################################


class TestClosedForms:
    """Compare cached matrices with their known closed forms."""

    def test_pascal_alternating(self):
        """Alternating Pascal matrix holds signed binomials."""
        expected = np.array(
            [
                [1, 0, 0, 0],
                [-1, 1, 0, 0],
                [1, -2, 1, 0],
                [-1, 3, -3, 1],
            ],
            dtype=np.float64,
        )
        assert np.array_equal(pascal_alternating(4), expected)

    def test_bernstein_cubic(self):
        """Cubic Bernstein matrix is the textbook power-basis matrix."""
        expected = np.array(
            [
                [1, 0, 0, 0],
                [-3, 3, 0, 0],
                [3, -6, 3, 0],
                [-1, 3, -3, 1],
            ],
            dtype=np.float64,
        )
        assert np.array_equal(CoefficientCache().bernstein(4), expected)

    @pytest.mark.parametrize("n", [1, 2, 3, 5, 8, 12])
    def test_bernstein_inverse(self, n):
        """Inverse matrix really inverts the Bernstein matrix."""
        cache = CoefficientCache()
        product = cache.bernstein(n) @ cache.bernstein_inverse(n)
        assert np.allclose(product, np.eye(n), atol=1e-9), f"n={n}: B @ B^-1 should be identity"

    @pytest.mark.parametrize("z", [0.5, 0.25, 0.8])
    def test_split_matches_de_casteljau(self, z):
        """Split matrices reproduce de Casteljau subdivision."""
        cache = CoefficientCache()
        points = np.array([[0.0, 0.0], [1.0, 3.0], [2.5, -1.0], [4.0, 2.0], [5.0, 0.0]])
        left_ref, right_ref = de_casteljau_split(points, z)

        assert np.allclose(cache.split_left(5, z) @ points, left_ref, atol=1e-10)
        assert np.allclose(cache.split_right(5, z) @ points, right_ref, atol=1e-10)

    def test_elevate_quadratic(self):
        """Elevating a quadratic gives the textbook 4x3 matrix."""
        expected = np.array(
            [
                [1.0, 0.0, 0.0],
                [1.0 / 3.0, 2.0 / 3.0, 0.0],
                [0.0, 2.0 / 3.0, 1.0 / 3.0],
                [0.0, 0.0, 1.0],
            ]
        )
        assert np.allclose(CoefficientCache().elevate(3), expected)

    def test_lower_is_left_inverse_of_elevate(self):
        """Lowering undoes elevation exactly."""
        cache = CoefficientCache()
        for n in range(2, 9):
            product = cache.lower(n + 1) @ cache.elevate(n)
            assert np.allclose(product, np.eye(n), atol=1e-9), f"n={n}: lower(n+1) @ elevate(n) should be identity"


###############################################################################
# Caching behaviour
###############################################################################


class TestCaching:
    """Matrices are built once per order and never change afterwards."""

    def test_same_object_returned(self):
        """Repeated lookups hand out the identical array."""
        cache = CoefficientCache()
        assert cache.bernstein(6) is cache.bernstein(6)
        assert cache.split_left(6) is cache.split_left(6)
        assert cache.split_right(6) is cache.split_right(6)
        assert cache.elevate(6) is cache.elevate(6)
        assert cache.lower(6) is cache.lower(6)

    def test_arbitrary_split_not_cached(self):
        """Only the bisection split is stored."""
        cache = CoefficientCache()
        cache.split_left(4, 0.3)
        cache.split_right(4, 0.3)
        size = len(cache)
        cache.split_left(4, 0.7)
        assert len(cache) == size, "Non-half splits must not grow the cache"

    def test_entries_are_read_only(self):
        """Cached matrices cannot be modified in place."""
        matrix = CoefficientCache().bernstein(3)
        with pytest.raises(ValueError):
            matrix[0, 0] = 42.0

    def test_default_cache_is_shared(self):
        """The process-wide cache is a single instance."""
        assert default_cache() is default_cache()

    def test_concurrent_first_use(self):
        """Concurrent first lookups agree on one entry."""
        cache = CoefficientCache()
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: cache.split_left(7), range(32)))
        assert all(result is results[0] for result in results)


###############################################################################
# BasisTransform
###############################################################################


class TestBasisTransform:
    """Evaluation through the power basis."""

    def test_matches_bernstein_reference(self):
        """Power-basis evaluation equals explicit Bernstein evaluation."""
        basis = BasisTransform(CoefficientCache())
        points = np.array([[0.0, 0.0], [1.0, 2.0], [3.0, 3.0], [4.0, 0.0], [6.0, 1.0]])
        for t in np.linspace(0.0, 1.0, 11):
            assert np.allclose(basis.value_at(points, t), bernstein_reference(points, t), atol=1e-12)

    def test_end_points_exact(self):
        """t=0 and t=1 hit the first and last control points."""
        basis = BasisTransform(CoefficientCache())
        points = np.array([[0.5, -1.0], [2.0, 7.0], [-3.0, 4.0], [9.0, 9.0], [1.0, 2.0], [8.0, -2.0]])
        assert np.allclose(basis.value_at(points, 0.0), points[0], atol=1e-12)
        assert np.allclose(basis.value_at(points, 1.0), points[-1], atol=1e-12)

    def test_batched_equals_single(self):
        """Batched evaluation matches evaluation one parameter at a time."""
        basis = BasisTransform(CoefficientCache())
        points = np.array([[0.0, 0.0], [1.0, 2.0], [2.0, -2.0], [3.0, 0.0]])
        params = np.linspace(0.0, 1.0, 17)
        batched = basis.values_at(points, params)
        singles = np.array([basis.value_at(points, t) for t in params])
        assert batched.shape == (17, 2)
        assert np.allclose(batched, singles)

    def test_no_control_points_evaluates_to_origin(self):
        """An empty control polygon evaluates to the origin."""
        basis = BasisTransform(CoefficientCache())
        empty = np.zeros((0, 2))
        assert np.array_equal(basis.value_at(empty, 0.3), np.zeros(2))
        assert basis.values_at(empty, [0.1, 0.2]).shape == (2, 2)

    def test_power_coefficients(self):
        """Power coefficients of a cubic with evenly spaced x are (0, 3, 0, 0)."""
        basis = BasisTransform(CoefficientCache())
        points = np.array([[0.0, 0.0], [1.0, 2.0], [2.0, -2.0], [3.0, 0.0]])
        coeffs = basis.power_coefficients(points)
        assert np.allclose(coeffs[:, 0], [0.0, 3.0, 0.0, 0.0])
        assert np.allclose(coeffs[:, 1], [0.0, 6.0, -18.0, 12.0])

"""Bezier curves of arbitrary order given by their control points."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from bezalg.arclength import ArcLengthEngine
from bezalg.basis import BasisTransform
from bezalg.coeffs import CoefficientCache, default_cache
from bezalg.common import (
    DEFAULT_SETTINGS,
    CurveError,
    CurveSettings,
    InvalidOperationError,
    PointLike,
    PointsLike,
    as_point,
    as_points,
)
from bezalg.continuity import ContinuitySolver
from bezalg.geom import BoundingBox
from bezalg.intersect import IntersectionEngine
from bezalg.roots import RootSolver
from bezalg.subdivide import Subdivider

_ROOT_METHODS = ("polynomial", "iterative")


###############################################################################
# BezierCurve
###############################################################################


class BezierCurve:
    """Planar Bezier curve with N >= 1 control points.

    The order of the curve is the number of control points N, its degree is N - 1.
    Derived data (derivative curve, roots, extrema, bounding boxes, polyline and the
    projection polynomial) is computed lazily and cached per instance. Every mutating
    method clears all caches at once.

    Coefficient matrices are shared between curves through a ``CoefficientCache``;
    by default the process-wide cache is used.

    Attributes:
        _points: Control points (shape: N, 2)
        settings: Tolerances and iteration caps used when a query gets no explicit value
        cache: Coefficient matrices shared with other curves
    """

    _points: NDArray[np.float64]
    _cached_derivative: Optional[BezierCurve] = None  # caching variable
    _cached_roots: Optional[Dict[str, NDArray[np.float64]]] = None  # caching variable
    _cached_extrema: Optional[NDArray[np.float64]] = None  # caching variable
    _cached_box_tight: Optional[BoundingBox] = None  # caching variable
    _cached_box_relaxed: Optional[BoundingBox] = None  # caching variable
    _cached_polyline: Optional[NDArray[np.float64]] = None  # caching variable
    _cached_polyline_params: Optional[Tuple[float, float]] = None  # caching variable
    _cached_projection: Optional[Tuple[NDArray[np.float64], NDArray[np.float64]]] = None  # caching variable

    def __init__(
        self,
        points: PointsLike,
        settings: Optional[CurveSettings] = None,
        cache: Optional[CoefficientCache] = None,
    ):
        """
        Initialize a BezierCurve from its control points.

        Args:
            points: a sequence of (x, y) or an array of shape (N, 2), N >= 1.
            settings: tolerances used by queries, defaults to ``DEFAULT_SETTINGS``.
            cache: coefficient cache, defaults to the process-wide cache.

        Raises:
            CurveError: If no control point is given.
            ValueError: If the points are not 2D.
        """
        arr = np.array(as_points(points), dtype=np.float64)
        if arr.shape[0] == 0:
            raise CurveError("A curve needs at least one control point")

        self._points = arr
        self.settings = settings if settings is not None else DEFAULT_SETTINGS
        self.cache = cache if cache is not None else default_cache()

        self._basis = BasisTransform(self.cache)
        self._subdivider = Subdivider(self.cache)
        self._solver = RootSolver(self.cache)
        self._intersector = IntersectionEngine(self.cache)
        self._arc_length = ArcLengthEngine(self._basis, self.settings.gauss_order)
        self._reset_cache()

    def _reset_cache(self) -> None:
        self._cached_derivative = None
        self._cached_roots = None
        self._cached_extrema = None
        self._cached_box_tight = None
        self._cached_box_relaxed = None
        self._cached_polyline = None
        self._cached_polyline_params = None
        self._cached_projection = None

    def _new_curve(self, points: NDArray[np.float64]) -> BezierCurve:
        return BezierCurve(points, settings=self.settings, cache=self.cache)

    ###########################################################################
    # Accessors
    ###########################################################################

    @property
    def order(self) -> int:
        """Number of control points N."""
        return self._points.shape[0]

    @property
    def degree(self) -> int:
        """Polynomial degree N - 1."""
        return self._points.shape[0] - 1

    @property
    def control_points(self) -> NDArray[np.float64]:
        """Read-only copy of the control points (shape: N, 2)."""
        points = self._points.copy()
        points.setflags(write=False)
        return points

    @property
    def end_points(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """First and last control point, which are the curve's start and end."""
        return self._points[0].copy(), self._points[-1].copy()

    def copy(self) -> BezierCurve:
        """Independent curve with the same control points, settings and cache."""
        return self._new_curve(self._points.copy())

    def approx_equal(self, other: BezierCurve, rtol: float = 1e-9, atol: float = 1e-9) -> bool:
        """Check if two curves have the same order and control points within tolerances.

        Args:
            other: Another BezierCurve to compare with
            rtol: Relative tolerance for floating point comparison
            atol: Absolute tolerance for floating point comparison

        Returns:
            True if curves are approximately equal, False otherwise
        """
        if not isinstance(other, BezierCurve):
            return False
        if self.order != other.order:
            return False
        return bool(np.allclose(self._points, other._points, rtol=rtol, atol=atol))

    def __repr__(self) -> str:
        return f"BezierCurve({self._points.tolist()})"

    ###########################################################################
    # Evaluation
    ###########################################################################

    def value_at(self, t: float) -> NDArray[np.float64]:
        """Point of the curve at parameter t."""
        return self._basis.value_at(self._points, t)

    def values_at(self, ts: Union[Sequence[float], NDArray[np.float64]]) -> NDArray[np.float64]:
        """Points of the curve at many parameters (shape: len(ts), 2)."""
        return self._basis.values_at(self._points, ts)

    def derivative(self, n: int = 1) -> BezierCurve:
        """The n-th derivative as a new Bezier curve with N - n control points.

        The derivative of a single point is the zero point. The returned curve is an
        independent copy of the cached derivative.

        Raises:
            InvalidOperationError: If n < 1.
        """
        return self._derivative(n).copy()

    def _derivative(self, n: int) -> BezierCurve:
        if n < 1:
            raise InvalidOperationError(f"Derivative order must be at least 1, got {n}")
        current = self
        for _ in range(n):
            current = current._first_derivative()
        return current

    def _first_derivative(self) -> BezierCurve:
        if self._cached_derivative is None:
            if self.order == 1:
                derivative_points = np.zeros((1, 2), dtype=np.float64)
            else:
                derivative_points = self.degree * np.diff(self._points, axis=0)
            self._cached_derivative = self._new_curve(derivative_points)
        return self._cached_derivative

    def derivative_at(self, t: float, n: int = 1) -> NDArray[np.float64]:
        """Value of the n-th derivative at parameter t."""
        return self._derivative(n).value_at(t)

    def tangent_at(self, t: float, normalize: bool = True) -> NDArray[np.float64]:
        """Tangent vector at t; a zero tangent stays zero when normalized."""
        tangent = self.derivative_at(t)
        norm = float(np.linalg.norm(tangent))
        if normalize and norm > 0.0:
            tangent = tangent / norm
        return tangent

    def normal_at(self, t: float, normalize: bool = True) -> NDArray[np.float64]:
        """Normal vector at t, the tangent rotated by +90 degrees."""
        tangent = self.tangent_at(t, normalize)
        return np.array([-tangent[1], tangent[0]], dtype=np.float64)

    def curvature_at(self, t: float) -> float:
        """Signed curvature at t; 0.0 where the curve is stationary."""
        d1 = self.derivative_at(t)
        d2 = self.derivative_at(t, 2)
        speed = float(np.linalg.norm(d1))
        if speed == 0.0:
            return 0.0
        return float(d1[0] * d2[1] - d1[1] * d2[0]) / speed**3

    def curvature_derivative_at(self, t: float) -> float:
        """Derivative of the signed curvature with respect to t; 0.0 where the curve is stationary."""
        d1 = self.derivative_at(t)
        d2 = self.derivative_at(t, 2)
        d3 = self.derivative_at(t, 3)
        speed = float(np.linalg.norm(d1))
        if speed == 0.0:
            return 0.0
        cross_12 = float(d1[0] * d2[1] - d1[1] * d2[0])
        cross_13 = float(d1[0] * d3[1] - d1[1] * d3[0])
        return cross_13 / speed**3 - 3.0 * float(np.dot(d1, d2)) * cross_12 / speed**5

    ###########################################################################
    # Roots, extrema and bounding boxes
    ###########################################################################

    def roots(self, method: str = "polynomial") -> NDArray[np.float64]:
        """Parameters where the x or the y coordinate of the curve is zero.

        Args:
            method: "polynomial" extracts the roots of the coordinate polynomials exactly,
                "iterative" scans Halley iterations seeded every ``settings.root_step``
                and can miss roots lying closer together than the seed step.

        Returns:
            Sorted NDArray[np.float64] of parameters in [0, 1].

        Raises:
            ValueError: If the method is unknown.
        """
        if method not in _ROOT_METHODS:
            raise ValueError(f"Unknown root finding method '{method}', expected one of {_ROOT_METHODS}")
        if self._cached_roots is None:
            self._cached_roots = {}
        if method not in self._cached_roots:
            if method == "polynomial":
                self._cached_roots[method] = self._axis_roots(self._points)
            else:
                self._cached_roots[method] = self._iterative_roots()
        return self._cached_roots[method].copy()

    def extrema(self) -> NDArray[np.float64]:
        """Parameters where the x or the y component of the tangent is zero."""
        if self._cached_extrema is None:
            self._cached_extrema = self._axis_roots(self._derivative(1)._points)
        return self._cached_extrema.copy()

    def _axis_roots(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        settings = self.settings
        found = [
            self._solver.bernstein_roots(points[:, axis], settings.epsilon, settings.imag_tolerance)
            for axis in range(2)
        ]
        return RootSolver.unique_sorted(np.concatenate(found), settings.epsilon)

    def _iterative_roots(self) -> NDArray[np.float64]:
        settings = self.settings
        found: List[NDArray[np.float64]] = []
        for axis in range(2):

            def axis_value(t: float, axis: int = axis) -> Tuple[float, float, Optional[float]]:
                return (
                    float(self.value_at(t)[axis]),
                    float(self.derivative_at(t)[axis]),
                    float(self.derivative_at(t, 2)[axis]),
                )

            found.append(RootSolver.seeded_roots(axis_value, settings.root_step, settings.epsilon, settings.max_iter))
        return RootSolver.unique_sorted(np.concatenate(found), settings.epsilon)

    def bounding_box(self, tight: bool = True) -> BoundingBox:
        """Axis-aligned box around the curve.

        Args:
            tight: If True the box is exact, built from the curve at its extrema and
                end points. Otherwise it is the cheaper box of the control points, which
                always contains the curve.
        """
        if tight:
            if self._cached_box_tight is None:
                params = np.concatenate(([0.0, 1.0], self.extrema()))
                self._cached_box_tight = BoundingBox.from_points(self.values_at(params))
            return self._cached_box_tight
        if self._cached_box_relaxed is None:
            self._cached_box_relaxed = BoundingBox.from_points(self._points)
        return self._cached_box_relaxed

    ###########################################################################
    # Subdivision and polyline
    ###########################################################################

    def split_curve(self, z: float = 0.5) -> Tuple[BezierCurve, BezierCurve]:
        """Two new curves reproducing this curve on [0, z] and [z, 1]."""
        left, right = self._subdivider.split(self._points, z)
        return self._new_curve(left), self._new_curve(right)

    def polyline(self, smoothness: Optional[float] = None, precision: Optional[float] = None) -> NDArray[np.float64]:
        """Polyline approximation of the curve (shape: M, 2), cached per (smoothness, precision)."""
        smoothness = self.settings.smoothness if smoothness is None else smoothness
        precision = self.settings.precision if precision is None else precision
        params = (smoothness, precision)
        if self._cached_polyline is None or self._cached_polyline_params != params:
            self._cached_polyline = self._subdivider.polyline(self._points, smoothness, precision)
            self._cached_polyline_params = params
        return self._cached_polyline.copy()

    ###########################################################################
    # Arc length
    ###########################################################################

    def length(self, t1: Optional[float] = None, t2: Optional[float] = None) -> float:
        """Arc length of the curve.

        ``length()`` is the total length, ``length(t)`` the length of [0, t] and
        ``length(t1, t2)`` the length of [t1, t2].
        """
        if t1 is None:
            start, end = 0.0, 1.0
        elif t2 is None:
            start, end = 0.0, t1
        else:
            start, end = t1, t2
        return self._arc_length.length(self._derivative(1)._points, start, end)

    def iterate_by_length(
        self, t: float, s: float, epsilon: Optional[float] = None, max_iter: Optional[int] = None
    ) -> float:
        """Parameter reached after travelling arc length s from parameter t, clamped to [0, 1]."""
        epsilon = self.settings.epsilon if epsilon is None else epsilon
        max_iter = self.settings.max_iter if max_iter is None else max_iter
        return self._arc_length.iterate_by_length(
            self._derivative(1)._points, self._derivative(2)._points, t, s, epsilon, max_iter
        )

    ###########################################################################
    # Intersections
    ###########################################################################

    def intersections(
        self,
        other: Optional[BezierCurve] = None,
        stop_at_first: bool = False,
        epsilon: Optional[float] = None,
    ) -> NDArray[np.float64]:
        """Points where this curve meets another curve, or itself if other is None or self.

        Args:
            other: The other curve.
            stop_at_first: Only report the intersection with the smallest parameter on this curve.
            epsilon: Precision of the reported points.

        Returns:
            NDArray[np.float64] of shape (k, 2)
        """
        epsilon = self.settings.epsilon if epsilon is None else epsilon
        if other is None or other is self:
            return self._intersector.self_intersections(self._points, self.extrema(), epsilon, stop_at_first)
        return self._intersector.intersections(self._points, other._points, epsilon, stop_at_first)

    ###########################################################################
    # Projection
    ###########################################################################

    def _projection_polynomial(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        # (B(t) - p) . B'(t) = sum_axis conv(c, d) - p . d, split into the point independent parts
        if self._cached_projection is None:
            coeffs = self._basis.power_coefficients(self._points)
            derivative_coeffs = self._basis.power_coefficients(self._derivative(1)._points)
            base = np.convolve(coeffs[:, 0], derivative_coeffs[:, 0]) + np.convolve(
                coeffs[:, 1], derivative_coeffs[:, 1]
            )
            self._cached_projection = (base, derivative_coeffs)
        return self._cached_projection

    def project_point(self, point: PointLike) -> float:
        """Parameter of the curve point closest to the given point.

        Candidates are the real roots in [0, 1] of ``(B(t) - p) . B'(t)`` and both end points.
        """
        target = as_point(point)
        base, derivative_coeffs = self._projection_polynomial()
        polynomial = base.copy()
        polynomial[: derivative_coeffs.shape[0]] -= derivative_coeffs @ target

        inner = self._solver.polynomial_roots(polynomial, self.settings.epsilon, self.settings.imag_tolerance)
        candidates = np.concatenate(([0.0], inner, [1.0]))
        distances = np.linalg.norm(self.values_at(candidates) - target, axis=1)
        return float(candidates[int(np.argmin(distances))])

    def project_points(self, points: PointsLike) -> NDArray[np.float64]:
        """Parameters of the closest curve points for each given point."""
        return np.array([self.project_point(point) for point in as_points(points)], dtype=np.float64)

    def distance(self, point: PointLike) -> float:
        """Shortest distance between the point and the curve."""
        target = as_point(point)
        return float(np.linalg.norm(self.value_at(self.project_point(target)) - target))

    def distances(self, points: PointsLike) -> NDArray[np.float64]:
        """Shortest distances between each point and the curve."""
        targets = as_points(points)
        closest = self.values_at(self.project_points(targets))
        return np.linalg.norm(closest - targets, axis=1)

    ###########################################################################
    # Mutations
    ###########################################################################

    def reverse(self) -> None:
        """Reverse the direction of the curve in place."""
        self._points = self._points[::-1].copy()
        self._reset_cache()

    def manipulate_control_point(self, index: int, point: PointLike) -> None:
        """Move the control point at index to a new position.

        Raises:
            InvalidOperationError: If the index does not address a control point.
        """
        if not -self.order <= index < self.order:
            raise InvalidOperationError(f"Control point index {index} out of range for order {self.order}")
        self._points[index] = as_point(point)
        self._reset_cache()

    def manipulate_curvature(self, t: float, point: PointLike) -> None:
        """Reshape a quadratic or cubic curve so that it passes through point at parameter t.

        End points stay fixed. The inner control points are moved along the line through the
        curve point and its projection onto the chord (the ABC construction), so the curve
        bends towards or away from the chord.

        Raises:
            InvalidOperationError: If the curve is not quadratic or cubic or t is not inside (0, 1).
        """
        if self.order not in (3, 4):
            raise InvalidOperationError("Only quadratic and cubic curves can be manipulated")
        if not 0.0 < t < 1.0:
            raise InvalidOperationError(f"Curvature can only be manipulated for t inside (0, 1), got {t}")

        target = as_point(point)
        n = self.degree
        start, end = self._points[0], self._points[-1]
        weight_sum = t**n + (1.0 - t) ** n
        ratio = abs((weight_sum - 1.0) / weight_sum)
        u = (1.0 - t) ** n / weight_sum
        chord_point = u * start + (1.0 - u) * end
        anchor = target - (chord_point - target) / ratio

        if self.order == 3:
            self._points[1] = anchor
        else:
            p = self._points
            shift = target - self.value_at(t)
            e1 = p[0] * (1.0 - t) ** 2 + p[1] * 2.0 * t * (1.0 - t) + p[2] * t**2 + shift
            e2 = p[1] * (1.0 - t) ** 2 + p[2] * 2.0 * t * (1.0 - t) + p[3] * t**2 + shift
            v1 = anchor - (anchor - e1) / (1.0 - t)
            v2 = anchor + (e2 - anchor) / t
            p[1] = p[0] + (v1 - p[0]) / t
            p[2] = p[3] - (p[3] - v2) / (1.0 - t)
        self._reset_cache()

    def elevate_order(self) -> None:
        """Add one control point without changing the shape of the curve."""
        self._points = self.cache.elevate(self.order) @ self._points
        self._reset_cache()

    def lower_order(self) -> None:
        """Remove one control point, approximating the curve in the least-squares sense.

        This inverts ``elevate_order`` exactly only for curves that are the result of an elevation.

        Raises:
            InvalidOperationError: If the curve is a single point.
        """
        if self.order == 1:
            raise InvalidOperationError("Cannot further reduce the order of a single point curve")
        self._points = self.cache.lower(self.order) @ self._points
        self._reset_cache()

    def apply_continuity(self, source_curve: BezierCurve, beta_coeffs: Sequence[float]) -> None:
        """Move the leading control points so that this curve continues source_curve smoothly.

        With k = len(beta_coeffs), the first k+1 control points are set so that the join
        with the end of source_curve is geometrically continuous up to order k.

        Raises:
            ContinuityError: If this curve has fewer than k+1 control points.
        """
        c_order = len(beta_coeffs)
        source_derivatives = np.empty((c_order + 1, 2), dtype=np.float64)
        source_derivatives[0] = source_curve.value_at(1.0)
        for i in range(1, c_order + 1):
            source_derivatives[i] = source_curve.derivative_at(1.0, i)

        new_points = ContinuitySolver.solve(self.order, source_derivatives, beta_coeffs)
        self._points[: c_order + 1] = new_points
        self._reset_cache()

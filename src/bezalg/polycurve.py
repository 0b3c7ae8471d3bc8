"""Chains of Bezier curves addressed by a single global parameter."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from bezalg.bezier import BezierCurve
from bezalg.common import InvalidOperationError, PointLike, as_point
from bezalg.geom import BoundingBox


class PolyCurve:
    """Ordered sequence of Bezier curves.

    The global parameter T runs over [0, size]: its integer part selects the curve,
    the fractional part is the local parameter of that curve. T = size addresses the
    end of the last curve.
    """

    def __init__(self, curves: Optional[Sequence[BezierCurve]] = None):
        self._curves: List[BezierCurve] = list(curves) if curves is not None else []

    def __repr__(self) -> str:
        return f"PolyCurve({self._curves!r})"

    ###########################################################################
    # Editing
    ###########################################################################

    def insert_at(self, idx: int, curve: BezierCurve) -> None:
        """Insert a curve before position idx."""
        self._curves.insert(idx, curve)

    def insert_front(self, curve: BezierCurve) -> None:
        """Insert a curve at the start of the chain."""
        self._curves.insert(0, curve)

    def insert_back(self, curve: BezierCurve) -> None:
        """Append a curve to the end of the chain."""
        self._curves.append(curve)

    def remove_at(self, idx: int) -> BezierCurve:
        """Remove and return the curve at position idx."""
        return self._curves.pop(idx)

    def remove_front(self) -> BezierCurve:
        """Remove and return the first curve."""
        return self._curves.pop(0)

    def remove_back(self) -> BezierCurve:
        """Remove and return the last curve."""
        return self._curves.pop()

    @property
    def size(self) -> int:
        """Number of curves in the chain."""
        return len(self._curves)

    def curve(self, idx: int) -> BezierCurve:
        """Curve at position idx."""
        return self._curves[idx]

    def curves(self) -> List[BezierCurve]:
        """Shallow copy of the list of curves."""
        return list(self._curves)

    def control_points(self) -> NDArray[np.float64]:
        """Control points of all curves, concatenated (shape: sum N_i, 2)."""
        self._require_curves()
        return np.concatenate([curve.control_points for curve in self._curves])

    def set_continuity(self, idx: int, beta_coeffs: Sequence[float]) -> None:
        """Make curve idx+1 continue curve idx smoothly, see ``BezierCurve.apply_continuity``.

        Raises:
            InvalidOperationError: If idx is not followed by another curve.
        """
        if not 0 <= idx < self.size - 1:
            raise InvalidOperationError(f"Curve {idx} has no successor in a chain of {self.size} curves")
        self._curves[idx + 1].apply_continuity(self._curves[idx], beta_coeffs)

    def _require_curves(self) -> None:
        if not self._curves:
            raise InvalidOperationError("Operation needs at least one curve in the chain")

    ###########################################################################
    # Parametrization
    ###########################################################################

    def curve_idx(self, t: float) -> int:
        """Index of the curve addressed by global parameter t."""
        self._require_curves()
        idx = int(math.floor(t))
        return min(max(idx, 0), self.size - 1)

    def _local(self, t: float) -> Tuple[BezierCurve, float]:
        idx = self.curve_idx(t)
        return self._curves[idx], min(max(t - idx, 0.0), 1.0)

    def value_at(self, t: float) -> NDArray[np.float64]:
        """Point at global parameter t."""
        curve, local_t = self._local(t)
        return curve.value_at(local_t)

    def values_at(self, ts: Union[Sequence[float], NDArray[np.float64]]) -> NDArray[np.float64]:
        """Points at many global parameters (shape: len(ts), 2)."""
        params = np.asarray(ts, dtype=np.float64).reshape(-1)
        return np.array([self.value_at(float(t)) for t in params], dtype=np.float64).reshape(-1, 2)

    def derivative_at(self, t: float, n: int = 1) -> NDArray[np.float64]:
        """n-th derivative with respect to the local parameter at global parameter t."""
        curve, local_t = self._local(t)
        return curve.derivative_at(local_t, n)

    def tangent_at(self, t: float, normalize: bool = True) -> NDArray[np.float64]:
        """Tangent at global parameter t."""
        curve, local_t = self._local(t)
        return curve.tangent_at(local_t, normalize)

    def normal_at(self, t: float, normalize: bool = True) -> NDArray[np.float64]:
        """Normal at global parameter t."""
        curve, local_t = self._local(t)
        return curve.normal_at(local_t, normalize)

    def curvature_at(self, t: float) -> float:
        """Signed curvature at global parameter t."""
        curve, local_t = self._local(t)
        return curve.curvature_at(local_t)

    ###########################################################################
    # Geometry
    ###########################################################################

    def length(self, t1: Optional[float] = None, t2: Optional[float] = None) -> float:
        """Arc length, with the same overloads as ``BezierCurve.length`` on the global parameter."""
        self._require_curves()
        if t1 is None:
            start, end = 0.0, float(self.size)
        elif t2 is None:
            start, end = 0.0, t1
        else:
            start, end = t1, t2
        if end < start:
            return -self.length(end, start)

        idx_start, idx_end = self.curve_idx(start), self.curve_idx(end)
        if idx_start == idx_end:
            return self._curves[idx_start].length(start - idx_start, end - idx_end)

        total = self._curves[idx_start].length(start - idx_start, 1.0)
        for idx in range(idx_start + 1, idx_end):
            total += self._curves[idx].length()
        return total + self._curves[idx_end].length(0.0, end - idx_end)

    def polyline(self, smoothness: Optional[float] = None, precision: Optional[float] = None) -> NDArray[np.float64]:
        """Polylines of all curves joined, each joint point is emitted once."""
        self._require_curves()
        parts = [self._curves[0].polyline(smoothness, precision)]
        for curve in self._curves[1:]:
            part = curve.polyline(smoothness, precision)
            if np.array_equal(part[0], parts[-1][-1]):
                part = part[1:]
            parts.append(part)
        return np.concatenate(parts)

    def bounding_box(self, tight: bool = True) -> BoundingBox:
        """Union of the bounding boxes of all curves."""
        self._require_curves()
        return BoundingBox.union(curve.bounding_box(tight) for curve in self._curves)

    def project_point(self, point: PointLike) -> float:
        """Global parameter of the chain point closest to the given point."""
        self._require_curves()
        target = as_point(point)
        best_t, best_distance = 0.0, math.inf
        for idx, curve in enumerate(self._curves):
            local_t = curve.project_point(target)
            distance = float(np.linalg.norm(curve.value_at(local_t) - target))
            if distance < best_distance:
                best_t, best_distance = idx + local_t, distance
        return best_t

    def distance(self, point: PointLike) -> float:
        """Shortest distance between the point and the chain."""
        return float(np.linalg.norm(self.value_at(self.project_point(point)) - as_point(point)))

    def intersections(
        self,
        other: Union[BezierCurve, PolyCurve],
        stop_at_first: bool = False,
        epsilon: Optional[float] = None,
    ) -> NDArray[np.float64]:
        """Points where the chain meets a curve or another chain.

        Intersections found on several curve pairs (e.g. at shared joints) are reported once.
        """
        self._require_curves()
        others = other.curves() if isinstance(other, PolyCurve) else [other]
        tolerance = self._curves[0].settings.epsilon if epsilon is None else epsilon

        found: List[NDArray[np.float64]] = []
        for curve in self._curves:
            for other_curve in others:
                if not curve.bounding_box(tight=False).intersects(other_curve.bounding_box(tight=False)):
                    continue
                for point in curve.intersections(other_curve, stop_at_first, tolerance):
                    if all(np.linalg.norm(point - known) >= tolerance for known in found):
                        found.append(point)
                        if stop_at_first:
                            return np.array(found, dtype=np.float64)
        if not found:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array(found, dtype=np.float64)

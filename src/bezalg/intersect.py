"""Curve/curve and self intersection by recursive bounding-box subdivision."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from bezalg.coeffs import CoefficientCache, default_cache
from bezalg.geom import BoundingBox
from bezalg.subdivide import Subdivider

logger = logging.getLogger(__name__)

SegmentPair = Tuple[NDArray[np.float64], NDArray[np.float64]]


class IntersectionEngine:
    """Localize intersections of Bezier curves to a tolerance.

    Candidate pairs of sub-curves live on a LIFO stack. A pair is dropped as soon as the
    boxes of its control points do not overlap, which is what makes the subdivision
    converge. A pair whose boxes are both smaller than epsilon is an intersection.
    """

    def __init__(self, cache: Optional[CoefficientCache] = None) -> None:
        self.cache = cache if cache is not None else default_cache()
        self.subdivider = Subdivider(self.cache)

    def intersections(
        self,
        points_a: NDArray[np.float64],
        points_b: NDArray[np.float64],
        epsilon: float,
        stop_at_first: bool = False,
    ) -> NDArray[np.float64]:
        """Intersections of two distinct curves.

        Args:
            points_a: Control points of the primary curve.
            points_b: Control points of the other curve.
            epsilon: Box diagonal at which a pair counts as converged.
            stop_at_first: Return after the first point, which has the smallest
                parameter on the primary curve.

        Returns:
            NDArray[np.float64] of shape (k, 2)
        """
        return self._search([(points_a, points_b)], epsilon, stop_at_first)

    def self_intersections(
        self,
        points: NDArray[np.float64],
        extrema: Sequence[float],
        epsilon: float,
        stop_at_first: bool = False,
    ) -> NDArray[np.float64]:
        """Points where a curve crosses itself.

        The curve is cut at its extrema into sub-curves that are monotonic in x and y,
        and so cannot cross themselves. Cuts leave a gap of epsilon around each extremum
        so that neighbouring sub-curves do not touch. Only pairs of different
        sub-curves are searched.

        Args:
            points: Control points of the curve.
            extrema: Parameters of the curve extrema along x and y.
            epsilon: Box diagonal at which a pair counts as converged.
            stop_at_first: Return after the first point found.

        Returns:
            NDArray[np.float64] of shape (k, 2)
        """
        half_gap = epsilon / 2.0
        cuts = [float(t) for t in sorted(extrema) if half_gap < t < 1.0 - half_gap]
        bounds = [0.0] + cuts + [1.0]

        sub_curves: List[NDArray[np.float64]] = []
        for k in range(len(bounds) - 1):
            t0 = bounds[k] + half_gap if k > 0 else 0.0
            t1 = bounds[k + 1] - half_gap if k + 1 < len(bounds) - 1 else 1.0
            if t1 > t0:
                sub_curves.append(self.subdivider.segment(points, t0, t1))

        pairs: List[SegmentPair] = []
        for k, sub_a in enumerate(sub_curves):
            for sub_b in sub_curves[k + 1 :]:
                pairs.append((sub_a, sub_b))
        # the stack is LIFO, reverse so the pairs with the smallest parameters come first
        pairs.reverse()
        return self._search(pairs, epsilon, stop_at_first)

    def _bisect(self, points: NDArray[np.float64], diagonal: float, epsilon: float) -> List[NDArray[np.float64]]:
        if diagonal < epsilon:
            return [points]
        left, right = self.subdivider.split(points)
        # the second half goes first, the first half ends up on top of the stack
        return [right, left]

    def _search(self, pairs: List[SegmentPair], epsilon: float, stop_at_first: bool) -> NDArray[np.float64]:
        found: List[NDArray[np.float64]] = []
        num_processed = 0

        while pairs:
            part_a, part_b = pairs.pop()
            num_processed += 1

            box_a = BoundingBox.from_points(part_a)
            box_b = BoundingBox.from_points(part_b)
            if not box_a.intersects(box_b):
                continue

            diagonal_a = box_a.diagonal
            diagonal_b = box_b.diagonal
            if diagonal_a < epsilon and diagonal_b < epsilon:
                candidate = np.array(box_a.centroid, dtype=np.float64)
                if all(np.linalg.norm(candidate - point) >= epsilon for point in found):
                    found.append(candidate)
                    if stop_at_first:
                        break
                continue

            halves_a = self._bisect(part_a, diagonal_a, epsilon)
            halves_b = self._bisect(part_b, diagonal_b, epsilon)
            for half_b in halves_b:
                for half_a in halves_a:
                    pairs.append((half_a, half_b))

        logger.debug("intersection search processed %d pairs, found %d points", num_processed, len(found))
        if not found:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array(found, dtype=np.float64)

"""Handling of axis-aligned boxes around curves"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
from numpy.typing import NDArray


###############################################################################
# BoundingBox
###############################################################################
@dataclass
class BoundingBox:
    """
    Axis-aligned box given by its minimum and maximum corner.

    Attributes:
        xmin (float): The minimum x-coordinate.
        ymin (float): The minimum y-coordinate.
        xmax (float): The maximum x-coordinate.
        ymax (float): The maximum y-coordinate.
    """

    _xmin: float
    _ymin: float
    _xmax: float
    _ymax: float

    def __init__(self, xmin: float, ymin: float, xmax: float, ymax: float):
        """Initialize BoundingBox with coordinates.

        Args:
            xmin: The minimum x-coordinate
            ymin: The minimum y-coordinate
            xmax: The maximum x-coordinate
            ymax: The maximum y-coordinate
        """
        self._xmin = float(xmin)
        self._ymin = float(ymin)
        self._xmax = float(xmax)
        self._ymax = float(ymax)

        # Normalize coordinates to ensure xmin <= xmax and ymin <= ymax
        if self._xmin > self._xmax:
            self._xmin, self._xmax = self._xmax, self._xmin
        if self._ymin > self._ymax:
            self._ymin, self._ymax = self._ymax, self._ymin

    @classmethod
    def from_points(cls, points: NDArray[np.float64]) -> BoundingBox:
        """Smallest box containing all given points of shape (n, 2)."""
        mins = points.min(axis=0)
        maxs = points.max(axis=0)
        return cls(mins[0], mins[1], maxs[0], maxs[1])

    @classmethod
    def union(cls, boxes: Iterable[BoundingBox]) -> BoundingBox:
        """Smallest box containing all given boxes.

        Raises:
            ValueError: If no box is given.
        """
        extents = [box.extent for box in boxes]
        if not extents:
            raise ValueError("Cannot build the union of zero boxes")
        return cls(
            min(e[0] for e in extents),
            min(e[1] for e in extents),
            max(e[2] for e in extents),
            max(e[3] for e in extents),
        )

    @property
    def xmin(self) -> float:
        """float: The minimum x-coordinate."""
        return self._xmin

    @property
    def ymin(self) -> float:
        """float: The minimum y-coordinate."""
        return self._ymin

    @property
    def xmax(self) -> float:
        """float: The maximum x-coordinate."""
        return self._xmax

    @property
    def ymax(self) -> float:
        """float: The maximum y-coordinate."""
        return self._ymax

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        """The extent of the box as Tuple (xmin, ymin, xmax, ymax)."""
        return self._xmin, self._ymin, self._xmax, self._ymax

    @property
    def width(self) -> float:
        """float: The width of the box (difference between xmax and xmin)."""
        return self._xmax - self._xmin

    @property
    def height(self) -> float:
        """float: The height of the box (difference between ymax and ymin)."""
        return self._ymax - self._ymin

    @property
    def diagonal(self) -> float:
        """float: Length of the box diagonal."""
        return math.hypot(self.width, self.height)

    @property
    def centroid(self) -> Tuple[float, float]:
        """
        The centroid of the box.

        Returns:
            Tuple[float, float]: The coordinates of the centroid as (x, y)
        """
        return (self._xmin + self._xmax) / 2, (self._ymin + self._ymax) / 2

    def intersects(self, other: BoundingBox) -> bool:
        """True if both boxes share at least one point, touching edges included."""
        return (
            self._xmin <= other._xmax
            and other._xmin <= self._xmax
            and self._ymin <= other._ymax
            and other._ymin <= self._ymax
        )

    def contains(self, point: Tuple[float, float], tolerance: float = 0.0) -> bool:
        """True if the point lies inside the box grown by ``tolerance``."""
        return (
            self._xmin - tolerance <= point[0] <= self._xmax + tolerance
            and self._ymin - tolerance <= point[1] <= self._ymax + tolerance
        )

    def __str__(self):
        """Returns a string representation of the BoundingBox instance."""
        return (
            f"BoundingBox(xmin={self.xmin}, ymin={self.ymin}, "
            f"xmax={self.xmax}, ymax={self.ymax}, "
            f"width={self.width}, height={self.height})"
        )

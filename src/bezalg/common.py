"""Central module containing types, settings and exceptions shared by the curve engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
from numpy.typing import NDArray

###############################################################################
# Types
###############################################################################

PointLike = Union[Sequence[float], NDArray[np.float64]]  # (x, y)
PointsLike = Union[Sequence[Sequence[float]], NDArray[np.float64]]  # (n, 2)
Point = NDArray[np.float64]  # shape (2,)
ControlPoints = NDArray[np.float64]  # shape (n, 2)


###############################################################################
# Exceptions
###############################################################################


class CurveError(Exception):
    """Base exception for curve-related errors."""


class InvalidOperationError(CurveError):
    """Raised when an operation is not allowed for the curve it is called on.

    Examples are curvature manipulation on a curve that is neither quadratic
    nor cubic, lowering the order of a single point or asking for the 0-th derivative.
    """


class ContinuityError(InvalidOperationError):
    """Raised when a curve has too few control points to satisfy a continuity request."""


###############################################################################
# CurveSettings
###############################################################################


@dataclass(frozen=True)
class CurveSettings:
    """Numerical tolerances and iteration caps used by curve queries.

    Attributes:
        epsilon: Convergence tolerance for iterative solvers and intersection boxes.
        max_iter: Upper bound of Newton/Halley iterations per solve.
        root_step: Seed spacing used by the iterative root scan.
        smoothness: Polyline leaf criterion, hull length <= smoothness * chord length.
        precision: Polyline leaf criterion, hull length <= precision.
        gauss_order: Number of Gauss-Legendre nodes used for arc length.
        imag_tolerance: Largest imaginary part still accepted as a real polynomial root.
    """

    epsilon: float = 0.001
    max_iter: int = 15
    root_step: float = 0.1
    smoothness: float = 1.0001
    precision: float = 0.001
    gauss_order: int = 64
    imag_tolerance: float = 1.0e-6

    def to_dict(self) -> dict:
        """Convert settings to a dictionary."""
        return {
            "epsilon": self.epsilon,
            "max_iter": self.max_iter,
            "root_step": self.root_step,
            "smoothness": self.smoothness,
            "precision": self.precision,
            "gauss_order": self.gauss_order,
            "imag_tolerance": self.imag_tolerance,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurveSettings":
        """Create CurveSettings from a dictionary, missing keys fall back to defaults."""
        defaults = cls()
        return cls(
            epsilon=data.get("epsilon", defaults.epsilon),
            max_iter=data.get("max_iter", defaults.max_iter),
            root_step=data.get("root_step", defaults.root_step),
            smoothness=data.get("smoothness", defaults.smoothness),
            precision=data.get("precision", defaults.precision),
            gauss_order=data.get("gauss_order", defaults.gauss_order),
            imag_tolerance=data.get("imag_tolerance", defaults.imag_tolerance),
        )


DEFAULT_SETTINGS = CurveSettings()


###############################################################################
# Functions
###############################################################################


def as_point(point: PointLike) -> Point:
    """Convert a point-like value into a float64 array of shape (2,).

    Raises:
        ValueError: If the input is not a 2D point.
    """
    result = np.asarray(point, dtype=np.float64)
    if result.shape != (2,):
        raise ValueError(f"Expected a 2D point (x, y), got shape {result.shape}")
    return result


def as_points(points: PointsLike) -> ControlPoints:
    """Convert a sequence of points into a float64 array of shape (n, 2).

    Raises:
        ValueError: If the input cannot be interpreted as (x, y) rows.
    """
    if isinstance(points, np.ndarray) and points.dtype == np.float64:
        result = points
    else:
        result = np.asarray(points, dtype=np.float64)
    if result.ndim == 1 and result.size == 0:
        return result.reshape(0, 2)
    if result.ndim != 2 or result.shape[1] != 2:
        raise ValueError(f"Expected points of shape (n, 2), got shape {result.shape}")
    return result

"""Geometric continuity constraints between consecutive Bezier curves."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.special import factorial

from bezalg.coeffs import pascal_alternating
from bezalg.common import ContinuityError


class ContinuitySolver:
    """Closed-form solve for the leading control points of a curve joining another curve.

    With beta constraints ``[b1, ..., bk]`` the derivatives wanted at the start of the
    joining curve are the chain-rule (Faa di Bruno) combinations of the source curve's
    derivatives at its end, e.g. ``Q' = b1 P'`` and ``Q'' = b1^2 P'' + b2 P'``.
    ``[1, 0, ..., 0]`` gives plain C^k continuity.
    """

    @staticmethod
    def bell_matrix(beta: Sequence[float]) -> NDArray[np.float64]:
        """Matrix of the incomplete Bell polynomials of the beta constraints.

        Columns are in reverse derivative order: multiplying a row vector of source
        derivatives ``[D0, D1, ..., Dk]`` by it yields ``[Qk, ..., Q1, Q0]``.
        """
        betas = np.asarray(beta, dtype=np.float64)
        c_order = betas.shape[0]
        pascal = np.abs(pascal_alternating(c_order + 1))

        bell = np.zeros((c_order + 1, c_order + 1), dtype=np.float64)
        bell[0, c_order] = 1.0
        for i in range(c_order):
            weights = pascal[i, : i + 1] * betas[: i + 1]
            bell[1 : i + 2, c_order - i - 1] = bell[: i + 1, c_order - i :] @ weights
        return bell

    @classmethod
    def solve(
        cls,
        num_points: int,
        source_derivatives: NDArray[np.float64],
        beta: Sequence[float],
    ) -> NDArray[np.float64]:
        """Compute the first k+1 control points of a curve that continues a source curve.

        Args:
            num_points: Number of control points of the joining curve.
            source_derivatives: Array (k+1, 2) of the source curve's end point and its
                derivatives 1..k at t = 1.
            beta: The k beta constraints.

        Returns:
            NDArray[np.float64] of shape (k+1, 2) with the new leading control points.

        Raises:
            ContinuityError: If the curve has fewer than k+1 control points.
        """
        c_order = len(beta)
        if num_points < c_order + 1:
            raise ContinuityError(
                f"Continuity of order {c_order} needs at least {c_order + 1} control points, got {num_points}"
            )
        if source_derivatives.shape != (c_order + 1, 2):
            raise ValueError(
                f"Expected source derivatives of shape {(c_order + 1, 2)}, got {source_derivatives.shape}"
            )

        degree = num_points - 1
        orders = np.arange(c_order + 1)
        factorials = factorial(degree, exact=False) / factorial(degree - orders, exact=False)

        wanted = (source_derivatives.T @ cls.bell_matrix(beta))[:, ::-1].T
        system = factorials[:, np.newaxis] * pascal_alternating(c_order + 1)
        return np.linalg.solve(system, wanted)

"""
Spline interpolation of discrete sweep curves

The sweep gives efficiency, purity and FoM only at the histogram bin edges.
Fitting an interpolating spline through those nodes turns each of them into a
continuous function of the cut, so the optimum can be located between nodes.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from scipy.interpolate import CubicSpline, PchipInterpolator, PPoly

from .exceptions import ConfigurationError, InvalidBinningError

INTERPOLATORS = {
    "cubic": lambda x, y: CubicSpline(x, y, bc_type="not-a-knot", extrapolate=True),
    "pchip": lambda x, y: PchipInterpolator(x, y, extrapolate=True),
}


class SmoothedCurve:
    """
    Continuous curve through (cut, value) nodes.

    Callable with scalars or arrays. Beyond the last node the final polynomial
    piece is extended up to the end of the domain.

    Attributes:
        nodes_x: Node positions (strictly increasing)
        nodes_y: Node values
        domain: (low, high) interval the curve is meant to be queried on
        kind: Interpolation scheme name
    """

    def __init__(
        self,
        interpolant: PPoly,
        nodes_x: np.ndarray,
        nodes_y: np.ndarray,
        domain: tuple[float, float],
        kind: str,
    ) -> None:
        self._interpolant = interpolant
        self._derivative = interpolant.derivative()
        self.nodes_x = nodes_x
        self.nodes_y = nodes_y
        self.domain = domain
        self.kind = kind

    def evaluate(self, x: Any) -> np.ndarray | float:
        """Curve value at x (scalar in, float out)"""
        values = self._interpolant(np.asarray(x, dtype=np.float64))
        if np.ndim(values) == 0:
            return float(values)
        return values

    __call__ = evaluate

    def critical_points(self, low: float | None = None, high: float | None = None) -> np.ndarray:
        """
        Stationary points of the curve inside [low, high].

        Flat segments contribute their left end point.
        """
        low = self.domain[0] if low is None else low
        high = self.domain[1] if high is None else high

        roots = self._derivative.roots(discontinuity=False, extrapolate=True)
        roots = roots[np.isfinite(roots)]
        return np.unique(roots[(roots >= low) & (roots <= high)])


class CurveSmoother:
    """
    Fit interpolating splines through sweep curves.

    Attributes:
        kind: "cubic" (C² not-a-knot spline, default) or "pchip"
              (C¹ shape-preserving, no overshoot between nodes)
    """

    def __init__(self, kind: str = "cubic") -> None:
        if kind not in INTERPOLATORS:
            raise ConfigurationError(
                f"Unknown interpolation '{kind}'. Available: {sorted(INTERPOLATORS)}"
            )
        self.kind = kind

    def fit(
        self,
        cuts: Any,
        values: Any,
        domain: tuple[float, float] | None = None,
    ) -> SmoothedCurve:
        """
        Interpolate a discrete curve. A single node gives a constant curve.

        Args:
            cuts: Node positions, strictly increasing
            values: Curve values at the nodes
            domain: Query interval (defaults to [cuts[0], cuts[-1]])

        Returns:
            SmoothedCurve that reproduces the nodes

        Raises:
            InvalidBinningError: If there are no nodes or nodes are not increasing
        """
        x = np.asarray(cuts, dtype=np.float64)
        y = np.asarray(values, dtype=np.float64)

        if x.ndim != 1 or x.shape != y.shape:
            raise ValueError(f"cuts and values must be 1-D of equal length, got {x.shape}, {y.shape}")
        if len(x) == 0:
            raise InvalidBinningError("Spline interpolation needs at least one node")
        if np.any(np.diff(x) <= 0):
            raise InvalidBinningError("Spline nodes must be strictly increasing")

        if domain is None:
            domain = (float(x[0]), float(x[-1]))

        if len(x) == 1:
            interpolant = PPoly(y.reshape(1, 1), np.array([x[0], x[0] + 1.0]), extrapolate=True)
        else:
            interpolant = INTERPOLATORS[self.kind](x, y)
        return SmoothedCurve(interpolant, x, y, domain, self.kind)

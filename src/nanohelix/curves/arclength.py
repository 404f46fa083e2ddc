"""Arc-length parametrization of curves by piecewise Chebyshev fits."""

from __future__ import annotations

import bisect
import logging
from typing import Callable, List, Optional, Sequence

import numpy as np
from numpy.polynomial import Chebyshev
from numpy.polynomial.legendre import leggauss

from ..config import chebyshev_degree
from ..errors import DegenerateCurve

LOGGER = logging.getLogger(__name__)

MIN_SPEED = 1e-9
QUADRATURE_ORDER = 16


def lobatto_nodes(a: float, b: float, degree: int) -> np.ndarray:
    """Chebyshev-Gauss-Lobatto nodes of ``[a, b]`` in increasing order."""

    ref = -np.cos(np.pi * np.arange(degree + 1) / degree)
    return a + (ref + 1.0) * (b - a) / 2.0


def gauss_legendre(speed: Callable[[float], float], a: float, b: float, order: int = QUADRATURE_ORDER) -> float:
    """Integrate ``speed`` over ``[a, b]``, checking it never vanishes."""

    points, weights = leggauss(order)
    half = (b - a) / 2.0
    mid = (a + b) / 2.0
    total = 0.0
    for point, weight in zip(points, weights):
        t = mid + half * point
        value = speed(t)
        if not value > MIN_SPEED:
            raise DegenerateCurve(f"Curve speed vanishes near t={t:.6g} (speed={value:.3g}).")
        total += weight * value
    return total * half


class ArcLengthMap:
    """Arc length ``L(t)`` of a curve and its inverse.

    The parameter domain is cut at ``breakpoints``; on each piece the
    cumulative length is sampled at Chebyshev-Lobatto nodes by Gauss-Legendre
    quadrature of the speed and interpolated by a Chebyshev series. Instances
    are immutable once built.
    """

    def __init__(
        self,
        speed: Callable[[float], float],
        breakpoints: Sequence[float],
        degree: Optional[int] = None,
        quad_order: int = QUADRATURE_ORDER,
    ) -> None:
        breaks = [float(value) for value in breakpoints]
        if len(breaks) < 2 or any(b <= a for a, b in zip(breaks, breaks[1:])):
            raise ValueError("breakpoints must be strictly increasing with at least two values.")
        self.degree = int(degree or chebyshev_degree())
        self.breakpoints = tuple(breaks)
        self._fits: List[Chebyshev] = []
        self._derivatives: List[Chebyshev] = []
        offsets = [0.0]
        for a, b in zip(breaks, breaks[1:]):
            fit, length = self._fit_piece(speed, a, b, quad_order)
            self._fits.append(fit)
            self._derivatives.append(fit.deriv())
            offsets.append(offsets[-1] + length)
        self._offsets = tuple(offsets)
        LOGGER.debug("ArcLengthMap pieces=%d degree=%d length=%.6f", len(self._fits), self.degree, self.length)

    def _fit_piece(self, speed, a: float, b: float, quad_order: int):
        nodes = lobatto_nodes(a, b, self.degree)
        for node in nodes:
            value = speed(float(node))
            if not value > MIN_SPEED:
                raise DegenerateCurve(f"Curve speed vanishes at t={node:.6g} (speed={value:.3g}).")
        values = np.zeros_like(nodes)
        for index in range(1, len(nodes)):
            values[index] = values[index - 1] + gauss_legendre(speed, nodes[index - 1], nodes[index], quad_order)
        fit = Chebyshev.fit(nodes, values, self.degree, domain=[a, b])
        return fit, float(values[-1])

    @property
    def t_min(self) -> float:
        return self.breakpoints[0]

    @property
    def t_max(self) -> float:
        return self.breakpoints[-1]

    @property
    def length(self) -> float:
        return self._offsets[-1]

    def _piece_for_parameter(self, t: float) -> int:
        index = bisect.bisect_right(self.breakpoints, t) - 1
        return min(max(index, 0), len(self._fits) - 1)

    def arc_length(self, t: float) -> float:
        t = min(max(t, self.t_min), self.t_max)
        index = self._piece_for_parameter(t)
        return self._offsets[index] + float(self._fits[index](t))

    def parameter_at(self, s: float, tol: float = 1e-9, max_iter: int = 64) -> Optional[float]:
        """Curve parameter whose arc length is ``s``; ``None`` outside ``[0, length]``."""

        if s < -tol or s > self.length + tol:
            return None
        s = min(max(s, 0.0), self.length)
        index = bisect.bisect_right(self._offsets, s) - 1
        index = min(max(index, 0), len(self._fits) - 1)
        fit, deriv = self._fits[index], self._derivatives[index]
        lo, hi = self.breakpoints[index], self.breakpoints[index + 1]
        target = s - self._offsets[index]
        piece_length = self._offsets[index + 1] - self._offsets[index]
        t = lo + (hi - lo) * (target / piece_length if piece_length > 0 else 0.0)
        for _ in range(max_iter):
            error = float(fit(t)) - target
            if abs(error) <= tol:
                return t
            if error > 0:
                hi = t
            else:
                lo = t
            slope = float(deriv(t))
            candidate = t - error / slope if slope > 0 else None
            if candidate is not None and lo < candidate < hi:
                t = candidate
            else:
                t = (lo + hi) / 2.0
        LOGGER.debug("parameter_at s=%.9f stopped after %d iterations", s, max_iter)
        return t

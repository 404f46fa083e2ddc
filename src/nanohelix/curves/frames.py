"""Rotation-minimizing frames along curves and helix axes that follow them."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..errors import DegenerateCurve
from ..rotor import Rotor, UNIT_Y
from .arclength import MIN_SPEED, ArcLengthMap
from .bezier import PiecewiseBezier

SAMPLES_PER_SEGMENT = 64


@dataclass(frozen=True)
class CurveFrame:
    """Axis point with its tangent, up (``y``) and side (``z``) directions."""

    point: np.ndarray
    tangent: np.ndarray
    up: np.ndarray
    side: np.ndarray

    def rotor(self) -> Rotor:
        return Rotor.from_basis(self.tangent, self.up, self.side)


def _unit_tangent(curve: PiecewiseBezier, t: float) -> np.ndarray:
    derivative = curve.derivative(t)
    norm = float(np.linalg.norm(derivative))
    if norm < MIN_SPEED:
        raise DegenerateCurve(f"Curve tangent is undefined at t={t:.6g}.")
    return derivative / norm


def _perpendicular(tangent: np.ndarray, hint: Optional[np.ndarray]) -> np.ndarray:
    if hint is not None:
        up = hint - float(hint @ tangent) * tangent
        norm = float(np.linalg.norm(up))
        if norm > 1e-6:
            return up / norm
    axis = np.zeros(3)
    axis[int(np.argmin(np.abs(tangent)))] = 1.0
    up = np.cross(np.cross(tangent, axis), tangent)
    return up / np.linalg.norm(up)


def _double_reflection(x0, t0, r0, x1, t1) -> np.ndarray:
    """Transport the reference vector ``r0`` from ``x0`` to ``x1`` (Wang et al.)."""

    v1 = x1 - x0
    c1 = float(v1 @ v1)
    if c1 < 1e-24:
        r_left, t_left = r0, t0
    else:
        r_left = r0 - (2.0 / c1) * float(v1 @ r0) * v1
        t_left = t0 - (2.0 / c1) * float(v1 @ t0) * v1
    v2 = t1 - t_left
    c2 = float(v2 @ v2)
    r1 = r_left if c2 < 1e-24 else r_left - (2.0 / c2) * float(v2 @ r_left) * v2
    r1 = r1 - float(r1 @ t1) * t1
    return r1 / np.linalg.norm(r1)


class RotationMinimizingFrames:
    """Frames transported without twist along a piecewise Bezier curve.

    The reference direction is propagated over a uniform sample of the
    parameter range; the frame between two samples is one more transport
    step from the sample below, so frames are continuous across segments.
    """

    def __init__(
        self,
        curve: PiecewiseBezier,
        up: Optional[Sequence[float]] = None,
        samples_per_segment: int = SAMPLES_PER_SEGMENT,
    ) -> None:
        self.curve = curve
        count = len(curve.segments) * samples_per_segment
        self._params = np.linspace(curve.t_min, curve.t_max, count + 1)
        self._step = (curve.t_max - curve.t_min) / count
        self._points: List[np.ndarray] = []
        self._tangents: List[np.ndarray] = []
        self._ups: List[np.ndarray] = []
        hint = None if up is None else np.asarray(up, dtype=float)
        for index, t in enumerate(self._params):
            point = curve.point(float(t))
            tangent = _unit_tangent(curve, float(t))
            if index == 0:
                ref = _perpendicular(tangent, hint)
            else:
                ref = _double_reflection(self._points[-1], self._tangents[-1], self._ups[-1], point, tangent)
            self._points.append(point)
            self._tangents.append(tangent)
            self._ups.append(ref)

    def frame(self, t: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """``(tangent, up, side)`` at parameter ``t``."""

        index = int(math.floor((t - self.curve.t_min) / self._step))
        index = min(max(index, 0), len(self._params) - 1)
        tangent = _unit_tangent(self.curve, t)
        if t == self._params[index]:
            up = self._ups[index]
        else:
            up = _double_reflection(
                self._points[index], self._tangents[index], self._ups[index], self.curve.point(t), tangent
            )
        return tangent, up, np.cross(tangent, up)


class HelixCurve:
    """Axis of a helix following a curve at a fixed lattice offset.

    The axis point at parameter ``t`` is ``B(t) + u * side(t) + v * up(t)``.
    With rotation-minimizing frames its speed is
    ``|B'| - (u * B''.side + v * B''.up) / |B'|``; the arc-length map is
    fitted on that speed.
    """

    def __init__(
        self,
        curve: PiecewiseBezier,
        offset: Sequence[float] = (0.0, 0.0),
        up: Optional[Sequence[float]] = None,
        degree: Optional[int] = None,
        samples_per_segment: int = SAMPLES_PER_SEGMENT,
    ) -> None:
        self.curve = curve
        self.offset = (float(offset[0]), float(offset[1]))
        self.frames = RotationMinimizingFrames(
            curve, up=UNIT_Y if up is None else up, samples_per_segment=samples_per_segment
        )
        self.arc = ArcLengthMap(self.speed, curve.breakpoints, degree=degree)

    @property
    def length(self) -> float:
        return self.arc.length

    def speed(self, t: float) -> float:
        derivative = self.curve.derivative(t)
        norm = float(np.linalg.norm(derivative))
        if norm < MIN_SPEED:
            return 0.0
        if self.offset == (0.0, 0.0):
            return norm
        _, up, side = self.frames.frame(t)
        accel = self.curve.second_derivative(t)
        u, v = self.offset
        return norm - (u * float(accel @ side) + v * float(accel @ up)) / norm

    def frame_at(self, t: float) -> CurveFrame:
        tangent, up, side = self.frames.frame(t)
        u, v = self.offset
        point = self.curve.point(t) + u * side + v * up
        return CurveFrame(point, tangent, up, side)

    def frame_at_arclength(self, s: float) -> Optional[CurveFrame]:
        t = self.arc.parameter_at(s)
        if t is None:
            return None
        return self.frame_at(t)

    def nucleotide_count(self, z_step: float) -> int:
        return int(math.floor(self.length / z_step + 1e-9)) + 1

    def discretize(self, z_step: float) -> List[CurveFrame]:
        """Axis frames at every multiple of ``z_step`` along the curve."""

        frames = []
        for index in range(self.nucleotide_count(z_step)):
            frame = self.frame_at_arclength(index * z_step)
            if frame is not None:
                frames.append(frame)
        return frames

"""Cubic Bezier curves and the paths drawn through Bezier planes."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..errors import DegenerateCurve, UnknownPath
from ..rotor import Rotor, as_vector

_COINCIDENT = 1e-9


class CubicBezier:
    """One cubic segment, evaluated in polynomial form on ``t in [0, 1]``."""

    def __init__(self, p0: Sequence[float], p1: Sequence[float], p2: Sequence[float], p3: Sequence[float]) -> None:
        self.control_points = np.array([p0, p1, p2, p3], dtype=float)
        c0, c1, c2, c3 = self.control_points
        self._q0 = c0
        self._q1 = 3.0 * (c1 - c0)
        self._q2 = 3.0 * (c2 - 2.0 * c1 + c0)
        self._q3 = (c3 - c0) + 3.0 * (c1 - c2)

    def point(self, t: float) -> np.ndarray:
        return self._q0 + t * (self._q1 + t * (self._q2 + t * self._q3))

    def derivative(self, t: float) -> np.ndarray:
        return self._q1 + t * (2.0 * self._q2 + 3.0 * t * self._q3)

    def second_derivative(self, t: float) -> np.ndarray:
        return 2.0 * self._q2 + 6.0 * t * self._q3


class PiecewiseBezier:
    """Chain of cubic segments; segment ``k`` covers the parameters ``[k, k + 1]``."""

    def __init__(self, segments: Sequence[CubicBezier], cyclic: bool = False) -> None:
        if not segments:
            raise DegenerateCurve("A curve needs at least one segment.")
        self.segments: Tuple[CubicBezier, ...] = tuple(segments)
        self.cyclic = cyclic

    @property
    def t_min(self) -> float:
        return 0.0

    @property
    def t_max(self) -> float:
        return float(len(self.segments))

    @property
    def breakpoints(self) -> np.ndarray:
        return np.arange(len(self.segments) + 1, dtype=float)

    def _locate(self, t: float) -> Tuple[CubicBezier, float]:
        index = min(max(int(math.floor(t)), 0), len(self.segments) - 1)
        return self.segments[index], t - index

    def point(self, t: float) -> np.ndarray:
        segment, local = self._locate(t)
        return segment.point(local)

    def derivative(self, t: float) -> np.ndarray:
        segment, local = self._locate(t)
        return segment.derivative(local)

    def second_derivative(self, t: float) -> np.ndarray:
        segment, local = self._locate(t)
        return segment.second_derivative(local)

    def speed(self, t: float) -> float:
        return float(np.linalg.norm(self.derivative(t)))


@dataclass
class BezierPlane:
    """Drawing plane: ``(u, v)`` maps to ``position + u * z_dir + v * y_dir``."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: Rotor = field(default_factory=Rotor.identity)

    def __post_init__(self) -> None:
        self.position = as_vector(self.position)
        self.orientation = self.orientation.normalized()

    @property
    def normal(self) -> np.ndarray:
        return self.orientation.x_axis

    @property
    def up(self) -> np.ndarray:
        return self.orientation.y_axis

    def point(self, u: float, v: float) -> np.ndarray:
        return self.position + u * self.orientation.z_axis + v * self.orientation.y_axis


@dataclass
class BezierVertex:
    plane_id: int
    position2d: Tuple[float, float]
    position3d: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.position2d = (float(self.position2d[0]), float(self.position2d[1]))
        if self.position3d is not None:
            self.position3d = as_vector(self.position3d)


@dataclass
class BezierPath:
    vertices: List[BezierVertex] = field(default_factory=list)
    cyclic: bool = False

    def plane_ids(self) -> List[int]:
        return sorted({vertex.plane_id for vertex in self.vertices})

    def control_positions(self, planes: Mapping[int, BezierPlane]) -> List[np.ndarray]:
        points = []
        for vertex in self.vertices:
            if vertex.position3d is not None:
                points.append(vertex.position3d)
                continue
            plane = planes.get(vertex.plane_id)
            if plane is None:
                raise UnknownPath(f"Bezier plane {vertex.plane_id} does not exist.")
            points.append(plane.point(*vertex.position2d))
        return points

    def to_curve(self, planes: Mapping[int, BezierPlane]) -> PiecewiseBezier:
        """Piecewise cubic through the vertices with Catmull-Rom tangents."""

        points = self.control_positions(planes)
        count = len(points)
        if count < 2 or (self.cyclic and count < 3):
            raise DegenerateCurve(f"A {'cyclic ' if self.cyclic else ''}path needs more vertices (got {count}).")
        pairs = count if self.cyclic else count - 1
        for index in range(pairs):
            nxt = (index + 1) % count
            if np.linalg.norm(points[nxt] - points[index]) < _COINCIDENT:
                raise DegenerateCurve(f"Vertices {index} and {nxt} of the path coincide.")

        tangents = []
        for index in range(count):
            if self.cyclic:
                prev, nxt = points[index - 1], points[(index + 1) % count]
                tangents.append((nxt - prev) / 2.0)
            elif index == 0:
                tangents.append(points[1] - points[0])
            elif index == count - 1:
                tangents.append(points[-1] - points[-2])
            else:
                tangents.append((points[index + 1] - points[index - 1]) / 2.0)

        segments = []
        for index in range(pairs):
            nxt = (index + 1) % count
            segments.append(
                CubicBezier(
                    points[index],
                    points[index] + tangents[index] / 3.0,
                    points[nxt] - tangents[nxt] / 3.0,
                    points[nxt],
                )
            )
        return PiecewiseBezier(segments, cyclic=self.cyclic)

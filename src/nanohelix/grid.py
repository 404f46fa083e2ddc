"""Lattices on which helices are placed.

A grid is a plane in space carrying a 2-D lattice. The lattice x direction is
the rotated ``+z``, the lattice y direction the rotated ``+y`` and the helices
standing on the grid run along the rotated ``+x``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import GridTypeError
from .parameters import DnaParameters
from .rotor import Rotor, UNIT_Y, as_vector

_SNAP_TOLERANCE = 0.1


class GridType(Enum):
    SQUARE = "Square"
    HONEYCOMB = "Honeycomb"
    FREE = "Free"

    @classmethod
    def parse(cls, value: str) -> "GridType":
        lookup = {member.value.lower(): member for member in cls}
        key = str(value).strip().lower()
        if key not in lookup:
            raise ValueError(f"Unknown grid type '{value}'. Expected one of: Square, Honeycomb, Free.")
        return lookup[key]


def lattice_offset(
    grid_type: GridType,
    params: DnaParameters,
    x: int,
    y: int,
    offset: Optional[Sequence[float]] = None,
) -> Tuple[float, float]:
    """In-plane coordinates ``(u, v)`` of lattice vertex ``(x, y)``."""

    if grid_type is GridType.SQUARE:
        spacing = params.inter_center_distance
        return x * spacing, -y * spacing
    if grid_type is GridType.HONEYCOMB:
        radius = params.lattice_radius
        u = x * radius * math.sqrt(3.0)
        upper = -3.0 * radius * y
        v = upper - radius if abs(x) % 2 != abs(y) % 2 else upper
        return u, v
    if offset is None:
        return 0.0, 0.0
    return float(offset[0]), float(offset[1])


def lattice_interpolate(grid_type: GridType, params: DnaParameters, u: float, v: float) -> Tuple[int, int]:
    """Nearest lattice vertex to the in-plane point ``(u, v)``."""

    if grid_type is GridType.SQUARE:
        spacing = params.inter_center_distance
        return int(round(u / spacing)), int(round(v / -spacing))
    if grid_type is GridType.HONEYCOMB:
        radius = params.lattice_radius
        guess = (int(round(u / (radius * math.sqrt(3.0)))), int(math.floor(v / (-3.0 * radius))))
        best = guess
        best_dist = math.inf
        for dx in (-2, -1, 0, 1, 2):
            for dy in (-2, -1, 0, 1, 2):
                candidate = (guess[0] + dx, guess[1] + dy)
                cu, cv = lattice_offset(grid_type, params, *candidate)
                dist = (cu - u) ** 2 + (cv - v) ** 2
                if dist < best_dist:
                    best, best_dist = candidate, dist
        return best
    raise GridTypeError("Free grids have no lattice to snap to.")


@dataclass
class Grid:
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: Rotor = field(default_factory=Rotor.identity)
    grid_type: GridType = GridType.SQUARE
    invisible: bool = False
    bezier_vertex: Optional[Tuple[int, int]] = None

    def __post_init__(self) -> None:
        self.position = as_vector(self.position)
        self.orientation = self.orientation.normalized()
        if isinstance(self.grid_type, str):
            self.grid_type = GridType.parse(self.grid_type)

    @property
    def axis(self) -> np.ndarray:
        return self.orientation.x_axis

    @property
    def x_dir(self) -> np.ndarray:
        return self.orientation.z_axis

    @property
    def y_dir(self) -> np.ndarray:
        return self.orientation.y_axis

    def set_pose(self, position: Sequence[float], orientation: Rotor) -> None:
        self.position = as_vector(position)
        self.orientation = orientation.normalized()

    def translate(self, translation: Sequence[float]) -> None:
        self.position = self.position + as_vector(translation)

    def rotate_around(self, rotor: Rotor, origin: Sequence[float]) -> None:
        pivot = as_vector(origin)
        self.position = pivot + rotor.rotate(self.position - pivot)
        self.orientation = (rotor * self.orientation).normalized()

    def helix_offset(
        self, params: DnaParameters, x: int, y: int, offset: Optional[Sequence[float]] = None
    ) -> Tuple[float, float]:
        return lattice_offset(self.grid_type, params, x, y, offset)

    def position_helix(
        self, params: DnaParameters, x: int, y: int, offset: Optional[Sequence[float]] = None
    ) -> np.ndarray:
        """World position of the helix origin standing on ``(x, y)``."""

        u, v = self.helix_offset(params, x, y, offset)
        return self.position + u * self.x_dir + v * self.y_dir

    def interpolate(self, params: DnaParameters, u: float, v: float) -> Tuple[int, int]:
        return lattice_interpolate(self.grid_type, params, u, v)

    def plane_coordinates(self, point: Sequence[float]) -> Tuple[float, float]:
        rel = as_vector(point) - self.position
        return float(rel @ self.x_dir), float(rel @ self.y_dir)

    def line_intersection(self, origin: Sequence[float], direction: Sequence[float]) -> Optional[Tuple[float, float]]:
        """In-plane coordinates where the line meets the grid plane, ``None`` if parallel."""

        hit = self._intersection_parameter(origin, direction)
        if hit is None:
            return None
        t, point = hit
        return self.plane_coordinates(point)

    def ray_intersection(self, origin: Sequence[float], direction: Sequence[float]) -> Optional[Tuple[float, float]]:
        hit = self._intersection_parameter(origin, direction)
        if hit is None or hit[0] < 0:
            return None
        return self.plane_coordinates(hit[1])

    def _intersection_parameter(self, origin, direction):
        start = as_vector(origin)
        dir_vec = as_vector(direction)
        denom = float(dir_vec @ self.axis)
        if abs(denom) < 1e-9:
            return None
        t = float((self.position - start) @ self.axis) / denom
        return t, start + t * dir_vec

    def angle_axis(self, direction: Sequence[float]) -> float:
        """Angle (radians) between the grid's helix axis and ``direction``."""

        dir_vec = as_vector(direction)
        norm = float(np.linalg.norm(dir_vec))
        if norm == 0.0:
            raise ValueError("Direction must be non-zero.")
        cos = float(np.clip(self.axis @ dir_vec / norm, -1.0, 1.0))
        return math.acos(cos)

    def find_helix_position(
        self, params: DnaParameters, position: Sequence[float], orientation: Rotor
    ) -> Optional[Tuple[int, int, int, float]]:
        """Snap a straight helix pose onto the lattice.

        Returns ``(x, y, axis_pos, roll)`` or ``None`` when the helix is not
        parallel to the grid axis or does not pass through a lattice vertex.
        """

        if self.grid_type is GridType.FREE:
            raise GridTypeError("Free grids have no lattice to snap to.")
        helix_axis = orientation.x_axis
        if abs(float(helix_axis @ self.axis)) < 1.0 - 1e-3:
            return None
        coords = self.line_intersection(position, helix_axis)
        if coords is None:
            return None
        x, y = self.interpolate(params, *coords)
        lattice_u, lattice_v = self.helix_offset(params, x, y)
        if math.hypot(lattice_u - coords[0], lattice_v - coords[1]) > _SNAP_TOLERANCE:
            return None
        anchor = self.position_helix(params, x, y)
        axis_pos = int(round(float((anchor - as_vector(position)) @ helix_axis) / params.z_step))
        helix_up = orientation.rotate(UNIT_Y)
        roll = math.atan2(float(np.cross(self.y_dir, helix_up) @ helix_axis), float(self.y_dir @ helix_up))
        return x, y, axis_pos, roll

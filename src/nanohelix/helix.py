"""Helices and the frames of their nucleotides.

A straight helix runs along its local ``+x`` axis starting at ``position``.
Nucleotide ``i`` of the forward strand sits at axial distance ``i * z_step``
(the backward strand is shifted by ``inclination``) and at radius
``helix_radius`` with phase ``theta(i, forward)`` around the axis.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import IndexOutOfDeclaredRange
from .parameters import DnaParameters
from .rotor import Isometry2, Rotor, UNIT_X, UNIT_Y, UNIT_Z, as_vector
from .curves.frames import CurveFrame, HelixCurve


@dataclass
class HelixGridPosition:
    """Where a helix stands on a grid."""

    grid: int
    x: int
    y: int
    axis_pos: int = 0
    roll: float = 0.0
    offset: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class Frame:
    """Position and orientation of one nucleotide.

    ``tangent`` is the helix axis direction, ``normal`` points from the axis
    to the nucleotide and ``binormal`` completes the right-handed triple.
    """

    position: np.ndarray
    orientation: Rotor
    tangent: np.ndarray
    normal: np.ndarray
    binormal: np.ndarray
    axis_position: np.ndarray
    helix: Optional[int]
    index: int
    forward: bool


@dataclass(frozen=True)
class Frame2D:
    position: np.ndarray
    helix: Optional[int]
    index: int
    forward: bool


def nucleotide_theta(params: DnaParameters, index: int, forward: bool, roll: float = 0.0) -> float:
    return 2.0 * math.pi * index / params.bases_per_turn + (0.0 if forward else params.groove_angle) + roll


def axial_offset(params: DnaParameters, index: int, forward: bool) -> float:
    return index * params.z_step + (0.0 if forward else params.inclination)


def _frame_from_axis(
    params: DnaParameters,
    axis_point: np.ndarray,
    axis_rotor: Rotor,
    theta: float,
    helix_id: Optional[int],
    index: int,
    forward: bool,
) -> Frame:
    orientation = (axis_rotor * Rotor.from_axis_angle(UNIT_X, theta)).normalized()
    normal = orientation.rotate(UNIT_Y)
    return Frame(
        position=axis_point + params.helix_radius * normal,
        orientation=orientation,
        tangent=orientation.rotate(UNIT_X),
        normal=normal,
        binormal=orientation.rotate(UNIT_Z),
        axis_position=axis_point,
        helix=helix_id,
        index=index,
        forward=forward,
    )


def straight_frame(
    params: DnaParameters,
    position: Sequence[float],
    orientation: Rotor,
    roll: float,
    index: int,
    forward: bool,
    helix_id: Optional[int] = None,
) -> Frame:
    """Frame of nucleotide ``index`` on a straight helix with the given pose."""

    axis_point = as_vector(position) + orientation.rotate((axial_offset(params, index, forward), 0.0, 0.0))
    theta = nucleotide_theta(params, index, forward, roll)
    return _frame_from_axis(params, axis_point, orientation, theta, helix_id, index, forward)


def curved_frame(
    params: DnaParameters,
    curve_frame: CurveFrame,
    roll: float,
    index: int,
    forward: bool,
    helix_id: Optional[int] = None,
) -> Frame:
    theta = nucleotide_theta(params, index, forward, roll)
    return _frame_from_axis(params, curve_frame.point, curve_frame.rotor(), theta, helix_id, index, forward)


@dataclass
class Helix:
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: Rotor = field(default_factory=Rotor.identity)
    grid_position: Optional[HelixGridPosition] = None
    isometry2d: Optional[Isometry2] = None
    symmetry: Tuple[float, float] = (1.0, 1.0)
    roll: float = 0.0
    visible: bool = True
    locked_for_simulations: bool = False
    path_id: Optional[int] = None
    range: Optional[Tuple[int, int]] = None

    def __post_init__(self) -> None:
        self.position = as_vector(self.position)
        self.orientation = self.orientation.normalized()
        if self.range is not None:
            low, high = int(self.range[0]), int(self.range[1])
            if low > high:
                raise ValueError(f"Invalid helix range ({low}, {high}).")
            self.range = (low, high)

    @property
    def is_curved(self) -> bool:
        return self.path_id is not None

    @property
    def axis(self) -> np.ndarray:
        return self.orientation.x_axis

    def in_range(self, index: int) -> bool:
        if self.range is None:
            return True
        return self.range[0] <= index <= self.range[1]

    def check_index(self, index: int) -> None:
        if not self.in_range(index):
            raise IndexOutOfDeclaredRange(f"Nucleotide {index} is outside the helix range {self.range}.")

    def theta(self, params: DnaParameters, index: int, forward: bool) -> float:
        return nucleotide_theta(params, index, forward, self.roll)

    def axis_position(self, params: DnaParameters, index: int) -> np.ndarray:
        return self.position + params.z_step * index * self.axis

    def frame(
        self,
        params: DnaParameters,
        index: int,
        forward: bool,
        helix_id: Optional[int] = None,
        curve: Optional[HelixCurve] = None,
    ) -> Frame:
        """Frame of a nucleotide; curved helices need their fitted ``curve``."""

        self.check_index(index)
        if curve is None:
            return straight_frame(params, self.position, self.orientation, self.roll, index, forward, helix_id)
        axis_frame = curve.frame_at_arclength(axial_offset(params, index, forward))
        if axis_frame is None:
            raise IndexOutOfDeclaredRange(
                f"Nucleotide {index} lies outside the curve (length {curve.length:.3f} nm)."
            )
        return curved_frame(params, axis_frame, self.roll, index, forward, helix_id)

    def space_pos(self, params: DnaParameters, index: int, forward: bool) -> np.ndarray:
        return self.frame(params, index, forward).position

    def frame_2d(self, index: int, forward: bool, helix_id: Optional[int] = None) -> Frame2D:
        self.check_index(index)
        isometry = self.isometry2d or Isometry2.identity()
        local = (index * self.symmetry[0], (0.0 if forward else 1.0) * self.symmetry[1])
        return Frame2D(isometry.transform(local), helix_id, index, forward)

    def translate(self, translation: Sequence[float]) -> None:
        self.position = self.position + as_vector(translation)

    def rotate_around(self, rotor: Rotor, origin: Sequence[float]) -> None:
        pivot = as_vector(origin)
        self.position = pivot + rotor.rotate(self.position - pivot)
        self.orientation = (rotor * self.orientation).normalized()

    def set_pose(self, position: Sequence[float], orientation: Rotor) -> None:
        self.position = as_vector(position)
        self.orientation = orientation.normalized()

    def set_roll(self, roll: float) -> None:
        self.roll = float(roll)
        if self.grid_position is not None:
            self.grid_position.roll = self.roll

    def roll_by(self, delta: float) -> None:
        self.set_roll(self.roll + delta)

    def ideal_neighbour(self, params: DnaParameters, index: int, forward: bool) -> "Helix":
        """Helix placed so that nucleotide ``index`` can cross over to its opposite strand.

        The neighbour stands one inter-center distance away in the direction
        of the nucleotide, and its nucleotide ``index`` of the other strand
        faces back toward this helix.
        """

        theta = self.theta(params, index, forward)
        radial = self.orientation.rotate((0.0, math.cos(theta), math.sin(theta)))
        roll = theta + math.pi - nucleotide_theta(params, index, not forward)
        return replace(
            self,
            position=self.position + params.inter_center_distance * radial,
            grid_position=None,
            isometry2d=None,
            roll=math.remainder(roll, 2.0 * math.pi),
            locked_for_simulations=False,
            path_id=None,
        )

"""Rotations and rigid transforms: unit rotors in 3-D and isometries in the plane."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:  # pragma: no cover
    from .parameters import DnaParameters

UNIT_X = np.array([1.0, 0.0, 0.0])
UNIT_Y = np.array([0.0, 1.0, 0.0])
UNIT_Z = np.array([0.0, 0.0, 1.0])


def as_vector(value: Iterable[float]) -> np.ndarray:
    vec = np.asarray(value, dtype=float).reshape(3)
    return vec.copy()


@dataclass(frozen=True)
class Rotor:
    """Rotation stored as a quaternion ``w + xi + yj + zk``.

    Products compose right to left: ``(a * b).rotate(v) == a.rotate(b.rotate(v))``.
    """

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def identity(cls) -> "Rotor":
        return cls()

    @classmethod
    def from_axis_angle(cls, axis: Sequence[float], angle: float) -> "Rotor":
        axis_vec = np.asarray(axis, dtype=float)
        norm = float(np.linalg.norm(axis_vec))
        if norm == 0.0:
            raise ValueError("Rotation axis must be non-zero.")
        half = angle / 2.0
        s = math.sin(half) / norm
        return cls(math.cos(half), axis_vec[0] * s, axis_vec[1] * s, axis_vec[2] * s)

    @classmethod
    def from_rotation_vector(cls, vector: Sequence[float]) -> "Rotor":
        vec = np.asarray(vector, dtype=float)
        angle = float(np.linalg.norm(vec))
        if angle < 1e-15:
            return cls()
        return cls.from_axis_angle(vec / angle, angle)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "Rotor":
        """Rotor of a proper rotation matrix (columns are the rotated basis)."""

        m = np.asarray(matrix, dtype=float)
        trace = m[0, 0] + m[1, 1] + m[2, 2]
        if trace > 0:
            s = 2.0 * math.sqrt(trace + 1.0)
            w = 0.25 * s
            x = (m[2, 1] - m[1, 2]) / s
            y = (m[0, 2] - m[2, 0]) / s
            z = (m[1, 0] - m[0, 1]) / s
        elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
            s = 2.0 * math.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
            w = (m[2, 1] - m[1, 2]) / s
            x = 0.25 * s
            y = (m[0, 1] + m[1, 0]) / s
            z = (m[0, 2] + m[2, 0]) / s
        elif m[1, 1] > m[2, 2]:
            s = 2.0 * math.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
            w = (m[0, 2] - m[2, 0]) / s
            x = (m[0, 1] + m[1, 0]) / s
            y = 0.25 * s
            z = (m[1, 2] + m[2, 1]) / s
        else:
            s = 2.0 * math.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
            w = (m[1, 0] - m[0, 1]) / s
            x = (m[0, 2] + m[2, 0]) / s
            y = (m[1, 2] + m[2, 1]) / s
            z = 0.25 * s
        return cls(w, x, y, z).normalized()

    @classmethod
    def from_basis(cls, x_dir: Sequence[float], y_dir: Sequence[float], z_dir: Sequence[float]) -> "Rotor":
        """Rotor sending ``+x, +y, +z`` onto the given orthonormal directions."""

        return cls.from_matrix(np.column_stack([x_dir, y_dir, z_dir]))

    @classmethod
    def from_array(cls, values: Sequence[float]) -> "Rotor":
        w, x, y, z = (float(v) for v in values)
        return cls(w, x, y, z)

    def as_array(self) -> np.ndarray:
        return np.array([self.w, self.x, self.y, self.z])

    def to_list(self) -> list:
        return [self.w, self.x, self.y, self.z]

    def norm(self) -> float:
        return math.sqrt(self.w * self.w + self.x * self.x + self.y * self.y + self.z * self.z)

    def is_unit(self, tol: float = 1e-6) -> bool:
        return abs(self.norm() - 1.0) <= tol

    def normalized(self) -> "Rotor":
        norm = self.norm()
        if norm == 0.0 or not math.isfinite(norm):
            raise ValueError("Cannot normalize a zero or non-finite rotor.")
        return Rotor(self.w / norm, self.x / norm, self.y / norm, self.z / norm)

    def conjugate(self) -> "Rotor":
        return Rotor(self.w, -self.x, -self.y, -self.z)

    def inverse(self) -> "Rotor":
        return self.conjugate()

    def __mul__(self, other: "Rotor") -> "Rotor":
        if not isinstance(other, Rotor):
            return NotImplemented
        aw, ax, ay, az = self.w, self.x, self.y, self.z
        bw, bx, by, bz = other.w, other.x, other.y, other.z
        return Rotor(
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        )

    def rotate(self, vector: Sequence[float]) -> np.ndarray:
        v = np.asarray(vector, dtype=float)
        q = np.array([self.x, self.y, self.z])
        t = 2.0 * np.cross(q, v)
        return v + self.w * t + np.cross(q, t)

    def to_matrix(self) -> np.ndarray:
        w, x, y, z = self.w, self.x, self.y, self.z
        return np.array(
            [
                [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
                [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
                [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
            ]
        )

    def rotation_vector(self) -> np.ndarray:
        rotor = self if self.w >= 0 else Rotor(-self.w, -self.x, -self.y, -self.z)
        q = np.array([rotor.x, rotor.y, rotor.z])
        sin_half = float(np.linalg.norm(q))
        if sin_half < 1e-15:
            return 2.0 * q
        angle = 2.0 * math.atan2(sin_half, rotor.w)
        return q / sin_half * angle

    def angle_to(self, other: "Rotor") -> float:
        dot = abs(self.w * other.w + self.x * other.x + self.y * other.y + self.z * other.z)
        return 2.0 * math.acos(min(1.0, dot))

    @property
    def x_axis(self) -> np.ndarray:
        return self.rotate(UNIT_X)

    @property
    def y_axis(self) -> np.ndarray:
        return self.rotate(UNIT_Y)

    @property
    def z_axis(self) -> np.ndarray:
        return self.rotate(UNIT_Z)


@dataclass(frozen=True)
class Isometry2:
    """Rigid transform of the flat view: rotation by ``angle`` then translation."""

    translation: Tuple[float, float] = (0.0, 0.0)
    angle: float = 0.0

    @classmethod
    def identity(cls) -> "Isometry2":
        return cls()

    @classmethod
    def from_pose(cls, position: Sequence[float], orientation: Rotor, params: "DnaParameters") -> "Isometry2":
        """Top-down projection of a 3-D helix pose, in nucleotide units."""

        axis = orientation.x_axis
        return cls(
            (float(position[0]) / params.z_step, -float(position[1]) / params.z_step),
            -math.atan2(float(axis[1]), float(axis[0])),
        )

    def transform(self, point: Sequence[float]) -> np.ndarray:
        c, s = math.cos(self.angle), math.sin(self.angle)
        px, py = float(point[0]), float(point[1])
        return np.array([c * px - s * py + self.translation[0], s * px + c * py + self.translation[1]])

    def transform_vector(self, vector: Sequence[float]) -> np.ndarray:
        c, s = math.cos(self.angle), math.sin(self.angle)
        vx, vy = float(vector[0]), float(vector[1])
        return np.array([c * vx - s * vy, s * vx + c * vy])

    def compose(self, other: "Isometry2") -> "Isometry2":
        """``self`` applied after ``other``."""

        moved = self.transform(other.translation)
        return Isometry2((float(moved[0]), float(moved[1])), self.angle + other.angle)

    def inverse(self) -> "Isometry2":
        c, s = math.cos(-self.angle), math.sin(-self.angle)
        tx, ty = self.translation
        return Isometry2((-(c * tx - s * ty), -(s * tx + c * ty)), -self.angle)

    def translated(self, dx: float, dy: float) -> "Isometry2":
        return Isometry2((self.translation[0] + dx, self.translation[1] + dy), self.angle)

    def rotated(self, angle: float) -> "Isometry2":
        return Isometry2(self.translation, self.angle + angle)

    def is_close(self, other: "Isometry2", tol: float = 1e-9) -> bool:
        delta = math.remainder(self.angle - other.angle, 2.0 * math.pi)
        return (
            abs(self.translation[0] - other.translation[0]) <= tol
            and abs(self.translation[1] - other.translation[1]) <= tol
            and abs(delta) <= tol
        )

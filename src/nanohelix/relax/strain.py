"""Strain energy of a body arrangement and the forces deriving from it.

The energy has two terms: overlapping helix axes (closer than one
inter-center distance) and stretched cross-overs (longer than the rest
length). Both are one-sided quadratic penalties.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..design import Design
from ..helix import straight_frame
from ..strands import Nucl
from .bodies import BodyPose, RigidBody, helix_extent, member_pose
from .model import RelaxConfig

Wrench = Tuple[np.ndarray, np.ndarray]


def closest_points(p1: np.ndarray, q1: np.ndarray, p2: np.ndarray, q2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Closest points between segments ``[p1, q1]`` and ``[p2, q2]``."""

    d1 = q1 - p1
    d2 = q2 - p2
    r = p1 - p2
    a = float(d1 @ d1)
    e = float(d2 @ d2)
    f = float(d2 @ r)
    eps = 1e-12
    if a <= eps and e <= eps:
        return p1, p2
    if a <= eps:
        s = 0.0
        t = min(max(f / e, 0.0), 1.0)
    else:
        c = float(d1 @ r)
        if e <= eps:
            t = 0.0
            s = min(max(-c / a, 0.0), 1.0)
        else:
            b = float(d1 @ d2)
            denom = a * e - b * b
            if denom > 1e-12 * a * e:
                s = min(max((b * f - c * e) / denom, 0.0), 1.0)
            else:
                # parallel: middle of the overlap of the two projections
                s0 = -c / a
                s1 = (b - c) / a
                low = max(0.0, min(s0, s1))
                high = min(1.0, max(s0, s1))
                s = min(max((low + high) / 2.0, 0.0), 1.0)
            t = (b * s + f) / e
            if t < 0.0:
                t = 0.0
                s = min(max(-c / a, 0.0), 1.0)
            elif t > 1.0:
                t = 1.0
                s = min(max((b - c) / a, 0.0), 1.0)
    return p1 + d1 * s, p2 + d2 * t


@dataclass(frozen=True)
class Anchor:
    """End of a cross-over: a nucleotide on a body, or a fixed point."""

    body: Optional[int]
    helix: int
    index: int
    forward: bool
    fixed: Optional[np.ndarray] = None


class StrainModel:
    """Energy and per-body wrenches for a fixed set of bodies."""

    def __init__(self, design: Design, bodies: Sequence[RigidBody], config: RelaxConfig) -> None:
        self.params = design.parameters
        self.bodies = list(bodies)
        self.config = config
        self.min_distance = self.params.inter_center_distance
        self._body_of: Dict[int, int] = {}
        for index, body in enumerate(self.bodies):
            for helix_id in body.members:
                self._body_of[helix_id] = index
        self._roll = {hid: design.helices[hid].roll for hid in self._body_of}
        self._segment: Dict[int, Tuple[float, float]] = {}
        for helix_id in self._body_of:
            low, high = helix_extent(design, helix_id)
            self._segment[helix_id] = (low * self.params.z_step, high * self.params.z_step)

        self.springs: List[Tuple[Anchor, Anchor]] = []
        for left, right in design.crossovers():
            anchors = (self._anchor(design, left), self._anchor(design, right))
            if anchors[0].body is None and anchors[1].body is None:
                continue
            self.springs.append(anchors)

        helix_ids = sorted(self._body_of)
        self.pairs: List[Tuple[int, int]] = [
            (a, b)
            for pos, a in enumerate(helix_ids)
            for b in helix_ids[pos + 1 :]
            if self._body_of[a] != self._body_of[b]
        ]
        self._body_springs: List[List[int]] = [[] for _ in self.bodies]
        for index, (left, right) in enumerate(self.springs):
            for anchor in (left, right):
                if anchor.body is not None and index not in self._body_springs[anchor.body]:
                    self._body_springs[anchor.body].append(index)
        self._body_pairs: List[List[int]] = [[] for _ in self.bodies]
        for index, (a, b) in enumerate(self.pairs):
            self._body_pairs[self._body_of[a]].append(index)
            self._body_pairs[self._body_of[b]].append(index)

    def _anchor(self, design: Design, nucl: Nucl) -> Anchor:
        body = self._body_of.get(nucl.helix)
        if body is not None:
            return Anchor(body, nucl.helix, nucl.index, nucl.forward)
        frame = design.compute_frame(nucl.helix, nucl.index, nucl.forward)
        return Anchor(None, nucl.helix, nucl.index, nucl.forward, fixed=frame.position)

    # ---------------------------------------------------------- geometry
    def helix_pose(self, poses: Sequence[BodyPose], helix_id: int) -> BodyPose:
        index = self._body_of[helix_id]
        return member_pose(self.bodies[index], poses[index], helix_id)

    def anchor_position(self, poses: Sequence[BodyPose], anchor: Anchor) -> np.ndarray:
        if anchor.body is None:
            return anchor.fixed
        position, orientation = self.helix_pose(poses, anchor.helix)
        frame = straight_frame(
            self.params, position, orientation, self._roll[anchor.helix], anchor.index, anchor.forward
        )
        return frame.position

    def axis_segment(self, poses: Sequence[BodyPose], helix_id: int) -> Tuple[np.ndarray, np.ndarray]:
        position, orientation = self.helix_pose(poses, helix_id)
        axis = orientation.x_axis
        low, high = self._segment[helix_id]
        return position + low * axis, position + high * axis

    def body_center(self, poses: Sequence[BodyPose], index: int) -> np.ndarray:
        position, orientation = poses[index]
        return position + orientation.rotate(self.bodies[index].center)

    # ------------------------------------------------------------ energy
    def _pair_overlap(self, poses, pair_index: int):
        a, b = self.pairs[pair_index]
        pa, qa = self.axis_segment(poses, a)
        pb, qb = self.axis_segment(poses, b)
        ca, cb = closest_points(pa, qa, pb, qb)
        delta = ca - cb
        dist = float(np.linalg.norm(delta))
        return self.min_distance - dist, ca, cb, delta, dist

    def _spring_stretch(self, poses, spring_index: int):
        left, right = self.springs[spring_index]
        pl = self.anchor_position(poses, left)
        pr = self.anchor_position(poses, right)
        delta = pr - pl
        length = float(np.linalg.norm(delta))
        return length - self.config.crossover_rest_length, pl, pr, delta, length

    def energy(self, poses: Sequence[BodyPose]) -> Tuple[float, float, float]:
        """``(total, steric, crossover)`` strain of the arrangement."""

        steric = 0.0
        for index in range(len(self.pairs)):
            overlap = self._pair_overlap(poses, index)[0]
            if overlap > 0:
                steric += overlap * overlap
        crossover = 0.0
        for index in range(len(self.springs)):
            stretch = self._spring_stretch(poses, index)[0]
            if stretch > 0:
                crossover += stretch * stretch
        steric *= self.config.steric_weight
        crossover *= self.config.crossover_weight
        return steric + crossover, steric, crossover

    def wrench(self, poses: Sequence[BodyPose], body_index: int) -> Wrench:
        """Force and torque (about the center of mass) on one body."""

        force = np.zeros(3)
        torque = np.zeros(3)
        center = self.body_center(poses, body_index)
        w_x = self.config.crossover_weight
        for spring_index in self._body_springs[body_index]:
            stretch, pl, pr, delta, length = self._spring_stretch(poses, spring_index)
            if stretch <= 0 or length < 1e-12:
                continue
            pull = 2.0 * w_x * stretch * delta / length
            left, right = self.springs[spring_index]
            if left.body == body_index:
                force += pull
                torque += np.cross(pl - center, pull)
            if right.body == body_index:
                force -= pull
                torque += np.cross(pr - center, -pull)
        w_s = self.config.steric_weight
        for pair_index in self._body_pairs[body_index]:
            overlap, ca, cb, delta, dist = self._pair_overlap(poses, pair_index)
            if overlap <= 0:
                continue
            a, _ = self.pairs[pair_index]
            if dist < 1e-12:
                direction = _fallback_direction(self.axis_segment(poses, a))
            else:
                direction = delta / dist
            push = 2.0 * w_s * overlap * direction
            if self._body_of[a] == body_index:
                force += push
                torque += np.cross(ca - center, push)
            else:
                force -= push
                torque += np.cross(cb - center, -push)
        return force, torque


def _fallback_direction(segment: Tuple[np.ndarray, np.ndarray]) -> np.ndarray:
    axis = segment[1] - segment[0]
    if float(np.linalg.norm(axis)) < 1e-12:
        return np.array([0.0, 0.0, 1.0])
    helper = np.zeros(3)
    helper[int(np.argmin(np.abs(axis)))] = 1.0
    direction = np.cross(axis, helper)
    return direction / np.linalg.norm(direction)

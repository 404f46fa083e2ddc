"""Rigid bodies built from a design: single helices or whole grids."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..design import Design
from ..parameters import DnaParameters
from ..rotor import Rotor

LOGGER = logging.getLogger(__name__)

BodyPose = Tuple[np.ndarray, Rotor]


@dataclass
class RigidBody:
    """Static description of one body; its pose lives in the relaxation state.

    ``members`` maps helix ids to their pose in the body frame and
    ``center`` is the center of mass in the body frame.
    """

    kind: str
    ident: int
    center: np.ndarray
    mass: float
    inertia: float
    radius: float
    locked: bool
    members: Dict[int, BodyPose] = field(default_factory=dict)


def helix_extent(design: Design, helix_id: int) -> Tuple[int, int]:
    """Lowest and highest nucleotide index used by strands on the helix."""

    low: Optional[int] = None
    high: Optional[int] = None
    for strand in design.strands.values():
        for domain in strand.helix_domains():
            if domain.helix != helix_id:
                continue
            low = domain.start if low is None else min(low, domain.start)
            high = domain.end - 1 if high is None else max(high, domain.end - 1)
    if low is None:
        return 0, 0
    return low, high


def helix_mass_properties(params: DnaParameters, extent: Tuple[int, int]) -> Tuple[np.ndarray, float, float]:
    """Center (helix frame), mass and scalar moment of inertia of a helix cylinder."""

    low, high = extent
    length = (high - low) * params.z_step
    mass = length + params.z_step
    center = np.array([(low + high) / 2.0 * params.z_step, 0.0, 0.0])
    radius = params.helix_radius
    inertia = mass * (radius * radius / 4.0 + length * length / 12.0) + mass * radius * radius / 2.0
    return center, mass, inertia


def _helix_body(design: Design, helix_id: int) -> Tuple[RigidBody, BodyPose]:
    helix = design.helix(helix_id)
    center, mass, inertia = helix_mass_properties(design.parameters, helix_extent(design, helix_id))
    body = RigidBody(
        kind="helix",
        ident=helix_id,
        center=center,
        mass=mass,
        inertia=inertia,
        radius=max(float(np.linalg.norm(center)), 1.0),
        locked=helix.locked_for_simulations,
        members={helix_id: (np.zeros(3), Rotor.identity())},
    )
    return body, (helix.position.copy(), helix.orientation)


def _grid_body(design: Design, grid_id: int, helix_ids: List[int]) -> Tuple[RigidBody, BodyPose]:
    grid = design.grid(grid_id)
    to_local = grid.orientation.inverse()
    members: Dict[int, BodyPose] = {}
    centers = []
    masses = []
    inertias = []
    locked = False
    for helix_id in helix_ids:
        helix = design.helix(helix_id)
        local_pos = to_local.rotate(helix.position - grid.position)
        local_rot = (to_local * helix.orientation).normalized()
        members[helix_id] = (local_pos, local_rot)
        center, mass, inertia = helix_mass_properties(design.parameters, helix_extent(design, helix_id))
        centers.append(local_pos + local_rot.rotate(center))
        masses.append(mass)
        inertias.append(inertia)
        locked = locked or helix.locked_for_simulations
    weights = np.array(masses)
    center = np.average(np.array(centers), axis=0, weights=weights)
    inertia = sum(i + m * float(np.sum((c - center) ** 2)) for c, m, i in zip(centers, masses, inertias))
    spread = max(float(np.max(np.linalg.norm(np.array(centers) - center, axis=1))), 1.0)
    body = RigidBody(
        kind="grid",
        ident=grid_id,
        center=center,
        mass=float(weights.sum()),
        inertia=inertia,
        radius=spread,
        locked=locked,
        members=members,
    )
    return body, (grid.position.copy(), grid.orientation)


def build_bodies(design: Design, granularity: str) -> Tuple[List[RigidBody], List[BodyPose]]:
    """Bodies and their initial poses; curved helices are left out and stay fixed."""

    straight = [hid for hid in sorted(design.helices) if not design.helices[hid].is_curved]
    bodies: List[RigidBody] = []
    poses: List[BodyPose] = []
    grouped: Dict[int, List[int]] = {}
    loose: List[int] = []
    if granularity == "grid":
        for helix_id in straight:
            position = design.helices[helix_id].grid_position
            if position is not None and position.grid in design.grids:
                grouped.setdefault(position.grid, []).append(helix_id)
            else:
                loose.append(helix_id)
    else:
        loose = straight
    for grid_id in sorted(grouped):
        body, pose = _grid_body(design, grid_id, grouped[grid_id])
        bodies.append(body)
        poses.append(pose)
    for helix_id in loose:
        body, pose = _helix_body(design, helix_id)
        bodies.append(body)
        poses.append(pose)
    LOGGER.debug(
        "build_bodies granularity=%s bodies=%d locked=%d",
        granularity,
        len(bodies),
        sum(1 for body in bodies if body.locked),
    )
    return bodies, poses


def member_pose(body: RigidBody, pose: BodyPose, helix_id: int) -> BodyPose:
    """World pose of a member helix given the body pose."""

    position, orientation = pose
    local_pos, local_rot = body.members[helix_id]
    return position + orientation.rotate(local_pos), orientation * local_rot

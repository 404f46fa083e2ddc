"""The design arena: grids, helices, strands and Bezier paths keyed by integer ids."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import networkx as nx
import numpy as np

from . import strands as strand_ops
from .config import chebyshev_degree
from .curves import BezierPath, BezierPlane, BezierVertex, CurveCache, HelixCurve, PiecewiseBezier
from .errors import (
    GridInUse,
    GridPositionOccupied,
    HelixInUse,
    IndexOutOfDeclaredRange,
    PathInUse,
    UnknownGrid,
    UnknownHelix,
    UnknownPath,
    UnknownStrand,
)
from .grid import Grid, GridType
from .helix import Frame, Frame2D, Helix, HelixGridPosition
from .parameters import DEFAULT_PARAMETERS, DnaParameters
from .rotor import Isometry2, Rotor, UNIT_Y, UNIT_Z, as_vector
from .strands import Nucl, Strand

LOGGER = logging.getLogger(__name__)

Pose = Tuple[np.ndarray, Rotor]


def _next_id(mapping: Mapping[int, object]) -> int:
    return max(mapping) + 1 if mapping else 0


@dataclass
class DesignPoses:
    """Rigid poses of helices and grids, applied to a design in one update."""

    helices: Dict[int, Pose] = field(default_factory=dict)
    grids: Dict[int, Pose] = field(default_factory=dict)


class Design:
    """Owner of every object of a DNA nanostructure.

    Objects reference each other by id only. Geometry queries read the
    current state and never mutate it; a design is not meant to be mutated
    from several threads at once.
    """

    def __init__(self, parameters: Optional[DnaParameters] = None) -> None:
        self._parameters = (parameters or DEFAULT_PARAMETERS).validate()
        self._grids: Dict[int, Grid] = {}
        self._helices: Dict[int, Helix] = {}
        self._strands: Dict[int, Strand] = {}
        self._planes: Dict[int, BezierPlane] = {}
        self._paths: Dict[int, BezierPath] = {}
        self._curve_cache = CurveCache()
        self.ensnano_version: Optional[str] = None

    # ------------------------------------------------------------------ views
    @property
    def parameters(self) -> DnaParameters:
        return self._parameters

    @property
    def grids(self) -> Mapping[int, Grid]:
        return MappingProxyType(self._grids)

    @property
    def helices(self) -> Mapping[int, Helix]:
        return MappingProxyType(self._helices)

    @property
    def strands(self) -> Mapping[int, Strand]:
        return MappingProxyType(self._strands)

    @property
    def bezier_planes(self) -> Mapping[int, BezierPlane]:
        return MappingProxyType(self._planes)

    @property
    def bezier_paths(self) -> Mapping[int, BezierPath]:
        return MappingProxyType(self._paths)

    def grid(self, grid_id: int) -> Grid:
        try:
            return self._grids[grid_id]
        except KeyError:
            raise UnknownGrid(f"Grid {grid_id} does not exist.") from None

    def helix(self, helix_id: int) -> Helix:
        try:
            return self._helices[helix_id]
        except KeyError:
            raise UnknownHelix(f"Helix {helix_id} does not exist.") from None

    def strand(self, strand_id: int) -> Strand:
        try:
            return self._strands[strand_id]
        except KeyError:
            raise UnknownStrand(f"Strand {strand_id} does not exist.") from None

    def bezier_path(self, path_id: int) -> BezierPath:
        try:
            return self._paths[path_id]
        except KeyError:
            raise UnknownPath(f"Bezier path {path_id} does not exist.") from None

    def bezier_plane(self, plane_id: int) -> BezierPlane:
        try:
            return self._planes[plane_id]
        except KeyError:
            raise UnknownPath(f"Bezier plane {plane_id} does not exist.") from None

    def grid_helices(self, grid_id: int) -> List[int]:
        """Ids of the helices standing on ``grid_id``."""

        self.grid(grid_id)
        return sorted(
            helix_id
            for helix_id, helix in self._helices.items()
            if helix.grid_position is not None and helix.grid_position.grid == grid_id
        )

    # ------------------------------------------------------------- mutations
    def set_parameters(self, parameters: DnaParameters) -> None:
        """Replace the DNA parameters and re-seat everything placed with the old ones.

        Straight helices standing on a grid move to their lattice vertex under
        the new spacing; curve fits depend on the lattice offset and are looked
        up again on the next query.
        """

        self._parameters = parameters.validate()
        moved = 0
        for helix_id, helix in self._helices.items():
            if helix.grid_position is not None and not helix.is_curved and helix.grid_position.grid in self._grids:
                helix.position = self._grid_anchor(helix.grid_position)
                moved += 1
            if helix.is_curved:
                self._seat_on_curve(helix_id)
            else:
                self.sync_isometry2d(helix_id)
        self.refresh_curve_grids()
        LOGGER.info("DNA parameters set to %s (%d helices re-seated)", parameters.closest_named()[0], moved)

    def _grid_anchor(self, position: HelixGridPosition) -> np.ndarray:
        grid = self._grids[position.grid]
        anchor = grid.position_helix(self._parameters, position.x, position.y, position.offset)
        return anchor - position.axis_pos * self._parameters.z_step * grid.axis

    def helix_at(self, grid_id: int, x: int, y: int) -> Optional[int]:
        """Id of the helix standing on lattice vertex ``(x, y)`` of a grid, if any."""

        for helix_id, helix in self._helices.items():
            position = helix.grid_position
            if position is not None and position.grid == grid_id and (position.x, position.y) == (x, y):
                return helix_id
        return None

    def _check_vertex_free(self, position: HelixGridPosition, ignore: Optional[int] = None) -> None:
        if self.grid(position.grid).grid_type is GridType.FREE:
            return
        owner = self.helix_at(position.grid, position.x, position.y)
        if owner is not None and owner != ignore:
            raise GridPositionOccupied(
                f"Vertex ({position.x}, {position.y}) of grid {position.grid} already holds helix {owner}."
            )

    @staticmethod
    def _claim_id(mapping: Mapping[int, object], requested: Optional[int], kind: str) -> int:
        if requested is None:
            return _next_id(mapping)
        if requested in mapping:
            raise ValueError(f"{kind} id {requested} is already used.")
        return int(requested)

    def add_grid(self, grid: Grid, grid_id: Optional[int] = None) -> int:
        if grid.bezier_vertex is not None:
            self.bezier_path(grid.bezier_vertex[0])
        grid_id = self._claim_id(self._grids, grid_id, "Grid")
        self._grids[grid_id] = grid
        if grid.bezier_vertex is not None:
            self._place_grid_on_path(grid)
        LOGGER.debug("add_grid id=%d type=%s", grid_id, grid.grid_type.value)
        return grid_id

    def remove_grid(self, grid_id: int) -> None:
        members = self.grid_helices(grid_id)
        if members:
            raise GridInUse(f"Grid {grid_id} still carries helices {members}.")
        del self._grids[grid_id]
        LOGGER.debug("remove_grid id=%d", grid_id)

    def add_helix(self, helix: Helix, helix_id: Optional[int] = None) -> int:
        if helix.grid_position is not None:
            self._check_vertex_free(helix.grid_position)
        if helix.path_id is not None:
            self.bezier_path(helix.path_id)
        helix_id = self._claim_id(self._helices, helix_id, "Helix")
        if helix.isometry2d is None:
            helix.isometry2d = Isometry2.from_pose(helix.position, helix.orientation, self._parameters)
        self._helices[helix_id] = helix
        LOGGER.debug("add_helix id=%d curved=%s", helix_id, helix.is_curved)
        return helix_id

    def add_helix_on_grid(
        self,
        grid_id: int,
        x: int,
        y: int,
        axis_pos: int = 0,
        roll: float = 0.0,
        offset: Optional[Sequence[float]] = None,
        helix_id: Optional[int] = None,
    ) -> int:
        """Create a straight helix standing on lattice vertex ``(x, y)``.

        Nucleotide ``axis_pos`` of the new helix lies in the grid plane.
        """

        grid = self.grid(grid_id)
        grid_position = HelixGridPosition(
            grid_id, x, y, axis_pos, roll, None if offset is None else (float(offset[0]), float(offset[1]))
        )
        position = self._grid_anchor(grid_position)
        helix = Helix(position=position, orientation=grid.orientation, grid_position=grid_position, roll=roll)
        return self.add_helix(helix, helix_id)

    def add_helix_on_path(
        self,
        path_id: int,
        grid_id: Optional[int] = None,
        x: int = 0,
        y: int = 0,
        roll: float = 0.0,
        offset: Optional[Sequence[float]] = None,
        helix_id: Optional[int] = None,
    ) -> int:
        """Create a helix following ``path_id`` at the lattice offset of ``(x, y)``."""

        self.bezier_path(path_id)
        grid_position = None
        if grid_id is not None:
            self.grid(grid_id)
            grid_position = HelixGridPosition(
                grid_id, x, y, 0, roll, None if offset is None else (float(offset[0]), float(offset[1]))
            )
        helix = Helix(grid_position=grid_position, roll=roll, path_id=path_id)
        new_id = self.add_helix(helix, helix_id)
        self._seat_on_curve(new_id)
        return new_id

    def _seat_on_curve(self, helix_id: int) -> None:
        """Put the pose of a curved helix at the start of its axis curve."""

        curve = self.helix_curve(helix_id)
        start = curve.frame_at(curve.curve.t_min)
        self._helices[helix_id].set_pose(start.point, start.rotor())
        self.sync_isometry2d(helix_id)

    def remove_helix(self, helix_id: int) -> None:
        self.helix(helix_id)
        users = sorted(
            strand_id
            for strand_id, strand in self._strands.items()
            if any(domain.helix == helix_id for domain in strand.helix_domains())
        )
        if users:
            raise HelixInUse(f"Helix {helix_id} is used by strands {users}.")
        del self._helices[helix_id]
        LOGGER.debug("remove_helix id=%d", helix_id)

    def add_strand(self, strand: Strand, strand_id: Optional[int] = None, validate: bool = True) -> int:
        if validate:
            self.validate_strand(strand)
        strand_id = self._claim_id(self._strands, strand_id, "Strand")
        self._strands[strand_id] = strand
        LOGGER.debug("add_strand id=%d domains=%d", strand_id, len(strand.domains))
        return strand_id

    def remove_strand(self, strand_id: int) -> Strand:
        strand = self.strand(strand_id)
        del self._strands[strand_id]
        return strand

    def add_bezier_plane(self, plane: BezierPlane, plane_id: Optional[int] = None) -> int:
        plane_id = self._claim_id(self._planes, plane_id, "Bezier plane")
        self._planes[plane_id] = plane
        return plane_id

    def remove_bezier_plane(self, plane_id: int) -> None:
        self.bezier_plane(plane_id)
        users = sorted(path_id for path_id, path in self._paths.items() if plane_id in path.plane_ids())
        if users:
            raise PathInUse(f"Bezier plane {plane_id} is used by paths {users}.")
        del self._planes[plane_id]

    def add_bezier_path(self, path: BezierPath, path_id: Optional[int] = None) -> int:
        for plane_id in path.plane_ids():
            self.bezier_plane(plane_id)
        path.to_curve(self._planes)
        path_id = self._claim_id(self._paths, path_id, "Bezier path")
        self._paths[path_id] = path
        LOGGER.debug("add_bezier_path id=%d vertices=%d cyclic=%s", path_id, len(path.vertices), path.cyclic)
        return path_id

    def remove_bezier_path(self, path_id: int) -> None:
        self.bezier_path(path_id)
        helices = [hid for hid, helix in self._helices.items() if helix.path_id == path_id]
        grids = [gid for gid, grid in self._grids.items() if grid.bezier_vertex and grid.bezier_vertex[0] == path_id]
        if helices or grids:
            raise PathInUse(f"Bezier path {path_id} is used by helices {sorted(helices)} and grids {sorted(grids)}.")
        del self._paths[path_id]

    def move_bezier_vertex(self, path_id: int, vertex_index: int, position2d: Sequence[float]) -> None:
        """Move one vertex in its plane; fits of the old curve are no longer looked up."""

        path = self.bezier_path(path_id)
        moved = BezierVertex(path.vertices[vertex_index].plane_id, position2d)
        vertices = list(path.vertices)
        vertices[vertex_index] = moved
        BezierPath(vertices, path.cyclic).to_curve(self._planes)
        # single item swap: concurrent readers see the old path or the new one
        path.vertices[vertex_index] = moved
        self.refresh_curve_grids()
        for helix_id, helix in self._helices.items():
            if helix.path_id == path_id:
                self._seat_on_curve(helix_id)
        LOGGER.debug("move_bezier_vertex path=%d vertex=%d", path_id, vertex_index)

    # --------------------------------------------------------------- curves
    def path_curve(self, path_id: int) -> PiecewiseBezier:
        return self.bezier_path(path_id).to_curve(self._planes)

    def _path_up(self, path: BezierPath) -> np.ndarray:
        first = path.vertices[0] if path.vertices else None
        if first is not None and first.plane_id in self._planes:
            return self._planes[first.plane_id].up
        return UNIT_Y

    def _curve_for(self, path_id: int, offset: Tuple[float, float]) -> HelixCurve:
        path = self.bezier_path(path_id)
        curve = path.to_curve(self._planes)
        up = self._path_up(path)
        degree = chebyshev_degree()
        inputs = {
            "controls": [segment.control_points.tolist() for segment in curve.segments],
            "cyclic": path.cyclic,
            "offset": list(offset),
            "up": [float(value) for value in up],
            "degree": degree,
        }
        return self._curve_cache.get_or_fit(inputs, lambda: HelixCurve(curve, offset, up=up, degree=degree))

    def helix_offset(self, helix_id: int) -> Tuple[float, float]:
        """In-plane lattice offset of a helix relative to its grid origin."""

        helix = self.helix(helix_id)
        position = helix.grid_position
        if position is None:
            return (0.0, 0.0)
        grid = self.grid(position.grid)
        return grid.helix_offset(self._parameters, position.x, position.y, position.offset)

    def helix_curve(self, helix_id: int) -> Optional[HelixCurve]:
        """Fitted axis of a curved helix, ``None`` for a straight one."""

        helix = self.helix(helix_id)
        if helix.path_id is None:
            return None
        return self._curve_for(helix.path_id, self.helix_offset(helix_id))

    def _place_grid_on_path(self, grid: Grid) -> None:
        path_id, vertex_index = grid.bezier_vertex
        path = self.bezier_path(path_id)
        count = len(path.vertices)
        if not 0 <= vertex_index < count:
            raise IndexError(f"Path {path_id} has no vertex {vertex_index}.")
        curve = self._curve_for(path_id, (0.0, 0.0))
        frame = curve.frame_at(float(min(vertex_index, curve.curve.t_max)))
        grid.set_pose(frame.point, frame.rotor())

    def refresh_curve_grids(self) -> None:
        """Re-seat every grid riding a Bezier vertex on its current curve."""

        for grid in self._grids.values():
            if grid.bezier_vertex is not None:
                self._place_grid_on_path(grid)

    # -------------------------------------------------------------- frames
    def compute_frame(self, helix_id: int, index: int, forward: bool = True) -> Frame:
        helix = self.helix(helix_id)
        if helix.grid_position is not None and helix.grid_position.grid not in self._grids:
            raise UnknownGrid(f"Helix {helix_id} refers to missing grid {helix.grid_position.grid}.")
        curve = self.helix_curve(helix_id)
        return helix.frame(self._parameters, index, forward, helix_id=helix_id, curve=curve)

    def try_frame(self, helix_id: int, index: int, forward: bool = True) -> Optional[Frame]:
        """Like :meth:`compute_frame` but ``None`` for an index outside the helix."""

        try:
            return self.compute_frame(helix_id, index, forward)
        except IndexOutOfDeclaredRange:
            return None

    def compute_frame_2d(self, helix_id: int, index: int, forward: bool = True) -> Frame2D:
        return self.helix(helix_id).frame_2d(index, forward, helix_id=helix_id)

    def axis_position(self, helix_id: int, index: int) -> np.ndarray:
        return self.compute_frame(helix_id, index, True).axis_position

    # ------------------------------------------------------------- strands
    def _resolve_strand(self, strand: Union[int, Strand]) -> Strand:
        return strand if isinstance(strand, Strand) else self.strand(strand)

    def validate_strand(self, strand: Union[int, Strand]) -> None:
        target = self._resolve_strand(strand)
        strand_ops.validate_strand(target, self._helices)
        for domain in target.helix_domains():
            curve = self.helix_curve(domain.helix)
            if curve is None:
                continue
            last = curve.nucleotide_count(self._parameters.z_step) - 1
            if domain.start < 0 or domain.end - 1 > last:
                raise IndexOutOfDeclaredRange(
                    f"Domain [{domain.start}, {domain.end}) exceeds curved helix {domain.helix} (0..{last})."
                )

    def total_length(self, strand: Union[int, Strand]) -> int:
        return strand_ops.total_length(self._resolve_strand(strand))

    def nucleotide_at(self, strand: Union[int, Strand], offset: int) -> Optional[Nucl]:
        return strand_ops.nucleotide_at(self._resolve_strand(strand), offset)

    def nucleotide_frame(self, strand: Union[int, Strand], offset: int) -> Optional[Frame]:
        nucl = self.nucleotide_at(strand, offset)
        if nucl is None:
            return None
        return self.compute_frame(nucl.helix, nucl.index, nucl.forward)

    def crossovers(self) -> List[Tuple[Nucl, Nucl]]:
        pairs = []
        for strand_id in sorted(self._strands):
            pairs.extend(strand_ops.crossovers(self._strands[strand_id]))
        return pairs

    def helix_graph(self) -> nx.Graph:
        graph = strand_ops.helix_graph(self._strands[key] for key in sorted(self._strands))
        graph.add_nodes_from(self._helices)
        return graph

    def coupled_helices(self, helix_id: int) -> List[int]:
        """Helices reachable from ``helix_id`` through cross-overs."""

        self.helix(helix_id)
        return sorted(nx.node_connected_component(self.helix_graph(), helix_id))

    # ---------------------------------------------------------------- poses
    def translate_helix(self, helix_id: int, translation: Sequence[float]) -> None:
        self.helix(helix_id).translate(translation)
        self.sync_isometry2d(helix_id)

    def rotate_helix(self, helix_id: int, rotor: Rotor, origin: Optional[Sequence[float]] = None) -> None:
        helix = self.helix(helix_id)
        helix.rotate_around(rotor, helix.position if origin is None else origin)
        self.sync_isometry2d(helix_id)

    def sync_isometry2d(self, helix_id: int) -> Isometry2:
        """Recompute the flat-view isometry of a helix from its 3-D pose."""

        helix = self.helix(helix_id)
        helix.isometry2d = Isometry2.from_pose(helix.position, helix.orientation, self._parameters)
        return helix.isometry2d

    def translate_helix_2d(self, helix_id: int, dx: float, dy: float) -> None:
        """Move a helix in the flat view and carry the move to 3-D."""

        helix = self.helix(helix_id)
        z_step = self._parameters.z_step
        helix.translate((dx * z_step, -dy * z_step, 0.0))
        self.sync_isometry2d(helix_id)

    def rotate_helix_2d(self, helix_id: int, angle: float) -> None:
        """Rotate a helix in the flat view around its origin and carry it to 3-D."""

        helix = self.helix(helix_id)
        helix.rotate_around(Rotor.from_axis_angle(UNIT_Z, -angle), helix.position)
        self.sync_isometry2d(helix_id)

    def move_grid(
        self,
        grid_id: int,
        translation: Optional[Sequence[float]] = None,
        rotation: Optional[Rotor] = None,
        origin: Optional[Sequence[float]] = None,
    ) -> None:
        """Move a grid and every straight helix standing on it as one rigid body."""

        grid = self.grid(grid_id)
        member_ids = [hid for hid in self.grid_helices(grid_id) if not self._helices[hid].is_curved]
        members = [self._helices[hid] for hid in member_ids]
        if rotation is not None:
            pivot = grid.position if origin is None else as_vector(origin)
            grid.rotate_around(rotation, pivot)
            for helix in members:
                helix.rotate_around(rotation, pivot)
        if translation is not None:
            grid.translate(translation)
            for helix in members:
                helix.translate(translation)
        for helix_id in member_ids:
            self.sync_isometry2d(helix_id)

    def snap_helix_to_grid(self, helix_id: int, grid_id: int) -> bool:
        """Attach a straight helix to the lattice vertex it passes through."""

        helix = self.helix(helix_id)
        grid = self.grid(grid_id)
        found = grid.find_helix_position(self._parameters, helix.position, helix.orientation)
        if found is None:
            return False
        x, y, axis_pos, roll = found
        if self.helix_at(grid_id, x, y) not in (None, helix_id):
            return False
        helix.grid_position = HelixGridPosition(grid_id, x, y, axis_pos, roll)
        return True

    def poses(self) -> DesignPoses:
        return DesignPoses(
            helices={hid: (h.position.copy(), h.orientation) for hid, h in self._helices.items()},
            grids={gid: (g.position.copy(), g.orientation) for gid, g in self._grids.items()},
        )

    def apply_poses(self, poses: DesignPoses) -> None:
        """Apply every pose or none of them; flat-view isometries follow the new poses."""

        for helix_id in poses.helices:
            self.helix(helix_id)
        for grid_id in poses.grids:
            self.grid(grid_id)
        for grid_id, (position, orientation) in poses.grids.items():
            self._grids[grid_id].set_pose(position, orientation)
        for helix_id, (position, orientation) in poses.helices.items():
            self._helices[helix_id].set_pose(position, orientation)
            self.sync_isometry2d(helix_id)
        LOGGER.debug("apply_poses helices=%d grids=%d", len(poses.helices), len(poses.grids))

    def copy(self) -> "Design":
        """Deep copy sharing only the (immutable) curve fits."""

        clone = Design.__new__(Design)
        clone._parameters = self._parameters
        clone._grids = copy.deepcopy(self._grids)
        clone._helices = copy.deepcopy(self._helices)
        clone._strands = copy.deepcopy(self._strands)
        clone._planes = copy.deepcopy(self._planes)
        clone._paths = copy.deepcopy(self._paths)
        clone._curve_cache = self._curve_cache
        clone.ensnano_version = self.ensnano_version
        return clone

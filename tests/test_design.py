import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from nanohelix import (
    Design,
    Grid,
    GridInUse,
    GridPositionOccupied,
    GridType,
    Helix,
    HelixDomain,
    HelixInUse,
    Nucl,
    PathInUse,
    Rotor,
    Strand,
    UnknownGrid,
    UnknownHelix,
)
from nanohelix.curves import BezierPath, BezierPlane, BezierVertex
from nanohelix.design import DesignPoses
from nanohelix.errors import DegenerateCurve, TopologyMismatch
from nanohelix.parameters import OLD_ENSNANO
from nanohelix.rotor import Isometry2, UNIT_X, UNIT_Y, UNIT_Z


def test_square_grid_frames(square_design):
    params = square_design.parameters
    first = square_design.compute_frame(0, 0, True)
    assert np.allclose(first.position, [0.0, params.helix_radius, 0.0])
    tenth = square_design.compute_frame(0, 10, True)
    theta = 2 * math.pi * 10 / params.bases_per_turn
    expected = [10 * params.z_step, params.helix_radius * math.cos(theta), params.helix_radius * math.sin(theta)]
    assert np.allclose(tenth.position, expected)
    assert tenth.position[0] == pytest.approx(3.32)
    neighbour = square_design.helix(1)
    assert np.allclose(neighbour.position, [0.0, -params.inter_center_distance, 0.0])


def test_ids_are_allocated_above_the_largest():
    design = Design()
    assert design.add_helix(Helix()) == 0
    assert design.add_helix(Helix(), helix_id=7) == 7
    assert design.add_helix(Helix()) == 8
    with pytest.raises(ValueError):
        design.add_helix(Helix(), helix_id=7)


def test_helix_in_use_until_strand_is_removed(scaffold_design):
    with pytest.raises(HelixInUse):
        scaffold_design.remove_helix(0)
    scaffold_design.remove_strand(0)
    scaffold_design.remove_helix(0)
    with pytest.raises(UnknownHelix):
        scaffold_design.helix(0)


def test_grid_in_use(square_design):
    with pytest.raises(GridInUse):
        square_design.remove_grid(0)
    square_design.remove_helix(0)
    square_design.remove_helix(1)
    square_design.remove_grid(0)
    with pytest.raises(UnknownGrid):
        square_design.grid(0)


def test_path_and_plane_in_use():
    design = Design()
    plane_id = design.add_bezier_plane(BezierPlane())
    path_id = design.add_bezier_path(BezierPath([BezierVertex(plane_id, (0.0, 0.0)), BezierVertex(plane_id, (9.0, 0.0))]))
    helix_id = design.add_helix_on_path(path_id)
    with pytest.raises(PathInUse):
        design.remove_bezier_plane(plane_id)
    with pytest.raises(PathInUse):
        design.remove_bezier_path(path_id)
    design.remove_helix(helix_id)
    design.remove_bezier_path(path_id)
    design.remove_bezier_plane(plane_id)


def test_views_are_read_only(square_design):
    with pytest.raises(TypeError):
        square_design.helices[5] = Helix()


def test_invalid_strand_is_refused(square_design):
    bad = Strand([HelixDomain(0, 0, 5, True), HelixDomain(4, 0, 5, False)])
    with pytest.raises(UnknownHelix):
        square_design.add_strand(bad)
    assert len(square_design.strands) == 0
    with pytest.raises(TopologyMismatch):
        square_design.validate_strand(Strand([HelixDomain(0, 0, 5, True)], []))


def test_nucleotide_frame_and_coupling(scaffold_design):
    assert scaffold_design.total_length(0) == 16
    assert scaffold_design.nucleotide_at(0, 8) == Nucl(1, 7, False)
    frame = scaffold_design.nucleotide_frame(0, 8)
    assert np.allclose(frame.position, scaffold_design.compute_frame(1, 7, False).position)
    assert scaffold_design.crossovers() == [(Nucl(0, 7, True), Nucl(1, 7, False))]
    assert scaffold_design.coupled_helices(0) == [0, 1]
    lone = scaffold_design.add_helix(Helix(position=(0.0, 20.0, 0.0)))
    assert scaffold_design.coupled_helices(lone) == [lone]


def test_move_grid_carries_its_helices(square_design):
    before = square_design.compute_frame(1, 3).position
    square_design.move_grid(0, translation=(1.0, 2.0, 3.0))
    assert np.allclose(square_design.compute_frame(1, 3).position, before + [1.0, 2.0, 3.0])
    rotor = Rotor.from_axis_angle(UNIT_Z, math.pi / 2)
    square_design.move_grid(0, rotation=rotor, origin=(0.0, 0.0, 0.0))
    assert np.allclose(square_design.helix(0).axis, UNIT_Y)
    assert np.allclose(square_design.grid(0).axis, UNIT_Y)
    assert np.allclose(square_design.helix(1).position, rotor.rotate([1.0, 2.0 - 2.65, 3.0]))


def test_apply_poses_is_atomic(square_design):
    original = square_design.poses()
    bad = DesignPoses(
        helices={0: (np.array([5.0, 5.0, 5.0]), Rotor.identity()), 42: (np.zeros(3), Rotor.identity())},
        grids={},
    )
    with pytest.raises(UnknownHelix):
        square_design.apply_poses(bad)
    assert np.allclose(square_design.helix(0).position, original.helices[0][0])
    good = DesignPoses(helices={0: (np.array([5.0, 5.0, 5.0]), Rotor.identity())}, grids={})
    square_design.apply_poses(good)
    assert np.allclose(square_design.helix(0).position, [5.0, 5.0, 5.0])


def test_copy_is_independent(scaffold_design):
    clone = scaffold_design.copy()
    clone.translate_helix(0, (3.0, 0.0, 0.0))
    clone.remove_strand(0)
    assert np.allclose(scaffold_design.helix(0).position, [0.0, 0.0, 0.0])
    assert len(scaffold_design.strands) == 1


def test_snap_helix_to_grid():
    design = Design()
    grid_id = design.add_grid(Grid(grid_type=GridType.HONEYCOMB))
    anchor = design.grid(grid_id).position_helix(design.parameters, 1, 2)
    helix_id = design.add_helix(Helix(position=anchor - 4 * design.parameters.z_step * UNIT_X))
    assert design.snap_helix_to_grid(helix_id, grid_id)
    position = design.helix(helix_id).grid_position
    assert (position.x, position.y, position.axis_pos) == (1, 2, 4)
    assert design.grid_helices(grid_id) == [helix_id]
    far = design.add_helix(Helix(position=anchor + (0.0, 0.7, 0.3)))
    assert not design.snap_helix_to_grid(far, grid_id)


def test_helix_on_grid_axis_pos():
    design = Design()
    grid_id = design.add_grid(Grid())
    helix_id = design.add_helix_on_grid(grid_id, 0, 0, axis_pos=5)
    assert np.allclose(design.axis_position(helix_id, 5), [0.0, 0.0, 0.0])


def test_move_bezier_vertex_moves_riding_grid_and_reverts_bad_moves():
    design = Design()
    plane_id = design.add_bezier_plane(BezierPlane())
    vertices = [BezierVertex(plane_id, (0.0, 0.0)), BezierVertex(plane_id, (10.0, 0.0)), BezierVertex(plane_id, (20.0, 2.0))]
    path_id = design.add_bezier_path(BezierPath(vertices))
    grid_id = design.add_grid(Grid(bezier_vertex=(path_id, 1)))
    assert np.allclose(design.grid(grid_id).position, [0.0, 0.0, 10.0])
    helix_id = design.add_helix_on_path(path_id, grid_id)
    length = design.helix_curve(helix_id).length

    design.move_bezier_vertex(path_id, 1, (10.0, 3.0))
    assert np.allclose(design.grid(grid_id).position, [0.0, 3.0, 10.0])
    assert design.helix_curve(helix_id).length > length

    with pytest.raises(DegenerateCurve):
        design.move_bezier_vertex(path_id, 1, (0.0, 0.0))
    assert design.bezier_path(path_id).vertices[1].position2d == (10.0, 3.0)


def _flat_view_in_sync(design, helix_id):
    helix = design.helix(helix_id)
    return helix.isometry2d.is_close(Isometry2.from_pose(helix.position, helix.orientation, design.parameters))


def test_3d_edits_keep_flat_view_in_sync(square_design):
    square_design.translate_helix(0, (3.0, 2.0, 0.0))
    assert _flat_view_in_sync(square_design, 0)
    square_design.rotate_helix(0, Rotor.from_axis_angle(UNIT_Z, 0.6), origin=(1.0, 1.0, 0.0))
    assert _flat_view_in_sync(square_design, 0)
    square_design.move_grid(0, translation=(2.0, -1.0, 0.5), rotation=Rotor.from_axis_angle(UNIT_Z, 0.3))
    assert _flat_view_in_sync(square_design, 0)
    assert _flat_view_in_sync(square_design, 1)
    poses = DesignPoses(helices={1: (np.array([4.0, -7.0, 0.0]), Rotor.from_axis_angle(UNIT_Z, -0.2))})
    square_design.apply_poses(poses)
    assert _flat_view_in_sync(square_design, 1)


def test_new_parameters_reseat_lattice_helices(square_design):
    params = OLD_ENSNANO.with_updates(inter_helix_gap=2.0)
    square_design.set_parameters(params)
    grid = square_design.grid(0)
    assert np.allclose(square_design.helix(1).position, grid.position_helix(params, 0, 1))
    assert np.allclose(square_design.helix(1).position, [0.0, -4.0, 0.0])
    assert _flat_view_in_sync(square_design, 1)
    frame = square_design.compute_frame(1, 0)
    assert np.allclose(frame.axis_position, [0.0, -4.0, 0.0])


def test_new_parameters_keep_axis_pos_in_grid_plane():
    design = Design()
    grid_id = design.add_grid(Grid())
    helix_id = design.add_helix_on_grid(grid_id, 1, 0, axis_pos=4)
    design.set_parameters(OLD_ENSNANO.with_updates(z_step=0.4))
    assert np.allclose(design.axis_position(helix_id, 4), design.grid(grid_id).position_helix(design.parameters, 1, 0))


def test_lattice_vertex_holds_one_helix(square_design):
    with pytest.raises(GridPositionOccupied):
        square_design.add_helix_on_grid(0, 0, 0)
    assert square_design.helix_at(0, 0, 1) == 1
    assert square_design.helix_at(0, 3, 3) is None
    intruder = square_design.add_helix(Helix(position=(0.0, 0.0, 0.0)))
    assert not square_design.snap_helix_to_grid(intruder, 0)
    assert square_design.helix(intruder).grid_position is None


def test_free_grid_vertices_are_not_exclusive():
    design = Design()
    grid_id = design.add_grid(Grid(grid_type=GridType.FREE))
    design.add_helix_on_grid(grid_id, 0, 0, offset=(0.0, 0.0))
    design.add_helix_on_grid(grid_id, 0, 0, offset=(3.0, 0.0))
    assert len(design.grid_helices(grid_id)) == 2


def test_readers_see_whole_paths_while_a_vertex_moves():
    design = Design()
    plane_id = design.add_bezier_plane(BezierPlane())
    vertices = [BezierVertex(plane_id, (0.0, 0.0)), BezierVertex(plane_id, (10.0, 0.0)), BezierVertex(plane_id, (20.0, 2.0))]
    path_id = design.add_bezier_path(BezierPath(vertices))
    helix_id = design.add_helix_on_path(path_id)
    indices = range(0, 21, 4)
    moved = design.copy()
    moved.move_bezier_vertex(path_id, 1, (10.0, 4.0))
    expected = [
        [source.compute_frame(helix_id, i).position for i in indices] for source in (design, moved)
    ]

    def write(rounds):
        for k in range(rounds):
            design.move_bezier_vertex(path_id, 1, (10.0, 4.0) if k % 2 == 0 else (10.0, 0.0))

    def read(rounds):
        mismatches = 0
        for _ in range(rounds):
            for i, index in enumerate(indices):
                position = design.compute_frame(helix_id, index).position
                if not any(np.allclose(position, frames[i]) for frames in expected):
                    mismatches += 1
        return mismatches

    with ThreadPoolExecutor(max_workers=4) as pool:
        writer = pool.submit(write, 40)
        readers = [pool.submit(read, 20) for _ in range(3)]
        writer.result()
        assert [reader.result() for reader in readers] == [0, 0, 0]
    assert np.allclose(design.compute_frame(helix_id, 8).position, expected[0][2])

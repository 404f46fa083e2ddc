import math

import numpy as np
import pytest

from nanohelix import Design, Grid, GridType, Helix, IndexOutOfDeclaredRange, Rotor, UnknownGrid
from nanohelix.curves import BezierPath, BezierPlane, BezierVertex
from nanohelix.helix import HelixGridPosition, nucleotide_theta
from nanohelix.parameters import GEARY_2014_DNA, OLD_ENSNANO
from nanohelix.rotor import Isometry2, UNIT_X, UNIT_Y, UNIT_Z

PARAMS = GEARY_2014_DNA


def _signed_angle(a, b, axis):
    return math.atan2(float(np.cross(a, b) @ axis), float(a @ b))


def _tilted_helix():
    orientation = Rotor.from_axis_angle((0.3, 1.0, -0.2), 0.8)
    return Helix(position=(1.0, -2.0, 0.5), orientation=orientation, roll=0.3)


def test_frames_are_deterministic():
    helix = _tilted_helix()
    a = helix.frame(PARAMS, 7, False)
    b = helix.frame(PARAMS, 7, False)
    assert np.array_equal(a.position, b.position)
    assert a.orientation == b.orientation


def test_first_nucleotide_sits_at_radius_along_rotated_y():
    helix = Helix(position=(1.0, 2.0, 3.0))
    frame = helix.frame(PARAMS, 0, True)
    assert np.allclose(frame.position, [1.0, 2.0 + PARAMS.helix_radius, 3.0])
    assert np.allclose(frame.tangent, UNIT_X)
    assert np.allclose(frame.normal, UNIT_Y)
    assert np.allclose(frame.binormal, UNIT_Z)


def test_axial_spacing_is_z_step():
    helix = _tilted_helix()
    for index in range(-3, 20):
        here = helix.frame(PARAMS, index, True)
        nxt = helix.frame(PARAMS, index + 1, True)
        assert np.linalg.norm(nxt.axis_position - here.axis_position) == pytest.approx(PARAMS.z_step)
        assert float((nxt.position - here.position) @ here.tangent) == pytest.approx(PARAMS.z_step)
        assert np.linalg.norm(nxt.position - here.position) == pytest.approx(PARAMS.dist_ac())


def test_phase_advances_by_one_twist_per_nucleotide():
    helix = _tilted_helix()
    for forward in (True, False):
        for index in range(10):
            a = helix.frame(PARAMS, index, forward)
            b = helix.frame(PARAMS, index + 1, forward)
            step = _signed_angle(a.normal, b.normal, a.tangent)
            assert step == pytest.approx(2 * math.pi / PARAMS.bases_per_turn)


def test_backward_strand_offsets():
    helix = _tilted_helix()
    fwd = helix.frame(PARAMS, 4, True)
    bwd = helix.frame(PARAMS, 4, False)
    assert _signed_angle(fwd.normal, bwd.normal, fwd.tangent) == pytest.approx(
        math.remainder(PARAMS.groove_angle, 2 * math.pi)
    )
    assert float((bwd.axis_position - fwd.axis_position) @ fwd.tangent) == pytest.approx(PARAMS.inclination)


def test_frame_orientation_is_unit_and_orthonormal():
    frame = _tilted_helix().frame(PARAMS, 13, False)
    assert frame.orientation.is_unit()
    basis = np.array([frame.tangent, frame.normal, frame.binormal])
    assert np.allclose(basis @ basis.T, np.eye(3))
    assert nucleotide_theta(PARAMS, 13, False, 0.3) == pytest.approx(
        2 * math.pi * 13 / PARAMS.bases_per_turn + PARAMS.groove_angle + 0.3
    )


def test_declared_range_bounds_indices():
    design = Design()
    helix_id = design.add_helix(Helix(range=(0, 20)))
    assert design.try_frame(helix_id, 20) is not None
    assert design.try_frame(helix_id, 21) is None
    with pytest.raises(IndexOutOfDeclaredRange):
        design.compute_frame(helix_id, -1)


def test_unknown_grid_is_rejected():
    design = Design()
    with pytest.raises(UnknownGrid):
        design.add_helix(Helix(grid_position=HelixGridPosition(grid=5, x=0, y=0)))


def test_frame_2d_maps_through_isometry_and_symmetry():
    helix = Helix(isometry2d=Isometry2((10.0, 2.0), 0.0), symmetry=(-1.0, 1.0))
    assert np.allclose(helix.frame_2d(3, True).position, [7.0, 2.0])
    assert np.allclose(helix.frame_2d(3, False).position, [7.0, 3.0])


def test_flat_view_edits_stay_in_sync_with_3d():
    design = Design()
    helix_id = design.add_helix(Helix(position=(1.0, 1.0, 0.0)))
    design.sync_isometry2d(helix_id)
    design.translate_helix_2d(helix_id, 4.0, -2.5)
    helix = design.helix(helix_id)
    assert helix.isometry2d.is_close(Isometry2.from_pose(helix.position, helix.orientation, PARAMS))
    design.rotate_helix_2d(helix_id, 0.7)
    assert helix.isometry2d.is_close(Isometry2.from_pose(helix.position, helix.orientation, PARAMS))
    before = design.compute_frame_2d(helix_id, 5)
    design.sync_isometry2d(helix_id)
    after = design.compute_frame_2d(helix_id, 5)
    assert np.allclose(before.position, after.position)


def test_ideal_neighbour_faces_back():
    params = OLD_ENSNANO
    helix = Helix(position=(0.0, 0.0, 0.0), roll=0.2)
    neighbour = helix.ideal_neighbour(params, 6, True)
    assert np.linalg.norm(neighbour.position) == pytest.approx(params.inter_center_distance)
    mine = helix.frame(params, 6, True).position
    theirs = neighbour.frame(params, 6, False).position
    assert np.linalg.norm(mine - theirs) == pytest.approx(params.inter_helix_gap)


def _curved_design(points, grid_type=GridType.SQUARE):
    design = Design()
    plane_id = design.add_bezier_plane(BezierPlane())
    path_id = design.add_bezier_path(BezierPath([BezierVertex(plane_id, p) for p in points]))
    grid_id = design.add_grid(Grid(grid_type=grid_type, bezier_vertex=(path_id, 0)))
    return design, path_id, grid_id


def test_helix_on_straight_path_matches_straight_helix():
    design, path_id, grid_id = _curved_design([(0.0, 0.0), (20.0, 0.0)])
    curved = design.add_helix_on_path(path_id, grid_id, 0, 0)
    straight = Helix(position=(0.0, 0.0, 0.0), orientation=design.grid(grid_id).orientation)
    for index in (0, 1, 7, 30):
        for forward in (True, False):
            expected = straight.frame(PARAMS, index, forward)
            frame = design.compute_frame(curved, index, forward)
            assert np.allclose(frame.position, expected.position, atol=1e-6)
            assert np.allclose(frame.tangent, [0.0, 0.0, 1.0], atol=1e-9)


@pytest.mark.parametrize("lattice", [(0, 0), (1, 0), (0, 1)])
def test_curved_helix_spacing_converges_to_z_step(lattice):
    design, path_id, grid_id = _curved_design([(0.0, 0.0), (12.0, 4.0), (24.0, 0.0), (36.0, -3.0)])
    helix_id = design.add_helix_on_path(path_id, grid_id, *lattice)
    curve = design.helix_curve(helix_id)
    count = curve.nucleotide_count(PARAMS.z_step)
    assert count > 90
    previous = design.compute_frame(helix_id, 0, True)
    for index in range(1, count):
        frame = design.compute_frame(helix_id, index, True)
        spacing = np.linalg.norm(frame.axis_position - previous.axis_position)
        assert spacing == pytest.approx(PARAMS.z_step, abs=2e-3)
        assert abs(float(frame.tangent @ frame.normal)) < 1e-9
        previous = frame
    assert design.try_frame(helix_id, count + 1) is None


def test_curved_helices_keep_their_lattice_distance():
    design, path_id, grid_id = _curved_design([(0.0, 0.0), (12.0, 4.0), (24.0, 0.0)])
    a = design.add_helix_on_path(path_id, grid_id, 0, 0)
    b = design.add_helix_on_path(path_id, grid_id, 0, 1)
    start_a = design.helix_curve(a).frame_at(0.0).point
    start_b = design.helix_curve(b).frame_at(0.0).point
    assert np.linalg.norm(start_a - start_b) == pytest.approx(PARAMS.inter_center_distance)
    assert np.allclose(start_b, design.grid(grid_id).position_helix(PARAMS, 0, 1))
    mid_a = design.helix_curve(a).frame_at(1.5)
    mid_b = design.helix_curve(b).frame_at(1.5)
    assert np.linalg.norm(mid_a.point - mid_b.point) == pytest.approx(PARAMS.inter_center_distance)

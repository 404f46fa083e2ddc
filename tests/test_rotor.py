import math

import numpy as np
import pytest

from nanohelix.parameters import GEARY_2014_DNA
from nanohelix.rotor import Isometry2, Rotor, UNIT_X, UNIT_Y, UNIT_Z


def test_axis_angle_rotation():
    rotor = Rotor.from_axis_angle(UNIT_Z, math.pi / 2)
    assert np.allclose(rotor.rotate(UNIT_X), UNIT_Y)
    assert rotor.is_unit()


def test_products_compose_right_to_left():
    a = Rotor.from_axis_angle((1.0, 2.0, 0.5), 0.7)
    b = Rotor.from_axis_angle((0.0, 1.0, -1.0), -1.3)
    v = np.array([0.3, -1.2, 2.0])
    assert np.allclose((a * b).rotate(v), a.rotate(b.rotate(v)))


def test_matrix_round_trip():
    rotor = Rotor.from_axis_angle((0.2, -0.4, 1.0), 2.9)
    again = Rotor.from_matrix(rotor.to_matrix())
    assert rotor.angle_to(again) == pytest.approx(0.0, abs=1e-7)
    basis = Rotor.from_basis(rotor.x_axis, rotor.y_axis, rotor.z_axis)
    assert rotor.angle_to(basis) == pytest.approx(0.0, abs=1e-7)


def test_rotation_vector_round_trip():
    vector = np.array([0.1, -0.5, 0.25])
    rotor = Rotor.from_rotation_vector(vector)
    assert np.allclose(rotor.rotation_vector(), vector)
    assert Rotor.from_rotation_vector(np.zeros(3)) == Rotor.identity()


def test_inverse_undoes_rotation():
    rotor = Rotor.from_axis_angle(UNIT_Y, 1.1)
    v = np.array([1.0, 2.0, 3.0])
    assert np.allclose(rotor.inverse().rotate(rotor.rotate(v)), v)


def test_normalize_zero_rotor_fails():
    with pytest.raises(ValueError):
        Rotor(0.0, 0.0, 0.0, 0.0).normalized()
    with pytest.raises(ValueError):
        Rotor.from_axis_angle((0.0, 0.0, 0.0), 1.0)


def test_isometry_transform_and_inverse():
    iso = Isometry2((3.0, -1.0), math.pi / 2)
    point = np.array([1.0, 0.0])
    assert np.allclose(iso.transform(point), [3.0, 0.0])
    assert np.allclose(iso.inverse().transform(iso.transform(point)), point)
    other = Isometry2((0.5, 0.5), 0.3)
    assert np.allclose(iso.compose(other).transform(point), iso.transform(other.transform(point)))


def test_isometry_from_pose_is_top_down_projection():
    params = GEARY_2014_DNA
    position = (2 * params.z_step, -params.z_step, 5.0)
    iso = Isometry2.from_pose(position, Rotor.identity(), params)
    assert iso.translation == pytest.approx((2.0, 1.0))
    assert iso.angle == pytest.approx(0.0)
    turned = Isometry2.from_pose(position, Rotor.from_axis_angle(UNIT_Z, 0.4), params)
    assert turned.angle == pytest.approx(-0.4)

import numpy as np
import pytest

from nanohelix.curves import ArcLengthMap, BezierPath, BezierPlane, BezierVertex, CubicBezier, CurveCache
from nanohelix.errors import DegenerateCurve, UnknownPath

KAPPA = 0.5522847498


def _speed(curve):
    return lambda t: float(np.linalg.norm(curve.derivative(t)))


def _quarter_circle():
    return CubicBezier((1.0, 0.0, 0.0), (1.0, KAPPA, 0.0), (KAPPA, 1.0, 0.0), (0.0, 1.0, 0.0))


def test_cubic_polynomial_form_matches_control_points():
    curve = _quarter_circle()
    assert np.allclose(curve.point(0.0), [1.0, 0.0, 0.0])
    assert np.allclose(curve.point(1.0), [0.0, 1.0, 0.0])
    assert np.allclose(curve.derivative(0.0), 3 * np.array([0.0, KAPPA, 0.0]))
    h = 1e-6
    numeric = (curve.derivative(0.3 + h) - curve.derivative(0.3 - h)) / (2 * h)
    assert np.allclose(curve.second_derivative(0.3), numeric, atol=1e-5)


def test_straight_segment_length_and_inverse():
    start = np.array([0.0, 0.0, 0.0])
    end = np.array([3.0, 4.0, 0.0])
    line = CubicBezier(start, start + (end - start) / 3, start + 2 * (end - start) / 3, end)
    arc = ArcLengthMap(_speed(line), [0.0, 1.0])
    assert arc.length == pytest.approx(5.0, abs=1e-12)
    assert arc.parameter_at(2.5) == pytest.approx(0.5, abs=1e-9)
    assert arc.arc_length(0.2) == pytest.approx(1.0, abs=1e-9)


def test_quarter_circle_length_matches_dense_polyline():
    curve = _quarter_circle()
    ts = np.linspace(0.0, 1.0, 20001)
    points = np.array([curve.point(t) for t in ts])
    reference = float(np.sum(np.linalg.norm(np.diff(points, axis=0), axis=1)))
    arc = ArcLengthMap(_speed(curve), [0.0, 1.0])
    assert arc.length == pytest.approx(reference, rel=1e-7)


def test_inverse_round_trip_and_bounds():
    curve = _quarter_circle()
    arc = ArcLengthMap(_speed(curve), [0.0, 1.0])
    for s in np.linspace(0.0, arc.length, 17):
        t = arc.parameter_at(float(s))
        assert arc.arc_length(t) == pytest.approx(float(s), abs=1e-8)
    assert arc.parameter_at(-0.01) is None
    assert arc.parameter_at(arc.length + 0.01) is None


def test_breakpoints_must_increase():
    with pytest.raises(ValueError):
        ArcLengthMap(lambda t: 1.0, [0.0, 0.0])


def _plane_path(points, cyclic=False):
    plane = BezierPlane()
    path = BezierPath([BezierVertex(0, point) for point in points], cyclic=cyclic)
    return path, {0: plane}


def test_path_passes_through_vertices():
    points = [(0.0, 0.0), (4.0, 1.0), (8.0, -1.0), (12.0, 0.0)]
    path, planes = _plane_path(points)
    curve = path.to_curve(planes)
    assert len(curve.segments) == 3
    for index, (u, v) in enumerate(points):
        assert np.allclose(curve.point(float(index)), [0.0, v, u])


def test_path_is_c1_at_vertices():
    path, planes = _plane_path([(0.0, 0.0), (4.0, 2.0), (8.0, 0.0)])
    curve = path.to_curve(planes)
    left = curve.segments[0].derivative(1.0)
    right = curve.segments[1].derivative(0.0)
    assert np.allclose(left, right)


def test_cyclic_path_closes():
    path, planes = _plane_path([(0.0, 0.0), (5.0, 0.0), (5.0, 5.0), (0.0, 5.0)], cyclic=True)
    curve = path.to_curve(planes)
    assert len(curve.segments) == 4
    assert np.allclose(curve.point(4.0), curve.point(0.0))


@pytest.mark.parametrize(
    "points, cyclic",
    [
        ([(0.0, 0.0)], False),
        ([(0.0, 0.0), (0.0, 0.0), (3.0, 0.0)], False),
        ([(0.0, 0.0), (3.0, 0.0)], True),
    ],
)
def test_degenerate_paths(points, cyclic):
    path, planes = _plane_path(points, cyclic)
    with pytest.raises(DegenerateCurve):
        path.to_curve(planes)


def test_cusp_has_zero_speed():
    path, planes = _plane_path([(0.0, 0.0), (3.0, 0.0), (0.0, 0.0)])
    curve = path.to_curve(planes)
    with pytest.raises(DegenerateCurve):
        ArcLengthMap(curve.speed, curve.breakpoints)


def test_missing_plane():
    path = BezierPath([BezierVertex(3, (0.0, 0.0)), BezierVertex(3, (1.0, 0.0))])
    with pytest.raises(UnknownPath):
        path.to_curve({})


def test_curve_cache_builds_once_per_key():
    cache = CurveCache()
    calls = []

    def build():
        calls.append(1)
        return object()

    first = cache.get_or_fit({"controls": [[0, 1]]}, build)
    second = cache.get_or_fit({"controls": [[0, 1]]}, build)
    third = cache.get_or_fit({"controls": [[0, 2]]}, build)
    assert first is second
    assert third is not first
    assert len(calls) == 2
    assert len(cache) == 2
    cache.clear()
    assert cache.get({"controls": [[0, 1]]}) is None

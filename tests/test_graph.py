import numpy as np
import pytest

from balbundle.graph import EdgeObservationBAL, VertexCameraBAL, VertexPointBAL
from balbundle.projection import cam_projection_with_distortion

CAMERA = [0.01, -0.02, 0.03, 0.1, 0.2, -0.3, 500.0, 0.001, -0.0001]
POINT = [1.0, 2.0, -10.0]


def _edge(measurement=(0.0, 0.0)):
    cam = VertexCameraBAL(0, CAMERA)
    pt = VertexPointBAL(1, POINT, marginalized=True)
    return EdgeObservationBAL(cam, pt, measurement)


def _residual(edge, camera, point):
    return np.array([float(r) for r in edge(list(camera), list(point))])


def test_camera_oplus_adds_update():
    cam = VertexCameraBAL(0, CAMERA)
    update = np.linspace(0.1, 0.9, 9)
    cam.oplus(update)
    assert np.allclose(cam.estimate, np.array(CAMERA) + update)


def test_point_oplus_adds_update():
    pt = VertexPointBAL(3, POINT)
    pt.oplus([0.5, -0.5, 1.0])
    assert np.allclose(pt.estimate, np.array(POINT) + [0.5, -0.5, 1.0])


def test_oplus_rejects_wrong_size():
    pt = VertexPointBAL(3, POINT)
    with pytest.raises(ValueError):
        pt.oplus([1.0, 2.0])


def test_vertex_rejects_wrong_estimate_size():
    with pytest.raises(ValueError):
        VertexCameraBAL(0, [0.0] * 8)


def test_edge_rejects_wrong_measurement_size():
    with pytest.raises(ValueError):
        _edge(measurement=(1.0, 2.0, 3.0))


def test_edge_default_information_is_identity():
    edge = _edge()
    assert np.array_equal(edge.information, np.eye(2))
    assert edge.camera.id == 0
    assert edge.point.marginalized is True


def test_error_is_projection_minus_measurement():
    edge = _edge(measurement=(12.0, -3.5))
    prediction = cam_projection_with_distortion(CAMERA, POINT)
    error = edge.compute_error()
    assert np.allclose(error, np.array(prediction) - [12.0, -3.5])
    assert np.array_equal(edge.error, error)


def test_error_vanishes_at_exact_measurement():
    prediction = cam_projection_with_distortion(CAMERA, POINT)
    edge = _edge(measurement=prediction)
    assert np.allclose(edge.compute_error(), 0.0, atol=1e-12)


def test_error_follows_vertex_updates():
    edge = _edge()
    before = edge.compute_error().copy()
    edge.point.oplus([0.2, 0.0, 0.0])
    assert not np.allclose(edge.compute_error(), before)


def test_jacobians_match_finite_differences():
    edge = _edge(measurement=(5.0, 5.0))
    edge.linearize_oplus()
    assert edge.jacobian_oplus_xi.shape == (2, 9)
    assert edge.jacobian_oplus_xj.shape == (2, 3)

    cam = np.array(CAMERA)
    pt = np.array(POINT)
    numeric_cam = np.zeros((2, 9))
    for j, step in enumerate(np.eye(9)):
        h = 1e-6 * max(1.0, abs(cam[j]))
        numeric_cam[:, j] = (
            _residual(edge, cam + h * step, pt) - _residual(edge, cam - h * step, pt)
        ) / (2 * h)
    numeric_pt = np.zeros((2, 3))
    for j, step in enumerate(np.eye(3)):
        h = 1e-6
        numeric_pt[:, j] = (
            _residual(edge, cam, pt + h * step) - _residual(edge, cam, pt - h * step)
        ) / (2 * h)

    assert np.allclose(edge.jacobian_oplus_xi, numeric_cam, rtol=1e-4, atol=1e-5)
    assert np.allclose(edge.jacobian_oplus_xj, numeric_pt, rtol=1e-4, atol=1e-5)


def test_jacobians_do_not_depend_on_measurement():
    a = _edge(measurement=(0.0, 0.0))
    b = _edge(measurement=(100.0, -40.0))
    a.linearize_oplus()
    b.linearize_oplus()
    assert np.allclose(a.jacobian_oplus_xi, b.jacobian_oplus_xi)
    assert np.allclose(a.jacobian_oplus_xj, b.jacobian_oplus_xj)


def test_focal_column_is_prediction_over_focal():
    edge = _edge()
    edge.linearize_oplus()
    prediction = np.array(cam_projection_with_distortion(CAMERA, POINT))
    assert np.allclose(edge.jacobian_oplus_xi[:, 6], prediction / CAMERA[6])
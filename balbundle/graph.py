"""Vertices and edges of the bundle adjustment graph.

Camera vertices hold nine-parameter camera blocks.  Point vertices hold 3D
points.  An observation edge links one camera to one point and measures
the reprojection error of that point.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

import numpy as np

from balbundle.autodiff import DifferentiationError, differentiate
from balbundle.projection import cam_projection_with_distortion

__all__ = ["VertexCameraBAL", "VertexPointBAL", "EdgeObservationBAL"]


def _vector(values, size: int, what: str) -> np.ndarray:
    array = np.array(values, dtype=float).reshape(-1)
    if array.size != size:
        raise ValueError(f"{what} must have {size} components, got {array.size}")
    return array


@dataclass(eq=False)
class VertexCameraBAL:
    """A camera: angle-axis rotation, translation, focal length, distortion."""

    DIMENSION: ClassVar[int] = 9

    id: int
    estimate: np.ndarray
    marginalized: bool = False
    fixed: bool = False

    def __post_init__(self) -> None:
        self.estimate = _vector(self.estimate, self.DIMENSION, "camera estimate")

    def oplus(self, update) -> None:
        """Apply an additive update to the estimate."""
        self.estimate = self.estimate + _vector(update, self.DIMENSION, "camera update")


@dataclass(eq=False)
class VertexPointBAL:
    """A 3D point."""

    DIMENSION: ClassVar[int] = 3

    id: int
    estimate: np.ndarray
    marginalized: bool = False
    fixed: bool = False

    def __post_init__(self) -> None:
        self.estimate = _vector(self.estimate, self.DIMENSION, "point estimate")

    def oplus(self, update) -> None:
        """Apply an additive update to the estimate."""
        self.estimate = self.estimate + _vector(update, self.DIMENSION, "point update")


class EdgeObservationBAL:
    """The 2D observation of a point by a camera."""

    DIMENSION: ClassVar[int] = 2

    def __init__(
        self,
        camera: VertexCameraBAL,
        point: VertexPointBAL,
        measurement,
        information=None,
        robust_kernel_delta: Optional[float] = None,
    ) -> None:
        self.vertices = (camera, point)
        self.measurement = _vector(measurement, self.DIMENSION, "measurement")
        if information is None:
            self.information = np.eye(self.DIMENSION)
        else:
            self.information = np.array(information, dtype=float)
            if self.information.shape != (self.DIMENSION, self.DIMENSION):
                raise ValueError("information must be a 2x2 matrix")
        self.robust_kernel_delta = robust_kernel_delta
        self.error = np.zeros(self.DIMENSION)
        self.jacobian_oplus_xi = np.zeros((self.DIMENSION, VertexCameraBAL.DIMENSION))
        self.jacobian_oplus_xj = np.zeros((self.DIMENSION, VertexPointBAL.DIMENSION))

    @property
    def camera(self) -> VertexCameraBAL:
        return self.vertices[0]

    @property
    def point(self) -> VertexPointBAL:
        return self.vertices[1]

    def __call__(self, camera, point) -> list:
        """Residuals of the projection of ``point`` through ``camera``."""
        predictions = cam_projection_with_distortion(camera, point)
        return [
            predictions[0] - float(self.measurement[0]),
            predictions[1] - float(self.measurement[1]),
        ]

    def compute_error(self) -> np.ndarray:
        """Update and return the reprojection error at the current estimates."""
        residuals = self(list(self.camera.estimate), list(self.point.estimate))
        self.error = np.array([float(r) for r in residuals])
        return self.error

    def linearize_oplus(self) -> None:
        """Compute the Jacobians with respect to the camera and the point."""
        try:
            _, (d_camera, d_point) = differentiate(
                self, [self.camera.estimate, self.point.estimate], self.DIMENSION
            )
        except DifferentiationError:
            self.jacobian_oplus_xi = np.zeros((self.DIMENSION, VertexCameraBAL.DIMENSION))
            self.jacobian_oplus_xj = np.zeros((self.DIMENSION, VertexPointBAL.DIMENSION))
            return
        self.jacobian_oplus_xi = d_camera
        self.jacobian_oplus_xj = d_point
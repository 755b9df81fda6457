"""Pinhole projection with radial distortion for bundle adjustment cameras.

A camera is nine numbers:

* ``[0:3]`` angle-axis rotation
* ``[3:6]`` translation
* ``[6]`` focal length
* ``[7:9]`` second- and fourth-order radial distortion coefficients

The camera looks down its negative z axis.
"""

from __future__ import annotations

from typing import Sequence

from balbundle.rotation import angle_axis_rotate_point

__all__ = ["cam_projection_with_distortion", "CAMERA_BLOCK_SIZE"]

CAMERA_BLOCK_SIZE = 9


def cam_projection_with_distortion(camera: Sequence, point: Sequence) -> list:
    """Project a 3D ``point`` through ``camera`` and return ``[u, v]``.

    The result is relative to the centre of the image plane.  It works on
    floats and on jets.
    """
    if len(camera) != CAMERA_BLOCK_SIZE:
        raise ValueError(
            f"camera must have {CAMERA_BLOCK_SIZE} components, got {len(camera)}"
        )
    if len(point) != 3:
        raise ValueError(f"point must have 3 components, got {len(point)}")

    rotated = angle_axis_rotate_point(list(camera[0:3]), list(point))
    p = [c + t for c, t in zip(rotated, camera[3:6])]

    # Perspective division.
    xp = -p[0] / p[2]
    yp = -p[1] / p[2]

    l1 = camera[7]
    l2 = camera[8]
    r2 = xp * xp + yp * yp
    distortion = 1.0 + r2 * (l1 + l2 * r2)

    focal = camera[6]
    return [focal * distortion * xp, focal * distortion * yp]
"""Angle-axis and quaternion rotations that work on floats and jets alike.

An angle-axis vector is three numbers whose direction is the rotation axis
and whose length is the rotation angle in radians.  Quaternions are stored
scalar first: ``[w, x, y, z]``.
"""

from __future__ import annotations

import sys
from typing import Sequence

from balbundle import jet_math

__all__ = [
    "dot_product",
    "cross_product",
    "angle_axis_to_quaternion",
    "quaternion_to_angle_axis",
    "angle_axis_rotate_point",
]

_EPSILON = sys.float_info.epsilon


def _require(values: Sequence, length: int, what: str) -> None:
    if len(values) != length:
        raise ValueError(f"{what} must have {length} components, got {len(values)}")


def dot_product(x: Sequence, y: Sequence):
    """Dot product of two 3-vectors."""
    _require(x, 3, "x")
    _require(y, 3, "y")
    return x[0] * y[0] + x[1] * y[1] + x[2] * y[2]


def cross_product(x: Sequence, y: Sequence) -> list:
    """Cross product ``x × y`` of two 3-vectors."""
    _require(x, 3, "x")
    _require(y, 3, "y")
    return [
        x[1] * y[2] - x[2] * y[1],
        x[2] * y[0] - x[0] * y[2],
        x[0] * y[1] - x[1] * y[0],
    ]


def angle_axis_to_quaternion(angle_axis: Sequence) -> list:
    """Convert an angle-axis vector to a unit quaternion ``[w, x, y, z]``."""
    _require(angle_axis, 3, "angle_axis")
    a0, a1, a2 = angle_axis
    theta_squared = a0 * a0 + a1 * a1 + a2 * a2
    if theta_squared > _EPSILON:
        theta = jet_math.sqrt(theta_squared)
        half_theta = theta * 0.5
        k = jet_math.sin(half_theta) / theta
        return [jet_math.cos(half_theta), a0 * k, a1 * k, a2 * k]
    # Near zero rotation: first-order Taylor approximation.
    k = 0.5
    return [1.0, a0 * k, a1 * k, a2 * k]


def quaternion_to_angle_axis(quaternion: Sequence) -> list:
    """Convert a quaternion ``[w, x, y, z]`` to an angle-axis vector.

    The resulting rotation angle is kept within [-pi, pi].
    """
    _require(quaternion, 4, "quaternion")
    cos_theta, q1, q2, q3 = quaternion
    sin_squared_theta = q1 * q1 + q2 * q2 + q3 * q3
    if sin_squared_theta > _EPSILON:
        sin_theta = jet_math.sqrt(sin_squared_theta)
        # A negative cos_theta means theta > pi/2; flip so 2*theta stays <= pi.
        if cos_theta < 0.0:
            two_theta = 2.0 * jet_math.atan2(-sin_theta, -cos_theta)
        else:
            two_theta = 2.0 * jet_math.atan2(sin_theta, cos_theta)
        k = two_theta / sin_theta
    else:
        # Avoids the sqrt of zero, which has no derivative.
        k = 2.0
    return [q1 * k, q2 * k, q3 * k]


def angle_axis_rotate_point(angle_axis: Sequence, pt: Sequence) -> list:
    """Rotate the 3-point ``pt`` by the rotation ``angle_axis``."""
    _require(angle_axis, 3, "angle_axis")
    _require(pt, 3, "pt")
    theta2 = dot_product(angle_axis, angle_axis)
    if theta2 > _EPSILON:
        # Rodrigues' formula:
        #   pt cos(theta) + (w × pt) sin(theta) + w (w · pt)(1 - cos(theta))
        theta = jet_math.sqrt(theta2)
        costheta = jet_math.cos(theta)
        sintheta = jet_math.sin(theta)
        theta_inverse = 1.0 / theta
        w = [c * theta_inverse for c in angle_axis]
        w_cross_pt = cross_product(w, pt)
        tmp = dot_product(w, pt) * (1.0 - costheta)
        return [
            p * costheta + c * sintheta + wi * tmp
            for p, c, wi in zip(pt, w_cross_pt, w)
        ]
    # Near zero: R ≈ I + hat(angle_axis), which keeps derivatives meaningful.
    w_cross_pt = cross_product(angle_axis, pt)
    return [p + c for p, c in zip(pt, w_cross_pt)]
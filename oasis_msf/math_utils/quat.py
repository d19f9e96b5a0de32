################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""
Quaternion helpers for the fusion core

Conventions:
    * Quaternions are stored in wxyz order as numpy arrays
    * Rotation blocks are perturbed on the right, q_true = q ⊗ Exp(delta_theta)
    * delta_theta is a rotation vector with magnitude equal to the rotation
      angle in radians, so Exp(delta_theta) = [cos(|δθ|/2), sin(|δθ|/2) δθ/|δθ|]

quat_multiply, quat_conjugate, quat_to_rotation_matrix and quat_rotate use
only arithmetic, so they also evaluate on dual-number object arrays.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from oasis_msf.math_utils.units import PhysicalConstants
from oasis_msf.math_utils.units import assert_finite


# Rotation magnitude threshold in rad for the small-angle series
SMALL_ANGLE_RAD: float = 1.0e-12


def quat_identity() -> NDArray[np.float64]:
    """Return the identity quaternion."""
    return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def quat_multiply(q_left: NDArray, q_right: NDArray) -> NDArray:
    """Multiply two quaternions using the Hamilton product."""
    w1 = q_left[0]
    x1 = q_left[1]
    y1 = q_left[2]
    z1 = q_left[3]

    w2 = q_right[0]
    x2 = q_right[1]
    y2 = q_right[2]
    z2 = q_right[3]

    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ]
    )


def quat_conjugate(q_wxyz: NDArray) -> NDArray:
    """Return the conjugate quaternion."""
    return np.array([q_wxyz[0], -q_wxyz[1], -q_wxyz[2], -q_wxyz[3]])


def quat_normalize(q_wxyz: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return a unit quaternion, raising when the norm is degenerate."""
    q: NDArray[np.float64] = np.asarray(q_wxyz, dtype=np.float64).reshape(-1)
    if q.shape != (4,):
        raise ValueError("Quaternion must have 4 elements")
    assert_finite(q, "Quaternion")
    norm: float = float(np.linalg.norm(q))
    if norm <= PhysicalConstants.EPS:
        raise ValueError("Quaternion norm must be positive")
    return q / norm


def quat_from_rotvec(rotvec: NDArray[np.float64]) -> NDArray[np.float64]:
    """Build a quaternion from a rotation vector using Exp(delta_theta)."""
    vec: NDArray[np.float64] = np.asarray(rotvec, dtype=np.float64).reshape(-1)
    if vec.shape != (3,):
        raise ValueError("rotvec must have shape (3,)")
    assert_finite(vec, "rotvec")
    angle: float = float(np.linalg.norm(vec))

    if angle < SMALL_ANGLE_RAD:
        return quat_normalize(
            np.array([1.0, 0.5 * vec[0], 0.5 * vec[1], 0.5 * vec[2]], dtype=np.float64)
        )

    # Half-angle term used in quaternion exponential
    half_angle: float = 0.5 * angle
    scale: float = math.sin(half_angle) / angle
    return np.array(
        [math.cos(half_angle), vec[0] * scale, vec[1] * scale, vec[2] * scale],
        dtype=np.float64,
    )


def quat_from_rotvec_first_order(rotvec: NDArray[np.float64]) -> NDArray[np.float64]:
    """Build a quaternion from a rotation vector using [1, delta_theta / 2]."""
    vec: NDArray[np.float64] = np.asarray(rotvec, dtype=np.float64).reshape(-1)
    if vec.shape != (3,):
        raise ValueError("rotvec must have shape (3,)")
    assert_finite(vec, "rotvec")
    return quat_normalize(
        np.array([1.0, 0.5 * vec[0], 0.5 * vec[1], 0.5 * vec[2]], dtype=np.float64)
    )


def quat_perturbation(delta_theta: NDArray) -> NDArray:
    """
    Return the unnormalized first-order perturbation [1, delta_theta / 2]

    Matches Exp(delta_theta) to first order, which is all a Jacobian needs.
    """

    # Scalar part carries a zero tangent so dual inputs stay homogeneous
    w = 1.0 + 0.0 * delta_theta[0]
    return np.array(
        [w, 0.5 * delta_theta[0], 0.5 * delta_theta[1], 0.5 * delta_theta[2]]
    )


def quat_to_rotation_matrix(q_wxyz: NDArray) -> NDArray:
    """Return the rotation matrix of a unit quaternion."""
    w = q_wxyz[0]
    x = q_wxyz[1]
    y = q_wxyz[2]
    z = q_wxyz[3]
    return np.array(
        [
            [
                1.0 - 2.0 * (y * y + z * z),
                2.0 * (x * y - z * w),
                2.0 * (x * z + y * w),
            ],
            [
                2.0 * (x * y + z * w),
                1.0 - 2.0 * (x * x + z * z),
                2.0 * (y * z - x * w),
            ],
            [
                2.0 * (x * z - y * w),
                2.0 * (y * z + x * w),
                1.0 - 2.0 * (x * x + y * y),
            ],
        ]
    )


def quat_rotate(q_wxyz: NDArray, v: NDArray) -> NDArray:
    """Rotate a 3-vector by a unit quaternion."""
    return quat_to_rotation_matrix(q_wxyz) @ v


def quat_to_rotvec(q_wxyz: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return the rotation vector Log(q) with angle in [0, pi]."""
    q: NDArray[np.float64] = quat_normalize(q_wxyz)
    if q[0] < 0.0:
        q = -q
    vec_norm: float = float(np.linalg.norm(q[1:4]))
    if vec_norm < SMALL_ANGLE_RAD:
        return 2.0 * q[1:4]
    angle: float = 2.0 * math.atan2(vec_norm, float(q[0]))
    return q[1:4] * (angle / vec_norm)


def quat_almost_equal(
    q1: NDArray[np.float64], q2: NDArray[np.float64], atol: float = 1e-9
) -> bool:
    """Check approximate equality, accounting for sign ambiguity."""
    a: NDArray[np.float64] = np.asarray(q1, dtype=np.float64)
    b: NDArray[np.float64] = np.asarray(q2, dtype=np.float64)
    if np.allclose(a, b, atol=atol):
        return True
    return bool(np.allclose(a, -b, atol=atol))

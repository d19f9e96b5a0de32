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
Inertial process model for the core motion block

The core block propagates position, velocity, attitude and IMU biases with
specific force and angular rate inputs:

    p_k+1 = p_k + v_k dt
    v_k+1 = v_k + (R(q_k) (f - b_a) + g) dt
    q_k+1 = q_k ⊗ Exp((ω - b_g) dt)

Biases follow a random walk. The error-state transition is linearized with
the right-perturbation convention ``q_true = q ⊗ Exp(δθ)`` and discretized
to first order as ``F = I + A dt``.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Mapping

import numpy as np
from numpy.typing import NDArray

from oasis_msf.math_utils.linalg import SO3
from oasis_msf.math_utils.quat import quat_from_rotvec
from oasis_msf.math_utils.quat import quat_from_rotvec_first_order
from oasis_msf.math_utils.quat import quat_multiply
from oasis_msf.math_utils.quat import quat_normalize
from oasis_msf.math_utils.quat import quat_to_rotation_matrix
from oasis_msf.math_utils.units import as_vector
from oasis_msf.math_utils.units import assert_finite_scalar
from oasis_msf.msf_types.msf_errors import SensorKey
from oasis_msf.state.state_layout import CORE_ERROR_DIM
from oasis_msf.state.state_layout import StateLayout


# Quaternion integration using the closed-form exponential map
QUAT_INTEGRATION_EXACT: str = "exact"

# Quaternion integration using the normalized [1, δθ/2] approximation
QUAT_INTEGRATION_FIRST_ORDER: str = "first_order"

# Supported quaternion integration schemes
QUAT_INTEGRATION_SCHEMES: tuple[str, ...] = (
    QUAT_INTEGRATION_EXACT,
    QUAT_INTEGRATION_FIRST_ORDER,
)


@dataclass(frozen=True)
class ImuSample:
    """Inertial input held constant over one prediction interval.

    Attributes:
        specific_force_mps2: Accelerometer specific force in the body frame
        angular_rate_rps: Gyroscope angular rate in the body frame
    """

    specific_force_mps2: NDArray[np.float64]
    angular_rate_rps: NDArray[np.float64]

    def __post_init__(self) -> None:
        """Validate and freeze the input vectors."""
        f: NDArray[np.float64] = as_vector(
            self.specific_force_mps2, 3, "specific_force_mps2"
        ).copy()
        w: NDArray[np.float64] = as_vector(
            self.angular_rate_rps, 3, "angular_rate_rps"
        ).copy()
        f.setflags(write=False)
        w.setflags(write=False)
        object.__setattr__(self, "specific_force_mps2", f)
        object.__setattr__(self, "angular_rate_rps", w)

    @staticmethod
    def stationary(gravity_mps2: float) -> ImuSample:
        """Return the input of a level body at rest."""
        return ImuSample(
            specific_force_mps2=np.array([0.0, 0.0, gravity_mps2], dtype=np.float64),
            angular_rate_rps=np.zeros(3, dtype=np.float64),
        )


@dataclass(frozen=True)
class ProcessNoiseSpec:
    """Continuous-time process noise intensities for one prediction.

    Attributes:
        accel_noise_var: Accelerometer white-noise density, (m/s^2)^2 s
        gyro_noise_var: Gyroscope white-noise density, (rad/s)^2 s
        accel_bias_rw_var: Accel bias random-walk intensity, (m/s^2)^2 / s
        gyro_bias_rw_var: Gyro bias random-walk intensity, (rad/s)^2 / s
        sensor_noise: Per-sensor variance rates, one per error element
    """

    accel_noise_var: float
    gyro_noise_var: float
    accel_bias_rw_var: float
    gyro_bias_rw_var: float
    sensor_noise: Mapping[SensorKey, NDArray[np.float64]] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        """Validate noise intensities."""
        for name in (
            "accel_noise_var",
            "gyro_noise_var",
            "accel_bias_rw_var",
            "gyro_bias_rw_var",
        ):
            value: float = float(getattr(self, name))
            assert_finite_scalar(value, name)
            if value < 0.0:
                raise ValueError(f"{name} must be non-negative")
            object.__setattr__(self, name, value)

        rates: dict[SensorKey, NDArray[np.float64]] = {}
        for key, rate in self.sensor_noise.items():
            vec: NDArray[np.float64] = np.asarray(rate, dtype=np.float64).reshape(-1)
            if not np.all(np.isfinite(vec)) or np.any(vec < 0.0):
                raise ValueError(
                    f"sensor_noise[{key!r}] must be finite and non-negative"
                )
            rates[key] = vec
        object.__setattr__(self, "sensor_noise", rates)


class CoreProcessModel:
    """
    Inertial propagation and linearization of the core motion block
    """

    def __init__(self, gravity_mps2: float, quaternion_integration: str) -> None:
        assert_finite_scalar(gravity_mps2, "gravity_mps2")
        if quaternion_integration not in QUAT_INTEGRATION_SCHEMES:
            raise ValueError(
                f"Unsupported quaternion_integration '{quaternion_integration}'"
            )
        self._gravity_mps2: float = float(gravity_mps2)
        self._quaternion_integration: str = quaternion_integration

    @property
    def gravity_mps2(self) -> float:
        return self._gravity_mps2

    def gravity_vector(self) -> NDArray[np.float64]:
        """Return the world-frame gravity vector g = [0, 0, -gravity]."""
        return np.array([0.0, 0.0, -self._gravity_mps2], dtype=np.float64)

    def default_input(self) -> ImuSample:
        """Return the input that holds attitude and velocity constant."""
        return ImuSample.stationary(self._gravity_mps2)

    def propagate_nominal(
        self,
        x: NDArray[np.float64],
        layout: StateLayout,
        imu: ImuSample,
        dt: float,
    ) -> None:
        """
        Propagate the core nominal block in place

        Args:
            x: Nominal state vector to update in-place
            layout: State layout of x
            imu: Inertial input over the interval
            dt: Time step in seconds
        """

        sl_p: slice = layout.sl_position()
        sl_v: slice = layout.sl_velocity()
        sl_q: slice = layout.sl_attitude()

        q_wxyz: NDArray[np.float64] = x[sl_q].copy()
        vel: NDArray[np.float64] = x[sl_v].copy()
        accel_body: NDArray[np.float64] = (
            imu.specific_force_mps2 - x[layout.sl_bias_acc()]
        )
        omega_body: NDArray[np.float64] = (
            imu.angular_rate_rps - x[layout.sl_bias_gyro()]
        )

        rot_world_from_body: NDArray[np.float64] = np.asarray(
            quat_to_rotation_matrix(q_wxyz), dtype=np.float64
        )
        accel_world: NDArray[np.float64] = (
            rot_world_from_body @ accel_body + self.gravity_vector()
        )

        x[sl_p] = x[sl_p] + vel * dt
        x[sl_v] = vel + accel_world * dt

        delta_rot: NDArray[np.float64] = omega_body * dt
        delta_quat: NDArray[np.float64]
        if self._quaternion_integration == QUAT_INTEGRATION_EXACT:
            delta_quat = quat_from_rotvec(delta_rot)
        else:
            delta_quat = quat_from_rotvec_first_order(delta_rot)
        x[sl_q] = quat_normalize(quat_multiply(q_wxyz, delta_quat))

    def continuous_jacobian(
        self,
        x: NDArray[np.float64],
        layout: StateLayout,
        imu: ImuSample,
    ) -> NDArray[np.float64]:
        """
        Build the continuous-time error-state Jacobian A of the core block

        Returns:
            Matrix with shape (15, 15) in core error coordinates
        """

        a_mat: NDArray[np.float64] = np.zeros(
            (CORE_ERROR_DIM, CORE_ERROR_DIM), dtype=np.float64
        )

        rot_world_from_body: NDArray[np.float64] = np.asarray(
            quat_to_rotation_matrix(x[layout.sl_attitude()]), dtype=np.float64
        )
        accel_body: NDArray[np.float64] = (
            imu.specific_force_mps2 - x[layout.sl_bias_acc()]
        )
        omega_body: NDArray[np.float64] = (
            imu.angular_rate_rps - x[layout.sl_bias_gyro()]
        )

        e_p: slice = layout.err_position()
        e_v: slice = layout.err_velocity()
        e_th: slice = layout.err_attitude()
        e_ba: slice = layout.err_bias_acc()
        e_bg: slice = layout.err_bias_gyro()

        a_mat[e_p, e_v] = np.eye(3)
        a_mat[e_v, e_th] = -rot_world_from_body @ SO3.hat(accel_body)
        a_mat[e_v, e_ba] = -rot_world_from_body
        a_mat[e_th, e_th] = -SO3.hat(omega_body)
        a_mat[e_th, e_bg] = -np.eye(3)
        return a_mat

    def discrete_transition(
        self,
        x: NDArray[np.float64],
        layout: StateLayout,
        imu: ImuSample,
        dt: float,
    ) -> NDArray[np.float64]:
        """Return the first-order discrete transition F = I + A dt."""
        a_mat: NDArray[np.float64] = self.continuous_jacobian(x, layout, imu)
        return np.eye(CORE_ERROR_DIM, dtype=np.float64) + a_mat * dt

    def discrete_process_noise(
        self,
        layout: StateLayout,
        noise: ProcessNoiseSpec,
        dt: float,
    ) -> NDArray[np.float64]:
        """
        Build the diagonal discrete process noise of the core block

        Returns:
            Matrix with shape (15, 15) in core error coordinates
        """

        q_mat: NDArray[np.float64] = np.zeros(
            (CORE_ERROR_DIM, CORE_ERROR_DIM), dtype=np.float64
        )
        diag: NDArray[np.float64] = np.zeros(CORE_ERROR_DIM, dtype=np.float64)
        diag[layout.err_velocity()] = noise.accel_noise_var * dt
        diag[layout.err_attitude()] = noise.gyro_noise_var * dt
        diag[layout.err_bias_acc()] = noise.accel_bias_rw_var * dt
        diag[layout.err_bias_gyro()] = noise.gyro_bias_rw_var * dt
        np.fill_diagonal(q_mat, diag)
        return q_mat


################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for the inertial process model of the core block."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.typing import NDArray

from oasis_msf.math_utils.linalg import SO3
from oasis_msf.math_utils.quat import quat_almost_equal
from oasis_msf.math_utils.quat import quat_from_rotvec
from oasis_msf.math_utils.quat import quat_to_rotation_matrix
from oasis_msf.models.core_process_model import QUAT_INTEGRATION_EXACT
from oasis_msf.models.core_process_model import QUAT_INTEGRATION_FIRST_ORDER
from oasis_msf.models.core_process_model import CoreProcessModel
from oasis_msf.models.core_process_model import ImuSample
from oasis_msf.models.core_process_model import ProcessNoiseSpec
from oasis_msf.sensors.sensor_descriptor import SensorDescriptor
from oasis_msf.state.nominal_state import NominalState
from oasis_msf.state.state_layout import StateLayout


GRAVITY: float = 9.80665


def _state() -> NominalState:
    return NominalState(StateLayout.build([("accel", SensorDescriptor(3))]))


def test_stationary_input_holds_state() -> None:
    """Ensure a level body at rest does not move."""
    model: CoreProcessModel = CoreProcessModel(GRAVITY, QUAT_INTEGRATION_EXACT)
    state: NominalState = _state()
    model.propagate_nominal(state.x, state.layout, model.default_input(), 1.0)
    assert np.allclose(state.x[state.layout.sl_position()], 0.0)
    assert np.allclose(state.x[state.layout.sl_velocity()], 0.0)
    assert np.allclose(state.x[state.layout.sl_attitude()], [1.0, 0.0, 0.0, 0.0])


def test_constant_acceleration_uses_previous_velocity() -> None:
    """Ensure position integrates the velocity at the start of the step."""
    model: CoreProcessModel = CoreProcessModel(GRAVITY, QUAT_INTEGRATION_EXACT)
    state: NominalState = _state()
    imu: ImuSample = ImuSample(
        specific_force_mps2=np.array([2.0, 0.0, GRAVITY]),
        angular_rate_rps=np.zeros(3),
    )
    model.propagate_nominal(state.x, state.layout, imu, 0.5)
    model.propagate_nominal(state.x, state.layout, imu, 0.5)
    assert state.x[state.layout.sl_position()][0] == pytest.approx(0.5)
    assert state.x[state.layout.sl_velocity()][0] == pytest.approx(2.0)


def test_bias_is_removed_from_inputs() -> None:
    """Ensure accel bias compensation cancels a biased reading."""
    model: CoreProcessModel = CoreProcessModel(GRAVITY, QUAT_INTEGRATION_EXACT)
    state: NominalState = _state()
    state.x[state.layout.sl_bias_acc()] = [0.3, 0.0, 0.0]
    imu: ImuSample = ImuSample(
        specific_force_mps2=np.array([0.3, 0.0, GRAVITY]),
        angular_rate_rps=np.zeros(3),
    )
    model.propagate_nominal(state.x, state.layout, imu, 1.0)
    assert np.allclose(state.x[state.layout.sl_velocity()], 0.0)


@pytest.mark.parametrize(
    "scheme", [QUAT_INTEGRATION_EXACT, QUAT_INTEGRATION_FIRST_ORDER]
)
def test_attitude_integration(scheme: str) -> None:
    """Ensure both schemes rotate about the body rate and stay unit norm."""
    model: CoreProcessModel = CoreProcessModel(GRAVITY, scheme)
    state: NominalState = _state()
    rate: NDArray[np.float64] = np.array([0.0, 0.0, 0.5 * math.pi])
    imu: ImuSample = ImuSample(
        specific_force_mps2=np.array([0.0, 0.0, GRAVITY]), angular_rate_rps=rate
    )
    model.propagate_nominal(state.x, state.layout, imu, 1.0)
    q_wxyz: NDArray[np.float64] = state.x[state.layout.sl_attitude()]
    assert np.linalg.norm(q_wxyz) == pytest.approx(1.0)
    assert q_wxyz[1] == pytest.approx(0.0)
    assert q_wxyz[2] == pytest.approx(0.0)
    exact: bool = quat_almost_equal(q_wxyz, quat_from_rotvec(rate))
    assert exact == (scheme == QUAT_INTEGRATION_EXACT)


def test_continuous_jacobian_blocks() -> None:
    """Ensure the error dynamics follow the right-perturbation convention."""
    model: CoreProcessModel = CoreProcessModel(GRAVITY, QUAT_INTEGRATION_EXACT)
    state: NominalState = _state()
    layout: StateLayout = state.layout
    q_wxyz: NDArray[np.float64] = quat_from_rotvec(np.array([0.1, -0.2, 0.3]))
    state.x[layout.sl_attitude()] = q_wxyz
    state.x[layout.sl_bias_acc()] = [0.1, 0.2, 0.3]
    state.x[layout.sl_bias_gyro()] = [0.01, 0.0, -0.01]
    imu: ImuSample = ImuSample(
        specific_force_mps2=np.array([0.5, -0.5, GRAVITY]),
        angular_rate_rps=np.array([0.1, 0.2, 0.3]),
    )
    a_mat: NDArray[np.float64] = model.continuous_jacobian(state.x, layout, imu)
    rot: NDArray[np.float64] = quat_to_rotation_matrix(q_wxyz)
    accel: NDArray[np.float64] = np.array([0.4, -0.7, GRAVITY - 0.3])
    omega: NDArray[np.float64] = np.array([0.09, 0.2, 0.31])

    assert a_mat.shape == (15, 15)
    assert np.allclose(a_mat[0:3, 3:6], np.eye(3))
    assert np.allclose(a_mat[3:6, 6:9], -rot @ SO3.hat(accel))
    assert np.allclose(a_mat[3:6, 9:12], -rot)
    assert np.allclose(a_mat[6:9, 6:9], -SO3.hat(omega))
    assert np.allclose(a_mat[6:9, 12:15], -np.eye(3))
    assert np.allclose(a_mat[9:15, :], 0.0)

    f_mat: NDArray[np.float64] = model.discrete_transition(
        state.x, layout, imu, 0.1
    )
    assert np.allclose(f_mat, np.eye(15) + 0.1 * a_mat)


def test_discrete_process_noise() -> None:
    """Ensure Q scales each intensity by dt on its block."""
    model: CoreProcessModel = CoreProcessModel(GRAVITY, QUAT_INTEGRATION_EXACT)
    layout: StateLayout = _state().layout
    noise: ProcessNoiseSpec = ProcessNoiseSpec(
        accel_noise_var=1.0,
        gyro_noise_var=2.0,
        accel_bias_rw_var=3.0,
        gyro_bias_rw_var=4.0,
    )
    q_mat: NDArray[np.float64] = model.discrete_process_noise(layout, noise, 0.5)
    assert np.allclose(np.diag(q_mat)[0:3], 0.0)
    assert np.allclose(np.diag(q_mat)[3:6], 0.5)
    assert np.allclose(np.diag(q_mat)[6:9], 1.0)
    assert np.allclose(np.diag(q_mat)[9:12], 1.5)
    assert np.allclose(np.diag(q_mat)[12:15], 2.0)
    assert np.count_nonzero(q_mat - np.diag(np.diag(q_mat))) == 0


def test_invalid_inputs() -> None:
    """Ensure malformed inputs are rejected."""
    with pytest.raises(ValueError):
        CoreProcessModel(GRAVITY, "rk4")
    with pytest.raises(ValueError):
        ImuSample(specific_force_mps2=np.zeros(2), angular_rate_rps=np.zeros(3))
    with pytest.raises(ValueError):
        ImuSample(
            specific_force_mps2=np.array([np.nan, 0.0, 0.0]),
            angular_rate_rps=np.zeros(3),
        )
    with pytest.raises(ValueError):
        ProcessNoiseSpec(
            accel_noise_var=-1.0,
            gyro_noise_var=0.0,
            accel_bias_rw_var=0.0,
            gyro_bias_rw_var=0.0,
        )

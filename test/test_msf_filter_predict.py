################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for fusion filter prediction."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.typing import NDArray
from sim_sensors import AccelSensor
from sim_sensors import build_config

from oasis_msf.config.msf_config import MsfConfig
from oasis_msf.config.msf_config import SensorConfig
from oasis_msf.config.msf_params import FilterParams
from oasis_msf.config.msf_params import MsfParams
from oasis_msf.filter.msf_filter import MsfFilter
from oasis_msf.math_utils.quat import quat_almost_equal
from oasis_msf.math_utils.quat import quat_from_rotvec
from oasis_msf.models.core_process_model import ImuSample
from oasis_msf.models.core_process_model import ProcessNoiseSpec
from oasis_msf.msf_types.msf_errors import InvalidSensorKeyError
from oasis_msf.sensors.sensor_descriptor import SensorDescriptor
from oasis_msf.sensors.sensor_model import SensorModel
from oasis_msf.state.nominal_state import StateView


GRAVITY: float = 9.80665


class ClockOffset(SensorModel):
    """Clock offset drifting at a constant rate, measured directly."""

    descriptor = SensorDescriptor(measurement_dim=1, linear_state_count=1)

    def __init__(self, drift_rate: float) -> None:
        self._drift_rate: float = drift_rate

    def predict_measurement(self, view: StateView) -> NDArray:
        return view.linear

    def noise_covariance(self) -> NDArray[np.float64]:
        return np.array([[1.0e-4]], dtype=np.float64)

    def propagate(
        self,
        linear: NDArray[np.float64],
        rotations: list[NDArray[np.float64]],
        dt: float,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]]]:
        return linear + self._drift_rate * dt, rotations

    def transition_jacobian(self, dt: float) -> NDArray[np.float64]:
        return np.array([[0.5]], dtype=np.float64)


class DivergentClock(ClockOffset):
    """Clock whose propagation produces a non-finite offset."""

    def propagate(
        self,
        linear: NDArray[np.float64],
        rotations: list[NDArray[np.float64]],
        dt: float,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]]]:
        return linear + np.inf, rotations


def _noise(**sensor_noise: NDArray[np.float64]) -> ProcessNoiseSpec:
    return ProcessNoiseSpec(
        accel_noise_var=1.0e-2,
        gyro_noise_var=1.0e-4,
        accel_bias_rw_var=1.0e-6,
        gyro_bias_rw_var=1.0e-8,
        sensor_noise=sensor_noise,
    )


def test_zero_dt_is_a_no_op() -> None:
    """Ensure dt = 0 leaves state and covariance bit-identical."""
    fusion: MsfFilter = MsfFilter(build_config())
    x_before: NDArray[np.float64] = fusion.nominal_state().copy()
    p_before: NDArray[np.float64] = fusion.error_covariance().copy()
    fusion.predict(0.0)
    assert np.array_equal(fusion.nominal_state(), x_before)
    assert np.array_equal(fusion.error_covariance(), p_before)


@pytest.mark.parametrize("dt", [-0.1, math.nan, math.inf])
def test_invalid_dt(dt: float) -> None:
    """Ensure negative and non-finite steps raise without side effects."""
    fusion: MsfFilter = MsfFilter(build_config())
    p_before: NDArray[np.float64] = fusion.error_covariance().copy()
    with pytest.raises(ValueError):
        fusion.predict(dt)
    assert np.array_equal(fusion.error_covariance(), p_before)


def test_default_input_holds_body_at_rest() -> None:
    """Ensure predicting without an IMU sample keeps the body still."""
    fusion: MsfFilter = MsfFilter(build_config())
    trace_before: float = float(np.trace(fusion.error_covariance()))
    for _ in range(10):
        fusion.predict(0.1)
    assert np.allclose(fusion.position(), 0.0)
    assert np.allclose(fusion.velocity(), 0.0)
    assert np.allclose(fusion.attitude_wxyz(), [1.0, 0.0, 0.0, 0.0])
    assert float(np.trace(fusion.error_covariance())) > trace_before


def test_covariance_couples_position_and_velocity() -> None:
    """Ensure the transition correlates position with velocity."""
    fusion: MsfFilter = MsfFilter(build_config())
    assert fusion.error_covariance()[0, 3] == 0.0
    fusion.predict(0.5)
    cov: NDArray[np.float64] = fusion.error_covariance()
    assert cov[0, 3] == pytest.approx(0.5)
    assert np.allclose(cov, cov.T)
    assert np.min(np.linalg.eigvalsh(cov)) > 0.0


def test_imu_kinematics() -> None:
    """Ensure a constant specific force integrates position and velocity."""
    fusion: MsfFilter = MsfFilter(build_config())
    imu: ImuSample = ImuSample(
        specific_force_mps2=np.array([1.0, 0.0, GRAVITY]),
        angular_rate_rps=np.zeros(3),
    )
    fusion.predict(0.5, imu=imu)
    fusion.predict(0.5, imu=imu)
    assert fusion.position() == pytest.approx([0.25, 0.0, 0.0])
    assert fusion.velocity() == pytest.approx([1.0, 0.0, 0.0])


@pytest.mark.parametrize("scheme", ["exact", "first_order"])
def test_attitude_integration_scheme(scheme: str) -> None:
    """Ensure the configured quaternion integration scheme is used."""
    params: MsfParams = MsfParams.defaults().replace(
        filter=FilterParams(quaternion_integration=scheme)
    )
    fusion: MsfFilter = MsfFilter(build_config(params=params))
    rate: NDArray[np.float64] = np.array([0.0, 0.0, 0.5 * math.pi])
    fusion.predict(
        1.0,
        imu=ImuSample(
            specific_force_mps2=np.array([0.0, 0.0, GRAVITY]), angular_rate_rps=rate
        ),
    )
    q_wxyz: NDArray[np.float64] = fusion.attitude_wxyz()
    assert np.linalg.norm(q_wxyz) == pytest.approx(1.0)
    assert quat_almost_equal(q_wxyz, quat_from_rotvec(rate)) == (scheme == "exact")


def test_sensor_propagation_hooks() -> None:
    """Ensure sensor sub-states evolve through their own models."""
    config: MsfConfig = build_config(
        [
            SensorConfig(key="accel", model=AccelSensor()),
            SensorConfig(key="clock", model=ClockOffset(drift_rate=2.0)),
        ]
    )
    fusion: MsfFilter = MsfFilter(config)
    fusion.predict(0.25)
    assert fusion.sensor_state("clock").linear == pytest.approx([0.5])

    # Transition block 0.5 scales the unit initial variance to 0.25
    index: int = fusion.layout.error_linear_slice("clock").start
    assert fusion.error_covariance()[index, index] == pytest.approx(0.25)

    fusion.predict(1.0, process_noise=_noise(clock=np.array([0.1])))
    assert fusion.error_covariance()[index, index] == pytest.approx(0.0625 + 0.1)


def test_process_noise_validation() -> None:
    """Ensure per-sensor noise must match configured keys and sizes."""
    fusion: MsfFilter = MsfFilter(build_config())
    x_before: NDArray[np.float64] = fusion.nominal_state().copy()
    with pytest.raises(InvalidSensorKeyError):
        fusion.predict(0.1, process_noise=_noise(lidar=np.array([1.0])))
    with pytest.raises(ValueError):
        fusion.predict(0.1, process_noise=_noise(gps=np.array([1.0, 1.0])))
    assert np.array_equal(fusion.nominal_state(), x_before)


def test_process_noise_adds_to_core_blocks() -> None:
    """Ensure core noise enters only the driven error blocks."""
    fusion: MsfFilter = MsfFilter(build_config())
    p_before: NDArray[np.float64] = fusion.error_covariance().copy()
    fusion.predict(1.0e-3, process_noise=_noise(gps=np.array([0.0, 0.0, 0.0])))
    diff: NDArray[np.float64] = np.diag(fusion.error_covariance() - p_before)
    assert np.all(diff[3:15] > 0.0)
    assert np.allclose(diff[15:], 0.0)


def test_failed_sensor_propagation_leaves_state() -> None:
    """Ensure a sensor hook failure rolls back the core and earlier sensors."""
    config: MsfConfig = build_config(
        [
            SensorConfig(key="accel", model=AccelSensor()),
            SensorConfig(key="clock", model=ClockOffset(drift_rate=2.0)),
            SensorConfig(key="broken", model=DivergentClock(drift_rate=1.0)),
        ]
    )
    fusion: MsfFilter = MsfFilter(config)
    x_before: NDArray[np.float64] = fusion.nominal_state().copy()
    p_before: NDArray[np.float64] = fusion.error_covariance().copy()
    imu: ImuSample = ImuSample(
        specific_force_mps2=np.array([0.5, 0.0, GRAVITY]),
        angular_rate_rps=np.array([0.0, 0.0, 0.5]),
    )

    with pytest.raises(ValueError):
        fusion.predict(0.1, imu=imu)

    assert np.array_equal(fusion.nominal_state(), x_before)
    assert np.array_equal(fusion.error_covariance(), p_before)
    assert np.array_equal(fusion.attitude_wxyz(), [1.0, 0.0, 0.0, 0.0])
    assert fusion.sensor_state("clock").linear == pytest.approx([0.0])

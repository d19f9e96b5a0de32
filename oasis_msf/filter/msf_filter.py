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
Error-state EKF over a configured set of pluggable sensors

The filter owns the nominal state, the error covariance and one sensor model
per configured key. The sensor set and therefore the state layout are fixed
for the lifetime of the filter.

Predict:
    The core block is propagated with an IMU sample and every sensor block
    through its own model. The covariance follows ``P = F P Fᵀ + Q`` with the
    transition ``F`` evaluated at the pre-propagation state.

Update:
    ``y = z - h(x)``, ``S = H P Hᵀ + R``. Ill-conditioned innovations and
    outliers leave the state untouched. Accepted measurements apply the
    Joseph form ``P = (I - K H) P (I - K H)ᵀ + K R Kᵀ`` and inject
    ``δx = K y`` into the nominal state.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from oasis_msf.config.msf_config import MsfConfig
from oasis_msf.config.msf_config import MsfConfigError
from oasis_msf.config.msf_config import SensorConfig
from oasis_msf.filter.jacobian_provider import JacobianProvider
from oasis_msf.filter.jacobian_provider import build_jacobian_provider
from oasis_msf.filter.outlier_rejection import OutlierRejector
from oasis_msf.filter.outlier_rejection import build_rejector
from oasis_msf.math_utils.linalg import Linalg
from oasis_msf.math_utils.units import as_matrix
from oasis_msf.math_utils.units import as_vector
from oasis_msf.models.core_process_model import CoreProcessModel
from oasis_msf.models.core_process_model import ImuSample
from oasis_msf.models.core_process_model import ProcessNoiseSpec
from oasis_msf.msf_types.msf_errors import InvalidSensorKeyError
from oasis_msf.msf_types.msf_errors import SensorKey
from oasis_msf.msf_types.update_report import GateDecision
from oasis_msf.msf_types.update_report import UpdateOutcome
from oasis_msf.msf_types.update_report import UpdateReport
from oasis_msf.sensors.sensor_model import SensorModel
from oasis_msf.state.covariance import CovarianceError
from oasis_msf.state.covariance import ErrorCovariance
from oasis_msf.state.covariance import validate_covariance
from oasis_msf.state.nominal_state import NominalState
from oasis_msf.state.nominal_state import SensorStateView
from oasis_msf.state.state_layout import CORE_ERROR_DIM
from oasis_msf.state.state_layout import SensorBlock
from oasis_msf.state.state_layout import StateLayout


_LOG: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _SensorSlot:
    """Runtime objects bound to one configured sensor."""

    model: SensorModel
    jacobian: JacobianProvider
    rejector: OutlierRejector


class MsfFilter:
    """
    Multi-sensor error-state EKF
    """

    def __init__(self, config: MsfConfig) -> None:
        self._config: MsfConfig = config
        self._layout: StateLayout = config.layout()

        self._process: CoreProcessModel = CoreProcessModel(
            config.params.filter.gravity_mps2,
            config.params.filter.quaternion_integration,
        )
        self._default_noise: ProcessNoiseSpec = ProcessNoiseSpec(
            accel_noise_var=config.params.process.accel_noise_var,
            gyro_noise_var=config.params.process.gyro_noise_var,
            accel_bias_rw_var=config.params.process.accel_bias_rw_var,
            gyro_bias_rw_var=config.params.process.gyro_bias_rw_var,
        )

        self._slots: dict[SensorKey, _SensorSlot] = {}
        sensor: SensorConfig
        for sensor in config.sensors:
            self._slots[sensor.key] = _SensorSlot(
                model=sensor.model,
                jacobian=build_jacobian_provider(
                    config.jacobian_for(sensor), sensor.model
                ),
                rejector=build_rejector(config.rejector_for(sensor)),
            )

        self._nominal: NominalState = NominalState(self._layout)
        p0: NDArray[np.float64] = np.zeros(
            (self._layout.error_dim, self._layout.error_dim), dtype=np.float64
        )
        core_sl: slice = slice(0, CORE_ERROR_DIM)
        p0[core_sl, core_sl] = np.diag(config.params.initial.diagonal())

        for block in self._layout.blocks():
            model: SensorModel = self._slots[block.key].model
            linear, rotations = model.initial_state()
            try:
                self._nominal.set_sensor_state(block.key, linear, rotations)
            except ValueError as exc:
                raise MsfConfigError(
                    f"Sensor {block.key!r} initial state is invalid: {exc}"
                ) from exc
            if block.error_dim > 0:
                p0[block.error_sl(), block.error_sl()] = self._initial_block(
                    block, model
                )

        self._covariance: ErrorCovariance = ErrorCovariance(p0)

        _LOG.debug(
            "Fusion filter ready with %d sensors, N=%d, E=%d",
            len(self._slots),
            self._layout.nominal_dim,
            self._layout.error_dim,
        )

    @property
    def layout(self) -> StateLayout:
        return self._layout

    @property
    def config(self) -> MsfConfig:
        return self._config

    # Predict

    def predict(
        self,
        dt: float,
        process_noise: Optional[ProcessNoiseSpec] = None,
        imu: Optional[ImuSample] = None,
    ) -> None:
        """
        Propagate the nominal state and covariance over dt

        Args:
            dt: Time step in seconds, finite and non-negative
            process_noise: Noise intensities, or None for the configured ones
            imu: Inertial input, or None to hold attitude and velocity

        Raises:
            ValueError: If dt is negative or non-finite
            InvalidSensorKeyError: If process_noise names an unknown sensor
        """

        dt_s: float = float(dt)
        if not math.isfinite(dt_s):
            raise ValueError("dt must be finite")
        if dt_s < 0.0:
            raise ValueError("dt must be non-negative")
        if dt_s == 0.0:
            return

        sample: ImuSample = self._process.default_input() if imu is None else imu
        noise: ProcessNoiseSpec = (
            self._default_noise if process_noise is None else process_noise
        )

        x: NDArray[np.float64] = self._nominal.x
        f_mat: NDArray[np.float64] = self._transition(x, sample, dt_s)
        q_mat: NDArray[np.float64] = self._process_noise(noise, dt_s)

        # A failing sensor hook leaves the nominal state untouched
        x_prior: NDArray[np.float64] = x.copy()
        try:
            self._process.propagate_nominal(x, self._layout, sample, dt_s)
            for block in self._layout.blocks():
                if block.nominal_dim == 0:
                    continue
                self._propagate_sensor(block, dt_s)
        except Exception:
            x[:] = x_prior
            raise

        p: NDArray[np.float64] = self._covariance.P
        self._covariance.assign(f_mat @ p @ f_mat.T + q_mat)

    def _transition(
        self, x: NDArray[np.float64], imu: ImuSample, dt: float
    ) -> NDArray[np.float64]:
        dim: int = self._layout.error_dim
        f_mat: NDArray[np.float64] = np.eye(dim, dtype=np.float64)
        core_sl: slice = slice(0, CORE_ERROR_DIM)
        f_mat[core_sl, core_sl] = self._process.discrete_transition(
            x, self._layout, imu, dt
        )
        for block in self._layout.blocks():
            if block.error_dim == 0:
                continue
            model: SensorModel = self._slots[block.key].model
            f_mat[block.error_sl(), block.error_sl()] = as_matrix(
                model.transition_jacobian(dt),
                block.error_dim,
                block.error_dim,
                f"transition_jacobian of sensor {block.key!r}",
            )
        return f_mat

    def _process_noise(
        self, noise: ProcessNoiseSpec, dt: float
    ) -> NDArray[np.float64]:
        dim: int = self._layout.error_dim
        q_mat: NDArray[np.float64] = np.zeros((dim, dim), dtype=np.float64)
        core_sl: slice = slice(0, CORE_ERROR_DIM)
        q_mat[core_sl, core_sl] = self._process.discrete_process_noise(
            self._layout, noise, dt
        )
        for key, rate in noise.sensor_noise.items():
            block: SensorBlock = self._layout.block(key)
            if rate.shape != (block.error_dim,):
                raise ValueError(
                    f"sensor_noise[{key!r}] must have shape ({block.error_dim},)"
                )
            q_mat[block.error_sl(), block.error_sl()] = np.diag(rate * dt)
        return q_mat

    def _propagate_sensor(self, block: SensorBlock, dt: float) -> None:
        model: SensorModel = self._slots[block.key].model
        view: SensorStateView = self._nominal.sensor_state(block.key)
        rotations: list[NDArray[np.float64]] = [
            view.rotation(index).copy() for index in range(block.rotation_count)
        ]
        linear, rotations = model.propagate(view.linear.copy(), rotations, dt)
        self._nominal.set_sensor_state(block.key, linear, rotations)

    # Update

    def update(
        self,
        sensor_key: SensorKey,
        z: NDArray[np.float64],
        r: Optional[NDArray[np.float64]] = None,
    ) -> UpdateReport:
        """
        Fuse one measurement from a configured sensor

        Args:
            sensor_key: Key of the sensor that produced z
            z: Measurement vector with shape (m,)
            r: Per-sample noise covariance, or None for the sensor's own

        Returns:
            Report describing whether the update was applied

        Raises:
            InvalidSensorKeyError: If sensor_key is not configured
            ValueError: If z or r is malformed
        """

        slot: _SensorSlot = self._slot(sensor_key)
        block: SensorBlock = self._layout.block(sensor_key)
        m: int = block.measurement_dim
        dim: int = self._layout.error_dim

        z_vec: NDArray[np.float64] = as_vector(z, m, "z")
        r_mat: NDArray[np.float64] = self._noise_covariance(slot.model, m, r)

        z_hat, h_mat = slot.jacobian.linearize(
            slot.model, self._nominal.x, self._layout, sensor_key
        )
        z_hat = np.asarray(z_hat, dtype=np.float64).reshape(-1)
        h_mat = np.asarray(h_mat, dtype=np.float64)
        if z_hat.shape != (m,):
            raise ValueError(
                f"Sensor {sensor_key!r} predicted measurement must have shape ({m},)"
            )
        if h_mat.shape != (m, dim):
            raise ValueError(
                f"Sensor {sensor_key!r} Jacobian must have shape ({m}, {dim})"
            )

        if not np.all(np.isfinite(z_hat)) or not np.all(np.isfinite(h_mat)):
            return self._numerical_failure(
                sensor_key, z_vec, None, None, None, "invalid_prediction"
            )

        y: NDArray[np.float64] = z_vec - z_hat
        p: NDArray[np.float64] = self._covariance.P
        p_ht: NDArray[np.float64] = p @ h_mat.T
        s_mat: NDArray[np.float64] = Linalg.symmetrize(h_mat @ p_ht + r_mat)

        if not np.all(np.isfinite(s_mat)):
            return self._numerical_failure(
                sensor_key, z_vec, z_hat, y, s_mat, "non_finite_innovation_covariance"
            )
        if Linalg.cholesky(s_mat) is None:
            return self._numerical_failure(
                sensor_key, z_vec, z_hat, y, s_mat, "singular_innovation_covariance"
            )
        cond: float = Linalg.condition_number(s_mat)
        if cond > self._config.params.filter.max_innovation_cond:
            return self._numerical_failure(
                sensor_key,
                z_vec,
                z_hat,
                y,
                s_mat,
                "ill_conditioned_innovation_covariance",
            )

        decision: GateDecision = slot.rejector.evaluate(y, s_mat)
        if not decision.accepted:
            _LOG.info(
                "Rejected measurement from sensor %r, d2 %.3f exceeds %s",
                sensor_key,
                decision.mahalanobis_d2,
                decision.threshold,
            )
            if decision.reinit_recommended:
                _LOG.warning(
                    "Sensor %r keeps failing the gate, reinitialization recommended",
                    sensor_key,
                )
            return UpdateReport(
                sensor_key=sensor_key,
                outcome=UpdateOutcome.REJECTED,
                z=z_vec,
                z_hat=z_hat,
                innovation=y,
                S=s_mat,
                mahalanobis_d2=decision.mahalanobis_d2,
                gate_threshold=decision.threshold,
                reinit_recommended=decision.reinit_recommended,
                reason="mahalanobis_gate",
            )

        # K = P Hᵀ S⁻¹, solved as S Kᵀ = H P
        k_mat: NDArray[np.float64] = Linalg.solve_spd(s_mat, p_ht.T).T
        delta_x: NDArray[np.float64] = k_mat @ y

        i_minus_kh: NDArray[np.float64] = np.eye(dim, dtype=np.float64) - k_mat @ h_mat
        p_new: NDArray[np.float64] = (
            i_minus_kh @ p @ i_minus_kh.T + k_mat @ r_mat @ k_mat.T
        )
        self._covariance.assign(p_new)
        self._nominal.inject(delta_x)

        _LOG.debug(
            "Applied measurement from sensor %r, d2 %.3f",
            sensor_key,
            decision.mahalanobis_d2,
        )
        return UpdateReport(
            sensor_key=sensor_key,
            outcome=UpdateOutcome.APPLIED,
            z=z_vec,
            z_hat=z_hat,
            innovation=y,
            S=s_mat,
            mahalanobis_d2=decision.mahalanobis_d2,
            gate_threshold=decision.threshold,
            reinit_recommended=False,
        )

    def _noise_covariance(
        self,
        model: SensorModel,
        m: int,
        r: Optional[NDArray[np.float64]],
    ) -> NDArray[np.float64]:
        source: object = model.noise_covariance() if r is None else r
        try:
            return validate_covariance(source, m, "r")
        except CovarianceError as exc:
            raise ValueError(str(exc)) from exc

    def _numerical_failure(
        self,
        sensor_key: SensorKey,
        z: NDArray[np.float64],
        z_hat: Optional[NDArray[np.float64]],
        y: Optional[NDArray[np.float64]],
        s_mat: Optional[NDArray[np.float64]],
        reason: str,
    ) -> UpdateReport:
        _LOG.warning(
            "Skipping update from sensor %r, %s", sensor_key, reason.replace("_", " ")
        )
        return UpdateReport(
            sensor_key=sensor_key,
            outcome=UpdateOutcome.NUMERICAL_FAILURE,
            z=z,
            z_hat=z_hat,
            innovation=y,
            S=s_mat,
            reason=reason,
        )

    # State access

    def nominal_state(self) -> NDArray[np.float64]:
        """Return a read-only view of the nominal state vector."""
        return self._nominal.readonly()

    def error_covariance(self) -> NDArray[np.float64]:
        """Return a read-only view of the error covariance."""
        return self._covariance.readonly()

    def sensor_state(self, key: SensorKey) -> SensorStateView:
        """Return writable access to one sensor's nominal sub-state."""
        self._slot(key)
        return self._nominal.sensor_state(key)

    def sensor_model(self, key: SensorKey) -> SensorModel:
        """Return the measurement model registered under key."""
        return self._slot(key).model

    def rejector(self, key: SensorKey) -> OutlierRejector:
        """Return the outlier rejector of a sensor."""
        return self._slot(key).rejector

    def position(self) -> NDArray[np.float64]:
        return self._nominal.readonly()[self._layout.sl_position()]

    def velocity(self) -> NDArray[np.float64]:
        return self._nominal.readonly()[self._layout.sl_velocity()]

    def attitude_wxyz(self) -> NDArray[np.float64]:
        return self._nominal.readonly()[self._layout.sl_attitude()]

    def bias_acc(self) -> NDArray[np.float64]:
        return self._nominal.readonly()[self._layout.sl_bias_acc()]

    def bias_gyro(self) -> NDArray[np.float64]:
        return self._nominal.readonly()[self._layout.sl_bias_gyro()]

    def reset_sensor(self, key: SensorKey) -> None:
        """
        Reinitialize a sensor's sub-state, covariance and rejector

        The sensor's covariance rows and columns are cleared, which removes
        every correlation with the rest of the state.
        """

        slot: _SensorSlot = self._slot(key)
        block: SensorBlock = self._layout.block(key)
        linear, rotations = slot.model.initial_state()
        self._nominal.set_sensor_state(key, linear, rotations)
        if block.error_dim > 0:
            self._covariance.reset_block(
                block.error_sl(), self._initial_block(block, slot.model)
            )
        slot.rejector.reset()
        _LOG.info("Reset sensor %r to its initial state", key)

    def _slot(self, key: SensorKey) -> _SensorSlot:
        if not self._layout.has(key):
            raise InvalidSensorKeyError(key)
        return self._slots[key]

    @staticmethod
    def _initial_block(block: SensorBlock, model: SensorModel) -> NDArray[np.float64]:
        try:
            return validate_covariance(
                model.initial_covariance(),
                block.error_dim,
                f"initial_covariance of sensor {block.key!r}",
            )
        except CovarianceError as exc:
            raise MsfConfigError(str(exc)) from exc

################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Structured configuration schema for the multi-sensor fusion filter."""

from __future__ import annotations

import math
from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace
from typing import Any

import numpy as np

from oasis_msf.math_utils.units import PhysicalConstants


# Gravity magnitude in m/s^2
FILTER_GRAVITY_MPS2: float = PhysicalConstants.GRAVITY_MPS2
# Quaternion integration scheme for attitude propagation
FILTER_QUATERNION_INTEGRATION: str = "exact"
# Largest innovation covariance condition number accepted for an update
FILTER_MAX_INNOVATION_COND: float = 1.0e12

# Accelerometer white-noise density in (m/s^2)^2 s
PROCESS_ACCEL_NOISE_VAR: float = 1.0e-2
# Gyroscope white-noise density in (rad/s)^2 s
PROCESS_GYRO_NOISE_VAR: float = 1.0e-4
# Accel bias random-walk intensity in (m/s^2)^2 / s
PROCESS_ACCEL_BIAS_RW_VAR: float = 1.0e-6
# Gyro bias random-walk intensity in (rad/s)^2 / s
PROCESS_GYRO_BIAS_RW_VAR: float = 1.0e-8

# Initial position variance in m^2
INITIAL_POS_VAR: float = 1.0
# Initial velocity variance in (m/s)^2
INITIAL_VEL_VAR: float = 1.0
# Initial attitude variance in rad^2
INITIAL_ANG_VAR: float = 0.1
# Initial accel bias variance in (m/s^2)^2
INITIAL_ACCEL_BIAS_VAR: float = 1.0e-2
# Initial gyro bias variance in (rad/s)^2
INITIAL_GYRO_BIAS_VAR: float = 1.0e-4

# Outlier rejector used when a sensor does not choose one
REJECTOR_KIND: str = "mahalanobis"
# Chi-square gate confidence level
REJECTOR_CONFIDENCE: float = 0.99
# Consecutive rejections before reinitialization is recommended
REJECTOR_WINDOW: int = 10

# Jacobian provider used when a sensor does not choose one
JACOBIAN_KIND: str = "auto"


class MsfParamsError(Exception):
    """Raised when fusion parameter validation fails."""


def _require_finite(value: float, name: str) -> None:
    """Require a finite value."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise MsfParamsError(f"{name} must be a number")
    if not math.isfinite(value):
        raise MsfParamsError(f"{name} must be finite")


def _require_positive(value: float, name: str) -> None:
    """Require a finite positive value."""
    _require_finite(value, name)
    if value <= 0.0:
        raise MsfParamsError(f"{name} must be positive")


def _require_non_negative(value: float, name: str) -> None:
    """Require a finite non-negative value."""
    _require_finite(value, name)
    if value < 0.0:
        raise MsfParamsError(f"{name} must be non-negative")


def _require_positive_int(value: int, name: str) -> None:
    """Require a positive int."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise MsfParamsError(f"{name} must be an int")
    if value <= 0:
        raise MsfParamsError(f"{name} must be positive")


@dataclass(frozen=True)
class FilterParams:
    """Core filter behavior parameters."""

    # Gravity magnitude in m/s^2
    gravity_mps2: float = FILTER_GRAVITY_MPS2
    # Quaternion integration scheme, "exact" or "first_order"
    quaternion_integration: str = FILTER_QUATERNION_INTEGRATION
    # Innovation covariance condition number limit
    max_innovation_cond: float = FILTER_MAX_INNOVATION_COND


@dataclass(frozen=True)
class ProcessNoiseParams:
    """Default continuous-time process noise of the core block."""

    # Accelerometer white-noise density in (m/s^2)^2 s
    accel_noise_var: float = PROCESS_ACCEL_NOISE_VAR
    # Gyroscope white-noise density in (rad/s)^2 s
    gyro_noise_var: float = PROCESS_GYRO_NOISE_VAR
    # Accel bias random-walk intensity in (m/s^2)^2 / s
    accel_bias_rw_var: float = PROCESS_ACCEL_BIAS_RW_VAR
    # Gyro bias random-walk intensity in (rad/s)^2 / s
    gyro_bias_rw_var: float = PROCESS_GYRO_BIAS_RW_VAR


@dataclass(frozen=True)
class InitialCovarianceParams:
    """Initial error variances of the core block."""

    # Position variance in m^2
    pos_var: float = INITIAL_POS_VAR
    # Velocity variance in (m/s)^2
    vel_var: float = INITIAL_VEL_VAR
    # Attitude variance in rad^2
    ang_var: float = INITIAL_ANG_VAR
    # Accel bias variance in (m/s^2)^2
    accel_bias_var: float = INITIAL_ACCEL_BIAS_VAR
    # Gyro bias variance in (rad/s)^2
    gyro_bias_var: float = INITIAL_GYRO_BIAS_VAR

    def diagonal(self) -> np.ndarray:
        """Return the 15-element core covariance diagonal."""
        return np.repeat(
            np.array(
                [
                    self.pos_var,
                    self.vel_var,
                    self.ang_var,
                    self.accel_bias_var,
                    self.gyro_bias_var,
                ],
                dtype=np.float64,
            ),
            3,
        )


@dataclass(frozen=True)
class RejectorParams:
    """Outlier rejection policy of one sensor."""

    # Rejector variant, "mahalanobis", "guarded_mahalanobis" or "accept_all"
    kind: str = REJECTOR_KIND
    # Chi-square gate confidence level in (0, 1)
    confidence: float = REJECTOR_CONFIDENCE
    # Consecutive rejections before reinitialization is recommended
    window: int = REJECTOR_WINDOW


@dataclass(frozen=True)
class MsfParams:
    """Complete configuration tree for the fusion filter."""

    filter: FilterParams
    process: ProcessNoiseParams
    initial: InitialCovarianceParams
    rejector: RejectorParams

    @classmethod
    def defaults(cls) -> MsfParams:
        """Return the default fusion parameter tree."""
        return cls(
            filter=FilterParams(),
            process=ProcessNoiseParams(),
            initial=InitialCovarianceParams(),
            rejector=RejectorParams(),
        )

    def validate(self) -> None:
        """Validate parameter invariants and constraints."""
        _require_positive(self.filter.gravity_mps2, "filter.gravity_mps2")
        if not isinstance(self.filter.quaternion_integration, str):
            raise MsfParamsError("filter.quaternion_integration must be a str")
        _require_positive(
            self.filter.max_innovation_cond, "filter.max_innovation_cond"
        )

        _require_non_negative(self.process.accel_noise_var, "process.accel_noise_var")
        _require_non_negative(self.process.gyro_noise_var, "process.gyro_noise_var")
        _require_non_negative(
            self.process.accel_bias_rw_var, "process.accel_bias_rw_var"
        )
        _require_non_negative(
            self.process.gyro_bias_rw_var, "process.gyro_bias_rw_var"
        )

        _require_positive(self.initial.pos_var, "initial.pos_var")
        _require_positive(self.initial.vel_var, "initial.vel_var")
        _require_positive(self.initial.ang_var, "initial.ang_var")
        _require_positive(self.initial.accel_bias_var, "initial.accel_bias_var")
        _require_positive(self.initial.gyro_bias_var, "initial.gyro_bias_var")

        validate_rejector_params(self.rejector, "rejector")

    def replace(self, **namespace_overrides: Any) -> MsfParams:
        """Return a modified copy of the parameters."""
        return replace(self, **namespace_overrides)

    def as_nested_dict(self) -> dict[str, Any]:
        """Return a nested dict representation for debugging."""
        return _dataclass_to_dict(self)


def validate_rejector_params(params: RejectorParams, name: str) -> None:
    """Validate the numeric fields of a rejector namespace."""
    if not isinstance(params.kind, str):
        raise MsfParamsError(f"{name}.kind must be a str")
    _require_finite(params.confidence, f"{name}.confidence")
    if not 0.0 < params.confidence < 1.0:
        raise MsfParamsError(f"{name}.confidence must be in (0, 1)")
    _require_positive_int(params.window, f"{name}.window")


def _dataclass_to_dict(value: Any) -> Any:
    """Convert dataclasses and numpy arrays into plain Python values."""
    if hasattr(value, "__dataclass_fields__"):
        return {
            field.name: _dataclass_to_dict(getattr(value, field.name))
            for field in fields(value)
        }
    if isinstance(value, np.ndarray):
        return value.tolist()
    return value

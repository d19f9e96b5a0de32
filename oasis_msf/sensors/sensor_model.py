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
Measurement model contract for pluggable fusion sensors

A sensor declares its static sizes through ``descriptor`` and supplies the
measurement function ``h(x)`` plus its noise covariance. The measurement
function receives a StateView whose arrays may hold dual numbers, so it must
be written with plain numpy arithmetic and the ``oasis_msf.math_utils.quat``
helpers. Casting to float or calling ``np.linalg`` inside ``h`` breaks
automatic differentiation.

Optional hooks:
    jacobian: Closed-form H, shape (m, E), or None when unavailable
    propagate: Time evolution of the sensor's own nominal sub-state
    transition_jacobian: Error-state transition block of that evolution
    initial_state: Starting linear states and quaternions
    initial_covariance: Starting error covariance of the sub-state
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from oasis_msf.math_utils.quat import quat_identity
from oasis_msf.sensors.sensor_descriptor import SensorDescriptor
from oasis_msf.state.nominal_state import StateView


class SensorModel(ABC):
    """Abstract base for a sensor's measurement model."""

    # Static sizes, overridden by every concrete sensor class
    descriptor: SensorDescriptor

    @abstractmethod
    def predict_measurement(self, view: StateView) -> NDArray:
        """Return the predicted measurement h(x) with shape (m,)."""

    @abstractmethod
    def noise_covariance(self) -> NDArray[np.float64]:
        """Return the measurement noise covariance R with shape (m, m)."""

    def jacobian(self, view: StateView) -> Optional[NDArray[np.float64]]:
        """Return H with shape (m, E), or None without a closed form."""
        return None

    def propagate(
        self,
        linear: NDArray[np.float64],
        rotations: list[NDArray[np.float64]],
        dt: float,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]]]:
        """Propagate the sensor's nominal sub-state over dt."""
        return linear, rotations

    def transition_jacobian(self, dt: float) -> NDArray[np.float64]:
        """Return the sensor's error-state transition block."""
        return np.eye(self.descriptor.error_dim, dtype=np.float64)

    def initial_state(
        self,
    ) -> tuple[NDArray[np.float64], list[NDArray[np.float64]]]:
        """Return the initial linear states and quaternions."""
        linear: NDArray[np.float64] = np.zeros(
            self.descriptor.linear_state_count, dtype=np.float64
        )
        rotations: list[NDArray[np.float64]] = [
            quat_identity() for _ in range(self.descriptor.rotation_state_count)
        ]
        return linear, rotations

    def initial_covariance(self) -> NDArray[np.float64]:
        """Return the initial error covariance of the sensor's sub-state."""
        return np.eye(self.descriptor.error_dim, dtype=np.float64)

    def has_analytic_jacobian(self) -> bool:
        """Return True when the subclass overrides ``jacobian``."""
        return type(self).jacobian is not SensorModel.jacobian

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
Measurement Jacobian providers

Both providers return the predicted measurement ``z_hat`` with shape (m,)
and the measurement Jacobian ``H`` with shape (m, E) in error-state
coordinates.

The automatic provider evaluates ``h(x ⊞ δx)`` at ``δx = 0`` on dual numbers.
Each error-state element is seeded with its own unit tangent. Linear blocks
are perturbed additively and every quaternion block is perturbed on the right
as ``q ⊗ [1, δθ / 2]``, which matches ``q ⊗ Exp(δθ)`` to first order. The
stacked tangents of the outputs are exactly the columns of ``H``.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from oasis_msf.math_utils.dual import constants
from oasis_msf.math_utils.dual import seed
from oasis_msf.math_utils.dual import split
from oasis_msf.math_utils.quat import quat_multiply
from oasis_msf.math_utils.quat import quat_perturbation
from oasis_msf.msf_types.msf_errors import SensorKey
from oasis_msf.sensors.sensor_model import SensorModel
from oasis_msf.state.nominal_state import StateView
from oasis_msf.state.state_layout import QUAT_ERROR_DIM
from oasis_msf.state.state_layout import StateLayout


# Jacobian from the sensor's closed-form implementation
JACOBIAN_ANALYTIC: str = "analytic"

# Jacobian from dual-number evaluation of the measurement model
JACOBIAN_AUTODIFF: str = "autodiff"

# Analytic when the sensor implements it, automatic otherwise
JACOBIAN_AUTO: str = "auto"

# Supported Jacobian provider kinds
JACOBIAN_KINDS: tuple[str, ...] = (JACOBIAN_ANALYTIC, JACOBIAN_AUTODIFF, JACOBIAN_AUTO)


class JacobianProvider(ABC):
    """Base class of the measurement Jacobian strategies."""

    @abstractmethod
    def linearize(
        self,
        sensor: SensorModel,
        x: NDArray[np.float64],
        layout: StateLayout,
        key: SensorKey,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Return the predicted measurement and its Jacobian

        Args:
            sensor: Measurement model
            x: Nominal state vector with shape (N,)
            layout: State layout of x
            key: Key the sensor is registered under

        Returns:
            Tuple (z_hat, H) with shapes (m,) and (m, E)
        """


class AnalyticJacobian(JacobianProvider):
    """Use the sensor's closed-form Jacobian."""

    def linearize(
        self,
        sensor: SensorModel,
        x: NDArray[np.float64],
        layout: StateLayout,
        key: SensorKey,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        view: StateView = StateView(_readonly(x), layout, key)
        H: Optional[NDArray[np.float64]] = sensor.jacobian(view)
        if H is None:
            raise NotImplementedError(
                f"Sensor {key!r} ({type(sensor).__name__}) has no analytic Jacobian"
            )
        z_hat: NDArray[np.float64] = np.asarray(
            sensor.predict_measurement(view), dtype=np.float64
        ).reshape(-1)
        return z_hat, np.asarray(H, dtype=np.float64)


class AutoDiffJacobian(JacobianProvider):
    """Differentiate the measurement model with forward-mode dual numbers."""

    def linearize(
        self,
        sensor: SensorModel,
        x: NDArray[np.float64],
        layout: StateLayout,
        key: SensorKey,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        x_dual: NDArray[np.object_] = perturbed_state(x, layout)
        view: StateView = StateView(x_dual, layout, key)
        return split(sensor.predict_measurement(view), layout.error_dim)


def perturbed_state(
    x: NDArray[np.float64], layout: StateLayout
) -> NDArray[np.object_]:
    """
    Return ``x ⊞ δx`` at ``δx = 0`` as a dual-number nominal vector

    The tangent space is the error state, so output tangents of any function
    of the returned vector are rows of its error-state Jacobian.
    """

    dim: int = layout.error_dim
    x_dual: NDArray[np.object_] = constants(x, dim)

    for sl_nom, sl_err in layout.linear_error_pairs():
        x_dual[sl_nom] = seed(x[sl_nom], sl_err.start, dim)

    zero_theta: NDArray[np.float64] = np.zeros(QUAT_ERROR_DIM, dtype=np.float64)
    for sl_q, sl_theta in layout.quaternion_slices():
        delta_theta: NDArray[np.object_] = seed(zero_theta, sl_theta.start, dim)
        x_dual[sl_q] = quat_multiply(x_dual[sl_q], quat_perturbation(delta_theta))

    return x_dual


def build_jacobian_provider(kind: str, sensor: SensorModel) -> JacobianProvider:
    """
    Construct the Jacobian provider selected for a sensor

    Raises:
        ValueError: If the kind is unsupported
    """

    if kind == JACOBIAN_ANALYTIC:
        return AnalyticJacobian()
    if kind == JACOBIAN_AUTODIFF:
        return AutoDiffJacobian()
    if kind == JACOBIAN_AUTO:
        if sensor.has_analytic_jacobian():
            return AnalyticJacobian()
        return AutoDiffJacobian()
    raise ValueError(f"Unsupported Jacobian kind '{kind}'")


def _readonly(x: NDArray[np.float64]) -> NDArray[np.float64]:
    view: NDArray[np.float64] = x.view()
    view.setflags(write=False)
    return view

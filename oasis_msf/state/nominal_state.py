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
Nominal state storage and error injection

The nominal vector follows StateLayout: a 16-element core block followed by
each sensor's linear states and unit quaternions. Injection applies a
correction ``delta_x`` from the error-state space. Linear blocks are
corrected additively and every rotation block uses the right-multiplicative
update ``q_new = q ⊗ Exp(delta_theta)``, followed by renormalization.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from oasis_msf.math_utils.quat import quat_from_rotvec
from oasis_msf.math_utils.quat import quat_identity
from oasis_msf.math_utils.quat import quat_multiply
from oasis_msf.math_utils.quat import quat_normalize
from oasis_msf.math_utils.units import as_vector
from oasis_msf.math_utils.units import assert_finite
from oasis_msf.msf_types.msf_errors import SensorKey
from oasis_msf.msf_types.msf_errors import StateLayoutError
from oasis_msf.state.state_layout import QUAT_NOMINAL_DIM
from oasis_msf.state.state_layout import SensorBlock
from oasis_msf.state.state_layout import StateLayout


# Allowed deviation from unit norm for stored quaternions
QUAT_NORM_TOL: float = 1.0e-9


class StateView:
    """
    Read access to a nominal vector from the point of view of one sensor

    The underlying vector may hold float64 values or dual numbers, so the
    accessors return array slices without casting. Measurement models must
    treat the returned arrays as read-only.
    """

    def __init__(
        self,
        x: NDArray,
        layout: StateLayout,
        key: Optional[SensorKey] = None,
    ) -> None:
        if x.shape != (layout.nominal_dim,):
            raise ValueError(f"x must have shape ({layout.nominal_dim},)")
        self._x: NDArray = x
        self._layout: StateLayout = layout
        self._block: Optional[SensorBlock] = None
        if key is not None:
            self._block = layout.block(key)

    @property
    def layout(self) -> StateLayout:
        return self._layout

    @property
    def block(self) -> SensorBlock:
        """Return the block of the sensor this view was created for."""
        if self._block is None:
            raise StateLayoutError("View is not bound to a sensor")
        return self._block

    @property
    def position(self) -> NDArray:
        return self._x[self._layout.sl_position()]

    @property
    def velocity(self) -> NDArray:
        return self._x[self._layout.sl_velocity()]

    @property
    def attitude_wxyz(self) -> NDArray:
        return self._x[self._layout.sl_attitude()]

    @property
    def bias_acc(self) -> NDArray:
        return self._x[self._layout.sl_bias_acc()]

    @property
    def bias_gyro(self) -> NDArray:
        return self._x[self._layout.sl_bias_gyro()]

    @property
    def linear(self) -> NDArray:
        """Return the bound sensor's linear states."""
        return self._x[self.block.linear_sl()]

    def rotation(self, index: int = 0) -> NDArray:
        """Return one of the bound sensor's quaternions in wxyz order."""
        return self._x[self.block.rotation_sl(index)]

    def sensor(self, key: SensorKey) -> StateView:
        """Return a view bound to another configured sensor."""
        return StateView(self._x, self._layout, key)


class SensorStateView:
    """
    Writable access to one sensor's nominal sub-state

    ``linear`` is a live view into the filter's nominal vector. Rotations are
    written through ``set_rotation`` so the unit-norm invariant holds.
    """

    def __init__(self, x: NDArray[np.float64], block: SensorBlock) -> None:
        self._x: NDArray[np.float64] = x
        self._block: SensorBlock = block

    @property
    def key(self) -> SensorKey:
        return self._block.key

    @property
    def linear(self) -> NDArray[np.float64]:
        if self._block.linear_count == 0:
            return self._x[self._block.nominal_offset : self._block.nominal_offset]
        return self._x[self._block.linear_sl()]

    @property
    def rotation_count(self) -> int:
        return self._block.rotation_count

    def rotation(self, index: int = 0) -> NDArray[np.float64]:
        """Return a read-only view of one quaternion in wxyz order."""
        view: NDArray[np.float64] = self._x[self._block.rotation_sl(index)]
        view.setflags(write=False)
        return view

    def set_rotation(self, index: int, q_wxyz: NDArray[np.float64]) -> None:
        """Store a quaternion after normalizing it."""
        sl: slice = self._block.rotation_sl(index)
        self._x[sl] = quat_normalize(as_vector(q_wxyz, QUAT_NOMINAL_DIM, "q_wxyz"))


class NominalState:
    """Mutable nominal state vector bound to a StateLayout."""

    def __init__(self, layout: StateLayout) -> None:
        self._layout: StateLayout = layout
        self._x: NDArray[np.float64] = np.zeros(layout.nominal_dim, dtype=np.float64)
        for sl_q, _ in layout.quaternion_slices():
            self._x[sl_q] = quat_identity()

    @property
    def layout(self) -> StateLayout:
        return self._layout

    @property
    def x(self) -> NDArray[np.float64]:
        """Return the mutable nominal vector."""
        return self._x

    def readonly(self) -> NDArray[np.float64]:
        """Return a read-only view of the nominal vector."""
        view: NDArray[np.float64] = self._x.view()
        view.setflags(write=False)
        return view

    def view(self, key: Optional[SensorKey] = None) -> StateView:
        """Return a read-only StateView, optionally bound to a sensor."""
        return StateView(self.readonly(), self._layout, key)

    def sensor_state(self, key: SensorKey) -> SensorStateView:
        """Return writable access to a sensor's sub-state."""
        return SensorStateView(self._x, self._layout.block(key))

    def set_sensor_state(
        self,
        key: SensorKey,
        linear: NDArray[np.float64],
        rotations: list[NDArray[np.float64]],
    ) -> None:
        """Overwrite a sensor's linear states and quaternions."""
        block: SensorBlock = self._layout.block(key)
        if len(rotations) != block.rotation_count:
            raise ValueError(
                f"Sensor {key!r} expects {block.rotation_count} rotations, "
                f"got {len(rotations)}"
            )
        if block.linear_count > 0:
            self._x[block.linear_sl()] = as_vector(
                linear, block.linear_count, "linear"
            )
        else:
            as_vector(linear, 0, "linear")
        sensor: SensorStateView = SensorStateView(self._x, block)
        for index, q_wxyz in enumerate(rotations):
            sensor.set_rotation(index, q_wxyz)

    def inject(self, delta_x: NDArray[np.float64]) -> None:
        """
        Inject an error-state correction into the nominal state

        Raises:
            ValueError: If delta_x has the wrong shape or non-finite values
        """

        dx: NDArray[np.float64] = np.asarray(delta_x, dtype=np.float64).reshape(-1)
        if dx.shape != (self._layout.error_dim,):
            raise ValueError("delta_x length does not match layout.error_dim")
        assert_finite(dx, "delta_x")

        for sl_nom, sl_err in self._layout.linear_error_pairs():
            self._x[sl_nom] += dx[sl_err]

        for sl_q, sl_theta in self._layout.quaternion_slices():
            dq: NDArray[np.float64] = quat_from_rotvec(dx[sl_theta])
            self._x[sl_q] = quat_normalize(quat_multiply(self._x[sl_q], dq))

    def max_quat_norm_error(self) -> float:
        """Return the largest deviation from unit norm over all quaternions."""
        worst: float = 0.0
        for sl_q, _ in self._layout.quaternion_slices():
            worst = max(worst, abs(float(np.linalg.norm(self._x[sl_q])) - 1.0))
        return worst

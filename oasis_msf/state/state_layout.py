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
Deterministic nominal and error-state layout for a configured sensor set

The nominal state stores full-precision values, including every rotation as
a 4-parameter unit quaternion. The error state stores small deviations with
every rotation as a 3-parameter local perturbation. The covariance matrix
uses the stacked error vector, so a deterministic layout is critical for
mapping blocks between the two vectors.

Core block, nominal (16):
    position(3), velocity(3), attitude quaternion wxyz(4),
    accel bias(3), gyro bias(3)

Core block, error (15):
    δp(3), δv(3), δθ(3), δb_a(3), δb_g(3)

Each sensor follows the core block in declaration order. Within a sensor the
linear states come first, followed by its rotation blocks.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable
from typing import Mapping

from oasis_msf.msf_types.msf_errors import ConfigError
from oasis_msf.msf_types.msf_errors import DuplicateSensorError
from oasis_msf.msf_types.msf_errors import EmptySensorSetError
from oasis_msf.msf_types.msf_errors import InvalidSensorKeyError
from oasis_msf.msf_types.msf_errors import SensorKey
from oasis_msf.msf_types.msf_errors import StateLayoutError
from oasis_msf.sensors.sensor_descriptor import SensorDescriptor


# Nominal width of the core motion block
CORE_NOMINAL_DIM: int = 16

# Error width of the core motion block
CORE_ERROR_DIM: int = 15

# Nominal width of a quaternion block
QUAT_NOMINAL_DIM: int = 4

# Error width of a rotation perturbation block
QUAT_ERROR_DIM: int = 3

# Core nominal slices
_NOM_POSITION: slice = slice(0, 3)
_NOM_VELOCITY: slice = slice(3, 6)
_NOM_ATTITUDE: slice = slice(6, 10)
_NOM_BIAS_ACC: slice = slice(10, 13)
_NOM_BIAS_GYRO: slice = slice(13, 16)

# Core error slices
_ERR_POSITION: slice = slice(0, 3)
_ERR_VELOCITY: slice = slice(3, 6)
_ERR_ATTITUDE: slice = slice(6, 9)
_ERR_BIAS_ACC: slice = slice(9, 12)
_ERR_BIAS_GYRO: slice = slice(12, 15)


@dataclass(frozen=True)
class SensorBlock:
    """Placement of one sensor's sub-state in the stacked vectors.

    Attributes:
        key: Sensor key
        measurement_dim: Length of the sensor's measurement vector
        linear_count: Number of linear states
        rotation_count: Number of quaternion blocks
        nominal_offset: Start index in the nominal vector
        error_offset: Start index in the error vector
    """

    key: SensorKey
    measurement_dim: int
    linear_count: int
    rotation_count: int
    nominal_offset: int
    error_offset: int

    @property
    def nominal_dim(self) -> int:
        """Return the nominal width of the block."""
        return self.linear_count + QUAT_NOMINAL_DIM * self.rotation_count

    @property
    def error_dim(self) -> int:
        """Return the error width of the block."""
        return self.linear_count + QUAT_ERROR_DIM * self.rotation_count

    def nominal_sl(self) -> slice:
        """Return the slice covering the whole nominal sub-state."""
        return slice(self.nominal_offset, self.nominal_offset + self.nominal_dim)

    def error_sl(self) -> slice:
        """Return the slice covering the whole error sub-state."""
        return slice(self.error_offset, self.error_offset + self.error_dim)

    def linear_sl(self) -> slice:
        """Return the nominal slice of the linear states."""
        if self.linear_count == 0:
            raise StateLayoutError(
                f"Sensor {self.key!r} has no extra linear states defined"
            )
        return slice(self.nominal_offset, self.nominal_offset + self.linear_count)

    def error_linear_sl(self) -> slice:
        """Return the error slice of the linear states."""
        if self.linear_count == 0:
            raise StateLayoutError(
                f"Sensor {self.key!r} has no extra linear states defined"
            )
        return slice(self.error_offset, self.error_offset + self.linear_count)

    def rotation_sl(self, index: int = 0) -> slice:
        """Return the nominal quaternion slice of one rotation block."""
        self._check_rotation_index(index)
        start: int = self.nominal_offset + self.linear_count + QUAT_NOMINAL_DIM * index
        return slice(start, start + QUAT_NOMINAL_DIM)

    def error_rotation_sl(self, index: int = 0) -> slice:
        """Return the error slice of one rotation block."""
        self._check_rotation_index(index)
        start: int = self.error_offset + self.linear_count + QUAT_ERROR_DIM * index
        return slice(start, start + QUAT_ERROR_DIM)

    def _check_rotation_index(self, index: int) -> None:
        if self.rotation_count == 0:
            raise StateLayoutError(
                f"Sensor {self.key!r} has no extra rotation states defined"
            )
        if not 0 <= index < self.rotation_count:
            raise StateLayoutError(
                f"Rotation index {index} out of range for sensor {self.key!r} "
                f"with {self.rotation_count} rotation states"
            )


@dataclass(frozen=True)
class StateLayout:
    """Immutable state layout built once per sensor configuration."""

    _blocks: tuple[SensorBlock, ...]
    _index: Mapping[SensorKey, SensorBlock]
    nominal_dim: int
    error_dim: int

    @classmethod
    def build(
        cls, entries: Iterable[tuple[SensorKey, SensorDescriptor]]
    ) -> StateLayout:
        """
        Validate a sensor set and compute the stacked layout

        Args:
            entries: Ordered (key, descriptor) pairs in declaration order

        Raises:
            EmptySensorSetError: If no sensors are given
            DuplicateSensorError: If any key appears more than once
            ConfigError: If a key or descriptor is malformed
        """

        items: list[tuple[SensorKey, SensorDescriptor]] = list(entries)
        if not items:
            raise EmptySensorSetError()

        for key, descriptor in items:
            _validate_key(key)
            if not isinstance(descriptor, SensorDescriptor):
                raise ConfigError(
                    f"Sensor {key!r} descriptor must be a SensorDescriptor"
                )

        # Sort and scan adjacent keys so detection is order independent
        sorted_keys: list[SensorKey] = sorted(
            (key for key, _ in items), key=_sort_key
        )
        for previous, current in zip(sorted_keys, sorted_keys[1:]):
            if _sort_key(previous) == _sort_key(current):
                raise DuplicateSensorError(current)

        blocks: list[SensorBlock] = []
        nominal_offset: int = CORE_NOMINAL_DIM
        error_offset: int = CORE_ERROR_DIM
        for key, descriptor in items:
            block: SensorBlock = SensorBlock(
                key=key,
                measurement_dim=descriptor.measurement_dim,
                linear_count=descriptor.linear_state_count,
                rotation_count=descriptor.rotation_state_count,
                nominal_offset=nominal_offset,
                error_offset=error_offset,
            )
            blocks.append(block)
            nominal_offset += block.nominal_dim
            error_offset += block.error_dim

        layout: StateLayout = cls(
            _blocks=tuple(blocks),
            _index=MappingProxyType({block.key: block for block in blocks}),
            nominal_dim=nominal_offset,
            error_dim=error_offset,
        )
        layout.validate()
        return layout

    def validate(self) -> None:
        """Validate block contiguity and totals."""
        nominal: int = CORE_NOMINAL_DIM
        error: int = CORE_ERROR_DIM
        for block in self._blocks:
            if block.nominal_offset != nominal or block.error_offset != error:
                raise StateLayoutError("Sensor blocks must be contiguous")
            nominal += block.nominal_dim
            error += block.error_dim
        if nominal != self.nominal_dim or error != self.error_dim:
            raise StateLayoutError("Block layout does not match dimension")

    # Sensor lookup

    def keys(self) -> tuple[SensorKey, ...]:
        """Return the sensor keys in declaration order."""
        return tuple(block.key for block in self._blocks)

    def blocks(self) -> tuple[SensorBlock, ...]:
        """Return the sensor blocks in declaration order."""
        return self._blocks

    def has(self, key: object) -> bool:
        """Return True when the layout contains the sensor."""
        # bool is an int subclass, so True would alias key 1
        if isinstance(key, bool) or not isinstance(key, (str, int)):
            return False
        return key in self._index

    def block(self, key: SensorKey) -> SensorBlock:
        """Return the block of a configured sensor."""
        if not self.has(key):
            raise InvalidSensorKeyError(key)
        return self._index[key]

    def linear_slice(self, key: SensorKey) -> slice:
        """Return the nominal slice of a sensor's linear states."""
        return self.block(key).linear_sl()

    def rotation_slice(self, key: SensorKey, index: int = 0) -> slice:
        """Return the nominal quaternion slice of a sensor rotation."""
        return self.block(key).rotation_sl(index)

    def error_linear_slice(self, key: SensorKey) -> slice:
        """Return the error slice of a sensor's linear states."""
        return self.block(key).error_linear_sl()

    def error_rotation_slice(self, key: SensorKey, index: int = 0) -> slice:
        """Return the error slice of a sensor rotation."""
        return self.block(key).error_rotation_sl(index)

    # Core nominal slices

    def sl_position(self) -> slice:
        """Slice for position p in the nominal vector."""
        return _NOM_POSITION

    def sl_velocity(self) -> slice:
        """Slice for velocity v in the nominal vector."""
        return _NOM_VELOCITY

    def sl_attitude(self) -> slice:
        """Slice for the attitude quaternion q in the nominal vector."""
        return _NOM_ATTITUDE

    def sl_bias_acc(self) -> slice:
        """Slice for accel bias b_a in the nominal vector."""
        return _NOM_BIAS_ACC

    def sl_bias_gyro(self) -> slice:
        """Slice for gyro bias b_g in the nominal vector."""
        return _NOM_BIAS_GYRO

    # Core error slices

    def err_position(self) -> slice:
        """Slice for position error δp."""
        return _ERR_POSITION

    def err_velocity(self) -> slice:
        """Slice for velocity error δv."""
        return _ERR_VELOCITY

    def err_attitude(self) -> slice:
        """Slice for attitude small-angle error δθ."""
        return _ERR_ATTITUDE

    def err_bias_acc(self) -> slice:
        """Slice for accel bias error δb_a."""
        return _ERR_BIAS_ACC

    def err_bias_gyro(self) -> slice:
        """Slice for gyro bias error δb_g."""
        return _ERR_BIAS_GYRO

    def linear_error_pairs(self) -> list[tuple[slice, slice]]:
        """
        Return (nominal, error) slice pairs of every additive block

        Core blocks are listed first, then sensor linear blocks in order.
        """

        pairs: list[tuple[slice, slice]] = [
            (_NOM_POSITION, _ERR_POSITION),
            (_NOM_VELOCITY, _ERR_VELOCITY),
            (_NOM_BIAS_ACC, _ERR_BIAS_ACC),
            (_NOM_BIAS_GYRO, _ERR_BIAS_GYRO),
        ]
        for block in self._blocks:
            if block.linear_count > 0:
                pairs.append((block.linear_sl(), block.error_linear_sl()))
        return pairs

    def quaternion_slices(self) -> list[tuple[slice, slice]]:
        """
        Return (nominal, error) slice pairs of every rotation block

        The core attitude is listed first, then sensor rotations in order.
        """

        pairs: list[tuple[slice, slice]] = [(_NOM_ATTITUDE, _ERR_ATTITUDE)]
        for block in self._blocks:
            for index in range(block.rotation_count):
                pairs.append((block.rotation_sl(index), block.error_rotation_sl(index)))
        return pairs

    def error_state_names(self) -> list[str]:
        """Build per-element error-state names in the stacked layout order."""
        axes: tuple[str, str, str] = ("x", "y", "z")
        names: list[str] = []
        for prefix in ("δp", "δv", "δtheta", "δb_a", "δb_g"):
            names.extend([f"{prefix}_{axis}" for axis in axes])
        for block in self._blocks:
            for index in range(block.linear_count):
                names.append(f"{block.key}.lin_{index}")
            for index in range(block.rotation_count):
                names.extend(
                    [f"{block.key}.rot{index}_theta_{axis}" for axis in axes]
                )

        if len(names) != self.error_dim:
            raise StateLayoutError(
                f"Error-state names length {len(names)} does not match "
                f"layout dim {self.error_dim}"
            )
        return names


def _validate_key(key: object) -> None:
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise ConfigError(f"Sensor key {key!r} must be a str or int")
    if isinstance(key, str) and not key:
        raise ConfigError("Sensor key must be non-empty")


def _sort_key(key: SensorKey) -> tuple[str, SensorKey]:
    # Group by type so str and int keys never compare directly
    return (type(key).__name__, key)

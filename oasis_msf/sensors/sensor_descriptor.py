################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""Static description of a sensor's contribution to the filter state."""

from __future__ import annotations

from dataclasses import dataclass

from oasis_msf.msf_types.msf_errors import ConfigError


@dataclass(frozen=True)
class SensorDescriptor:
    """Static sizes declared by a sensor type.

    Attributes:
        measurement_dim: Length of one measurement vector
        linear_state_count: Number of extra vector-space states
        rotation_state_count: Number of extra unit-quaternion blocks, each
            stored with 4 nominal parameters and 3 error parameters
    """

    measurement_dim: int
    linear_state_count: int = 0
    rotation_state_count: int = 0

    def __post_init__(self) -> None:
        """Validate descriptor sizes."""
        _require_count(self.measurement_dim, "measurement_dim")
        _require_count(self.linear_state_count, "linear_state_count")
        _require_count(self.rotation_state_count, "rotation_state_count")
        if self.measurement_dim == 0:
            raise ConfigError("measurement_dim must be positive")

    @property
    def nominal_dim(self) -> int:
        """Return the width of the sensor's nominal sub-state."""
        return self.linear_state_count + 4 * self.rotation_state_count

    @property
    def error_dim(self) -> int:
        """Return the width of the sensor's error sub-state."""
        return self.linear_state_count + 3 * self.rotation_state_count


def _require_count(value: int, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(f"{name} must be an int")
    if value < 0:
        raise ConfigError(f"{name} must be non-negative")

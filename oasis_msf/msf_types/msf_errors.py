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
Exception hierarchy for the multi-sensor fusion filter

Configuration errors are fatal and surface while a sensor set is assembled.
Addressing a sensor outside the configured set is a programmer error. Runtime
measurement problems are not exceptions; they are reported through
UpdateOutcome.
"""

from __future__ import annotations

from typing import Union


# Stable identifier of a configured sensor
SensorKey = Union[str, int]


class ConfigError(Exception):
    """Raised when a sensor configuration is structurally invalid."""


class EmptySensorSetError(ConfigError):
    """Raised when a layout is built from an empty sensor set."""

    def __init__(self) -> None:
        super().__init__("There are no sensors defined and there must be at least one")


class DuplicateSensorError(ConfigError):
    """Raised when the same sensor key appears more than once."""

    def __init__(self, key: SensorKey) -> None:
        super().__init__(f"Sensor {key!r} is defined more than once")
        self.key: SensorKey = key


class StateLayoutError(ConfigError):
    """Raised when a layout query does not match a sensor's declared states."""


class InvalidSensorKeyError(KeyError):
    """Raised when addressing a sensor outside the configured set."""

    def __init__(self, key: object) -> None:
        super().__init__(key)
        self.key: object = key

    def __str__(self) -> str:
        return f"Sensor {self.key!r} is not part of the configured sensor set"

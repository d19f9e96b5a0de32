################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Type definitions for the multi-sensor fusion filter."""

from __future__ import annotations

from oasis_msf.msf_types.msf_errors import ConfigError
from oasis_msf.msf_types.msf_errors import DuplicateSensorError
from oasis_msf.msf_types.msf_errors import EmptySensorSetError
from oasis_msf.msf_types.msf_errors import InvalidSensorKeyError
from oasis_msf.msf_types.msf_errors import SensorKey
from oasis_msf.msf_types.msf_errors import StateLayoutError
from oasis_msf.msf_types.update_report import GateDecision
from oasis_msf.msf_types.update_report import UpdateOutcome
from oasis_msf.msf_types.update_report import UpdateReport


__all__ = [
    "ConfigError",
    "DuplicateSensorError",
    "EmptySensorSetError",
    "GateDecision",
    "InvalidSensorKeyError",
    "SensorKey",
    "StateLayoutError",
    "UpdateOutcome",
    "UpdateReport",
]

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
Modular multi-sensor error-state Kalman filter
"""

from __future__ import annotations

from oasis_msf.config.msf_config import MsfConfig
from oasis_msf.config.msf_config import MsfConfigError
from oasis_msf.config.msf_config import SensorConfig
from oasis_msf.config.msf_params import MsfParams
from oasis_msf.config.msf_params import RejectorParams
from oasis_msf.filter.msf_filter import MsfFilter
from oasis_msf.models.core_process_model import ImuSample
from oasis_msf.models.core_process_model import ProcessNoiseSpec
from oasis_msf.msf_types.msf_errors import ConfigError
from oasis_msf.msf_types.msf_errors import InvalidSensorKeyError
from oasis_msf.msf_types.update_report import UpdateOutcome
from oasis_msf.msf_types.update_report import UpdateReport
from oasis_msf.sensors.sensor_descriptor import SensorDescriptor
from oasis_msf.sensors.sensor_model import SensorModel
from oasis_msf.state.nominal_state import StateView
from oasis_msf.state.state_layout import StateLayout


__all__ = [
    "ConfigError",
    "ImuSample",
    "InvalidSensorKeyError",
    "MsfConfig",
    "MsfConfigError",
    "MsfFilter",
    "MsfParams",
    "ProcessNoiseSpec",
    "RejectorParams",
    "SensorConfig",
    "SensorDescriptor",
    "SensorModel",
    "StateLayout",
    "StateView",
    "UpdateOutcome",
    "UpdateReport",
]

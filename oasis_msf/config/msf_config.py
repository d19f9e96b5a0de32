################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""High-level configuration wrapper for the fusion filter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from typing import Sequence

from oasis_msf.config.msf_params import JACOBIAN_KIND
from oasis_msf.config.msf_params import MsfParams
from oasis_msf.config.msf_params import MsfParamsError
from oasis_msf.config.msf_params import RejectorParams
from oasis_msf.config.msf_params import validate_rejector_params
from oasis_msf.filter.jacobian_provider import JACOBIAN_ANALYTIC
from oasis_msf.filter.jacobian_provider import JACOBIAN_KINDS
from oasis_msf.filter.outlier_rejection import REJECTOR_KINDS
from oasis_msf.models.core_process_model import QUAT_INTEGRATION_SCHEMES
from oasis_msf.msf_types.msf_errors import ConfigError
from oasis_msf.msf_types.msf_errors import SensorKey
from oasis_msf.sensors.sensor_descriptor import SensorDescriptor
from oasis_msf.sensors.sensor_model import SensorModel
from oasis_msf.state.state_layout import StateLayout


class MsfConfigError(ConfigError):
    """Raised when fusion configuration validation fails."""


@dataclass(frozen=True)
class SensorConfig:
    """One sensor registration.

    Attributes:
        key: Stable sensor key, a non-empty str or an int
        model: Measurement model instance owned by the filter
        rejector: Outlier rejection policy, or None for the params default
        jacobian: Jacobian provider kind, or None for "auto"
    """

    key: SensorKey
    model: SensorModel
    rejector: Optional[RejectorParams] = None
    jacobian: Optional[str] = None


@dataclass(frozen=True)
class MsfConfig:
    """Validated parameters plus the ordered sensor set."""

    params: MsfParams
    sensors: tuple[SensorConfig, ...]

    def __init__(self, params: MsfParams, sensors: Sequence[SensorConfig]) -> None:
        """Initialize the configuration wrapper and validate."""
        object.__setattr__(self, "params", params)
        object.__setattr__(self, "sensors", tuple(sensors))
        self.validate()

    def validate(self) -> None:
        """Validate parameter invariants and per-sensor policies."""
        try:
            self.params.validate()
        except MsfParamsError as exc:
            raise MsfConfigError(str(exc)) from exc

        if self.params.filter.quaternion_integration not in QUAT_INTEGRATION_SCHEMES:
            raise MsfConfigError(
                "filter.quaternion_integration must be exact or first_order"
            )
        if self.params.rejector.kind not in REJECTOR_KINDS:
            raise MsfConfigError(
                "rejector.kind must be mahalanobis, guarded_mahalanobis, "
                "or accept_all"
            )

        for sensor in self.sensors:
            if not isinstance(sensor, SensorConfig):
                raise MsfConfigError("sensors must contain SensorConfig entries")
            if not isinstance(sensor.model, SensorModel):
                raise MsfConfigError(
                    f"Sensor {sensor.key!r} model must be a SensorModel"
                )
            descriptor: object = getattr(sensor.model, "descriptor", None)
            if not isinstance(descriptor, SensorDescriptor):
                raise MsfConfigError(
                    f"Sensor {sensor.key!r} model must declare a SensorDescriptor"
                )

            rejector: RejectorParams = self.rejector_for(sensor)
            try:
                validate_rejector_params(rejector, f"sensors[{sensor.key!r}].rejector")
            except MsfParamsError as exc:
                raise MsfConfigError(str(exc)) from exc
            if rejector.kind not in REJECTOR_KINDS:
                raise MsfConfigError(
                    f"Sensor {sensor.key!r} rejector kind '{rejector.kind}' "
                    "is not supported"
                )

            jacobian: str = self.jacobian_for(sensor)
            if jacobian not in JACOBIAN_KINDS:
                raise MsfConfigError(
                    f"Sensor {sensor.key!r} jacobian must be analytic, autodiff, "
                    "or auto"
                )
            analytic: bool = sensor.model.has_analytic_jacobian()
            if jacobian == JACOBIAN_ANALYTIC and not analytic:
                raise MsfConfigError(
                    f"Sensor {sensor.key!r} requests an analytic Jacobian but "
                    "does not implement one"
                )

        # Raises EmptySensorSetError and DuplicateSensorError
        self.layout()

    def layout(self) -> StateLayout:
        """Build the state layout of the configured sensor set."""
        return StateLayout.build(
            (sensor.key, sensor.model.descriptor) for sensor in self.sensors
        )

    def rejector_for(self, sensor: SensorConfig) -> RejectorParams:
        """Return the rejector policy that applies to a sensor."""
        if sensor.rejector is None:
            return self.params.rejector
        return sensor.rejector

    def jacobian_for(self, sensor: SensorConfig) -> str:
        """Return the Jacobian provider kind that applies to a sensor."""
        if sensor.jacobian is None:
            return JACOBIAN_KIND
        return sensor.jacobian

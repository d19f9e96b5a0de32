################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""Update outcome and report types for the fusion filter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from oasis_msf.msf_types.msf_errors import SensorKey


class UpdateOutcome(Enum):
    """Result of one measurement update."""

    APPLIED = "applied"
    REJECTED = "rejected"
    NUMERICAL_FAILURE = "numerical_failure"


@dataclass(frozen=True)
class GateDecision:
    """Verdict of an outlier rejector on one innovation.

    Attributes:
        accepted: True when the measurement may be applied
        mahalanobis_d2: Squared Mahalanobis distance of the innovation
        threshold: Gate threshold on d2, or None when the gate is open
        reinit_recommended: True when the caller should reset the sensor
    """

    accepted: bool
    mahalanobis_d2: float
    threshold: float | None = None
    reinit_recommended: bool = False

    def __post_init__(self) -> None:
        """Validate decision fields."""
        if not isinstance(self.accepted, bool):
            raise ValueError("accepted must be a bool")
        if not isinstance(self.reinit_recommended, bool):
            raise ValueError("reinit_recommended must be a bool")
        _require_finite_non_negative(self.mahalanobis_d2, "mahalanobis_d2")
        if self.threshold is not None:
            _require_finite_non_negative(self.threshold, "threshold")


@dataclass(frozen=True)
class UpdateReport:
    """Summary of one measurement update.

    Attributes:
        sensor_key: Key of the sensor that produced the measurement
        outcome: Whether the update was applied, rejected or failed
        z: Measurement vector
        z_hat: Predicted measurement, or None when prediction failed
        innovation: Innovation z - z_hat, or None when prediction failed
        S: Innovation covariance, or None when it was not formed
        mahalanobis_d2: Squared Mahalanobis distance when computed
        gate_threshold: Gate threshold on d2 when the gate is closed
        reinit_recommended: True when the sensor should be reset
        reason: Optional status message
    """

    sensor_key: SensorKey
    outcome: UpdateOutcome
    z: np.ndarray
    z_hat: np.ndarray | None
    innovation: np.ndarray | None
    S: np.ndarray | None
    mahalanobis_d2: float | None = None
    gate_threshold: float | None = None
    reinit_recommended: bool = False
    reason: str | None = None

    def __post_init__(self) -> None:
        """Validate update report fields."""
        if not isinstance(self.outcome, UpdateOutcome):
            raise ValueError("outcome must be an UpdateOutcome")
        if not isinstance(self.reinit_recommended, bool):
            raise ValueError("reinit_recommended must be a bool")
        if self.mahalanobis_d2 is not None:
            _require_finite_non_negative(self.mahalanobis_d2, "mahalanobis_d2")
        if self.gate_threshold is not None:
            _require_finite_non_negative(self.gate_threshold, "gate_threshold")
        if self.reason is not None and not isinstance(self.reason, str):
            raise ValueError("reason must be a str or None")

    @property
    def applied(self) -> bool:
        """Return True when the update changed the filter state."""
        return self.outcome is UpdateOutcome.APPLIED


def _require_finite_non_negative(value: float, name: str) -> None:
    """Require a finite, non-negative scalar value."""
    if not np.isfinite(value):
        raise ValueError(f"{name} must be finite")
    if value < 0.0:
        raise ValueError(f"{name} must be non-negative")

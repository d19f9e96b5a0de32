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
Outlier rejection policies for measurement updates

A rejector inspects the innovation ``y`` and its covariance ``S`` before an
update is applied. The Mahalanobis gate compares ``d2 = yᵀ S⁻¹ y`` against
the chi-square quantile for the measurement dimension. The consecutive
reject guard wraps another rejector and recommends reinitializing a sensor
once it has been rejected too many times in a row. Rejectors never modify
filter state.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod

import numpy as np
from numpy.typing import NDArray

from oasis_msf.config.msf_params import RejectorParams
from oasis_msf.math_utils.stats import chi2_threshold
from oasis_msf.math_utils.stats import mahalanobis_d2
from oasis_msf.msf_types.update_report import GateDecision


_LOG: logging.Logger = logging.getLogger(__name__)


# Rejector variant gating on the chi-square quantile
REJECTOR_MAHALANOBIS: str = "mahalanobis"

# Chi-square gate wrapped in a consecutive reject guard
REJECTOR_GUARDED_MAHALANOBIS: str = "guarded_mahalanobis"

# Rejector variant that accepts every measurement
REJECTOR_ACCEPT_ALL: str = "accept_all"

# Supported rejector variants
REJECTOR_KINDS: tuple[str, ...] = (
    REJECTOR_MAHALANOBIS,
    REJECTOR_GUARDED_MAHALANOBIS,
    REJECTOR_ACCEPT_ALL,
)


class OutlierRejector(ABC):
    """Base class of the outlier rejection policies."""

    @abstractmethod
    def evaluate(self, y: NDArray[np.float64], S: NDArray[np.float64]) -> GateDecision:
        """Decide whether the innovation y with covariance S is accepted."""

    def reset(self) -> None:
        """Clear any per-sensor history."""


class AcceptAll(OutlierRejector):
    """Accept every measurement while still reporting its distance."""

    def evaluate(self, y: NDArray[np.float64], S: NDArray[np.float64]) -> GateDecision:
        return GateDecision(accepted=True, mahalanobis_d2=mahalanobis_d2(y, S))


class MahalanobisGate(OutlierRejector):
    """
    Chi-square gate on the squared Mahalanobis distance

    Accepts when ``yᵀ S⁻¹ y <= χ²(confidence, m)`` with ``m = len(y)``.
    """

    def __init__(self, confidence: float) -> None:
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {confidence}")
        self._confidence: float = float(confidence)

    @property
    def confidence(self) -> float:
        return self._confidence

    def evaluate(self, y: NDArray[np.float64], S: NDArray[np.float64]) -> GateDecision:
        d2: float = mahalanobis_d2(y, S)
        threshold: float = chi2_threshold(self._confidence, int(np.size(y)))
        return GateDecision(
            accepted=d2 <= threshold,
            mahalanobis_d2=d2,
            threshold=threshold,
        )


class ConsecutiveRejectGuard(OutlierRejector):
    """
    Count consecutive rejections of an inner rejector

    Once ``window`` rejections occur in a row every further rejection carries
    ``reinit_recommended``. An accepted measurement clears the count.
    """

    def __init__(self, window: int, inner: OutlierRejector) -> None:
        if not isinstance(window, int) or isinstance(window, bool) or window <= 0:
            raise ValueError("window must be a positive int")
        self._window: int = window
        self._inner: OutlierRejector = inner
        self._consecutive_rejects: int = 0

    @property
    def consecutive_rejects(self) -> int:
        return self._consecutive_rejects

    def evaluate(self, y: NDArray[np.float64], S: NDArray[np.float64]) -> GateDecision:
        decision: GateDecision = self._inner.evaluate(y, S)
        if decision.accepted:
            self._consecutive_rejects = 0
            return decision

        self._consecutive_rejects += 1
        reinit: bool = self._consecutive_rejects >= self._window
        if reinit:
            _LOG.debug(
                "Rejected %d consecutive measurements (window %d)",
                self._consecutive_rejects,
                self._window,
            )
        return GateDecision(
            accepted=False,
            mahalanobis_d2=decision.mahalanobis_d2,
            threshold=decision.threshold,
            reinit_recommended=reinit or decision.reinit_recommended,
        )

    def reset(self) -> None:
        self._consecutive_rejects = 0
        self._inner.reset()


def build_rejector(params: RejectorParams) -> OutlierRejector:
    """
    Construct the rejector selected by a configuration namespace

    Raises:
        ValueError: If the kind is unsupported
    """

    if params.kind == REJECTOR_MAHALANOBIS:
        return MahalanobisGate(params.confidence)
    if params.kind == REJECTOR_GUARDED_MAHALANOBIS:
        return ConsecutiveRejectGuard(
            params.window, MahalanobisGate(params.confidence)
        )
    if params.kind == REJECTOR_ACCEPT_ALL:
        return AcceptAll()
    raise ValueError(f"Unsupported rejector kind '{params.kind}'")

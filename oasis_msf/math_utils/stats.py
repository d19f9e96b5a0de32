################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""Innovation statistics for measurement gating."""

from __future__ import annotations

from functools import lru_cache

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from oasis_msf.math_utils.linalg import Linalg


def mahalanobis_d2(y: NDArray[np.float64], S: NDArray[np.float64]) -> float:
    """
    Return the squared Mahalanobis distance yᵀ S⁻¹ y

    Raises:
        ValueError: If shapes disagree or S is not SPD
    """

    vec: NDArray[np.float64] = np.asarray(y, dtype=np.float64).reshape(-1)
    mat: NDArray[np.float64] = np.asarray(S, dtype=np.float64)
    m: int = vec.shape[0]
    if mat.shape != (m, m):
        raise ValueError(f"S must have shape ({m}, {m})")
    solved: NDArray[np.float64] = Linalg.solve_spd(mat, vec)
    d2: float = float(vec @ solved)
    if not np.isfinite(d2):
        raise ValueError("mahalanobis d2 is not finite")
    return max(d2, 0.0)


@lru_cache(maxsize=128)
def chi2_threshold(confidence: float, dof: int) -> float:
    """Return the chi-square quantile χ²(confidence, dof)."""
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")
    if dof <= 0:
        raise ValueError("dof must be positive")
    return float(stats.chi2.ppf(confidence, dof))

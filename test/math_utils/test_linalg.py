################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""Tests for linear algebra and innovation statistics helpers."""

from __future__ import annotations

import math

import numpy as np
import pytest
from numpy.typing import NDArray

from oasis_msf.math_utils.linalg import SO3
from oasis_msf.math_utils.linalg import Linalg
from oasis_msf.math_utils.stats import chi2_threshold
from oasis_msf.math_utils.stats import mahalanobis_d2


def test_hat_is_cross_product() -> None:
    """Checks hat(w) v equals w x v."""
    w: NDArray[np.float64] = np.array([0.3, -0.2, 0.5])
    v: NDArray[np.float64] = np.array([1.0, 2.0, -1.0])
    assert np.allclose(SO3.hat(w) @ v, np.cross(w, v))


def test_cholesky_rejects_indefinite() -> None:
    """Checks non-SPD matrices have no Cholesky factor."""
    assert Linalg.cholesky(np.diag([1.0, -1.0])) is None
    assert Linalg.cholesky(np.array([[np.nan, 0.0], [0.0, 1.0]])) is None
    assert Linalg.cholesky(np.eye(2)) is not None


def test_solve_spd() -> None:
    """Checks solving against an SPD matrix."""
    S: NDArray[np.float64] = np.array([[4.0, 1.0], [1.0, 3.0]])
    b: NDArray[np.float64] = np.array([1.0, 2.0])
    assert np.allclose(S @ Linalg.solve_spd(S, b), b)
    with pytest.raises(ValueError):
        Linalg.solve_spd(-S, b)


def test_condition_number() -> None:
    """Checks condition numbers of diagonal matrices."""
    assert Linalg.condition_number(np.diag([1.0, 100.0])) == pytest.approx(100.0)
    assert math.isinf(Linalg.condition_number(np.diag([1.0, 0.0])))


def test_mahalanobis_d2() -> None:
    """Checks yᵀ S⁻¹ y for a diagonal S."""
    y: NDArray[np.float64] = np.array([2.0, 3.0])
    S: NDArray[np.float64] = np.diag([4.0, 9.0])
    assert mahalanobis_d2(y, S) == pytest.approx(2.0)


def test_chi2_threshold() -> None:
    """Checks chi-square quantiles against tabulated values."""
    assert chi2_threshold(0.95, 1) == pytest.approx(3.841458820694124)
    assert chi2_threshold(0.99, 3) == pytest.approx(11.344866730144373)
    with pytest.raises(ValueError):
        chi2_threshold(1.0, 3)
    with pytest.raises(ValueError):
        chi2_threshold(0.9, 0)

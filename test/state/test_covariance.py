################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""Tests for error covariance storage."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.typing import NDArray

from oasis_msf.state.covariance import CovarianceError
from oasis_msf.state.covariance import ErrorCovariance
from oasis_msf.state.covariance import validate_covariance


def test_rejects_invalid_matrices() -> None:
    """Checks non-square, non-finite and asymmetric inputs."""
    with pytest.raises(CovarianceError):
        ErrorCovariance(np.zeros((2, 3)))
    with pytest.raises(CovarianceError):
        ErrorCovariance(np.array([[np.inf, 0.0], [0.0, 1.0]]))
    with pytest.raises(CovarianceError):
        validate_covariance(np.array([[1.0, 0.5], [0.0, 1.0]]), 2, "P")


def test_assign_symmetrizes() -> None:
    """Checks assigned matrices are symmetrized."""
    cov: ErrorCovariance = ErrorCovariance(np.eye(2))
    cov.assign(np.array([[1.0, 0.2], [0.0, 1.0]]))
    assert np.allclose(cov.P, [[1.0, 0.1], [0.1, 1.0]])
    assert cov.is_psd()


def test_reset_block_clears_correlations() -> None:
    """Checks resetting a block zeroes its cross terms."""
    P: NDArray[np.float64] = np.full((4, 4), 0.1) + np.eye(4)
    cov: ErrorCovariance = ErrorCovariance(P)
    cov.reset_block(slice(2, 4), 5.0 * np.eye(2))
    assert np.allclose(cov.P[2:4, 2:4], 5.0 * np.eye(2))
    assert np.allclose(cov.P[0:2, 2:4], 0.0)
    assert np.allclose(cov.P[2:4, 0:2], 0.0)
    assert np.allclose(cov.P[0:2, 0:2], P[0:2, 0:2])


def test_readonly_view() -> None:
    """Checks the read-only view rejects writes."""
    cov: ErrorCovariance = ErrorCovariance(np.eye(2))
    with pytest.raises(ValueError):
        cov.readonly()[0, 0] = 2.0
    assert cov.trace() == pytest.approx(2.0)


def test_assert_psd() -> None:
    """Checks PSD enforcement."""
    cov: ErrorCovariance = ErrorCovariance(np.diag([1.0, -1.0]))
    with pytest.raises(CovarianceError):
        cov.assert_psd()

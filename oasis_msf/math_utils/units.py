################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""Physical constants and finiteness checks."""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray


class PhysicalConstants:
    """Physical constants used by the fusion core."""

    GRAVITY_MPS2: float = 9.80665
    EPS: float = 1e-12


def assert_finite(x: NDArray[np.float64], name: str) -> None:
    """Raise ValueError when the array contains non-finite values."""
    if not np.all(np.isfinite(x)):
        raise ValueError(f"{name} must be finite")


def assert_finite_scalar(x: float, name: str) -> None:
    """Raise ValueError when the scalar is not finite."""
    if not math.isfinite(x):
        raise ValueError(f"{name} must be finite")


def as_vector(value: object, dim: int, name: str) -> NDArray[np.float64]:
    """Return a finite float64 vector of the given length."""
    vec: NDArray[np.float64] = np.asarray(value, dtype=np.float64).reshape(-1)
    if vec.shape != (dim,):
        raise ValueError(f"{name} must have shape ({dim},)")
    assert_finite(vec, name)
    return vec


def as_matrix(value: object, rows: int, cols: int, name: str) -> NDArray[np.float64]:
    """Return a finite float64 matrix of the given shape."""
    mat: NDArray[np.float64] = np.asarray(value, dtype=np.float64)
    if mat.shape != (rows, cols):
        raise ValueError(f"{name} must have shape ({rows}, {cols})")
    assert_finite(mat, name)
    return mat

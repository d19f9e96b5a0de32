################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################
"""Linear algebra utilities for rotations and covariance matrices."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from oasis_msf.math_utils.units import assert_finite


class SO3:
    """SO(3) rotation utilities."""

    @staticmethod
    def hat(w: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return the skew-symmetric matrix for a rotation vector."""
        vec: NDArray[np.float64] = np.asarray(w, dtype=float)
        Linalg.ensure_shape(vec, (3,), "w")
        assert_finite(vec, "w")
        wx: float = float(vec[0])
        wy: float = float(vec[1])
        wz: float = float(vec[2])
        return np.array(
            [
                [0.0, -wz, wy],
                [wz, 0.0, -wx],
                [-wy, wx, 0.0],
            ],
            dtype=float,
        )


class Linalg:
    """General linear algebra helpers."""

    @staticmethod
    def ensure_shape(x: NDArray[np.float64], shape: tuple[int, ...], name: str) -> None:
        """Ensure an array has the expected shape."""
        if x.shape != shape:
            raise ValueError(f"{name} must have shape {shape}")

    @staticmethod
    def symmetrize(P: NDArray[np.float64]) -> NDArray[np.float64]:
        """Return 0.5 * (P + P^T)."""
        return 0.5 * (P + P.T)

    @staticmethod
    def cholesky(S: NDArray[np.float64]) -> NDArray[np.float64] | None:
        """Return the lower Cholesky factor of S, or None if S is not SPD."""
        if not np.all(np.isfinite(S)):
            return None
        try:
            return np.linalg.cholesky(S)
        except np.linalg.LinAlgError:
            return None

    @staticmethod
    def solve_spd(
        S: NDArray[np.float64], B: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        """
        Solve S X = B for SPD S using the Cholesky factor

        Raises:
            ValueError: If S is not symmetric positive definite
        """

        L: NDArray[np.float64] | None = Linalg.cholesky(S)
        if L is None:
            raise ValueError("S is not SPD")
        Y: NDArray[np.float64] = np.linalg.solve(L, B)
        return np.linalg.solve(L.T, Y)

    @staticmethod
    def condition_number(S: NDArray[np.float64]) -> float:
        """Return the 2-norm condition number of a symmetric matrix."""
        eigvals: NDArray[np.float64] = np.linalg.eigvalsh(S)
        min_abs: float = float(np.min(np.abs(eigvals)))
        max_abs: float = float(np.max(np.abs(eigvals)))
        if min_abs == 0.0:
            return float("inf")
        return max_abs / min_abs

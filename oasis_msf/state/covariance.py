################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Error-state covariance storage for the fusion filter."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from oasis_msf.math_utils.linalg import Linalg


# Symmetry tolerance for covariance validation
SYM_TOL: float = 1e-9

# Default PSD tolerance for eigenvalue checks
PSD_TOL: float = 1e-12


class CovarianceError(Exception):
    """Raised when covariance matrices are invalid or unsupported."""


def validate_covariance(P: object, dim: int, name: str) -> NDArray[np.float64]:
    """
    Return P as a finite symmetric float64 matrix of shape (dim, dim)

    Raises:
        CovarianceError: If the matrix is malformed
    """

    mat: NDArray[np.float64] = np.asarray(P, dtype=np.float64)
    if mat.shape != (dim, dim):
        raise CovarianceError(f"{name} must have shape ({dim}, {dim})")
    if not np.all(np.isfinite(mat)):
        raise CovarianceError(f"{name} contains non-finite values")
    if not np.allclose(mat, mat.T, rtol=0.0, atol=SYM_TOL):
        raise CovarianceError(f"{name} must be symmetric")
    return mat


class ErrorCovariance:
    """Mutable container for the stacked error-state covariance.

    Attributes:
        P: Symmetric covariance matrix with shape (E, E)
    """

    def __init__(self, P: NDArray[np.float64]) -> None:
        mat: NDArray[np.float64] = np.asarray(P, dtype=np.float64)
        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            raise CovarianceError("Covariance must be a square matrix")
        self.P: NDArray[np.float64] = validate_covariance(
            mat.copy(), mat.shape[0], "Covariance"
        )

    def dim(self) -> int:
        """Return the dimension of the covariance matrix."""
        return int(self.P.shape[0])

    def readonly(self) -> NDArray[np.float64]:
        """Return a read-only view of the covariance matrix."""
        view: NDArray[np.float64] = self.P.view()
        view.setflags(write=False)
        return view

    def assign(self, P: NDArray[np.float64]) -> None:
        """Replace the stored matrix with the symmetrized input."""
        mat: NDArray[np.float64] = np.asarray(P, dtype=np.float64)
        if mat.shape != self.P.shape:
            raise CovarianceError("Covariance shape must not change")
        self.P = Linalg.symmetrize(mat)

    def reset_block(self, sl: slice, block: NDArray[np.float64]) -> None:
        """
        Clear all correlations of a block and set its marginal covariance

        Rows and columns of ``sl`` are zeroed before the block is written,
        which decouples the block from every other state.
        """

        dim: int = len(range(*sl.indices(self.dim())))
        mat: NDArray[np.float64] = validate_covariance(block, dim, "block")
        self.P[sl, :] = 0.0
        self.P[:, sl] = 0.0
        self.P[sl, sl] = mat
        self.P = Linalg.symmetrize(self.P)

    def trace(self) -> float:
        """Return the trace of the covariance."""
        return float(np.trace(self.P))

    def is_psd(self, *, tol: float = PSD_TOL) -> bool:
        """Return True when the covariance is positive semi-definite."""
        eigvals: NDArray[np.float64] = np.linalg.eigvalsh(self.P)
        return bool(np.min(eigvals) >= -tol)

    def assert_psd(self, *, tol: float = PSD_TOL) -> None:
        """Raise CovarianceError if the covariance is not PSD."""
        if not self.is_psd(tol=tol):
            raise CovarianceError("Covariance is not positive semi-definite")

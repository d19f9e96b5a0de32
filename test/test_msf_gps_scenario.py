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
End-to-end scenario with an accelerometer, a lever-arm GPS and an auxiliary
attitude sensor
"""

from __future__ import annotations

import numpy as np
import pytest
from numpy.typing import NDArray
from sim_sensors import PositionFix
from sim_sensors import build_config

from oasis_msf.config.msf_config import SensorConfig
from oasis_msf.config.msf_params import InitialCovarianceParams
from oasis_msf.config.msf_params import MsfParams
from oasis_msf.config.msf_params import RejectorParams
from oasis_msf.filter.msf_filter import MsfFilter
from oasis_msf.models.core_process_model import ImuSample
from oasis_msf.msf_types.update_report import UpdateReport


GRAVITY: float = 9.80665

# Position fix of the GPS antenna in meters
GPS_FIX_M: NDArray[np.float64] = np.array([1.0, -0.5, 0.25], dtype=np.float64)


def _quat_norm_errors(fusion: MsfFilter) -> list[float]:
    x: NDArray[np.float64] = fusion.nominal_state()
    return [
        abs(float(np.linalg.norm(x[sl_q])) - 1.0)
        for sl_q, _ in fusion.layout.quaternion_slices()
    ]


def test_gps_fix_pulls_position() -> None:
    """Ensure a GPS fix after a stationary period moves p toward the fix."""
    fusion: MsfFilter = MsfFilter(build_config())
    assert fusion.layout.nominal_dim == 23
    assert fusion.layout.error_dim == 21
    assert len(fusion.layout.error_state_names()) == 21

    imu: ImuSample = ImuSample.stationary(GRAVITY)
    for _ in range(10):
        fusion.predict(0.01, imu=imu)

    assert fusion.update("accel", np.array([0.0, 0.0, GRAVITY])).applied
    assert fusion.update("aux", np.zeros(3)).applied

    trace_before: float = float(np.trace(fusion.error_covariance()))
    report: UpdateReport = fusion.update("gps", GPS_FIX_M)
    assert report.applied
    assert float(np.trace(fusion.error_covariance())) < trace_before

    position: NDArray[np.float64] = fusion.position()
    for axis in range(3):
        low: float = min(0.0, GPS_FIX_M[axis])
        high: float = max(0.0, GPS_FIX_M[axis])
        assert low < position[axis] < high

    assert max(_quat_norm_errors(fusion)) < 1e-9
    cov: NDArray[np.float64] = fusion.error_covariance()
    assert np.allclose(cov, cov.T)
    assert np.min(np.linalg.eigvalsh(cov)) > 0.0


def test_repeated_fixes_converge() -> None:
    """Ensure repeated fixes drive the GPS prediction toward the fix."""
    fusion: MsfFilter = MsfFilter(build_config())
    imu: ImuSample = ImuSample.stationary(GRAVITY)
    report: UpdateReport
    for _ in range(20):
        fusion.predict(0.1, imu=imu)
        fusion.update("accel", np.array([0.0, 0.0, GRAVITY]))
        report = fusion.update("gps", GPS_FIX_M)
        assert report.applied

    final: UpdateReport = fusion.update("gps", GPS_FIX_M)
    assert final.z_hat is not None
    assert final.z_hat == pytest.approx(GPS_FIX_M, abs=0.05)
    assert max(_quat_norm_errors(fusion)) < 1e-9


def _position_fix_filter(pos_var: float) -> MsfFilter:
    params: MsfParams = MsfParams.defaults().replace(
        initial=InitialCovarianceParams(pos_var=pos_var)
    )
    return MsfFilter(
        build_config(
            [SensorConfig(key="fix", model=PositionFix(noise_var=0.01))],
            params=params,
            rejector=RejectorParams(kind="accept_all"),
        )
    )


def test_position_fix_closed_form() -> None:
    """Ensure a fix with unit prior and R = 0.01 I gives the scalar Kalman result."""
    fusion: MsfFilter = _position_fix_filter(1.0)
    z: NDArray[np.float64] = np.array([1.0, 2.0, 3.0], dtype=np.float64)

    report: UpdateReport = fusion.update("fix", z)

    assert report.applied
    assert report.z_hat == pytest.approx([0.0, 0.0, 0.0])
    assert fusion.position() == pytest.approx(z / 1.01, abs=1e-12)
    cov: NDArray[np.float64] = fusion.error_covariance()
    assert float(np.trace(cov[0:3, 0:3])) == pytest.approx(3.0 * 0.01 / 1.01)
    assert np.allclose(cov[0:3, 3:], 0.0)


def test_larger_prior_trusts_fix_more() -> None:
    """Ensure a wider prior on position moves the estimate closer to z."""
    z: NDArray[np.float64] = np.array([1.0, 2.0, 3.0], dtype=np.float64)
    tight: MsfFilter = _position_fix_filter(1.0)
    loose: MsfFilter = _position_fix_filter(4.0)
    tight.update("fix", z)
    loose.update("fix", z)

    tight_error: float = float(np.linalg.norm(tight.position() - z))
    loose_error: float = float(np.linalg.norm(loose.position() - z))
    assert loose_error < tight_error
    assert loose.position() == pytest.approx(z * 4.0 / 4.01, abs=1e-12)

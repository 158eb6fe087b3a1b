# TDP: Piecewise inverse sensor model for cone-shaped range sensors
# Approach: The likelihood of "occupied" for a cell depends on its radial
#   distance phi from the beam origin, its angular deviation theta from the
#   beam axis, and the measured range r.  Two attenuation factors scale how
#   far the likelihood may move away from 0.5:
#     gamma(theta) = 1 - (theta/max_angle)^2 inside the cone, 0 outside
#     delta(phi)   = 1 - (1 + tanh(2*(phi - phi_v))) / 2
#   and lambda = delta * gamma.  Along phi there are four zones (eps is the
#   grid resolution, used as a relative width so zones scale with r):
#     1. phi <  r - 2*eps*r : (1 - lambda) * 0.5                  (free space)
#     2. phi <  r -   eps*r : quadratic ramp back up from zone 1
#     3. phi <  r +   eps*r : lambda*(0.5 - 0.5*J^2) + 0.5        (detection bump)
#     4. otherwise          : 0.5                                 (no claim)
#   Zone values meet at the boundaries for a fixed lambda, but the zone
#   tests use strict/non-strict comparisons exactly as listed; keep them
#   that way, boundary cells are assigned to the later zone.
#
# Alternatives considered:
#   Gaussian detection kernel -- smooth, but changes the map the downstream
#   planner has been tuned against.
"""Sensor likelihood model: gamma / delta attenuation and four-zone sensor_model.

Scalar functions operate on floats; :func:`sensor_model_array` evaluates the
same piecewise model over numpy arrays for a whole cone of cells at once.
"""

from __future__ import annotations

import math

import numpy as np


def gamma(theta: float, max_angle: float) -> float:
    """Angular attenuation: 1 on the beam axis, 0 at and beyond the cone edge."""
    if abs(theta) > max_angle:
        return 0.0
    return 1.0 - (theta / max_angle) ** 2


def delta(phi: float, phi_v: float) -> float:
    """Range attenuation: smooth step from 1 down to 0 centred at *phi_v*."""
    return 1.0 - (1.0 + math.tanh(2.0 * (phi - phi_v))) / 2.0


def sensor_model(
    r: float,
    phi: float,
    theta: float,
    *,
    max_angle: float,
    phi_v: float,
    resolution: float,
) -> float:
    """Probability that a cell is occupied given a reading of range *r*.

    Parameters
    ----------
    r:
        Measured range of the reading.
    phi:
        Radial distance of the cell from the beam origin.
    theta:
        Angular deviation of the cell from the beam axis (radians).
    max_angle:
        Cone half-width (radians).
    phi_v:
        Midpoint of the range attenuation step.
    resolution:
        Relative zone width (grid resolution).

    Returns
    -------
    float
        Likelihood in [0, 1]; exactly 0.5 well past the measured range.
    """
    lbda = delta(phi, phi_v) * gamma(theta, max_angle)
    eps = resolution

    if 0.0 <= phi < r - 2.0 * eps * r:
        return (1.0 - lbda) * 0.5
    if phi < r - eps * r:
        return lbda * 0.5 * ((phi - (r - 2.0 * eps * r)) / (eps * r)) ** 2 + (1.0 - lbda) * 0.5
    if phi < r + eps * r:
        j = (r - phi) / (eps * r)
        return lbda * ((1.0 - 0.5 * j ** 2) - 0.5) + 0.5
    return 0.5


def gamma_array(theta: np.ndarray, max_angle: float) -> np.ndarray:
    """Vectorised :func:`gamma`."""
    return np.where(np.abs(theta) > max_angle, 0.0, 1.0 - (theta / max_angle) ** 2)


def delta_array(phi: np.ndarray, phi_v: float) -> np.ndarray:
    """Vectorised :func:`delta`."""
    return 1.0 - (1.0 + np.tanh(2.0 * (phi - phi_v))) / 2.0


def sensor_model_array(
    r: float,
    phi: np.ndarray,
    theta: np.ndarray,
    *,
    max_angle: float,
    phi_v: float,
    resolution: float,
) -> np.ndarray:
    """Evaluate :func:`sensor_model` element-wise over *phi* / *theta* arrays."""
    phi = np.asarray(phi, dtype=np.float64)
    theta = np.asarray(theta, dtype=np.float64)
    lbda = delta_array(phi, phi_v) * gamma_array(theta, max_angle)
    eps = resolution
    width = eps * r

    zone1 = (phi >= 0.0) & (phi < r - 2.0 * width)
    zone2 = ~zone1 & (phi < r - width)
    zone3 = ~zone1 & ~zone2 & (phi < r + width)

    with np.errstate(divide="ignore", invalid="ignore"):
        ramp = lbda * 0.5 * ((phi - (r - 2.0 * width)) / width) ** 2 + (1.0 - lbda) * 0.5
        j = (r - phi) / width
        bump = lbda * ((1.0 - 0.5 * j ** 2) - 0.5) + 0.5

    return np.select(
        [zone1, zone2, zone3],
        [(1.0 - lbda) * 0.5, ramp, bump],
        default=0.5,
    )

# TDP: Binary Bayes cell update + cost quantisation
# Approach: Each cell stores P(occupied) quantised to one byte using the
#   costmap convention (0 = free, 254 = lethal, 255 = no information).
#   Probabilities map linearly onto [0, 254] with truncation, so the prior
#   "unknown" probability 0.5 is stored as 127.
#
#   Update rule for a likelihood s of "occupied" given the observation:
#     p' = s*p / (s*p + (1-s)*(1-p))
#   s = 0.5 is the identity (neutral evidence); s = 0 drives the cell to free.
#
# Alternatives considered:
#   Log-odds storage -- additive and numerically nicer, but the shared map
#   consumers expect the byte convention and the quantised prior has to
#   round-trip through it on every update anyway.
# Risks: A saturated prior (p = 0 or 1) meeting fully contradicting evidence
#   gives 0/0. The prior is kept in that case.
"""Bayesian cell update and probability <-> cost quantisation."""

from __future__ import annotations

import numpy as np

FREE_SPACE: int = 0
LETHAL_OBSTACLE: int = 254
NO_INFORMATION: int = 255
DETECTION_COST: int = 233  # written at the cell where a detection landed


def to_cost(p):
    """Quantise probability *p* (scalar or array) to a cell cost in [0, 254].

    Truncates toward zero, so ``to_cost(0.5) == 127``.
    """
    if isinstance(p, np.ndarray):
        return (np.clip(p, 0.0, 1.0) * LETHAL_OBSTACLE).astype(np.uint8)
    return int(min(max(p, 0.0), 1.0) * LETHAL_OBSTACLE)


def to_prob(cost):
    """Inverse of :func:`to_cost` (scalar or array)."""
    if isinstance(cost, np.ndarray):
        return cost.astype(np.float64) / LETHAL_OBSTACLE
    return float(cost) / LETHAL_OBSTACLE


UNKNOWN_COST: int = to_cost(0.5)


def bayes_update(prior, sensor):
    """Combine a prior occupancy probability with a sensor likelihood.

    Parameters
    ----------
    prior:
        P(occupied) before the observation, scalar or array in [0, 1].
    sensor:
        Likelihood of "occupied" given the observation, same shape as
        *prior* or broadcastable to it.

    Returns
    -------
    float or numpy.ndarray
        Posterior P(occupied).  Where the normaliser is zero the prior is
        returned unchanged.
    """
    prob_occ = sensor * prior
    prob_not = (1.0 - sensor) * (1.0 - prior)
    norm = prob_occ + prob_not

    if np.ndim(norm) == 0:
        if norm == 0.0:
            return float(prior)
        return float(prob_occ / norm)

    prior_arr = np.broadcast_to(np.asarray(prior, dtype=np.float64), np.shape(norm))
    with np.errstate(divide="ignore", invalid="ignore"):
        posterior = np.where(norm > 0.0, prob_occ / norm, prior_arr)
    return posterior

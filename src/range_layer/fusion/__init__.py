"""Sensor likelihood model and Bayesian cell update.

    sensor_model        -- piecewise occupancy likelihood along a sonar beam
    bayes_update        -- binary Bayes update of a prior with a likelihood
    to_cost / to_prob   -- quantisation between probability and cell cost
"""

from src.range_layer.fusion.bayes import (
    DETECTION_COST,
    FREE_SPACE,
    LETHAL_OBSTACLE,
    NO_INFORMATION,
    UNKNOWN_COST,
    bayes_update,
    to_cost,
    to_prob,
)
from src.range_layer.fusion.sensor_model import delta, gamma, sensor_model, sensor_model_array

__all__ = [
    "DETECTION_COST",
    "FREE_SPACE",
    "LETHAL_OBSTACLE",
    "NO_INFORMATION",
    "UNKNOWN_COST",
    "bayes_update",
    "delta",
    "gamma",
    "sensor_model",
    "sensor_model_array",
    "to_cost",
    "to_prob",
]

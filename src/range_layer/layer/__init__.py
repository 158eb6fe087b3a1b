"""Layer orchestration: update cycle and staleness."""

from src.range_layer.layer.range_layer import RangeSensorLayer
from src.range_layer.layer.staleness import StalenessMonitor

__all__ = ["RangeSensorLayer", "StalenessMonitor"]

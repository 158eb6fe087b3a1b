"""Grid storage: probability grid, dirty-region tracker, shared obstacle map."""

from src.range_layer.grid.bounds import Bounds, DirtyRegion
from src.range_layer.grid.obstacle_map import ObstacleMap, merge_probabilities
from src.range_layer.grid.occupancy_grid import OccupancyGrid

__all__ = [
    "Bounds",
    "DirtyRegion",
    "ObstacleMap",
    "OccupancyGrid",
    "merge_probabilities",
]

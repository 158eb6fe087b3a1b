"""Configuration loading and run-level structured logging."""

from src.range_layer.experiment.config import ConfigError, FusionConfig, default_config, load_config
from src.range_layer.experiment.logger import CycleLogger

__all__ = [
    "ConfigError",
    "CycleLogger",
    "FusionConfig",
    "default_config",
    "load_config",
]

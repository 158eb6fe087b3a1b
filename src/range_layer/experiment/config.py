# TDP: Config loader + typed fusion parameters
# Approach: Load YAML file and merge with defaults. Return plain dict so the
#   CLI and simulation can use standard dict access; the layer itself consumes
#   a FusionConfig dataclass built from the "layer" section.
#
#   Validation policy:
#     - A file that cannot be read or parsed, or whose top level is not a
#       mapping, raises ConfigError: the layer must not start on it.
#     - A readable file with bad values (clear >= mark, unknown sensor type,
#       non-string topic names, negative timeout ...) logs a warning and keeps
#       the previous valid value (the built-in default on first load).
#
# Alternatives considered: pydantic -- strict, but rejecting a whole reconfigure
#   because one value is out of range is exactly what the layer must not do.
# Risks: Silent merging of defaults may hide missing keys; mitigated by
#   documenting all default values here.
"""Config loader and the typed :class:`FusionConfig` view of the ``layer`` section."""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from src.range_layer.sensing.classifier import SensorMode

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Configuration file is unreadable or structurally malformed."""


_DEFAULTS: dict[str, Any] = {
    "experiment": {
        "name": "default",
        "output_dir": "results/range-layer/default",
        "seed": 0,
        "cycles": 100,
        "cycle_period": 0.0,
    },
    "layer": {
        "enabled": True,
        "global_frame": "map",
        "ns": "",
        "topics": ["/sonar"],
        "input_sensor_type": "ALL",
        "max_angle": 0.2,
        "phi_v": 1.2,
        "mark_threshold": 0.8,
        "clear_threshold": 0.2,
        "no_readings_timeout": 0.0,
        "clear_on_max_reading": True,
        "transform_tolerance": 0.1,
        "mark_detection_arc": False,
        "arc_min_range": 0.2,
        "scan_cross_check": False,
        "trust_distance": 0.65,
        "scan_window": 50,
    },
    "grid": {
        "size_x": 200,
        "size_y": 200,
        "resolution": 0.05,
        "origin_x": 0.0,
        "origin_y": 0.0,
        "rolling_window": False,
    },
    "simulation": {
        "obstacles": 3,
        "sonars": 8,
        "field_of_view": 0.5,
        "min_range": 0.05,
        "max_range": 4.0,
        "noise_stddev": 0.01,
        "rays_per_cone": 7,
        "trajectory_margin": 1.5,
    },
    "logging": {
        "level": "INFO",
        "grid_snapshot_interval": 0,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def default_config() -> dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def load_config(path: str | Path) -> dict[str, Any]:
    """Load YAML config from *path* and merge with defaults.

    Parameters
    ----------
    path:
        Path to a YAML config file.

    Returns
    -------
    dict
        Merged configuration dictionary.

    Raises
    ------
    ConfigError
        If the file cannot be read or parsed, or is not a mapping.
    """
    path = Path(path)
    try:
        with path.open("r") as fh:
            user_config = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot load config {path}: {e}") from e
    if not isinstance(user_config, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(user_config).__name__}")
    return _deep_merge(_DEFAULTS, user_config)


@dataclass(frozen=True)
class FusionConfig:
    """Typed fusion parameters (the ``layer`` section).

    ``max_angle`` is the fallback cone half-width used when a reading carries
    no field of view; readings with a positive field of view use half of it.
    """

    max_angle: float = 0.2
    phi_v: float = 1.2
    mark_threshold: float = 0.8
    clear_threshold: float = 0.2
    no_readings_timeout: float = 0.0
    clear_on_max_reading: bool = True
    input_sensor_type: SensorMode = SensorMode.ALL
    transform_tolerance: float = 0.1
    enabled: bool = True
    mark_detection_arc: bool = False
    arc_min_range: float = 0.2
    scan_cross_check: bool = False
    trust_distance: float = 0.65
    scan_window: int = 50
    ns: str = ""
    topics: tuple[str, ...] = field(default=("/sonar",))

    @property
    def topic_names(self) -> list[str]:
        """Topic names with the namespace prefix applied."""
        prefix = self.ns
        if prefix and not prefix.endswith("/"):
            prefix += "/"
        return [prefix + t for t in self.topics]

    @classmethod
    def from_dict(cls, section: dict[str, Any], previous: "FusionConfig | None" = None) -> "FusionConfig":
        """Build a config from a ``layer`` section, keeping *previous* values for bad entries.

        Parameters
        ----------
        section:
            Mapping of option name -> value. Unknown keys are ignored.
        previous:
            Last valid config. Defaults to the built-in defaults.
        """
        base = previous if previous is not None else cls()
        if not isinstance(section, dict):
            logger.error(f"Layer config must be a mapping, got {type(section).__name__}; keeping previous")
            return base

        updates: dict[str, Any] = {}

        for key in ("max_angle", "phi_v", "no_readings_timeout", "transform_tolerance",
                    "arc_min_range", "trust_distance"):
            if key not in section:
                continue
            value = _as_float(section[key])
            if value is None or (key == "max_angle" and value <= 0.0) or (
                key != "phi_v" and value < 0.0
            ):
                logger.warning(f"Invalid value for {key}: {section[key]!r}; keeping {getattr(base, key)}")
                continue
            updates[key] = value

        for key in ("clear_on_max_reading", "enabled", "mark_detection_arc", "scan_cross_check"):
            if key not in section:
                continue
            if not isinstance(section[key], bool):
                logger.warning(f"Invalid value for {key}: {section[key]!r}; keeping {getattr(base, key)}")
                continue
            updates[key] = section[key]

        if "scan_window" in section:
            window = section["scan_window"]
            if isinstance(window, int) and not isinstance(window, bool) and window > 0:
                updates["scan_window"] = window
            else:
                logger.warning(f"Invalid value for scan_window: {window!r}; keeping {base.scan_window}")

        mark = _as_float(section.get("mark_threshold", base.mark_threshold))
        clear = _as_float(section.get("clear_threshold", base.clear_threshold))
        if (
            mark is None or clear is None
            or not (0.0 <= clear <= 1.0 and 0.0 <= mark <= 1.0)
            or clear >= mark
        ):
            logger.warning(
                f"Invalid thresholds clear={section.get('clear_threshold')!r} "
                f"mark={section.get('mark_threshold')!r} (need 0 <= clear < mark <= 1); "
                f"keeping clear={base.clear_threshold} mark={base.mark_threshold}"
            )
        else:
            updates["mark_threshold"] = mark
            updates["clear_threshold"] = clear

        if "input_sensor_type" in section:
            try:
                updates["input_sensor_type"] = SensorMode.parse(section["input_sensor_type"])
            except ValueError as e:
                logger.error(f"{e} Keeping {base.input_sensor_type.value}")

        if "ns" in section:
            updates["ns"] = str(section["ns"] or "")

        if "topics" in section:
            topics = _parse_topics(section["topics"])
            if topics is not None:
                updates["topics"] = topics

        return replace(base, **updates)


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def _parse_topics(value: Any) -> tuple[str, ...] | None:
    if not isinstance(value, (list, tuple)):
        logger.error("Invalid topic names list: it must be a non-empty list of strings")
        return None
    topics: list[str] = []
    for i, name in enumerate(value):
        if not isinstance(name, str):
            logger.warning(f"Invalid topic names list: element {i} is not a string, so it will be ignored")
            continue
        topics.append(name)
    if not topics:
        logger.warning("Empty topic names list: range sensor layer will have no effect on the map")
    return tuple(topics)

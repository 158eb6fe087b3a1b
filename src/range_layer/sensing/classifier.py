# TDP: Fixed / variable range-sensor classification
# Approach: The sensor handling policy is a plain enum chosen once from
#   configuration.  classify() normalises every reading into
#   (effective_range, clear_cone) or drops it:
#
#   any mode: min_range > max_range, or a NaN limit -> dropped
#   FIXED (min_range == max_range): only +/-inf are valid.
#     -inf -> detection at min_range, no clearing
#     +inf -> full-cone clear at max_range, or dropped when
#             clear_on_max_reading is off
#   VARIABLE:
#     range <= min_range -> dropped
#     range >= max_range -> full-cone clear (range clamped to max_range)
#     otherwise          -> detection at range (cone clear if the optional
#                           scan cross-check corroborates it)
#   ALL: FIXED if min_range == max_range, else VARIABLE.
#
# Alternatives considered:
#   Handler subclasses per sensor type -- three stateless rules do not need a
#   class hierarchy; an enum switch is easier to read and to test.
"""Reading classification: route each reading to fixed- or variable-range handling."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass

from src.range_layer.sensing.readings import RangeReading
from src.range_layer.sensing.scan_check import ScanCrossCheck
from src.range_layer.throttle import log_throttled

logger = logging.getLogger(__name__)


class SensorMode(enum.Enum):
    FIXED = "FIXED"
    VARIABLE = "VARIABLE"
    ALL = "ALL"

    @classmethod
    def parse(cls, name: str) -> "SensorMode":
        """Parse a config value, case-insensitive. ``AUTO`` is accepted for ``ALL``.

        Raises
        ------
        ValueError
            If the name is not recognised.
        """
        key = str(name).strip().upper()
        if key == "AUTO":
            key = "ALL"
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Invalid input sensor type: '{name}'. Expected one of: FIXED, VARIABLE, ALL."
            ) from None


@dataclass(frozen=True)
class Classified:
    """A reading accepted for fusion."""

    reading: RangeReading
    effective_range: float
    clear_cone: bool


def classify_fixed(reading: RangeReading, *, clear_on_max_reading: bool) -> Classified | None:
    if not math.isinf(reading.range):
        log_throttled(
            logger, logging.ERROR, "classifier.fixed_invalid", 1.0,
            f"Fixed distance ranger (min_range == max_range) in frame {reading.frame_id} "
            f"sent invalid value {reading.range}. Only -Inf (== object detected) and "
            "Inf (== no object detected) are valid.",
        )
        return None

    if reading.is_detection_flag:
        return Classified(reading, float(reading.min_range), False)

    if not clear_on_max_reading:
        return None
    return Classified(reading, float(reading.max_range), True)


def classify_variable(
    reading: RangeReading,
    *,
    cross_check: ScanCrossCheck | None = None,
) -> Classified | None:
    if math.isnan(reading.range):
        log_throttled(
            logger, logging.ERROR, "classifier.variable_nan", 1.0,
            f"Range sensor in frame {reading.frame_id} sent NaN range.",
        )
        return None

    if reading.range <= reading.min_range:
        logger.debug(
            f"Dropping reading from {reading.frame_id}: range {reading.range} "
            f"<= min_range {reading.min_range}"
        )
        return None

    if reading.range >= reading.max_range:
        return Classified(reading, float(reading.max_range), True)

    clear = cross_check is not None and cross_check.corroborates(reading.range)
    return Classified(reading, float(reading.range), clear)


def classify(
    reading: RangeReading,
    mode: SensorMode,
    *,
    clear_on_max_reading: bool,
    cross_check: ScanCrossCheck | None = None,
) -> Classified | None:
    """Normalise *reading* for fusion, or return None if it must be dropped.

    Parameters
    ----------
    reading:
        Raw reading from the buffer.
    mode:
        Handling policy from configuration.
    clear_on_max_reading:
        Whether a fixed-range "+inf" reading clears the cone.
    cross_check:
        Optional scan cross-check consulted for variable-range detections.
    """
    if not reading.min_range <= reading.max_range:
        log_throttled(
            logger, logging.ERROR, "classifier.invalid_bounds", 1.0,
            f"Range sensor in frame {reading.frame_id} sent invalid limits "
            f"min_range={reading.min_range} max_range={reading.max_range}.",
        )
        return None

    if mode is SensorMode.ALL:
        mode = SensorMode.FIXED if reading.is_fixed else SensorMode.VARIABLE

    if mode is SensorMode.FIXED:
        return classify_fixed(reading, clear_on_max_reading=clear_on_max_reading)
    return classify_variable(reading, cross_check=cross_check)

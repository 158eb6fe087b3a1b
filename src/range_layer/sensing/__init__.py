"""Reading intake: buffer, classifier, frame transforms, cone geometry, scan cross-check."""

from src.range_layer.sensing.classifier import Classified, SensorMode, classify
from src.range_layer.sensing.cone import Cone, cell_polar, resolve_cone, touch_cone
from src.range_layer.sensing.readings import RangeReading, ReadingBuffer
from src.range_layer.sensing.scan_check import ScanCrossCheck
from src.range_layer.sensing.transform import FrameTransformer, StaticFrameTransformer

__all__ = [
    "Classified",
    "Cone",
    "FrameTransformer",
    "RangeReading",
    "ReadingBuffer",
    "ScanCrossCheck",
    "SensorMode",
    "StaticFrameTransformer",
    "cell_polar",
    "classify",
    "resolve_cone",
    "touch_cone",
]

"""Decoding, suppression and mask reconstruction for YOLOv8-seg outputs."""

from .masks import MaskReconstructor
from .parser import OutputParser
from .suppression import (
    DEFAULT_CONFUSION_GROUPS,
    Suppressor,
    build_group_index,
    calculate_iou,
)

__all__ = [
    "DEFAULT_CONFUSION_GROUPS",
    "MaskReconstructor",
    "OutputParser",
    "Suppressor",
    "build_group_index",
    "calculate_iou",
]

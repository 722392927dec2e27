"""Non-maximum suppression with an extra pass for commonly confused classes."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from ..core.errors import ConfigurationError
from ..core.types import BoundingBox, CandidateDetection, SurvivingDetection

logger = logging.getLogger(__name__)

# Classes the model often confuses with one another
DEFAULT_CONFUSION_GROUPS: tuple[frozenset[int], ...] = (
    frozenset({3, 4, 5, 23}),  # chicken, pork, steak, fried meat
    frozenset({6, 7}),  # fish, shrimp
    frozenset({10, 11}),  # noodles, pasta
    frozenset({19, 20, 24}),  # spinach, cabbage, salad
)


def calculate_iou(box1: BoundingBox, box2: BoundingBox) -> float:
    """Intersection-over-union of two center-format boxes.

    Non-positive widths or heights count as zero extent, so a degenerate box
    overlaps nothing. Returns 0.0 when the union is empty.
    """
    x1_min, y1_min, x1_max, y1_max = box1.to_corners()
    x2_min, y2_min, x2_max, y2_max = box2.to_corners()

    inter_width = max(0.0, min(x1_max, x2_max) - max(x1_min, x2_min))
    inter_height = max(0.0, min(y1_max, y2_max) - max(y1_min, y2_min))
    inter_area = inter_width * inter_height

    union_area = box1.area + box2.area - inter_area
    if union_area <= 0.0:
        return 0.0
    return inter_area / union_area


def build_group_index(groups: Iterable[Iterable[int]]) -> Dict[int, int]:
    """Map each class id to the index of its confusion group."""
    index: Dict[int, int] = {}
    for group_idx, group in enumerate(groups):
        for class_id in group:
            class_id = int(class_id)
            if class_id in index and index[class_id] != group_idx:
                raise ConfigurationError(
                    f"class {class_id} appears in more than one confusion group"
                )
            index[class_id] = group_idx
    return index


class Suppressor:
    """Keeps the most confident detection among overlapping candidates.

    Two passes run over the confidence-sorted list: same-class suppression
    first, then cross-class suppression restricted to confusion groups.
    """

    def __init__(
        self,
        confidence_threshold: float = 0.25,
        iou_threshold: float = 0.45,
        confusion_groups: Iterable[Iterable[int]] = DEFAULT_CONFUSION_GROUPS,
    ) -> None:
        self.confidence_threshold = float(confidence_threshold)
        self.iou_threshold = float(iou_threshold)
        self.confusion_groups = tuple(frozenset(int(c) for c in g) for g in confusion_groups)
        self._group_of = build_group_index(self.confusion_groups)

    def suppress(self, candidates: Sequence[CandidateDetection]) -> List[SurvivingDetection]:
        filtered = [c for c in candidates if c.confidence >= self.confidence_threshold]
        if not filtered:
            return []

        # sorted() is stable: equal confidences keep parser order
        ordered = sorted(filtered, key=lambda c: c.confidence, reverse=True)
        same_class = self._suppress_same_class(ordered)
        kept = self._suppress_confusion_groups(same_class)

        logger.debug(
            "suppress: %d candidates -> %d after same-class -> %d after confusion groups",
            len(filtered),
            len(same_class),
            len(kept),
        )
        return [SurvivingDetection.from_candidate(c) for c in kept]

    __call__ = suppress

    def _suppress_same_class(self, ordered: List[CandidateDetection]) -> List[CandidateDetection]:
        kept: List[CandidateDetection] = []
        suppressed: set[int] = set()
        for i, current in enumerate(ordered):
            if i in suppressed:
                continue
            kept.append(current)
            for j in range(i + 1, len(ordered)):
                if j in suppressed:
                    continue
                other = ordered[j]
                if other.class_id != current.class_id:
                    continue
                if calculate_iou(current.box, other.box) > self.iou_threshold:
                    suppressed.add(j)
        return kept

    def _suppress_confusion_groups(
        self, ordered: List[CandidateDetection]
    ) -> List[CandidateDetection]:
        kept: List[CandidateDetection] = []
        suppressed: set[int] = set()
        for i, current in enumerate(ordered):
            if i in suppressed:
                continue
            kept.append(current)
            group = self._group_of.get(current.class_id)
            if group is None:
                continue
            for j in range(i + 1, len(ordered)):
                if j in suppressed:
                    continue
                other = ordered[j]
                if self._group_of.get(other.class_id) != group:
                    continue
                if other.class_id == current.class_id:
                    continue
                if calculate_iou(current.box, other.box) > self.iou_threshold:
                    suppressed.add(j)
        return kept


__all__ = [
    "DEFAULT_CONFUSION_GROUPS",
    "Suppressor",
    "build_group_index",
    "calculate_iou",
]

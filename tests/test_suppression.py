import itertools

import numpy as np
import pytest

from nutriscan.core.errors import ConfigurationError
from nutriscan.core.types import BoundingBox, CandidateDetection
from nutriscan.detection.suppression import Suppressor, calculate_iou


def _candidate(class_id, confidence, box, index=0):
    return CandidateDetection(
        class_id=class_id,
        confidence=confidence,
        box=box,
        mask_coefficients=np.zeros(32, dtype=np.float32),
        parser_index=index,
    )


BOXES = [
    BoundingBox(0.5, 0.5, 0.2, 0.2),
    BoundingBox(0.3, 0.6, 0.1, 0.4),
    BoundingBox(0.51, 0.49, 0.22, 0.18),
    BoundingBox(0.9, 0.1, 0.05, 0.05),
]


@pytest.mark.parametrize("box", BOXES)
def test_iou_of_box_with_itself_is_one(box):
    assert calculate_iou(box, box) == pytest.approx(1.0)


@pytest.mark.parametrize("a,b", list(itertools.combinations(BOXES, 2)))
def test_iou_is_symmetric(a, b):
    assert calculate_iou(a, b) == calculate_iou(b, a)


def test_disjoint_boxes_have_zero_iou():
    assert calculate_iou(BoundingBox(0.1, 0.1, 0.1, 0.1), BoundingBox(0.8, 0.8, 0.1, 0.1)) == 0.0
    # touching edges only
    assert calculate_iou(BoundingBox(0.2, 0.5, 0.2, 0.2), BoundingBox(0.4, 0.5, 0.2, 0.2)) == 0.0


def test_iou_known_value():
    a = BoundingBox(0.5, 0.5, 0.2, 0.2)
    b = BoundingBox(0.6, 0.5, 0.2, 0.2)
    # intersection 0.1 x 0.2, union 0.08 - 0.02
    assert calculate_iou(a, b) == pytest.approx(0.02 / 0.06)


def test_degenerate_boxes_never_divide_by_zero():
    zero = BoundingBox(0.5, 0.5, 0.0, 0.0)
    negative = BoundingBox(0.5, 0.5, -0.2, 0.3)
    assert calculate_iou(zero, zero) == 0.0
    assert calculate_iou(negative, BoundingBox(0.5, 0.5, 0.2, 0.2)) == 0.0


def test_empty_input_returns_empty():
    assert Suppressor().suppress([]) == []


def test_same_class_overlap_keeps_most_confident():
    low = _candidate(1, 0.8, BoundingBox(0.5, 0.5, 0.2, 0.2), 0)
    high = _candidate(1, 0.9, BoundingBox(0.505, 0.5, 0.2, 0.2), 1)

    kept = Suppressor().suppress([low, high])

    assert [k.confidence for k in kept] == [0.9]


def test_different_classes_outside_groups_both_survive():
    a = _candidate(0, 0.9, BoundingBox(0.5, 0.5, 0.2, 0.2), 0)
    b = _candidate(1, 0.8, BoundingBox(0.5, 0.5, 0.2, 0.2), 1)

    assert len(Suppressor().suppress([a, b])) == 2


def test_confusion_group_suppresses_other_class():
    steak = _candidate(5, 0.7, BoundingBox(0.5, 0.5, 0.2, 0.2), 0)
    pork = _candidate(4, 0.6, BoundingBox(0.52, 0.5, 0.2, 0.2), 1)
    fish = _candidate(6, 0.5, BoundingBox(0.5, 0.5, 0.2, 0.2), 2)

    kept = Suppressor().suppress([pork, fish, steak])

    assert [k.class_id for k in kept] == [5, 6]


def test_confusion_group_pass_ignores_low_overlap():
    steak = _candidate(5, 0.7, BoundingBox(0.3, 0.5, 0.2, 0.2), 0)
    pork = _candidate(4, 0.6, BoundingBox(0.7, 0.5, 0.2, 0.2), 1)

    assert len(Suppressor().suppress([steak, pork])) == 2


def test_threshold_is_strictly_greater_than():
    a = BoundingBox(0.5, 0.5, 0.2, 0.2)
    b = BoundingBox(0.6, 0.5, 0.2, 0.2)
    iou = calculate_iou(a, b)
    first = _candidate(2, 0.9, a, 0)
    second = _candidate(2, 0.8, b, 1)

    assert len(Suppressor(iou_threshold=iou).suppress([first, second])) == 2
    assert len(Suppressor(iou_threshold=iou - 1e-6).suppress([first, second])) == 1


def test_equal_confidence_keeps_parser_order():
    first = _candidate(3, 0.5, BoundingBox(0.5, 0.5, 0.2, 0.2), 0)
    second = _candidate(3, 0.5, BoundingBox(0.5, 0.5, 0.2, 0.2), 1)

    (kept,) = Suppressor().suppress([first, second])

    assert kept.parser_index == 0


def test_defensive_confidence_filter():
    weak = _candidate(0, 0.1, BoundingBox(0.5, 0.5, 0.2, 0.2))

    assert Suppressor(confidence_threshold=0.25).suppress([weak]) == []


def test_disjoint_survivors_are_never_capped():
    # 11 x 10 grid of 0.05-wide boxes on a 0.09 pitch; no two overlap
    candidates = [
        _candidate(0, 0.9, BoundingBox(0.05 + col * 0.09, 0.05 + row * 0.09, 0.05, 0.05), row * 11 + col)
        for row in range(10)
        for col in range(11)
    ]

    kept = Suppressor().suppress(candidates)

    assert len(kept) == 110
    assert [k.parser_index for k in kept] == list(range(110))


def test_class_in_two_groups_is_rejected():
    with pytest.raises(ConfigurationError):
        Suppressor(confusion_groups=[{1, 2}, {2, 3}])


def test_random_sets_respect_same_class_invariant():
    rng = np.random.default_rng(7)
    candidates = []
    for i in range(60):
        cx, cy = rng.uniform(0.2, 0.8, size=2)
        w, h = rng.uniform(0.05, 0.3, size=2)
        candidates.append(
            _candidate(int(rng.integers(0, 4)), float(rng.uniform(0.25, 1.0)), BoundingBox(cx, cy, w, h), i)
        )

    suppressor = Suppressor(iou_threshold=0.45)
    kept = suppressor.suppress(candidates)

    assert len(kept) <= len(candidates)
    confidences = [k.confidence for k in kept]
    assert confidences == sorted(confidences, reverse=True)
    for a, b in itertools.combinations(kept, 2):
        if a.class_id == b.class_id:
            assert calculate_iou(a.box, b.box) <= 0.45

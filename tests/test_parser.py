import logging

import numpy as np
import pytest

from nutriscan.core.errors import ConfigurationError, MissingTensorError
from nutriscan.core.types import BoundingBox, is_valid_box
from nutriscan.detection.parser import OutputParser


def test_parse_normalizes_box_and_picks_best_class(make_detection_tensor):
    coeffs = np.arange(32, dtype=np.float32) / 10.0
    tensor, dims = make_detection_tensor([((320, 160, 128, 64), {2: 0.4, 7: 0.8}, coeffs)])

    (candidate,) = OutputParser().parse(tensor, dims)

    assert candidate.class_id == 7
    assert candidate.confidence == pytest.approx(0.8)
    assert candidate.box.x == pytest.approx(0.5)
    assert candidate.box.y == pytest.approx(0.25)
    assert candidate.box.width == pytest.approx(0.2)
    assert candidate.box.height == pytest.approx(0.1)
    np.testing.assert_allclose(candidate.mask_coefficients, coeffs)


def test_tied_scores_resolve_to_lowest_class_id(make_detection_tensor):
    tensor, dims = make_detection_tensor([((10, 10, 5, 5), {4: 0.6, 1: 0.6, 9: 0.6}, None)])

    (candidate,) = OutputParser().parse(tensor, dims)

    assert candidate.class_id == 1


def test_anchors_below_threshold_are_dropped(make_detection_tensor):
    tensor, dims = make_detection_tensor(
        [
            ((10, 10, 5, 5), {0: 0.24}, None),
            ((20, 20, 5, 5), {3: 0.25}, None),
            ((30, 30, 5, 5), {5: 0.9}, None),
        ]
    )

    candidates = OutputParser(confidence_threshold=0.25).parse(tensor, dims)

    assert [c.class_id for c in candidates] == [3, 5]
    assert [c.parser_index for c in candidates] == [0, 1]


def test_channel_mismatch_is_configuration_error(make_detection_tensor):
    tensor, dims = make_detection_tensor([((10, 10, 5, 5), {0: 0.9}, None)], num_classes=12)

    with pytest.raises(ConfigurationError, match="channels"):
        OutputParser(num_classes=32, num_mask_coefficients=32).parse(tensor, dims)


def test_size_mismatch_is_configuration_error(make_detection_tensor):
    tensor, dims = make_detection_tensor([((10, 10, 5, 5), {0: 0.9}, None)])

    with pytest.raises(ConfigurationError):
        OutputParser().parse(tensor[:-1], dims)


def test_missing_tensor_raises():
    with pytest.raises(MissingTensorError):
        OutputParser().parse(None, [1, 68, 1])


def test_zero_anchors_yield_no_candidates():
    assert OutputParser().parse(np.zeros(0, dtype=np.float32), [1, 68, 0]) == []


@pytest.mark.parametrize(
    "box, expected",
    [
        (BoundingBox(0.5, 0.5, 0.2, 0.2), True),
        (BoundingBox(1.2, 0.5, 0.2, 0.2), False),
        (BoundingBox(0.5, 0.5, 0.0, 0.2), False),
        (BoundingBox(0.5, 0.5, 0.2, 1.5), False),
    ],
)
def test_is_valid_box(box, expected):
    assert is_valid_box(box) is expected


def test_out_of_frame_boxes_are_kept_and_logged(make_detection_tensor, caplog):
    tensor, dims = make_detection_tensor(
        [
            ((320, 320, 64, 64), {0: 0.9}, None),
            ((800, 320, 64, 64), {1: 0.9}, None),
        ]
    )

    with caplog.at_level(logging.DEBUG, logger="nutriscan.detection.parser"):
        candidates = OutputParser().parse(tensor, dims)

    assert [c.class_id for c in candidates] == [0, 1]
    assert "1 candidates have boxes outside the frame" in caplog.text

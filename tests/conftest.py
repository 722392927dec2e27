from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np
import pytest

from nutriscan.nutrition.reference import load_default_reference_table
from nutriscan.utils.config import PipelineSettings

NUM_CLASSES = 32
NUM_COEFFS = 32
INPUT_SIZE = 640
PROTO_SIZE = 160


def _anchor_column(
    box_px: Sequence[float],
    scores: Dict[int, float],
    coefficients: Sequence[float] | None,
    num_classes: int,
    num_coeffs: int,
) -> np.ndarray:
    column = np.zeros(4 + num_classes + num_coeffs, dtype=np.float32)
    column[:4] = box_px
    for class_id, score in scores.items():
        column[4 + class_id] = score
    if coefficients is not None:
        column[4 + num_classes : 4 + num_classes + len(coefficients)] = coefficients
    return column


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings()


@pytest.fixture
def reference_table():
    return load_default_reference_table()


@pytest.fixture
def make_detection_tensor() -> Callable[..., Tuple[np.ndarray, List[int]]]:
    """Build a flat ``[1, C, A]`` tensor from anchor specs.

    Each anchor is ``(box_px, {class_id: score}, coefficients_or_None)`` with
    ``box_px = (cx, cy, w, h)`` in input pixels.
    """

    def build(anchors, num_classes: int = NUM_CLASSES, num_coeffs: int = NUM_COEFFS):
        channels = 4 + num_classes + num_coeffs
        matrix = np.zeros((channels, len(anchors)), dtype=np.float32)
        for i, (box_px, scores, coefficients) in enumerate(anchors):
            matrix[:, i] = _anchor_column(box_px, scores, coefficients, num_classes, num_coeffs)
        return matrix.reshape(-1), [1, channels, len(anchors)]

    return build


@pytest.fixture
def make_prototypes() -> Callable[..., Tuple[np.ndarray, List[int]]]:
    """Prototypes where channel 0 is +10 inside ``on_cells`` and -10 elsewhere."""

    def build(on_cells: Sequence[Tuple[int, int]] = (), num_coeffs: int = NUM_COEFFS, size: int = PROTO_SIZE):
        protos = np.zeros((num_coeffs, size, size), dtype=np.float32)
        protos[0].fill(-10.0)
        for row, col in on_cells:
            protos[0, row, col] = 10.0
        return protos.reshape(-1), [1, num_coeffs, size, size]

    return build


def unit_coefficients(num_coeffs: int = NUM_COEFFS) -> np.ndarray:
    coefficients = np.zeros(num_coeffs, dtype=np.float32)
    coefficients[0] = 1.0
    return coefficients


@pytest.fixture
def unit_coeffs() -> np.ndarray:
    return unit_coefficients()


def square_cells(top: int, left: int, side: int) -> List[Tuple[int, int]]:
    return [(top + r, left + c) for r in range(side) for c in range(side)]


@pytest.fixture
def cells() -> Callable[[int, int, int], List[Tuple[int, int]]]:
    return square_cells

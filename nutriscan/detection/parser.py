"""Decoding of the flat YOLOv8-seg detection tensor into candidate detections."""

from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from ..core.errors import ConfigurationError, MissingTensorError
from ..core.types import BoundingBox, CandidateDetection, is_valid_box

logger = logging.getLogger(__name__)

BOX_CHANNELS = 4


class OutputParser:
    """Turns a ``[1, 4 + classes + coefficients, anchors]`` tensor into candidates.

    Per anchor, channels 0..3 hold the box centre and size in input pixels,
    the next ``num_classes`` channels hold class scores and the remaining
    channels hold mask coefficients.
    """

    def __init__(
        self,
        input_resolution: int = 640,
        num_classes: int = 32,
        num_mask_coefficients: int = 32,
        confidence_threshold: float = 0.25,
    ) -> None:
        self.input_resolution = int(input_resolution)
        self.num_classes = int(num_classes)
        self.num_mask_coefficients = int(num_mask_coefficients)
        self.confidence_threshold = float(confidence_threshold)

    @property
    def expected_channels(self) -> int:
        return BOX_CHANNELS + self.num_classes + self.num_mask_coefficients

    def _as_channel_matrix(self, tensor: Sequence[float] | np.ndarray, dims: Sequence[int]) -> np.ndarray:
        if tensor is None or dims is None:
            raise MissingTensorError("detection tensor or its dimensions are missing")
        dims = [int(d) for d in dims]
        if len(dims) != 3 or dims[0] != 1:
            raise ConfigurationError(f"detection tensor dims must be [1, C, A], got {dims}")
        _, channels, anchors = dims
        if channels != self.expected_channels:
            raise ConfigurationError(
                f"detection tensor has {channels} channels, expected "
                f"{self.expected_channels} (4 + {self.num_classes} classes + "
                f"{self.num_mask_coefficients} mask coefficients)"
            )
        data = np.asarray(tensor, dtype=np.float32).reshape(-1)
        if data.size != channels * anchors:
            raise ConfigurationError(
                f"detection tensor holds {data.size} values, dims {dims} require {channels * anchors}"
            )
        return data.reshape(channels, anchors)

    def parse(self, tensor: Sequence[float] | np.ndarray, dims: Sequence[int]) -> List[CandidateDetection]:
        """Decode every anchor whose best class score meets the threshold.

        Args:
            tensor: Flat detection output (or any array reshapeable to ``dims``)
            dims: Declared tensor dimensions ``[1, C, A]``

        Returns:
            Candidates in ascending anchor order

        Raises:
            MissingTensorError: If the tensor or dims are absent
            ConfigurationError: If the channel layout does not match the settings
        """
        matrix = self._as_channel_matrix(tensor, dims)
        scores_end = BOX_CHANNELS + self.num_classes
        class_scores = matrix[BOX_CHANNELS:scores_end]

        # argmax returns the first maximum, so lower class ids win ties
        best_class = np.argmax(class_scores, axis=0)
        best_score = class_scores[best_class, np.arange(class_scores.shape[1])]
        keep = np.flatnonzero(best_score >= self.confidence_threshold)

        boxes = matrix[:BOX_CHANNELS] / float(self.input_resolution)
        coefficients = matrix[scores_end:]

        candidates: List[CandidateDetection] = []
        for anchor in keep:
            cx, cy, w, h = (float(v) for v in boxes[:, anchor])
            candidates.append(
                CandidateDetection(
                    class_id=int(best_class[anchor]),
                    confidence=float(best_score[anchor]),
                    box=BoundingBox(x=cx, y=cy, width=w, height=h),
                    mask_coefficients=coefficients[:, anchor],
                    parser_index=len(candidates),
                )
            )

        logger.debug(
            "parse: %d of %d anchors passed confidence %.2f",
            len(candidates),
            matrix.shape[1],
            self.confidence_threshold,
        )
        out_of_frame = sum(1 for c in candidates if not is_valid_box(c.box))
        if out_of_frame:
            logger.debug("parse: %d candidates have boxes outside the frame", out_of_frame)
        return candidates


__all__ = ["OutputParser", "BOX_CHANNELS"]

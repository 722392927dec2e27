"""High-level orchestration: decode -> suppress -> mask -> estimate -> aggregate."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import List, Optional, Sequence

import numpy as np

from ..detection.masks import MaskReconstructor
from ..detection.parser import OutputParser
from ..detection.suppression import Suppressor
from ..engine.preprocessing import ImageInput
from ..engine.session import InferenceEngine
from ..nutrition.estimator import NutritionEstimator
from ..nutrition.reference import FoodReferenceTable, load_default_reference_table
from ..utils.config import PipelineSettings
from .errors import ConfigurationError, EngineError, MissingTensorError
from .types import Detection, InferenceResult

logger = logging.getLogger(__name__)

NO_DETECTIONS_MESSAGE = "Aucun aliment détecté. Essayez de vous rapprocher."

TensorLike = Sequence[float] | np.ndarray


class NutriScanPipeline:
    """Orchestrator wiring output parser -> suppressor -> masks -> nutrition.

    Holds only immutable configuration, so one instance can serve concurrent
    ``run`` calls as long as each call gets its own tensors.
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        reference_table: FoodReferenceTable | None = None,
        engine: InferenceEngine | None = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        if reference_table is None:
            if self.settings.reference_table_path:
                reference_table = FoodReferenceTable.from_json(self.settings.reference_table_path)
            else:
                reference_table = load_default_reference_table()
        self.reference_table = reference_table
        self.engine = engine

        s = self.settings
        self.parser = OutputParser(
            input_resolution=s.input_resolution,
            num_classes=s.num_classes,
            num_mask_coefficients=s.num_mask_coefficients,
            confidence_threshold=s.confidence_threshold,
        )
        self.suppressor = Suppressor(
            confidence_threshold=s.confidence_threshold,
            iou_threshold=s.iou_threshold,
            confusion_groups=s.confusion_groups,
        )
        self.mask_reconstructor = MaskReconstructor(
            output_size=s.input_resolution,
            mask_threshold=s.mask_threshold,
        )
        self.estimator = NutritionEstimator(pixel_to_cm_ratio=s.pixel_to_cm_ratio)

    def run(
        self,
        detection_tensor: Optional[TensorLike],
        dims0: Optional[Sequence[int]],
        prototype_tensor: Optional[TensorLike],
        dims1: Optional[Sequence[int]],
    ) -> InferenceResult:
        """Turn the two raw model outputs into a complete :class:`InferenceResult`.

        Raises:
            MissingTensorError: If either tensor or its dims is absent
            ConfigurationError: If a tensor layout disagrees with the settings
        """
        start = time.perf_counter()
        if detection_tensor is None or dims0 is None:
            raise MissingTensorError("detection tensor (output0) is missing")
        if prototype_tensor is None or dims1 is None:
            raise MissingTensorError("mask prototype tensor (output1) is missing")

        protos = self.mask_reconstructor.prototype_matrix(prototype_tensor, dims1)
        if protos.shape[0] != self.settings.num_mask_coefficients:
            raise ConfigurationError(
                f"prototype tensor has {protos.shape[0]} channels, expected "
                f"{self.settings.num_mask_coefficients} mask coefficients"
            )

        candidates = self.parser.parse(detection_tensor, dims0)
        survivors = self.suppressor.suppress(candidates)

        detections: List[Detection] = []
        for survivor in survivors:
            reference = self.reference_table.lookup(survivor.class_id)
            mask = self.mask_reconstructor.reconstruct_from_matrix(
                survivor.mask_coefficients, protos
            )
            nutrition = self.estimator.estimate(mask, reference)
            detections.append(
                Detection(
                    class_id=survivor.class_id,
                    label=reference.name,
                    confidence=survivor.confidence,
                    box=survivor.box,
                    mask=mask,
                    nutrition=nutrition,
                    icon=reference.icon,
                )
            )

        total_calories = sum(d.nutrition.calories for d in detections)
        processing_time_ms = (time.perf_counter() - start) * 1000.0
        logger.debug(
            "run: %d candidates, %d detections, %.1f kcal in %.1f ms",
            len(candidates),
            len(detections),
            total_calories,
            processing_time_ms,
        )
        return InferenceResult(
            detections=tuple(detections),
            total_calories=float(total_calories),
            processing_time_ms=processing_time_ms,
            message=None if detections else NO_DETECTIONS_MESSAGE,
        )

    __call__ = run

    def analyze_image(self, image: ImageInput) -> InferenceResult:
        """Run the attached engine and the pipeline; timing covers both."""
        if self.engine is None:
            raise EngineError("no inference engine attached to this pipeline")
        start = time.perf_counter()
        outputs = self.engine.infer(image)
        result = self.run(
            outputs.detection_tensor,
            outputs.detection_dims,
            outputs.prototype_tensor,
            outputs.prototype_dims,
        )
        return replace(result, processing_time_ms=(time.perf_counter() - start) * 1000.0)


__all__ = ["NO_DETECTIONS_MESSAGE", "NutriScanPipeline"]

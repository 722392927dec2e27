"""Core orchestration, shared types and errors for the scan pipeline."""

from .errors import ConfigurationError, EngineError, MissingTensorError, NutriScanError
from .pipeline import NO_DETECTIONS_MESSAGE, NutriScanPipeline
from .types import (
    BoundingBox,
    CandidateDetection,
    Detection,
    FoodReference,
    InferenceResult,
    NutritionEstimate,
    SegmentationMask,
    SurvivingDetection,
    is_valid_box,
)

__all__ = [
    "BoundingBox",
    "CandidateDetection",
    "ConfigurationError",
    "Detection",
    "EngineError",
    "FoodReference",
    "InferenceResult",
    "MissingTensorError",
    "NO_DETECTIONS_MESSAGE",
    "NutriScanError",
    "NutriScanPipeline",
    "NutritionEstimate",
    "SegmentationMask",
    "SurvivingDetection",
    "is_valid_box",
]

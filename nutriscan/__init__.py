"""Post-processing core turning YOLOv8-seg outputs into per-item nutrition estimates."""

from .core import (
    BoundingBox,
    ConfigurationError,
    Detection,
    EngineError,
    FoodReference,
    InferenceResult,
    MissingTensorError,
    NutriScanError,
    NutriScanPipeline,
    NutritionEstimate,
    SegmentationMask,
)
from .detection import MaskReconstructor, OutputParser, Suppressor, calculate_iou
from .engine import InferenceEngine
from .nutrition import FoodReferenceTable, NutritionEstimator, load_default_reference_table
from .utils import PipelineSettings, load_config

__all__ = [
    "BoundingBox",
    "ConfigurationError",
    "Detection",
    "EngineError",
    "FoodReference",
    "FoodReferenceTable",
    "InferenceEngine",
    "InferenceResult",
    "MaskReconstructor",
    "MissingTensorError",
    "NutriScanError",
    "NutriScanPipeline",
    "NutritionEstimate",
    "NutritionEstimator",
    "OutputParser",
    "PipelineSettings",
    "SegmentationMask",
    "Suppressor",
    "calculate_iou",
    "load_config",
    "load_default_reference_table",
]

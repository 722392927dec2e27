"""Food reference table and nutrition estimation."""

from .estimator import (
    DEFAULT_PIXEL_TO_CM_RATIO,
    EstimateBreakdown,
    NutritionEstimator,
    aggregate_nutrition,
    count_mask_pixels,
)
from .reference import (
    FALLBACK_FOOD_REFERENCE,
    FoodReferenceTable,
    load_default_reference_table,
)

__all__ = [
    "DEFAULT_PIXEL_TO_CM_RATIO",
    "EstimateBreakdown",
    "FALLBACK_FOOD_REFERENCE",
    "FoodReferenceTable",
    "NutritionEstimator",
    "aggregate_nutrition",
    "count_mask_pixels",
    "load_default_reference_table",
]

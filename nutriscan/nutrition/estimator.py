"""Flat-slab mass and nutrition estimation from binary segmentation masks.

Mass is derived from the mask footprint only:

    pixels -> area (cm^2) -> volume (cm^3, fixed per-class thickness) -> grams (density)

and every per-100 g nutrient is scaled by ``grams / 100``. There is no depth
input, so accuracy depends on the thickness and calibration constants.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Dict, Iterable

import numpy as np

from ..core.types import Detection, FoodReference, NutritionEstimate, SegmentationMask

logger = logging.getLogger(__name__)

# 30 cm across a 640 px frame
DEFAULT_PIXEL_TO_CM_RATIO = 30.0 / 640


def count_mask_pixels(mask: SegmentationMask | np.ndarray | Iterable[int]) -> int:
    """Number of foreground pixels in a binary mask."""
    if isinstance(mask, SegmentationMask):
        return mask.pixel_count
    if not isinstance(mask, np.ndarray):
        mask = np.fromiter(mask, dtype=np.int64)
    return int(np.count_nonzero(mask))


@dataclass(frozen=True)
class EstimateBreakdown:
    """Intermediate quantities of one estimate, for logs and ``--explain`` output."""

    food: str
    pixel_count: int
    area_cm2: float
    volume_cm3: float
    density: float
    thickness_cm: float
    weight_grams: float
    calories: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "food": self.food,
            "pixel_count": self.pixel_count,
            "area_cm2": round(self.area_cm2, 2),
            "volume_cm3": round(self.volume_cm3, 2),
            "density": self.density,
            "thickness_cm": self.thickness_cm,
            "weight_grams": round(self.weight_grams, 1),
            "calories": round(self.calories),
        }


class NutritionEstimator:
    """Estimates weight and nutrients for a detected food item."""

    def __init__(self, pixel_to_cm_ratio: float = DEFAULT_PIXEL_TO_CM_RATIO) -> None:
        """Initialize estimator.

        Args:
            pixel_to_cm_ratio: Real-world centimetres covered by one output pixel
                edge, shared by both axes
        """
        self.pixel_to_cm_ratio = float(pixel_to_cm_ratio)
        self._pixel_area_cm2 = self.pixel_to_cm_ratio ** 2

    def estimate_from_pixels(self, pixel_count: int, reference: FoodReference) -> NutritionEstimate:
        """Estimate nutrition for a footprint of ``pixel_count`` mask pixels.

        Args:
            pixel_count: Foreground pixels at output resolution
            reference: Physical model and per-100 g nutrients for the class

        Returns:
            NutritionEstimate; all zero when ``pixel_count`` is zero
        """
        if pixel_count <= 0:
            warnings.warn(f"Mask has no pixels for {reference.name}; nutrition is zero")
            return NutritionEstimate.zero()

        area_cm2 = pixel_count * self._pixel_area_cm2
        volume_cm3 = area_cm2 * reference.reference_thickness_cm
        weight_grams = volume_cm3 * reference.density
        factor = weight_grams / 100.0

        return NutritionEstimate(
            weight_grams=weight_grams,
            calories=factor * reference.calories_per_100g,
            protein=factor * reference.protein_per_100g,
            carbs=factor * reference.carbs_per_100g,
            fat=factor * reference.fat_per_100g,
            fiber=factor * reference.fiber_per_100g,
        )

    def estimate(self, mask: SegmentationMask, reference: FoodReference) -> NutritionEstimate:
        """Estimate nutrition for a binary mask and its food reference."""
        estimate = self.estimate_from_pixels(count_mask_pixels(mask), reference)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("nutrition: %s", self.describe(mask, reference, estimate).to_dict())
        return estimate

    __call__ = estimate

    def describe(
        self,
        mask: SegmentationMask,
        reference: FoodReference,
        estimate: NutritionEstimate | None = None,
    ) -> EstimateBreakdown:
        """Break an estimate down into its intermediate physical quantities."""
        pixel_count = count_mask_pixels(mask)
        if estimate is None:
            estimate = self.estimate_from_pixels(pixel_count, reference)
        area_cm2 = pixel_count * self._pixel_area_cm2
        return EstimateBreakdown(
            food=reference.name,
            pixel_count=pixel_count,
            area_cm2=area_cm2,
            volume_cm3=area_cm2 * reference.reference_thickness_cm,
            density=reference.density,
            thickness_cm=reference.reference_thickness_cm,
            weight_grams=estimate.weight_grams,
            calories=estimate.calories,
        )


def aggregate_nutrition(detections: Iterable[Detection]) -> NutritionEstimate:
    """Sum the nutrition of several detections."""
    total = NutritionEstimate.zero()
    for detection in detections:
        total = total + detection.nutrition
    return total


__all__ = [
    "DEFAULT_PIXEL_TO_CM_RATIO",
    "EstimateBreakdown",
    "NutritionEstimator",
    "aggregate_nutrition",
    "count_mask_pixels",
]

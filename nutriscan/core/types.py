"""Shared dataclasses used across the scan pipeline components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class BoundingBox:
    """Center-format box normalized to the model's square input resolution."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        # Non-positive sides contribute no area
        return max(self.width, 0.0) * max(self.height, 0.0)

    def to_corners(self) -> Tuple[float, float, float, float]:
        """Return ``(x_min, y_min, x_max, y_max)`` with non-positive sides collapsed."""
        half_w = max(self.width, 0.0) / 2.0
        half_h = max(self.height, 0.0) / 2.0
        return (self.x - half_w, self.y - half_h, self.x + half_w, self.y + half_h)

    def to_dict(self) -> Dict[str, float]:
        return {
            "x": float(self.x),
            "y": float(self.y),
            "width": float(self.width),
            "height": float(self.height),
        }


def is_valid_box(box: BoundingBox) -> bool:
    """True when the box lies in the unit square with a positive, bounded size."""
    return (
        0.0 <= box.x <= 1.0
        and 0.0 <= box.y <= 1.0
        and 0.0 < box.width <= 1.0
        and 0.0 < box.height <= 1.0
    )


@dataclass(frozen=True)
class CandidateDetection:
    """One anchor that passed the confidence filter in the output parser."""

    class_id: int
    confidence: float
    box: BoundingBox
    mask_coefficients: np.ndarray = field(compare=False, repr=False)
    parser_index: int = field(default=0, compare=False)

    def __post_init__(self) -> None:
        coefficients = np.array(self.mask_coefficients, dtype=np.float32).reshape(-1)
        object.__setattr__(self, "mask_coefficients", _readonly(coefficients))


@dataclass(frozen=True)
class SurvivingDetection(CandidateDetection):
    """A candidate that was kept by both suppression passes."""

    @classmethod
    def from_candidate(cls, candidate: CandidateDetection) -> "SurvivingDetection":
        return cls(
            class_id=candidate.class_id,
            confidence=candidate.confidence,
            box=candidate.box,
            mask_coefficients=candidate.mask_coefficients,
            parser_index=candidate.parser_index,
        )


@dataclass(frozen=True)
class SegmentationMask:
    """Binary square raster stored row-major as a flat 0/1 array."""

    values: np.ndarray = field(compare=False, repr=False)
    size: int = 0

    def __post_init__(self) -> None:
        values = np.asarray(self.values, dtype=np.uint8).reshape(-1)
        if self.size <= 0:
            side = int(round(np.sqrt(values.size)))
            object.__setattr__(self, "size", side)
        object.__setattr__(self, "values", _readonly(values))

    def __len__(self) -> int:
        return int(self.values.size)

    @property
    def pixel_count(self) -> int:
        return int(np.count_nonzero(self.values))

    def as_grid(self) -> np.ndarray:
        """Read-only ``size x size`` view of the mask."""
        return self.values.reshape(self.size, self.size)

    def to_list(self) -> list[int]:
        return self.values.tolist()


@dataclass(frozen=True)
class FoodReference:
    """Per-class physical model and nutrient table (per 100 g)."""

    id: int
    name: str
    density: float  # g / cm^3
    reference_thickness_cm: float
    calories_per_100g: float
    protein_per_100g: float
    carbs_per_100g: float
    fat_per_100g: float
    fiber_per_100g: float
    icon: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "density": self.density,
            "reference_thickness_cm": self.reference_thickness_cm,
            "calories_per_100g": self.calories_per_100g,
            "protein_per_100g": self.protein_per_100g,
            "carbs_per_100g": self.carbs_per_100g,
            "fat_per_100g": self.fat_per_100g,
            "fiber_per_100g": self.fiber_per_100g,
            "icon": self.icon,
        }


@dataclass(frozen=True)
class NutritionEstimate:
    """Estimated mass and nutrients for one detected item."""

    weight_grams: float = 0.0
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0

    @classmethod
    def zero(cls) -> "NutritionEstimate":
        return cls()

    def __add__(self, other: "NutritionEstimate") -> "NutritionEstimate":
        if not isinstance(other, NutritionEstimate):
            return NotImplemented
        return NutritionEstimate(
            weight_grams=self.weight_grams + other.weight_grams,
            calories=self.calories + other.calories,
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
            fiber=self.fiber + other.fiber,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "weight_grams": self.weight_grams,
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
            "fiber": self.fiber,
        }


@dataclass(frozen=True)
class Detection:
    """Final per-item output: suppression survivor, its mask and nutrition."""

    class_id: int
    label: str
    confidence: float
    box: BoundingBox
    mask: SegmentationMask
    nutrition: NutritionEstimate
    icon: str = ""

    def to_dict(self, include_mask: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "class_id": self.class_id,
            "label": self.label,
            "confidence": float(self.confidence),
            "box": self.box.to_dict(),
            "mask_pixels": self.mask.pixel_count,
            "nutrition": self.nutrition.to_dict(),
            "icon": self.icon,
        }
        if include_mask:
            payload["mask"] = self.mask.to_list()
        return payload


@dataclass(frozen=True)
class InferenceResult:
    """Everything one pipeline invocation hands back to its caller."""

    detections: Tuple[Detection, ...]
    total_calories: float
    processing_time_ms: float
    message: Optional[str] = None

    @property
    def total_nutrition(self) -> NutritionEstimate:
        total = NutritionEstimate.zero()
        for detection in self.detections:
            total = total + detection.nutrition
        return total

    def to_dict(self, include_masks: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "detections": [d.to_dict(include_mask=include_masks) for d in self.detections],
            "total_calories": self.total_calories,
            "total_nutrition": self.total_nutrition.to_dict(),
            "processing_time_ms": self.processing_time_ms,
        }
        if self.message is not None:
            payload["message"] = self.message
        return payload


__all__ = [
    "BoundingBox",
    "CandidateDetection",
    "Detection",
    "FoodReference",
    "InferenceResult",
    "NutritionEstimate",
    "SegmentationMask",
    "SurvivingDetection",
    "is_valid_box",
]

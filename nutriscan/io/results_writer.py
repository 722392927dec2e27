"""Utility for writing scan results to disk.

This module centralizes all filesystem operations related to saving scan
outputs so the CLI can remain focused on orchestration.
"""

from __future__ import annotations

import csv
import json
import warnings
from pathlib import Path
from typing import Dict, List

from PIL import Image, ImageDraw

from ..core.types import Detection, InferenceResult
from ..engine.preprocessing import ImageInput, load_image
from ..nutrition.estimator import EstimateBreakdown


class ResultsWriter:
    """Encapsulates writing scan results and mask artifacts.

    Responsibilities:
      - write per-image JSON payloads
      - append one summary row per image to a CSV
      - save per-detection mask PNGs and a mask overlay

    File layout is deterministic: ``<results_dir>/<stem>.json``,
    ``summary.csv`` and ``masks/<stem>_<index>_<class>.png``.
    """

    summary_fields = [
        "image",
        "detections",
        "total_calories",
        "total_weight_grams",
        "protein",
        "carbs",
        "fat",
        "fiber",
        "processing_time_ms",
        "message",
    ]

    def __init__(self, results_dir: Path | str, save_masks: bool = False) -> None:
        self.results_dir = Path(results_dir)
        self.save_masks = bool(save_masks)
        self.results_dir.mkdir(parents=True, exist_ok=True)

    # -----------------------------
    # JSON / CSV result writers
    # -----------------------------
    def write_result(
        self,
        image_path: Path,
        result: InferenceResult,
        breakdowns: List[EstimateBreakdown] | None = None,
    ) -> Path:
        """Write the per-image JSON payload and return its path."""
        payload: Dict[str, object] = {"image": str(image_path), **result.to_dict()}
        if breakdowns:
            payload["breakdown"] = [b.to_dict() for b in breakdowns]
        output_path = self.results_dir / f"{image_path.stem}.json"
        try:
            with output_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
        except OSError as exc:
            warnings.warn(f"Failed to write results JSON for {image_path}: {exc}")
        return output_path

    def append_summary(self, image_path: Path, result: InferenceResult) -> None:
        """Append one totals row for ``image_path`` to ``summary.csv``."""
        csv_path = self.results_dir / "summary.csv"
        write_headers = not csv_path.exists()
        totals = result.total_nutrition
        row = {
            "image": image_path.name,
            "detections": len(result.detections),
            "total_calories": round(result.total_calories, 1),
            "total_weight_grams": round(totals.weight_grams, 1),
            "protein": round(totals.protein, 1),
            "carbs": round(totals.carbs, 1),
            "fat": round(totals.fat, 1),
            "fiber": round(totals.fiber, 1),
            "processing_time_ms": round(result.processing_time_ms, 1),
            "message": result.message or "",
        }
        try:
            with csv_path.open("a", newline="", encoding="utf-8") as csvfile:
                writer = csv.DictWriter(csvfile, fieldnames=self.summary_fields)
                if write_headers:
                    writer.writeheader()
                writer.writerow(row)
        except OSError as exc:
            warnings.warn(f"Failed to write summary.csv: {exc}")

    # -----------------------------
    # Mask writers
    # -----------------------------
    def save_mask_images(self, image_path: Path, detections: List[Detection]) -> List[Path]:
        """Save each detection mask as an 8-bit PNG (255 = food)."""
        if not self.save_masks or not detections:
            return []
        masks_dir = self.results_dir / "masks"
        masks_dir.mkdir(parents=True, exist_ok=True)

        written: List[Path] = []
        for index, detection in enumerate(detections):
            grid = detection.mask.as_grid() * 255
            out = masks_dir / f"{image_path.stem}_{index}_{detection.class_id}.png"
            try:
                Image.fromarray(grid.astype("uint8")).save(out)
                written.append(out)
            except OSError as exc:
                warnings.warn(f"Mask save failed for {out}: {exc}")
        return written

    def save_overlay(self, image: ImageInput, image_path: Path, detections: List[Detection]) -> Path | None:
        """Tint mask pixels and draw boxes on the frame at mask resolution."""
        if not self.save_masks or not detections:
            return None
        overlays_dir = self.results_dir / "overlays"
        overlays_dir.mkdir(parents=True, exist_ok=True)

        size = detections[0].mask.size
        base = load_image(image).convert("RGBA").resize((size, size))
        overlay = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        tint = Image.new("RGBA", (size, size), (255, 0, 0, 80))
        draw = ImageDraw.Draw(overlay, "RGBA")

        for detection in detections:
            alpha = Image.fromarray((detection.mask.as_grid() * 255).astype("uint8"))
            overlay.paste(tint, mask=alpha)
            left, top, right, bottom = (v * size for v in detection.box.to_corners())
            draw.rectangle([(left, top), (right, bottom)], outline=(255, 0, 0, 220), width=3)
            draw.text(
                (left + 3, max(0.0, top - 14)),
                f"{detection.label} {detection.confidence:.2f}",
                fill=(255, 255, 255, 255),
            )

        out = overlays_dir / f"{image_path.stem}_overlay.png"
        try:
            Image.alpha_composite(base, overlay).convert("RGB").save(out)
        except OSError as exc:
            warnings.warn(f"Overlay save failed for {out}: {exc}")
            return None
        return out


__all__ = ["ResultsWriter"]

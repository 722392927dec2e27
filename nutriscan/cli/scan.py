"""Batch scan command: run the model and the nutrition pipeline over images."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Set

from PIL import UnidentifiedImageError

from nutriscan.core.errors import NutriScanError
from nutriscan.core.pipeline import NutriScanPipeline
from nutriscan.core.types import Detection, InferenceResult
from nutriscan.engine.backends import create_backend_from_config
from nutriscan.engine.session import InferenceEngine
from nutriscan.io.results_writer import ResultsWriter
from nutriscan.nutrition.estimator import EstimateBreakdown
from nutriscan.utils.config import PipelineSettings, resolve_path_relative_to_project

logger = logging.getLogger(__name__)


def iter_image_paths(directory: Path, extensions: Set[str]) -> Iterable[Path]:
    """Iterate over image files in a directory (or yield a single image path)."""
    if directory.is_file():
        yield directory
        return
    for path in sorted(directory.rglob("*")):
        if path.is_file() and path.suffix.lower() in extensions:
            yield path


def format_detection_row(index: int, detection: Detection) -> str:
    """Format a single detection for console output."""
    label = f"{detection.icon} {detection.label}".strip()
    n = detection.nutrition
    return (
        f"{index:>2} | {label:<24} | {detection.confidence:>6.2f} | "
        f"{n.weight_grams:>7.1f}g | {n.calories:>7.1f} kcal"
    )


def format_totals(result: InferenceResult) -> List[str]:
    totals = result.total_nutrition
    return [
        f"Totals: {totals.weight_grams:.1f}g | {result.total_calories:.1f} kcal",
        f"Macros: P {totals.protein:.1f}g | C {totals.carbs:.1f}g | "
        f"F {totals.fat:.1f}g | Fiber {totals.fiber:.1f}g",
        f"Processed in {result.processing_time_ms:.0f} ms",
    ]


def build_pipeline_from_config(cfg: dict) -> NutriScanPipeline:
    """Build the scan pipeline (with a lazily loaded engine) from a config dict."""
    settings = PipelineSettings.from_config(cfg)
    engine_cfg = dict(cfg.get("engine", {}))
    model_path = resolve_path_relative_to_project(engine_cfg.get("model_path"))
    if model_path is not None:
        engine_cfg["model_path"] = str(model_path)
    engine = InferenceEngine(
        lambda: create_backend_from_config(engine_cfg),
        input_resolution=settings.input_resolution,
    )
    return NutriScanPipeline(settings=settings, engine=engine)


def explain(pipeline: NutriScanPipeline, result: InferenceResult) -> List[EstimateBreakdown]:
    """Recompute the physical breakdown of every detection in ``result``."""
    return [
        pipeline.estimator.describe(
            d.mask, pipeline.reference_table.lookup(d.class_id), d.nutrition
        )
        for d in result.detections
    ]


def _scan_image(
    pipeline: NutriScanPipeline,
    writer: ResultsWriter,
    image_path: Path,
    show_breakdown: bool,
) -> bool:
    """Scan one image, write its outputs and print its table; False on failure."""
    print(f"\n=== {image_path} ===")
    try:
        result = pipeline.analyze_image(image_path)
    except UnidentifiedImageError as exc:
        print(f"Skipped file (not a valid image): {exc}")
        return False
    except NutriScanError as exc:
        print(f"Scan failed: {exc}")
        logger.debug("scan failure for %s", image_path, exc_info=True)
        return False

    breakdowns = explain(pipeline, result) if show_breakdown else None
    writer.write_result(image_path, result, breakdowns)
    writer.append_summary(image_path, result)
    writer.save_mask_images(image_path, list(result.detections))
    writer.save_overlay(image_path, image_path, list(result.detections))

    if not result.detections:
        print(result.message)
        return True

    print(" # | Food                     |  Conf. |   Weight | Calories")
    print("-- + ------------------------ + ------ + -------- + ------------")
    for idx, detection in enumerate(result.detections, start=1):
        print(format_detection_row(idx, detection))
    if breakdowns:
        print("\nBreakdown:")
        for b in breakdowns:
            print(
                f"- {b.food}: {b.pixel_count} px -> {b.area_cm2:.1f} cm² x "
                f"{b.thickness_cm} cm = {b.volume_cm3:.1f} cm³ x {b.density} g/cm³"
            )
    print()
    for line in format_totals(result):
        print(line)
    return True


def run_scan(target: Path, cfg: dict, show_breakdown: bool = False) -> int:
    """Scan every image under ``target``; return the number of failed images."""
    io_cfg = cfg.get("io", {})
    extensions = {str(e).lower() for e in io_cfg.get("image_extensions", [])}
    writer = ResultsWriter(
        io_cfg.get("results_dir", "results"),
        save_masks=bool(io_cfg.get("save_masks", False)),
    )
    pipeline = build_pipeline_from_config(cfg)

    image_paths = list(iter_image_paths(target, extensions))
    if not image_paths:
        print(f"No images found in {target}")
        return 0

    try:
        pipeline.engine.initialize()
    except NutriScanError as exc:
        print(f"Model unavailable: {exc}")
        return len(image_paths)

    failures = 0
    try:
        for image_path in image_paths:
            if not _scan_image(pipeline, writer, image_path, show_breakdown):
                failures += 1
    finally:
        pipeline.engine.close()
    return failures


__all__ = [
    "build_pipeline_from_config",
    "explain",
    "format_detection_row",
    "format_totals",
    "iter_image_paths",
    "run_scan",
]

"""CLI entry point for scanning meal photos into per-item nutrition estimates."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from nutriscan.cli import run_scan
from nutriscan.core.errors import ConfigurationError
from nutriscan.utils.config import load_config


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Estimate weight, calories and macros of the food in meal photos."
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default="data",
        help="Image file or directory containing images to scan",
    )
    parser.add_argument(
        "--config", dest="config", default=None,
        help="Path to JSON/YAML config file"
    )
    parser.add_argument(
        "--model", default=None,
        help="Path to the segmentation model (.onnx or TorchScript .pt)"
    )
    parser.add_argument(
        "--confidence-threshold",
        type=float,
        default=None,
        help="Minimum class score for a detection",
    )
    parser.add_argument(
        "--iou-threshold",
        type=float,
        default=None,
        help="Overlap above which the weaker detection is suppressed",
    )
    parser.add_argument(
        "--frame-width-cm",
        type=float,
        default=None,
        help="Real-world width covered by the whole frame (calibration)",
    )
    parser.add_argument(
        "--results-dir",
        default=None,
        help="Where to write JSON outputs (overrides config)",
    )
    parser.add_argument(
        "--save-masks",
        action="store_true",
        help="Save per-detection mask PNGs and an overlay",
    )
    parser.add_argument(
        "--explain",
        action="store_true",
        help="Print the area/volume/weight breakdown per detection",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def apply_overrides(cfg: dict, args: argparse.Namespace) -> dict:
    """Apply command line overrides to configuration."""
    cfg = json.loads(json.dumps(cfg))  # deep copy

    if args.model is not None:
        cfg.setdefault("engine", {})["model_path"] = str(args.model)
    if args.confidence_threshold is not None:
        cfg.setdefault("thresholds", {})["confidence"] = float(args.confidence_threshold)
    if args.iou_threshold is not None:
        cfg.setdefault("thresholds", {})["iou"] = float(args.iou_threshold)
    if args.frame_width_cm is not None:
        calibration = cfg.setdefault("calibration", {})
        calibration["frame_width_cm"] = float(args.frame_width_cm)
        calibration["pixel_to_cm_ratio"] = None
    if args.results_dir is not None:
        cfg.setdefault("io", {})["results_dir"] = str(args.results_dir)
    if args.save_masks:
        cfg.setdefault("io", {})["save_masks"] = True

    return cfg


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    target = Path(args.directory)
    if not target.exists():
        print(f"Directory not found: {target}")
        return 1

    cfg = apply_overrides(load_config(args.config), args)
    try:
        failures = run_scan(target, cfg, show_breakdown=args.explain)
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}")
        return 2
    return 1 if failures else 0


def cli() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()

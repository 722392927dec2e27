"""Scanner configuration: raw dict defaults, file loading and validated settings.

The raw config is a nested dict (JSON or YAML on disk) whose defaults describe
the shipped 32-class model. ``PipelineSettings`` turns it into the checked,
immutable values the pipeline is built from.
"""

from __future__ import annotations

import copy
import json
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

import yaml

from ..core.errors import ConfigurationError

DEFAULTS: Dict[str, Any] = {
    "model": {
        "input_resolution": 640,
        "num_classes": 32,
        "num_mask_coefficients": 32,
    },
    "thresholds": {
        "confidence": 0.25,
        "iou": 0.45,
        "mask": 0.5,
    },
    "calibration": {
        # Real-world width covered by one full frame
        "frame_width_cm": 30.0,
        "pixel_to_cm_ratio": None,
    },
    "confusion_groups": [
        [3, 4, 5, 23],  # chicken, pork, steak, fried meat
        [6, 7],  # fish, shrimp
        [10, 11],  # noodles, pasta
        [19, 20, 24],  # spinach, cabbage, salad
    ],
    "nutrition": {
        "table_path": None,  # packaged table when unset
    },
    "engine": {
        "type": None,  # 'onnx' or 'torchscript'; inferred from model_path when unset
        "model_path": "models/best.onnx",
        "device": None,
    },
    "io": {
        "image_extensions": [".jpg", ".jpeg", ".png", ".bmp", ".webp"],
        "results_dir": "results",
        "save_masks": False,
    },
}


def _merge_into(target: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively overlay ``overrides`` onto ``target``; nested sections merge key by key."""
    for key, value in overrides.items():
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, dict):
            _merge_into(current, value)
        else:
            target[key] = value
    return target


def _read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _read_yaml(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


_READERS: Dict[str, Callable[[Path], Any]] = {
    ".json": _read_json,
    ".yaml": _read_yaml,
    ".yml": _read_yaml,
}

CONFIG_FILENAMES = ("config.json", "config.yaml", "config.yml")


def _find_config_file(path: Optional[str | Path]) -> Optional[Path]:
    search = [Path(path)] if path is not None else []
    search.extend(Path(name) for name in CONFIG_FILENAMES)
    for candidate in search:
        if candidate.exists():
            return candidate
    return None


def load_config(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Return ``DEFAULTS`` overlaid with the scanner config file, if one is found.

    ``path`` is tried first, then ``config.json``, ``config.yaml`` and
    ``config.yml`` in the working directory. A file that cannot be read or
    parsed produces a warning and the defaults are used unchanged.
    """
    config = copy.deepcopy(DEFAULTS)
    source = _find_config_file(path)
    if source is None:
        return config

    reader = _READERS.get(source.suffix.lower())
    if reader is None:
        warnings.warn(f"Unsupported config format: {source.suffix}. Using defaults.")
        return config

    try:
        data = reader(source)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        warnings.warn(f"Failed to load config from {source}: {exc}. Using defaults.")
        return config

    if not isinstance(data, Mapping):
        warnings.warn(f"Config at {source} is not a mapping. Using defaults.")
        return config
    return _merge_into(config, data)


def resolve_path_relative_to_project(path_str: str | None) -> Optional[Path]:
    """Locate ``path_str`` as given, under the working directory or under the package.

    An unresolvable path is returned unchanged so the caller can report it.
    """
    if not path_str:
        return None
    path = Path(path_str)
    for base in (None, Path.cwd(), Path(__file__).resolve().parent.parent):
        candidate = path if base is None else base / path
        if candidate.exists():
            return candidate
    return path


def _check_fraction(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")
    return value


def _check_positive_int(name: str, value: Any) -> int:
    number = int(value)
    if number <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value}")
    return number


@dataclass(frozen=True)
class PipelineSettings:
    """Validated constants the core needs; must match the trained model."""

    input_resolution: int = 640
    num_classes: int = 32
    num_mask_coefficients: int = 32
    confidence_threshold: float = 0.25
    iou_threshold: float = 0.45
    mask_threshold: float = 0.5
    pixel_to_cm_ratio: float = 30.0 / 640
    confusion_groups: Tuple[FrozenSet[int], ...] = field(
        default_factory=lambda: tuple(
            frozenset(group) for group in DEFAULTS["confusion_groups"]
        )
    )
    reference_table_path: Optional[str] = None

    def __post_init__(self) -> None:
        _check_positive_int("input_resolution", self.input_resolution)
        _check_positive_int("num_classes", self.num_classes)
        _check_positive_int("num_mask_coefficients", self.num_mask_coefficients)
        _check_fraction("confidence_threshold", self.confidence_threshold)
        _check_fraction("iou_threshold", self.iou_threshold)
        _check_fraction("mask_threshold", self.mask_threshold)
        if not self.pixel_to_cm_ratio > 0:
            raise ConfigurationError(
                f"pixel_to_cm_ratio must be positive, got {self.pixel_to_cm_ratio}"
            )
        groups = tuple(frozenset(int(c) for c in group) for group in self.confusion_groups)
        object.__setattr__(self, "confusion_groups", groups)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "PipelineSettings":
        """Build settings from a config dict as returned by :func:`load_config`."""
        model_cfg = cfg.get("model", {})
        thresholds_cfg = cfg.get("thresholds", {})
        calibration_cfg = cfg.get("calibration", {})
        nutrition_cfg = cfg.get("nutrition", {})

        input_resolution = _check_positive_int(
            "input_resolution", model_cfg.get("input_resolution", 640)
        )
        ratio = calibration_cfg.get("pixel_to_cm_ratio")
        if ratio is None:
            frame_width_cm = float(calibration_cfg.get("frame_width_cm", 30.0))
            ratio = frame_width_cm / input_resolution

        groups = cfg.get("confusion_groups", DEFAULTS["confusion_groups"]) or []

        return cls(
            input_resolution=input_resolution,
            num_classes=int(model_cfg.get("num_classes", 32)),
            num_mask_coefficients=int(model_cfg.get("num_mask_coefficients", 32)),
            confidence_threshold=float(thresholds_cfg.get("confidence", 0.25)),
            iou_threshold=float(thresholds_cfg.get("iou", 0.45)),
            mask_threshold=float(thresholds_cfg.get("mask", 0.5)),
            pixel_to_cm_ratio=float(ratio),
            confusion_groups=tuple(frozenset(group) for group in groups),
            reference_table_path=nutrition_cfg.get("table_path") or None,
        )


__all__ = [
    "DEFAULTS",
    "PipelineSettings",
    "load_config",
    "resolve_path_relative_to_project",
]

"""Image loading and conversion to the model's NCHW float input."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

ImageInput = Union[str, Path, Image.Image]


def load_image(image_input: ImageInput) -> Image.Image:
    if isinstance(image_input, Image.Image):
        return image_input
    path = Path(image_input)
    if not path.exists():
        raise FileNotFoundError(path)
    try:
        return Image.open(path)
    except UnidentifiedImageError as exc:
        raise UnidentifiedImageError(f"Unsupported image file: {path}") from exc


def preprocess_image(image_input: ImageInput, input_resolution: int = 640) -> np.ndarray:
    """Resize to a square ``input_resolution`` frame and return ``[1, 3, N, N]`` in [0, 1].

    The frame is stretched rather than letterboxed, matching how the
    calibration constant was measured.
    """
    image = load_image(image_input).convert("RGB")
    if image.size != (input_resolution, input_resolution):
        image = image.resize((input_resolution, input_resolution), Image.BILINEAR)

    array = np.asarray(image, dtype=np.float32) / 255.0  # HWC
    tensor = np.ascontiguousarray(array.transpose(2, 0, 1)[np.newaxis, ...])
    logger.debug(
        "preprocess: shape=%s min=%.4f max=%.4f mean=%.4f",
        tensor.shape,
        float(tensor.min()),
        float(tensor.max()),
        float(tensor.mean()),
    )
    return tensor


__all__ = ["ImageInput", "load_image", "preprocess_image"]

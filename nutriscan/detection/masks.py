"""Instance mask reconstruction from YOLOv8-seg prototypes."""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ..core.errors import ConfigurationError, MissingTensorError
from ..core.types import SegmentationMask

logger = logging.getLogger(__name__)


def _sigmoid(values: np.ndarray) -> np.ndarray:
    # Split on sign so exp() never overflows
    out = np.empty_like(values)
    positive = values >= 0
    out[positive] = 1.0 / (1.0 + np.exp(-values[positive]))
    exp_neg = np.exp(values[~positive])
    out[~positive] = exp_neg / (1.0 + exp_neg)
    return out


class MaskReconstructor:
    """Combines mask coefficients with shared prototypes into a binary mask."""

    def __init__(self, output_size: int = 640, mask_threshold: float = 0.5) -> None:
        self.output_size = int(output_size)
        self.mask_threshold = float(mask_threshold)

    def prototype_matrix(self, prototypes: Sequence[float] | np.ndarray, dims: Sequence[int]) -> np.ndarray:
        """Validate ``[1, K, H, W]`` prototypes and return them as ``(K, H, W)`` float64."""
        if prototypes is None or dims is None:
            raise MissingTensorError("prototype tensor or its dimensions are missing")
        dims = [int(d) for d in dims]
        if len(dims) != 4 or dims[0] != 1:
            raise ConfigurationError(f"prototype tensor dims must be [1, K, H, W], got {dims}")
        _, channels, proto_h, proto_w = dims
        data = np.asarray(prototypes, dtype=np.float64).reshape(-1)
        expected = channels * proto_h * proto_w
        if data.size != expected:
            raise ConfigurationError(
                f"prototype tensor holds {data.size} values, dims {dims} require {expected}"
            )
        return data.reshape(channels, proto_h, proto_w)

    def soft_mask(self, coefficients: Sequence[float] | np.ndarray, protos: np.ndarray) -> np.ndarray:
        """Low-resolution sigmoid activation, shape ``(protoH, protoW)``."""
        coeffs = np.asarray(coefficients, dtype=np.float64).reshape(-1)
        channels, proto_h, proto_w = protos.shape
        if coeffs.size != channels:
            raise ConfigurationError(
                f"detection has {coeffs.size} mask coefficients, prototypes have {channels} channels"
            )
        logits = coeffs @ protos.reshape(channels, proto_h * proto_w)
        return _sigmoid(logits).reshape(proto_h, proto_w)

    def upsample_and_binarize(self, soft: np.ndarray) -> np.ndarray:
        """Nearest-neighbour resize to ``output_size`` squared, then threshold."""
        proto_h, proto_w = soft.shape
        dst = np.arange(self.output_size)
        src_rows = (dst * proto_h) // self.output_size
        src_cols = (dst * proto_w) // self.output_size
        upsampled = soft[np.ix_(src_rows, src_cols)]
        return (upsampled >= self.mask_threshold).astype(np.uint8)

    def reconstruct(
        self,
        coefficients: Sequence[float] | np.ndarray,
        prototypes: Sequence[float] | np.ndarray,
        dims: Sequence[int],
    ) -> SegmentationMask:
        """Build the full-resolution binary mask for one detection."""
        protos = self.prototype_matrix(prototypes, dims)
        return self.reconstruct_from_matrix(coefficients, protos)

    def reconstruct_from_matrix(
        self, coefficients: Sequence[float] | np.ndarray, protos: np.ndarray
    ) -> SegmentationMask:
        """Like :meth:`reconstruct` for prototypes already validated by :meth:`prototype_matrix`."""
        soft = self.soft_mask(coefficients, protos)
        binary = self.upsample_and_binarize(soft)
        mask = SegmentationMask(values=binary.reshape(-1), size=self.output_size)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "mask: soft min=%.4f max=%.4f mean=%.4f -> %d pixels at %dx%d",
                float(soft.min()),
                float(soft.max()),
                float(soft.mean()),
                mask.pixel_count,
                self.output_size,
                self.output_size,
            )
        return mask


__all__ = ["MaskReconstructor"]

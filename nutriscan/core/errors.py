"""Error taxonomy shared by every stage of the scan pipeline."""

from __future__ import annotations


class NutriScanError(Exception):
    """Base class for all errors surfaced to pipeline callers."""

    kind = "error"

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.kind}] {message}" if message else f"[{self.kind}]"


class ConfigurationError(NutriScanError):
    """Tensor layout or settings disagree with the configured model constants."""

    kind = "configuration"


class MissingTensorError(ConfigurationError):
    """One of the two model output tensors was not supplied."""

    kind = "missing-tensor"


class EngineError(NutriScanError):
    """The inference engine could not be loaded or failed to run."""

    kind = "engine"


__all__ = [
    "NutriScanError",
    "ConfigurationError",
    "MissingTensorError",
    "EngineError",
]

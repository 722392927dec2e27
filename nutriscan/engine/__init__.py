"""Inference-engine collaborator: image preprocessing and model runtimes."""

from .backends import (
    EngineBackend,
    OnnxRuntimeBackend,
    RawOutputs,
    TorchScriptBackend,
    create_backend_from_config,
)
from .preprocessing import ImageInput, load_image, preprocess_image
from .session import InferenceEngine

__all__ = [
    "EngineBackend",
    "ImageInput",
    "InferenceEngine",
    "OnnxRuntimeBackend",
    "RawOutputs",
    "TorchScriptBackend",
    "create_backend_from_config",
    "load_image",
    "preprocess_image",
]

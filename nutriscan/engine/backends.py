"""Model runtimes that produce the two YOLOv8-seg output tensors.

Supports loading:
- ONNX models (via onnxruntime), the format the app ships
- TorchScript exports (via torch)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np

from ..core.errors import EngineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawOutputs:
    """Flat detection and prototype tensors with their declared dimensions."""

    detection_tensor: np.ndarray
    detection_dims: Tuple[int, ...]
    prototype_tensor: np.ndarray
    prototype_dims: Tuple[int, ...]


def _to_raw_outputs(detection: Any, prototypes: Any) -> RawOutputs:
    detection = np.asarray(detection, dtype=np.float32)
    prototypes = np.asarray(prototypes, dtype=np.float32)
    return RawOutputs(
        detection_tensor=detection.reshape(-1),
        detection_dims=tuple(int(d) for d in detection.shape),
        prototype_tensor=prototypes.reshape(-1),
        prototype_dims=tuple(int(d) for d in prototypes.shape),
    )


@runtime_checkable
class EngineBackend(Protocol):
    """Anything that maps an NCHW image tensor to the two model outputs."""

    def run(self, tensor: np.ndarray) -> RawOutputs:
        ...

    def close(self) -> None:
        ...


class OnnxRuntimeBackend:
    """Backend running an exported ``.onnx`` YOLOv8-seg model.

    Example:
        backend = OnnxRuntimeBackend("models/best.onnx")
        outputs = backend.run(preprocess_image("plate.jpg"))
    """

    input_name = "images"
    output_names = ("output0", "output1")

    def __init__(self, model_path: str | Path, providers: Sequence[str] | None = None) -> None:
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise EngineError(f"Model not found: {self.model_path}")
        try:
            import onnxruntime as ort
        except ImportError as exc:
            raise EngineError(
                "onnxruntime not installed. Install with: pip install onnxruntime"
            ) from exc

        try:
            self._session = ort.InferenceSession(
                str(self.model_path),
                providers=list(providers or ["CPUExecutionProvider"]),
            )
        except Exception as exc:
            raise EngineError(f"Failed to load ONNX model {self.model_path}: {exc}") from exc

        self._input = self._pick_input_name()
        self._outputs = self._pick_output_names()
        logger.info(
            "onnx: loaded %s (input=%s, outputs=%s)", self.model_path, self._input, self._outputs
        )

    def _pick_input_name(self) -> str:
        names = [i.name for i in self._session.get_inputs()]
        return self.input_name if self.input_name in names else names[0]

    def _pick_output_names(self) -> List[str]:
        names = [o.name for o in self._session.get_outputs()]
        if all(name in names for name in self.output_names):
            return list(self.output_names)
        if len(names) < 2:
            raise EngineError(f"Model exposes {len(names)} outputs; a segmentation model needs 2")
        return names[:2]

    def run(self, tensor: np.ndarray) -> RawOutputs:
        try:
            detection, prototypes = self._session.run(self._outputs, {self._input: tensor})
        except Exception as exc:
            raise EngineError(f"ONNX inference failed: {exc}") from exc
        return _to_raw_outputs(detection, prototypes)

    def close(self) -> None:
        self._session = None


class TorchScriptBackend:
    """Backend running a TorchScript export of the segmentation model."""

    def __init__(self, model_path: str | Path, device: str | None = None) -> None:
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise EngineError(f"Model not found: {self.model_path}")
        try:
            import torch
        except ImportError as exc:
            raise EngineError("torch not installed. Install with: pip install torch") from exc

        self._torch = torch
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        try:
            self._model = torch.jit.load(str(self.model_path), map_location=self.device)
            self._model.eval()
        except Exception as exc:
            raise EngineError(f"Failed to load TorchScript model {self.model_path}: {exc}") from exc
        logger.info("torchscript: loaded %s on %s", self.model_path, self.device)

    @staticmethod
    def _flatten(outputs: Any) -> List[Any]:
        if isinstance(outputs, (list, tuple)):
            flat: List[Any] = []
            for item in outputs:
                flat.extend(TorchScriptBackend._flatten(item))
            return flat
        return [outputs]

    def run(self, tensor: np.ndarray) -> RawOutputs:
        torch = self._torch
        try:
            with torch.inference_mode():
                outputs = self._model(torch.from_numpy(tensor).to(self.device))
        except Exception as exc:
            raise EngineError(f"TorchScript inference failed: {exc}") from exc

        # The export returns the detection tensor first; prototypes are the 4-D output
        tensors = self._flatten(outputs)
        detection = tensors[0]
        prototypes = next((t for t in tensors[1:] if t.ndim == 4), None)
        if prototypes is None:
            raise EngineError("TorchScript model did not return a 4-D prototype tensor")
        return _to_raw_outputs(detection.cpu().numpy(), prototypes.cpu().numpy())

    def close(self) -> None:
        self._model = None


def create_backend_from_config(config: dict) -> EngineBackend:
    """Factory function to create a backend from the ``engine`` config section.

    Args:
        config: Engine configuration dict (``type``, ``model_path``, ``device``)

    Returns:
        Loaded backend instance
    """
    model_path = Path(str(config.get("model_path") or "models/best.onnx"))
    backend_type = config.get("type")
    if not backend_type:
        backend_type = "torchscript" if model_path.suffix in {".pt", ".torchscript"} else "onnx"

    if backend_type == "onnx":
        return OnnxRuntimeBackend(model_path=model_path)
    if backend_type == "torchscript":
        return TorchScriptBackend(model_path=model_path, device=config.get("device"))
    raise EngineError(f"Unknown engine backend type: {backend_type!r}")


__all__ = [
    "EngineBackend",
    "OnnxRuntimeBackend",
    "RawOutputs",
    "TorchScriptBackend",
    "create_backend_from_config",
]

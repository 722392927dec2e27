"""Lazily initialised, process-wide handle on the inference backend."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..core.errors import EngineError
from .backends import EngineBackend, RawOutputs
from .preprocessing import ImageInput, preprocess_image

logger = logging.getLogger(__name__)


class InferenceEngine:
    """Loads the backend on first use; concurrent first callers wait on one lock.

    A failed load leaves the engine uninitialised so a later call can retry.
    """

    def __init__(
        self,
        backend_factory: Callable[[], EngineBackend],
        input_resolution: int = 640,
    ) -> None:
        self._backend_factory = backend_factory
        self.input_resolution = int(input_resolution)
        self._backend: Optional[EngineBackend] = None
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    def initialize(self) -> EngineBackend:
        backend = self._backend
        if backend is not None:
            return backend
        with self._lock:
            if self._backend is None:
                logger.info("engine: initialising backend")
                try:
                    self._backend = self._backend_factory()
                except EngineError:
                    raise
                except Exception as exc:
                    raise EngineError(f"Backend initialisation failed: {exc}") from exc
            return self._backend

    def infer(self, image: ImageInput) -> RawOutputs:
        """Run the model on one image and return its raw output tensors."""
        backend = self.initialize()
        tensor = preprocess_image(image, self.input_resolution)
        return backend.run(tensor)

    def close(self) -> None:
        with self._lock:
            if self._backend is not None:
                self._backend.close()
                self._backend = None


__all__ = ["InferenceEngine"]

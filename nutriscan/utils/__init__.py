"""Shared utilities and configuration handling."""

from .config import (
    PipelineSettings,
    load_config,
    resolve_path_relative_to_project,
)

__all__ = ["PipelineSettings", "load_config", "resolve_path_relative_to_project"]

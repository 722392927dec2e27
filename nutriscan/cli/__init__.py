"""CLI commands for the nutrition scanner."""

from .scan import build_pipeline_from_config, run_scan

__all__ = ["build_pipeline_from_config", "run_scan"]

"""Writers for scan results and mask artifacts."""

from .results_writer import ResultsWriter

__all__ = ["ResultsWriter"]

"""Domain models for the student band mover.

This package contains the domain model classes shared by the analyzer, the
executor, the stores and the CLI.
"""

from .bands import DEFAULT_BANDS, DEFAULT_EXCLUDED_TITLES, AgeBand, BandConfiguration
from .moves import (
    AppliedMove,
    ExecutionRecord,
    ExecutionResult,
    MoveFailure,
    PartialExecutionFailure,
    ProposedMove,
)
from .worksheet import HeaderInfo, SheetInfo, WorksheetHandle

__all__ = [
    # Configuration models
    "AgeBand",
    "BandConfiguration",
    "DEFAULT_BANDS",
    "DEFAULT_EXCLUDED_TITLES",
    # Worksheet models
    "HeaderInfo",
    "SheetInfo",
    "WorksheetHandle",
    # Move models
    "AppliedMove",
    "ExecutionRecord",
    "ExecutionResult",
    "MoveFailure",
    "PartialExecutionFailure",
    "ProposedMove",
]

"""Tabular store implementations (in-memory, local workbook, Google Sheets)."""

from .access import (
    MAX_BATCH_REQUESTS,
    DeleteRows,
    MutationRequest,
    RemoteAccessError,
    TabularSheetAccess,
    UpdateCell,
    UpdateRow,
    chunked,
)
from .memory import InMemorySheetAccess

__all__ = [
    "MAX_BATCH_REQUESTS",
    "DeleteRows",
    "InMemorySheetAccess",
    "MutationRequest",
    "RemoteAccessError",
    "TabularSheetAccess",
    "UpdateCell",
    "UpdateRow",
    "chunked",
]

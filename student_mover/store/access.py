from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from student_mover.models.worksheet import Grid, SheetInfo

"""Tabular store interface consumed by the move engine.

A store exposes worksheets of one spreadsheet as rectangular string grids and
accepts a small set of mutation requests. Implementations:

- InMemorySheetAccess (tests, dry runs)
- WorkbookSheetAccess (local .xlsx via pandas)
- GoogleSheetAccess (Google Sheets via gspread)

Every implementation translates its own failures to RemoteAccessError. The
engine never swallows it.
"""

__all__ = [
    "MAX_BATCH_REQUESTS",
    "RemoteAccessError",
    "DeleteRows",
    "UpdateCell",
    "UpdateRow",
    "MutationRequest",
    "TabularSheetAccess",
    "chunked",
]

# 1 回の batch 呼び出しに含めるリクエスト上限
MAX_BATCH_REQUESTS = 100


class RemoteAccessError(Exception):
    """Raised when the tabular store rejects a read or write."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def describe(self) -> str:
        """User-facing explanation keyed by the HTTP-like status code."""
        if self.status_code == 404:
            return "File not found. Please check the Spreadsheet ID."
        if self.status_code == 403:
            return 'Permission denied. Ensure the account has "Editor" access to this Sheet.'
        if self.status_code == 401:
            return "Authentication expired. Please log in again."
        return str(self) or "An unknown error occurred with the spreadsheet store."


@dataclass(frozen=True)
class DeleteRows:
    """Delete rows [start_index, end_index) of one worksheet."""
    worksheet_id: int
    start_index: int
    end_index: int


@dataclass(frozen=True)
class UpdateCell:
    worksheet_id: int
    row_index: int
    column_index: int
    value: str


@dataclass(frozen=True)
class UpdateRow:
    """Overwrite the cells of one row starting at column 0."""
    worksheet_id: int
    row_index: int
    values: tuple[str, ...]


MutationRequest = DeleteRows | UpdateCell | UpdateRow


class TabularSheetAccess(ABC):
    """Read/write access to the worksheets of a spreadsheet."""

    @abstractmethod
    def list_worksheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        """Return the worksheets in display order."""
        ...

    @abstractmethod
    def read_grid(self, spreadsheet_id: str, worksheet_title: str) -> Grid:
        """Return the worksheet values as rows of strings (ragged rows allowed)."""
        ...

    @abstractmethod
    def append_row(self, spreadsheet_id: str, worksheet_title: str, row: Sequence[str]) -> None:
        ...

    @abstractmethod
    def batch_mutate(self, spreadsheet_id: str, requests: Sequence[MutationRequest]) -> None:
        """Apply requests in order as one call. Callers send at most MAX_BATCH_REQUESTS."""
        ...


def chunked(requests: Sequence[MutationRequest], size: int = MAX_BATCH_REQUESTS) -> Iterator[list[MutationRequest]]:
    """Split requests into batches of at most ``size`` (capped at MAX_BATCH_REQUESTS)."""
    size = max(1, min(size, MAX_BATCH_REQUESTS))
    for start in range(0, len(requests), size):
        yield list(requests[start:start + size])

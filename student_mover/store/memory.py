from __future__ import annotations

from collections.abc import Sequence
from copy import deepcopy

from student_mover.models.worksheet import Grid, SheetInfo

from .access import DeleteRows, MutationRequest, RemoteAccessError, TabularSheetAccess, UpdateCell, UpdateRow

"""In-memory tabular store.

Holds the worksheets of a single spreadsheet as lists of string rows. Used by
the test-suite, by ``--dry-run`` style inspection and as the working copy of
WorkbookSheetAccess. Every call is recorded in ``calls`` for assertions.
"""

__all__ = [
    "InMemorySheetAccess",
]


class InMemorySheetAccess(TabularSheetAccess):
    def __init__(self, sheets: dict[str, Grid], spreadsheet_id: str = "memory") -> None:
        self.spreadsheet_id = spreadsheet_id
        self._grids: dict[str, Grid] = {}
        self._ids: dict[str, int] = {}
        for index, (title, grid) in enumerate(sheets.items()):
            self._grids[title] = [[("" if v is None else str(v)) for v in row] for row in grid]
            self._ids[title] = index
        # (method, args) 記録
        self.calls: list[tuple[str, object]] = []

    # -- helpers ---------------------------------------------------------
    def _check(self, spreadsheet_id: str) -> None:
        if spreadsheet_id != self.spreadsheet_id:
            raise RemoteAccessError(f"spreadsheet not found: {spreadsheet_id}", status_code=404)

    def _title_for(self, worksheet_id: int) -> str:
        for title, sid in self._ids.items():
            if sid == worksheet_id:
                return title
        raise RemoteAccessError(f"worksheet id not found: {worksheet_id}", status_code=400)

    def _grid(self, title: str) -> Grid:
        try:
            return self._grids[title]
        except KeyError:
            raise RemoteAccessError(f"worksheet not found: {title}", status_code=400) from None

    def snapshot(self) -> dict[str, Grid]:
        """Deep copy of all grids (test helper)."""
        return deepcopy(self._grids)

    # -- TabularSheetAccess ------------------------------------------------
    def list_worksheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        self._check(spreadsheet_id)
        self.calls.append(("list_worksheets", spreadsheet_id))
        return [SheetInfo(sheet_id=self._ids[t], title=t) for t in self._grids]

    def read_grid(self, spreadsheet_id: str, worksheet_title: str) -> Grid:
        self._check(spreadsheet_id)
        self.calls.append(("read_grid", worksheet_title))
        return deepcopy(self._grid(worksheet_title))

    def append_row(self, spreadsheet_id: str, worksheet_title: str, row: Sequence[str]) -> None:
        self._check(spreadsheet_id)
        self.calls.append(("append_row", (worksheet_title, tuple(row))))
        self._grid(worksheet_title).append([str(v) for v in row])

    def batch_mutate(self, spreadsheet_id: str, requests: Sequence[MutationRequest]) -> None:
        self._check(spreadsheet_id)
        self.calls.append(("batch_mutate", list(requests)))
        # 検証を先に行い、途中失敗で半端に適用しない
        for req in requests:
            grid = self._grid(self._title_for(req.worksheet_id))
            if isinstance(req, DeleteRows) and not 0 <= req.start_index < req.end_index <= len(grid):
                raise RemoteAccessError(
                    f"invalid delete range {req.start_index}:{req.end_index} (rows={len(grid)})",
                    status_code=400,
                )
        for req in requests:
            grid = self._grid(self._title_for(req.worksheet_id))
            if isinstance(req, DeleteRows):
                del grid[req.start_index:req.end_index]
            elif isinstance(req, UpdateCell):
                _ensure_size(grid, req.row_index, req.column_index)
                grid[req.row_index][req.column_index] = req.value
            elif isinstance(req, UpdateRow):
                _ensure_size(grid, req.row_index, len(req.values) - 1)
                for col, value in enumerate(req.values):
                    grid[req.row_index][col] = value
            else:  # pragma: no cover
                raise RemoteAccessError(f"unsupported request: {req!r}", status_code=400)

    def batch_calls(self) -> list[list[MutationRequest]]:
        return [args for name, args in self.calls if name == "batch_mutate"]  # type: ignore[misc]


def _ensure_size(grid: Grid, row_index: int, column_index: int) -> None:
    while len(grid) <= row_index:
        grid.append([])
    row = grid[row_index]
    while len(row) <= column_index:
        row.append("")

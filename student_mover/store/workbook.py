from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from student_mover.models.worksheet import Grid

from .access import MutationRequest, RemoteAccessError
from .memory import InMemorySheetAccess

"""Local .xlsx workbook store.

Worksheets are read once with pandas (no header inference, every cell as text)
into an in-memory working copy. Each mutating call is applied to the copy and
the whole workbook is written back immediately, so each call stays atomic from
the engine's point of view.

Cell formatting is not preserved on write (values only). The spreadsheet id of
this store is the workbook path.
"""

__all__ = [
    "WorkbookSheetAccess",
    "read_workbook_grids",
    "write_workbook_grids",
]


def read_workbook_grids(path: Path) -> dict[str, Grid]:
    """Read every worksheet of an Excel file as string grids keyed by title."""
    if not path.exists():
        raise RemoteAccessError(f"workbook not found: {path}", status_code=404)
    try:
        xls = pd.ExcelFile(path)
        grids: dict[str, Grid] = {}
        for name in xls.sheet_names:
            # ヘッダなし・全セル文字列で生読み (空セルは '')
            df = xls.parse(name, header=None, dtype=str, keep_default_na=False)
            grids[str(name)] = [_strip_trailing([str(v) for v in row]) for row in df.values.tolist()]
        return grids
    except RemoteAccessError:
        raise
    except Exception as e:
        raise RemoteAccessError(f"cannot read workbook {path}: {e}") from e


def write_workbook_grids(path: Path, grids: dict[str, Grid]) -> None:
    try:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for title, grid in grids.items():
                df = pd.DataFrame(grid)
                df.to_excel(writer, sheet_name=title, header=False, index=False)
    except Exception as e:
        raise RemoteAccessError(f"cannot write workbook {path}: {e}") from e


def _strip_trailing(row: list[str]) -> list[str]:
    while row and row[-1] == "":
        row.pop()
    return row


class WorkbookSheetAccess(InMemorySheetAccess):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        super().__init__(read_workbook_grids(self.path), spreadsheet_id=str(self.path))

    def append_row(self, spreadsheet_id: str, worksheet_title: str, row: Sequence[str]) -> None:
        super().append_row(spreadsheet_id, worksheet_title, row)
        write_workbook_grids(self.path, self._grids)

    def batch_mutate(self, spreadsheet_id: str, requests: Sequence[MutationRequest]) -> None:
        super().batch_mutate(spreadsheet_id, requests)
        write_workbook_grids(self.path, self._grids)

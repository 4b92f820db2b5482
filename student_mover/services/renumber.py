from __future__ import annotations

import logging
from collections.abc import Sequence

from ..models.worksheet import Grid, WorksheetHandle, cell
from ..store.access import MAX_BATCH_REQUESTS, TabularSheetAccess, UpdateCell, chunked
from .headers import resolve_header

"""Sequence column renumbering.

Column 0 is a dedicated serial-number column only when it is neither the name
nor the DOB column. Data rows after the header are renumbered 1..N; a data row
is a row with at least one non-empty cell outside column 0. Only cells whose
value changes produce an update request.
"""

__all__ = [
    "SEQUENCE_COLUMN",
    "plan_renumber",
    "renumber_sequence_columns",
]

logger = logging.getLogger(__name__)

SEQUENCE_COLUMN = 0


def _is_data_row(row: Sequence[str]) -> bool:
    return any(cell(row, i).strip() for i in range(SEQUENCE_COLUMN + 1, len(row)))


def plan_renumber(grid: Grid, worksheet: WorksheetHandle) -> list[UpdateCell]:
    header = resolve_header(grid)
    if header is None:
        return []
    if SEQUENCE_COLUMN in (header.name_column_index, header.dob_column_index):
        # 連番列なし
        return []

    updates: list[UpdateCell] = []
    number = 0
    for row_index in range(header.row_index + 1, len(grid)):
        row = grid[row_index]
        if not _is_data_row(row):
            continue
        number += 1
        expected = str(number)
        if cell(row, SEQUENCE_COLUMN).strip() != expected:
            updates.append(
                UpdateCell(
                    worksheet_id=worksheet.stable_id,
                    row_index=row_index,
                    column_index=SEQUENCE_COLUMN,
                    value=expected,
                )
            )
    return updates


def renumber_sequence_columns(
    access: TabularSheetAccess,
    spreadsheet_id: str,
    worksheets: Sequence[WorksheetHandle],
    batch_size: int = MAX_BATCH_REQUESTS,
) -> int:
    """Renumber every non-excluded worksheet. Returns the number of cells updated."""
    requests: list[UpdateCell] = []
    for ws in worksheets:
        if ws.excluded:
            continue
        planned = plan_renumber(access.read_grid(spreadsheet_id, ws.title), ws)
        if planned:
            logger.debug("renumber %s: %d cell(s)", ws.title, len(planned))
        requests.extend(planned)

    for batch in chunked(requests, batch_size):
        access.batch_mutate(spreadsheet_id, batch)
    return len(requests)

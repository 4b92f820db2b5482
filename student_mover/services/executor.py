from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TypeVar

from ..logging.error_log import ErrorLogBuffer
from ..models.bands import DEFAULT_EXCLUDED_TITLES
from ..models.moves import AppliedMove, ExecutionRecord, ExecutionResult, MoveFailure, ProposedMove
from ..models.worksheet import Grid, HeaderInfo, Row, WorksheetHandle, cell
from ..store.access import MAX_BATCH_REQUESTS, DeleteRows, RemoteAccessError, TabularSheetAccess, UpdateRow
from .analyzer import list_handles
from .headers import NoHeaderFound, header_key, require_header
from .progress import ProgressTracker
from .renumber import SEQUENCE_COLUMN, renumber_sequence_columns

"""Move execution and revert.

Step order for execute() (the order matters):

0. validate every move against freshly read grids; invalid moves fail before
   anything is deleted
1. group deletions by source worksheet, row indices descending
2. delete everything before inserting anything (batches of <= 100 requests)
3. remap each row: name and DOB by detected column, the rest by header name
4. write it at the next free row after the destination's last populated row
5. renumber sequence columns of every non-excluded worksheet

A failure writing one move is recorded and the batch continues. A failing
deletion batch stops further deletions; earlier batches stay committed and the
result reports the partial success. Nothing is rolled back automatically;
``revert`` is the explicit inverse, driven by the returned ExecutionRecord.
"""

__all__ = [
    "execute",
    "revert",
    "remap_row",
    "essential_columns",
    "last_populated_index",
    "build_delete_requests",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")


def remap_row(
    row: Row,
    source_header: Sequence[str],
    destination_header: Sequence[str],
    pinned: Mapping[int, int] | None = None,
) -> tuple[str, ...]:
    """Copy cells by header name into the destination column order.

    ``pinned`` maps destination column -> source column and wins over name
    matching (the name and DOB columns, whose header text may differ between
    worksheets). Other destination columns missing from the source become ''.
    Source-only columns are dropped. Duplicate source headers: first
    occurrence wins.
    """
    source_index: dict[str, int] = {}
    for i, name in enumerate(source_header):
        key = header_key(name)
        if key and key not in source_index:
            source_index[key] = i
    pinned = pinned or {}
    out: list[str] = []
    for column, name in enumerate(destination_header):
        if column in pinned:
            out.append(cell(row, pinned[column]))
            continue
        key = header_key(name)
        idx = source_index.get(key) if key else None
        out.append(cell(row, idx) if idx is not None else "")
    return tuple(out)


def essential_columns(source: HeaderInfo, destination: HeaderInfo) -> dict[int, int]:
    """Destination -> source column for the name and DOB columns."""
    return {
        destination.name_column_index: source.name_column_index,
        destination.dob_column_index: source.dob_column_index,
    }


def last_populated_index(grid: Grid) -> int:
    """Index of the last row with any non-blank cell (-1 when the grid is blank)."""
    for index in range(len(grid) - 1, -1, -1):
        if any(str(v).strip() for v in grid[index] if v is not None):
            return index
    return -1


def build_delete_requests(items: Iterable[tuple[WorksheetHandle, int, T]]) -> list[tuple[DeleteRows, T]]:
    """One DeleteRows per (worksheet, row), grouped by worksheet, rows descending."""
    groups: dict[int, list[tuple[int, T]]] = {}
    for worksheet, row_index, owner in items:
        groups.setdefault(worksheet.stable_id, []).append((row_index, owner))
    out: list[tuple[DeleteRows, T]] = []
    for sheet_id, rows in groups.items():
        # 下から削除しないと未削除行のインデックスがずれる
        for row_index, owner in sorted(rows, key=lambda r: r[0], reverse=True):
            out.append((DeleteRows(worksheet_id=sheet_id, start_index=row_index, end_index=row_index + 1), owner))
    return out


def _same_row(a: Row, b: Row, ignore: frozenset[int] = frozenset()) -> bool:
    width = max(len(a), len(b))
    return all(cell(a, i).strip() == cell(b, i).strip() for i in range(width) if i not in ignore)


class _GridCache:
    def __init__(self, access: TabularSheetAccess, spreadsheet_id: str) -> None:
        self._access = access
        self._spreadsheet_id = spreadsheet_id
        self._grids: dict[str, Grid] = {}

    def get(self, title: str) -> Grid:
        if title not in self._grids:
            self._grids[title] = self._access.read_grid(self._spreadsheet_id, title)
        return self._grids[title]

    def clear(self) -> None:
        self._grids.clear()


def _delete_in_batches(
    access: TabularSheetAccess,
    spreadsheet_id: str,
    planned: list[tuple[DeleteRows, T]],
    batch_size: int,
    on_failure: Callable[[T, str], None],
) -> tuple[list[T], str | None]:
    """Send deletions in batches. Returns (owners deleted, first error message)."""
    size = max(1, min(batch_size, MAX_BATCH_REQUESTS))
    deleted: list[T] = []
    error: str | None = None
    for start in range(0, len(planned), size):
        batch = planned[start:start + size]
        if error is None:
            try:
                access.batch_mutate(spreadsheet_id, [req for req, _ in batch])
                deleted.extend(owner for _, owner in batch)
                continue
            except RemoteAccessError as e:
                error = str(e)
                logger.error("row deletion failed after %d row(s) deleted: %s", len(deleted), e)
        for _, owner in batch:
            on_failure(owner, error or "deletion not attempted")
    return deleted, error


def _write_row(
    access: TabularSheetAccess,
    spreadsheet_id: str,
    worksheet: WorksheetHandle,
    grid: Grid,
    values: tuple[str, ...],
) -> int:
    """Write values at the next free row; updates grid in place. Returns the row index."""
    target = last_populated_index(grid) + 1
    if target < len(grid):
        access.batch_mutate(spreadsheet_id, [UpdateRow(worksheet.stable_id, target, values)])
        grid[target] = list(values)
    else:
        access.append_row(spreadsheet_id, worksheet.title, list(values))
        grid.append(list(values))
    return target


def _renumber(
    access: TabularSheetAccess,
    spreadsheet_id: str,
    excluded_titles: frozenset[str] | set[str],
    batch_size: int,
) -> tuple[int, str | None]:
    try:
        worksheets = list_handles(access, spreadsheet_id, excluded_titles)
        return renumber_sequence_columns(access, spreadsheet_id, worksheets, batch_size), None
    except RemoteAccessError as e:
        logger.error("renumbering failed: %s", e)
        return 0, str(e)


def execute(
    access: TabularSheetAccess,
    spreadsheet_id: str,
    moves: Sequence[ProposedMove],
    excluded_titles: frozenset[str] | set[str] = DEFAULT_EXCLUDED_TITLES,
    batch_size: int = MAX_BATCH_REQUESTS,
    error_log: ErrorLogBuffer | None = None,
) -> ExecutionResult:
    """Apply proposed moves.

    Args:
        access: Tabular store
        spreadsheet_id: Spreadsheet identifier
        moves: Proposals from analyze(), applied as given
        excluded_titles: Worksheets skipped by renumbering
        batch_size: Max requests per batch_mutate call (capped at 100)
        error_log: Optional buffer receiving failed-move records

    Returns:
        ExecutionResult with the moved count, failures and the execution record

    Raises:
        RemoteAccessError: if reading grids during validation fails (nothing
            has been changed at that point)
    """
    if not moves:
        logger.info("no students needed to be moved")
        return ExecutionResult(moved_count=0, record=ExecutionRecord(spreadsheet_id=spreadsheet_id))

    failures: list[MoveFailure] = []

    def fail(move: ProposedMove, error_type: str, message: str) -> None:
        failures.append(MoveFailure(student_name=move.student_name, error_type=error_type, message=message))
        logger.warning("move %s (%s -> %s) failed: %s",
                       move.student_name, move.source_worksheet.title, move.destination_worksheet.title, message)
        if error_log is not None:
            error_log.add(move.source_worksheet.title, move.source_row_index + 1, error_type, message)

    # 0. validate
    cache = _GridCache(access, spreadsheet_id)
    source_headers: dict[int, HeaderInfo] = {}
    destination_headers: dict[int, HeaderInfo] = {}
    seen: set[tuple[int, int]] = set()
    valid: list[ProposedMove] = []
    for move in moves:
        key = (move.source_worksheet.stable_id, move.source_row_index)
        if key in seen:
            fail(move, "DUPLICATE_MOVE", f"row {move.source_row_index + 1} already scheduled")
            continue
        src_grid = cache.get(move.source_worksheet.title)
        try:
            src_header = require_header(src_grid, move.source_worksheet.title)
        except NoHeaderFound as e:
            fail(move, "NO_SOURCE_HEADER", str(e))
            continue
        if move.source_row_index <= src_header.row_index:
            fail(move, "INVALID_SOURCE_ROW",
                 f"row {move.source_row_index + 1} is not below the header row {src_header.row_index + 1}")
            continue
        current = src_grid[move.source_row_index] if move.source_row_index < len(src_grid) else []
        if not _same_row(current, move.row_data):
            fail(move, "STALE_SOURCE_ROW", "source row changed since analysis")
            continue
        try:
            dst_header = require_header(cache.get(move.destination_worksheet.title),
                                        move.destination_worksheet.title)
        except NoHeaderFound as e:
            fail(move, "NO_DESTINATION_HEADER", str(e))
            continue
        seen.add(key)
        source_headers[move.source_worksheet.stable_id] = src_header
        destination_headers[move.destination_worksheet.stable_id] = dst_header
        valid.append(move)

    # 1-2. delete (bottom-up per worksheet) before any insertion
    planned = build_delete_requests((m.source_worksheet, m.source_row_index, m) for m in valid)
    deleted, deletion_error = _delete_in_batches(
        access, spreadsheet_id, planned, batch_size,
        lambda m, msg: fail(m, "DELETE_FAILED", msg),
    )
    deleted_ids = {id(m) for m in deleted}

    # 3-4. remap and write
    cache.clear()
    applied: list[AppliedMove] = []
    with ProgressTracker(len(deleted), description="Moving students", unit="student") as progress:
        for move in valid:
            if id(move) not in deleted_ids:
                continue
            progress.start_item(move.student_name)
            destination = move.destination_worksheet
            try:
                src_header = source_headers[move.source_worksheet.stable_id]
                dst_header = destination_headers[destination.stable_id]
                values = remap_row(
                    move.row_data,
                    src_header.cells,
                    dst_header.cells,
                    pinned=essential_columns(src_header, dst_header),
                )
                grid = cache.get(destination.title)
                row_index = _write_row(access, spreadsheet_id, destination, grid, values)
            except Exception as e:  # 1 件の失敗でバッチを止めない
                fail(move, "INSERT_FAILED", str(e))
                progress.advance()
                continue
            applied.append(AppliedMove(move=move, destination_row_index=row_index, destination_row=values))
            logger.info("moved %s (age %d): %s -> %s",
                        move.student_name, move.age, move.source_worksheet.title, destination.title)
            progress.advance()

    # 5. renumber
    renumbered, renumber_error = _renumber(access, spreadsheet_id, excluded_titles, batch_size)

    return ExecutionResult(
        moved_count=len(applied),
        failures=failures,
        record=ExecutionRecord(spreadsheet_id=spreadsheet_id, entries=tuple(applied)),
        renumbered_cells=renumbered,
        deletion_error=deletion_error,
        renumber_error=renumber_error,
    )


def revert(
    access: TabularSheetAccess,
    record: ExecutionRecord,
    excluded_titles: frozenset[str] | set[str] = DEFAULT_EXCLUDED_TITLES,
    batch_size: int = MAX_BATCH_REQUESTS,
    error_log: ErrorLogBuffer | None = None,
) -> ExecutionResult:
    """Undo an execution: remove written rows, restore the original snapshots."""
    spreadsheet_id = record.spreadsheet_id
    if not record.entries:
        return ExecutionResult(moved_count=0, record=ExecutionRecord(spreadsheet_id=spreadsheet_id))

    failures: list[MoveFailure] = []

    def fail(entry: AppliedMove, error_type: str, message: str) -> None:
        failures.append(MoveFailure(student_name=entry.move.student_name, error_type=error_type, message=message))
        logger.warning("revert of %s failed: %s", entry.move.student_name, message)
        if error_log is not None:
            error_log.add(entry.move.destination_worksheet.title, entry.destination_row_index + 1,
                          error_type, message)

    cache = _GridCache(access, spreadsheet_id)
    verified: list[AppliedMove] = []
    for entry in record.entries:
        grid = cache.get(entry.move.destination_worksheet.title)
        current = grid[entry.destination_row_index] if entry.destination_row_index < len(grid) else []
        # 連番列は execute 後の採番で変わっている
        if not _same_row(current, entry.destination_row, ignore=frozenset({SEQUENCE_COLUMN})):
            fail(entry, "STALE_DESTINATION_ROW", "destination row changed since execution")
            continue
        verified.append(entry)

    planned = build_delete_requests(
        (e.move.destination_worksheet, e.destination_row_index, e) for e in verified
    )
    deleted, deletion_error = _delete_in_batches(
        access, spreadsheet_id, planned, batch_size,
        lambda e, msg: fail(e, "DELETE_FAILED", msg),
    )
    deleted_ids = {id(e) for e in deleted}

    cache.clear()
    restored = 0
    for entry in verified:
        if id(entry) not in deleted_ids:
            continue
        source = entry.move.source_worksheet
        try:
            _write_row(access, spreadsheet_id, source, cache.get(source.title), entry.move.row_data)
        except Exception as e:  # 1 件の失敗でバッチを止めない
            fail(entry, "INSERT_FAILED", str(e))
            continue
        restored += 1
        logger.info("restored %s to %s", entry.move.student_name, source.title)

    renumbered, renumber_error = _renumber(access, spreadsheet_id, excluded_titles, batch_size)
    return ExecutionResult(
        moved_count=restored,
        failures=failures,
        record=ExecutionRecord(spreadsheet_id=spreadsheet_id),
        renumbered_cells=renumbered,
        deletion_error=deletion_error,
        renumber_error=renumber_error,
    )

from __future__ import annotations

import logging
from datetime import date

from ..logging.error_log import ErrorLogBuffer
from ..models.bands import AgeBand, BandConfiguration
from ..models.moves import ProposedMove
from ..models.worksheet import WorksheetHandle, build_handles, cell, pad_row
from ..store.access import TabularSheetAccess
from .age import InvalidDate, calculate_age
from .headers import resolve_header
from .progression import find_destination, resolve_band_worksheet
from .progress import ProgressTracker

"""Move analysis (read-only).

For each band, in band order, scan its worksheet for students whose age
exceeds the band's max_age and propose a move to the band the planner picks.
Each student is evaluated against the worksheet they are in now; proposals
never depend on one another.

Remote errors abort the whole call (it is read-only and cheap to retry).
Unparseable DOB cells are logged, recorded and skipped.
"""

__all__ = [
    "analyze",
    "list_handles",
]

logger = logging.getLogger(__name__)


def list_handles(
    access: TabularSheetAccess, spreadsheet_id: str, excluded_titles: frozenset[str] | set[str]
) -> list[WorksheetHandle]:
    """Enumerate worksheets fresh (never cached across passes)."""
    return build_handles(access.list_worksheets(spreadsheet_id), excluded_titles)


def analyze(
    access: TabularSheetAccess,
    spreadsheet_id: str,
    configuration: BandConfiguration,
    today: date | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> list[ProposedMove]:
    """Return the proposed moves for the whole spreadsheet.

    Args:
        access: Tabular store
        spreadsheet_id: Spreadsheet identifier understood by the store
        configuration: Ordered bands and excluded worksheet titles
        today: Reference date for age calculation (defaults to date.today())
        error_log: Optional buffer receiving skipped-row records

    Returns:
        Flat list of proposals, band order then row order
    """
    reference = today or date.today()
    worksheets = list_handles(access, spreadsheet_id, configuration.excluded_titles)
    bands = configuration.bands
    moves: list[ProposedMove] = []

    with ProgressTracker(len(bands), description="Analyzing bands", unit="band") as progress:
        for band_index, band in enumerate(bands):
            source = resolve_band_worksheet(band, worksheets)
            if source is None:
                logger.debug("band '%s' has no matching worksheet; skipped", band.display_name)
                progress.advance()
                continue
            progress.start_item(source.title)
            found = _analyze_worksheet(
                access, spreadsheet_id, source, band_index, bands, worksheets, reference, error_log
            )
            moves.extend(found)
            progress.set_postfix(moves=len(moves))
            progress.advance()

    logger.info("analysis found %d move(s) across %d worksheet(s)", len(moves), len(worksheets))
    return moves


def _analyze_worksheet(
    access: TabularSheetAccess,
    spreadsheet_id: str,
    source: WorksheetHandle,
    band_index: int,
    bands: tuple[AgeBand, ...],
    worksheets: list[WorksheetHandle],
    today: date,
    error_log: ErrorLogBuffer | None,
) -> list[ProposedMove]:
    band = bands[band_index]
    grid = access.read_grid(spreadsheet_id, source.title)
    if not grid:
        return []

    header = resolve_header(grid)
    if header is None:
        logger.warning("worksheet '%s' has no DOB header row; skipped", source.title)
        if error_log is not None:
            error_log.add(source.title, -1, "NO_HEADER", "no row contains a DOB cell")
        return []

    moves: list[ProposedMove] = []
    for row_index in range(header.row_index + 1, len(grid)):
        row = grid[row_index]
        raw_dob = cell(row, header.dob_column_index).strip()
        if not raw_dob:
            continue  # 未入力行は対象外
        try:
            age = calculate_age(raw_dob, today)
        except InvalidDate:
            logger.info(
                "could not parse date for row %d in %s: %s", row_index + 1, source.title, raw_dob
            )
            if error_log is not None:
                error_log.add(source.title, row_index + 1, "INVALID_DATE", f"cannot parse DOB {raw_dob!r}")
            continue

        if age <= band.max_age:
            continue

        destination = find_destination(age, band_index, bands, worksheets, current_worksheet=source)
        if destination is None:
            continue

        name = cell(row, header.name_column_index).strip() or f"Student in row {row_index + 1}"
        moves.append(
            ProposedMove(
                student_name=name,
                age=age,
                source_worksheet=source,
                source_row_index=row_index,
                destination_worksheet=destination,
                row_data=pad_row(row, len(header.cells)),
            )
        )
        logger.debug("move %s (age %d): %s -> %s", name, age, source.title, destination.title)
    return moves

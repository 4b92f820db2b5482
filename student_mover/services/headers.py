from __future__ import annotations

import re
from collections.abc import Sequence

from ..models.worksheet import Grid, HeaderInfo, cell

"""Header row detection.

The header row is the first row (top-down) holding a cell whose text is the
literal token ``DOB`` (case-insensitive). The name column is best-effort: the
first header containing "name" but not "user"; column 0 when none matches.
"""

__all__ = [
    "NoHeaderFound",
    "DOB_TOKEN",
    "resolve_header",
    "require_header",
    "header_key",
]

DOB_TOKEN = "dob"

_NAME_RE = re.compile(r"name", re.IGNORECASE)
_USER_RE = re.compile(r"user", re.IGNORECASE)


class NoHeaderFound(Exception):
    """Raised when a worksheet has no DOB-labelled header row."""


def header_key(text: str) -> str:
    """Normalise a header cell for name-based comparison."""
    return str(text).strip().casefold()


def _is_dob(text: str) -> bool:
    return header_key(text) == DOB_TOKEN


def _find_name_column(row: Sequence[str]) -> int:
    for index, text in enumerate(row):
        if text and _NAME_RE.search(text) and not _USER_RE.search(text):
            return index
    return 0


def resolve_header(grid: Grid) -> HeaderInfo | None:
    for row_index, row in enumerate(grid):
        if not row:
            continue
        for col_index, text in enumerate(row):
            if text is not None and _is_dob(text):
                cells = tuple(cell(row, i) for i in range(len(row)))
                return HeaderInfo(
                    row_index=row_index,
                    dob_column_index=col_index,
                    name_column_index=_find_name_column(cells),
                    cells=cells,
                )
    return None


def require_header(grid: Grid, worksheet_title: str) -> HeaderInfo:
    header = resolve_header(grid)
    if header is None:
        raise NoHeaderFound(f"worksheet '{worksheet_title}' has no DOB header row")
    return header

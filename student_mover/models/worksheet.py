from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

"""Worksheet-level models.

SheetInfo is what a store lists; WorksheetHandle adds the exclusion flag and is
rebuilt at the start of every pass (worksheet structure can change between runs).
"""

__all__ = [
    "SheetInfo",
    "WorksheetHandle",
    "HeaderInfo",
    "Row",
    "Grid",
    "cell",
    "pad_row",
    "build_handles",
]

Row = Sequence[str]
Grid = list[list[str]]


@dataclass(frozen=True)
class SheetInfo:
    """A worksheet as reported by the tabular store."""
    sheet_id: int
    title: str


@dataclass(frozen=True)
class WorksheetHandle:
    title: str
    stable_id: int
    excluded: bool = False


@dataclass(frozen=True)
class HeaderInfo:
    """Location of the header row and the essential columns of one worksheet."""
    row_index: int  # 0-based, grid 全体のインデックス
    dob_column_index: int
    name_column_index: int
    cells: tuple[str, ...] = ()


def cell(row: Row | None, index: int) -> str:
    """Return the cell at index; a missing trailing cell reads as ''."""
    if row is None or index < 0 or index >= len(row):
        return ""
    value = row[index]
    return "" if value is None else str(value)


def pad_row(row: Row, width: int) -> tuple[str, ...]:
    return tuple(cell(row, i) for i in range(max(width, len(row))))


def build_handles(sheets: Iterable[SheetInfo], excluded_titles: Iterable[str]) -> list[WorksheetHandle]:
    excluded = set(excluded_titles)
    return [
        WorksheetHandle(title=s.title, stable_id=s.sheet_id, excluded=s.title in excluded)
        for s in sheets
    ]

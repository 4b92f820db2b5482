from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .worksheet import WorksheetHandle

"""Move proposal and execution result models.

ProposedMove is created by the analyzer and consumed, never mutated, by the
executor. ExecutionRecord replaces ambient "last successful moves" state: it is
returned to the caller and handed back explicitly to ``revert``.
"""

__all__ = [
    "ProposedMove",
    "MoveFailure",
    "AppliedMove",
    "ExecutionRecord",
    "ExecutionResult",
    "PartialExecutionFailure",
]


@dataclass(frozen=True)
class ProposedMove:
    student_name: str
    age: int
    source_worksheet: WorksheetHandle
    source_row_index: int  # 0-based grid index, valid until a row is deleted from the source
    destination_worksheet: WorksheetHandle
    row_data: tuple[str, ...]  # snapshot (後続の削除で壊れない)

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_name": self.student_name,
            "age": self.age,
            "source_worksheet": _handle_to_dict(self.source_worksheet),
            "source_row_index": self.source_row_index,
            "destination_worksheet": _handle_to_dict(self.destination_worksheet),
            "row_data": list(self.row_data),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ProposedMove:
        return ProposedMove(
            student_name=data["student_name"],
            age=int(data["age"]),
            source_worksheet=_handle_from_dict(data["source_worksheet"]),
            source_row_index=int(data["source_row_index"]),
            destination_worksheet=_handle_from_dict(data["destination_worksheet"]),
            row_data=tuple(str(v) for v in data["row_data"]),
        )


@dataclass(frozen=True)
class MoveFailure:
    student_name: str
    error_type: str  # UPPER_SNAKE
    message: str


@dataclass(frozen=True)
class AppliedMove:
    """A move that was written to its destination."""
    move: ProposedMove
    destination_row_index: int
    destination_row: tuple[str, ...]  # remapped row as written

    def to_dict(self) -> dict[str, Any]:
        return {
            "move": self.move.to_dict(),
            "destination_row_index": self.destination_row_index,
            "destination_row": list(self.destination_row),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> AppliedMove:
        return AppliedMove(
            move=ProposedMove.from_dict(data["move"]),
            destination_row_index=int(data["destination_row_index"]),
            destination_row=tuple(str(v) for v in data["destination_row"]),
        )


@dataclass(frozen=True)
class ExecutionRecord:
    spreadsheet_id: str
    entries: tuple[AppliedMove, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "spreadsheet_id": self.spreadsheet_id,
            "entries": [e.to_dict() for e in self.entries],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ExecutionRecord:
        return ExecutionRecord(
            spreadsheet_id=data["spreadsheet_id"],
            entries=tuple(AppliedMove.from_dict(e) for e in data.get("entries", [])),
        )


@dataclass(frozen=True)
class ExecutionResult:
    moved_count: int
    failures: list[MoveFailure] = field(default_factory=list)
    record: ExecutionRecord | None = None
    renumbered_cells: int = 0
    deletion_error: str | None = None  # 削除バッチ失敗時のみ
    renumber_error: str | None = None

    @property
    def failed_names(self) -> list[str]:
        return [f.student_name for f in self.failures]

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def raise_for_failures(self) -> None:
        if self.failures:
            raise PartialExecutionFailure(self)


class PartialExecutionFailure(Exception):
    """One or more moves failed; committed changes are not rolled back."""

    def __init__(self, result: ExecutionResult) -> None:
        self.result = result
        names = ", ".join(result.failed_names)
        super().__init__(
            f"{len(result.failures)} move(s) failed after {result.moved_count} succeeded: {names}"
        )


def _handle_to_dict(handle: WorksheetHandle) -> dict[str, Any]:
    return {"title": handle.title, "stable_id": handle.stable_id, "excluded": handle.excluded}


def _handle_from_dict(data: dict[str, Any]) -> WorksheetHandle:
    return WorksheetHandle(
        title=data["title"],
        stable_id=int(data["stable_id"]),
        excluded=bool(data.get("excluded", False)),
    )

from __future__ import annotations

from ..models.moves import ExecutionResult, ProposedMove

"""Summary line rendering.

Format:
SUMMARY proposed={P} moved={M} failed={F} renumbered={R} elapsed_sec={E}

The leading ``SUMMARY`` label is added by the logging formatter; these helpers
return the text after it.
"""

__all__ = [
    "render_summary_line",
    "render_move_list",
    "format_seconds",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation and without trailing zeros."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(proposed: int, result: ExecutionResult | None, elapsed_seconds: float) -> str:
    """Render the summary content.

    Examples:
        >>> render_summary_line(2, ExecutionResult(moved_count=2), 1.5)
        'proposed=2 moved=2 failed=0 renumbered=0 elapsed_sec=1.5'
        >>> render_summary_line(3, None, 0)
        'proposed=3 moved=0 failed=0 renumbered=0 elapsed_sec=0'
    """
    moved = result.moved_count if result else 0
    failed = len(result.failures) if result else 0
    renumbered = result.renumbered_cells if result else 0
    return (
        f"proposed={proposed} "
        f"moved={moved} "
        f"failed={failed} "
        f"renumbered={renumbered} "
        f"elapsed_sec={format_seconds(elapsed_seconds)}"
    )


def render_move_list(moves: list[ProposedMove]) -> list[str]:
    """One human readable line per proposed move."""
    return [
        f"{m.student_name} (Age {m.age}): {m.source_worksheet.title} -> {m.destination_worksheet.title}"
        for m in moves
    ]

"""Move engine services: analysis, execution, revert and their building blocks."""

from .age import InvalidDate, calculate_age, parse_dob
from .analyzer import analyze
from .executor import execute, remap_row, revert
from .headers import NoHeaderFound, resolve_header
from .progression import find_destination, find_destination_band
from .renumber import plan_renumber, renumber_sequence_columns

__all__ = [
    "InvalidDate",
    "NoHeaderFound",
    "analyze",
    "calculate_age",
    "execute",
    "find_destination",
    "find_destination_band",
    "parse_dob",
    "plan_renumber",
    "remap_row",
    "renumber_sequence_columns",
    "resolve_header",
    "revert",
]

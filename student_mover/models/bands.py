from __future__ import annotations

import re
from dataclasses import dataclass, field

"""Age band and band configuration models.

The band list is the caller-owned configuration surface of the move engine:
an ordered progression (youngest first) of age ranges bound to worksheet-name
patterns, plus the set of administrative worksheets that are never sources
or targets of a move.
"""

__all__ = [
    "AgeBand",
    "BandConfiguration",
    "DEFAULT_EXCLUDED_TITLES",
    "DEFAULT_BANDS",
    "compile_band_pattern",
]

# 集計用シート (移動元/移動先にしない)
DEFAULT_EXCLUDED_TITLES = frozenset({"ALL STUDENTS", "NEW STUDENTS", "Sheet4"})


def compile_band_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a worksheet-name pattern. Matching is always case-insensitive."""
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True)
class AgeBand:
    """One step of the progression.

    name_pattern is matched with ``search`` against worksheet titles.
    """
    name_pattern: re.Pattern[str]
    min_age: int
    max_age: int
    label: str = ""

    def __post_init__(self) -> None:
        if self.min_age > self.max_age:
            raise ValueError(
                f"band '{self.display_name}' has min_age {self.min_age} > max_age {self.max_age}"
            )

    @classmethod
    def from_pattern(cls, pattern: str, min_age: int, max_age: int, label: str = "") -> AgeBand:
        return cls(
            name_pattern=compile_band_pattern(pattern),
            min_age=min_age,
            max_age=max_age,
            label=label,
        )

    @property
    def display_name(self) -> str:
        return self.label or self.name_pattern.pattern

    def matches(self, title: str) -> bool:
        return self.name_pattern.search(title) is not None


DEFAULT_BANDS: tuple[AgeBand, ...] = (
    AgeBand.from_pattern(r"young ws|young w/", 6, 8, label="Young WS"),
    AgeBand.from_pattern(r"^ws(?!.*young)", 9, 11, label="WS"),
    AgeBand.from_pattern(r"young victor", 12, 14, label="Young Victor"),
    AgeBand.from_pattern(r"^victor(?!.*young)", 15, 17, label="Victor"),
)


@dataclass(frozen=True)
class BandConfiguration:
    """Ordered bands plus excluded worksheet titles."""
    bands: tuple[AgeBand, ...] = DEFAULT_BANDS
    excluded_titles: frozenset[str] = field(default=DEFAULT_EXCLUDED_TITLES)

    def __post_init__(self) -> None:
        if not self.bands:
            raise ValueError("band configuration needs at least one band")

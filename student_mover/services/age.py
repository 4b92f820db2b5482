from __future__ import annotations

import re
import warnings
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

"""Age classification from date-of-birth cells.

Parsing order:
1. full date parse (ISO and common locale formats, month-first)
2. fallback: a 4-digit 19xx/20xx year anywhere in the cell, read as 1 January

Age is the whole number of years between the DOB and the reference date; one
is subtracted when the birthday has not yet occurred in the reference year.
"""

__all__ = [
    "InvalidDate",
    "parse_dob",
    "calculate_age",
    "today_in",
]

_YEAR_RE = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")


class InvalidDate(ValueError):
    """Raised when a DOB cell cannot be read as a calendar date."""


def today_in(timezone: str = "UTC") -> date:
    """Current date in the given IANA timezone."""
    try:
        return datetime.now(ZoneInfo(timezone)).date()
    except ZoneInfoNotFoundError as e:
        raise ValueError(f"unknown timezone: {timezone}") from e


def _full_parse(text: str) -> date | None:
    # 数字だけのセル (例: "12") は日付として扱わない
    if text.isdigit():
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            ts = pd.to_datetime(text, dayfirst=False)
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is pd.NaT or pd.isna(ts):
        return None
    return ts.date()


def parse_dob(raw: str) -> date:
    text = str(raw).strip()
    if not text:
        raise InvalidDate("empty date cell")
    parsed = _full_parse(text)
    if parsed is not None:
        return parsed
    m = _YEAR_RE.search(text)
    if m:
        return date(int(m.group(1)), 1, 1)
    raise InvalidDate(f"cannot parse date: {raw!r}")


def calculate_age(raw_dob: str, today: date) -> int:
    dob = parse_dob(raw_dob)
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age

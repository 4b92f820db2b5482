from __future__ import annotations

import logging
from collections.abc import Sequence

from ..models.bands import AgeBand
from ..models.worksheet import WorksheetHandle

"""Progression planning: which band (and worksheet) a student belongs to next.

The search only moves forward from the student's current band, skipping every
band the student has already outgrown, so a student two bands behind lands in
the right band in one step. A student is never routed to a younger band.
"""

__all__ = [
    "resolve_band_worksheet",
    "find_destination_band",
    "find_destination",
]

logger = logging.getLogger(__name__)


def resolve_band_worksheet(band: AgeBand, worksheets: Sequence[WorksheetHandle]) -> WorksheetHandle | None:
    """First non-excluded worksheet whose title matches the band pattern.

    Several matches are a known configuration ambiguity: the first in worksheet
    order wins and a warning is logged.
    """
    matches = [ws for ws in worksheets if not ws.excluded and band.matches(ws.title)]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "band '%s' matches %d worksheets %s; using '%s'",
            band.display_name,
            len(matches),
            [m.title for m in matches],
            matches[0].title,
        )
    return matches[0]


def find_destination_band(age: int, current_band_index: int, bands: Sequence[AgeBand]) -> int | None:
    """Index of the first band after the current one whose max_age covers age.

    None means the student has aged out of every band.
    """
    cursor = current_band_index + 1
    while cursor < len(bands) and age > bands[cursor].max_age:
        cursor += 1
    if cursor >= len(bands):
        return None
    return cursor


def find_destination(
    age: int,
    current_band_index: int,
    bands: Sequence[AgeBand],
    worksheets: Sequence[WorksheetHandle],
    current_worksheet: WorksheetHandle | None = None,
) -> WorksheetHandle | None:
    """Destination worksheet for a student, or None when no move applies."""
    band_index = find_destination_band(age, current_band_index, bands)
    if band_index is None:
        logger.info("age %d exceeds every band after '%s'; student stays in place",
                    age, bands[current_band_index].display_name)
        return None
    target = resolve_band_worksheet(bands[band_index], worksheets)
    if target is None:
        logger.debug("band '%s' has no worksheet", bands[band_index].display_name)
        return None
    if current_worksheet is not None and target.stable_id == current_worksheet.stable_id:
        return None
    return target

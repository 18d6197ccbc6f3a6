"""Date label parsing and the ordinal turn encoding."""

from __future__ import annotations

import re
from typing import Literal

from race_planner.domain.models import INVALID_TURN, MONTH_NAMES, DateSlot

Season = Literal["Spring", "Summer", "Autumn", "Winter"]

_YEAR_TOKENS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(r"junior|\byear\s*1\b", re.IGNORECASE), 1),
    (re.compile(r"classic|\byear\s*2\b", re.IGNORECASE), 2),
    (re.compile(r"senior|\byear\s*3\b", re.IGNORECASE), 3),
)
_MONTH_PATTERN = re.compile("(" + "|".join(MONTH_NAMES) + ")", re.IGNORECASE)
_HALF_PATTERN = re.compile(r"(early|late)", re.IGNORECASE)
_MONTH_INDEX = {name.lower(): index for index, name in enumerate(MONTH_NAMES, start=1)}
_LEGACY_YEAR_LABELS = (
    (re.compile(r"year\s*1", re.IGNORECASE), "Junior Year"),
    (re.compile(r"year\s*2", re.IGNORECASE), "Classic Year"),
    (re.compile(r"year\s*3", re.IGNORECASE), "Senior Year"),
)


def parse_date_label(label: str | None) -> DateSlot | None:
    """Extract the year/month/half triplet from a free-form date label.

    Returns None when any of the three tokens is missing; callers treat that
    as an unschedulable date rather than an error.
    """
    if not label:
        return None
    year_phase = 0
    for pattern, phase in _YEAR_TOKENS:
        if pattern.search(label):
            year_phase = phase
            break
    month_match = _MONTH_PATTERN.search(label)
    half_match = _HALF_PATTERN.search(label)
    if not year_phase or month_match is None or half_match is None:
        return None
    month = _MONTH_INDEX[month_match.group(1).lower()]
    half = 1 if half_match.group(1).lower() == "early" else 2
    return DateSlot(year_phase=year_phase, month=month, half=half)


def turn_of(label: str | None) -> int:
    """Map a date label to its turn in 1..72, or INVALID_TURN."""
    slot = parse_date_label(label)
    if slot is None:
        return INVALID_TURN
    return slot.turn


def canonical_date_label(label: str) -> str:
    """Rewrite legacy `Year N` prefixes to the named year phases."""
    rewritten = label
    for pattern, replacement in _LEGACY_YEAR_LABELS:
        rewritten = pattern.sub(replacement, rewritten, count=1)
    return rewritten


def season_of(slot: DateSlot) -> Season:
    if 3 <= slot.month <= 6 or (slot.month == 2 and slot.half == 2):
        return "Spring"
    if slot.month in (7, 8) or (slot.month == 9 and slot.half == 1):
        return "Summer"
    if slot.month in (10, 11) or (slot.month == 9 and slot.half == 2):
        return "Autumn"
    return "Winter"


def is_summer_slot(slot: DateSlot | None) -> bool:
    """Summer camp turns: July and August of the Classic and Senior years."""
    if slot is None:
        return False
    return slot.year_phase in (2, 3) and slot.month in (7, 8)


def is_standard_distance(meters: int) -> bool:
    return meters % 400 == 0


def direction_label(direction: str | None) -> str:
    return "Left-Handed" if (direction or "").upper() == "CCW" else "Right-Handed"

"""Consecutive-race fatigue warnings."""

from __future__ import annotations

from collections.abc import Iterable

from race_planner.core.calendar import Calendar


def compute_warnings(
    effective: Iterable[str], calendar: Calendar, mandatory: Iterable[str]
) -> frozenset[str]:
    """Flag the third race of every run of three consecutive turns.

    Mandatory races count toward a run but are never flagged themselves.
    Unknown ids and unschedulable events are ignored.
    """
    mandatory_ids = frozenset(mandatory)
    ordered = [event for event in calendar.events_for(effective) if event.slot is not None]
    if len(ordered) < 3:
        return frozenset()
    warnings: set[str] = set()
    for index in range(2, len(ordered)):
        first, second, third = ordered[index - 2], ordered[index - 1], ordered[index]
        consecutive = third.turn == second.turn + 1 and second.turn == first.turn + 1
        if consecutive and third.event_id not in mandatory_ids:
            warnings.add(third.event_id)
    return frozenset(warnings)


def adds_warnings(
    before: Iterable[str],
    after: Iterable[str],
    calendar: Calendar,
    mandatory: Iterable[str],
) -> bool:
    """True when the candidate schedule has more warnings than the current one."""
    mandatory_ids = frozenset(mandatory)
    current = compute_warnings(before, calendar, mandatory_ids)
    candidate = compute_warnings(after, calendar, mandatory_ids)
    return len(candidate) > len(current)

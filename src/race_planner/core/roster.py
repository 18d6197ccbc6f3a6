"""Resolve a profile's career objectives into mandatory calendar events."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from race_planner.core.calendar import Calendar
from race_planner.core.turns import canonical_date_label, parse_date_label
from race_planner.domain.models import DateSlot, Event, Objective, Profile

logger = logging.getLogger(__name__)

_RACE_NAME = re.compile(r"\b(?:in the|the)\s+([^,]+)")
_DEBUT_MARKER = "make debut"


@dataclass(frozen=True)
class ObjectiveMatch:
    """Outcome of matching one objective against the calendar."""

    objective: Objective
    race_name: str | None
    slot: DateSlot | None
    event: Event | None

    @property
    def resolved(self) -> bool:
        return self.event is not None


def extract_race_name(description: str) -> str | None:
    """Pull the race name that follows `the` / `in the` up to the first comma."""
    match = _RACE_NAME.search(description)
    if match is None:
        return None
    name = match.group(1).strip()
    if not name or _DEBUT_MARKER in name.lower():
        return None
    return name


def match_objective(objective: Objective, calendar: Calendar) -> ObjectiveMatch:
    race_name = extract_race_name(objective.description)
    slot = parse_date_label(canonical_date_label(objective.date_constraint_label))
    if race_name is None or slot is None:
        return ObjectiveMatch(objective=objective, race_name=race_name, slot=slot, event=None)
    found = next(
        (event for event in calendar.instances_of(race_name) if event.slot == slot),
        None,
    )
    return ObjectiveMatch(objective=objective, race_name=race_name, slot=slot, event=found)


def match_objectives(profile: Profile, calendar: Calendar) -> list[ObjectiveMatch]:
    """Match every race-type objective of a profile, in objective order."""
    return [
        match_objective(objective, calendar)
        for objective in profile.objectives
        if objective.type == "Race"
    ]


def resolve_mandatory(profile: Profile, calendar: Calendar) -> frozenset[str]:
    """Best-effort mapping of career race objectives onto event ids.

    Objectives whose name or date cannot be matched are dropped; they are
    logged for diagnostics and never surface as errors.
    """
    mandatory: set[str] = set()
    for match in match_objectives(profile, calendar):
        if match.event is not None:
            mandatory.add(match.event.event_id)
            continue
        if match.race_name is None or match.slot is None:
            continue
        logger.warning(
            "roster.unresolved profile=%s race=%s date=%s",
            profile.name,
            match.race_name,
            match.objective.date_constraint_label,
        )
    return frozenset(mandatory)


def unresolved_objectives(profile: Profile, calendar: Calendar) -> list[Objective]:
    return [
        match.objective
        for match in match_objectives(profile, calendar)
        if not match.resolved and match.race_name is not None
    ]

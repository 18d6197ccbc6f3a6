"""Epithet (title) progress tracking over the planned schedule."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

from race_planner.core.calendar import Calendar
from race_planner.core.filters import FilterPolicy, is_suitable
from race_planner.core.warnings import compute_warnings
from race_planner.domain.models import Event, SelectionState

logger = logging.getLogger(__name__)

EpithetState = Literal["complete", "available", "impossible"]


@dataclass(frozen=True)
class EpithetDefinition:
    name: str
    races: tuple[str, ...]


@dataclass(frozen=True)
class EpithetStatus:
    name: str
    required_count: int
    completed_count: int
    missing: tuple[Event, ...]
    status: EpithetState
    is_recommended: bool
    conflict_reason: str = ""


@dataclass(frozen=True)
class EpithetAddResult:
    state: SelectionState
    added: tuple[str, ...]
    added_with_warnings: tuple[str, ...]
    skipped_for_warnings: tuple[str, ...]


def epithet_statuses(
    definitions: Iterable[EpithetDefinition],
    calendar: Calendar,
    state: SelectionState,
    mandatory: frozenset[str],
    *,
    aptitudes: Mapping[str, str] | None,
    policy: FilterPolicy,
) -> list[EpithetStatus]:
    """Evaluate every epithet against the effective schedule.

    A required race counts as done when any instance of it is scheduled. An
    epithet is impossible when every instance of a missing race falls on a
    date already held by a different mandatory race.
    """
    scheduled_names = {event.name for event in calendar.events_for(state.effective)}
    mandatory_by_slot = {
        event.slot: event for event in calendar.events_for(mandatory) if event.slot is not None
    }
    statuses: list[EpithetStatus] = []
    for definition in definitions:
        names = list(
            dict.fromkeys(name for name in definition.races if calendar.instances_of(name))
        )
        completed = [name for name in names if name in scheduled_names]
        missing_names = [name for name in names if name not in scheduled_names]
        missing: list[Event] = []
        conflict_reason = ""
        for name in missing_names:
            open_instances = [
                event
                for event in calendar.instances_of(name)
                if event.slot is not None
                and (
                    event.slot not in mandatory_by_slot
                    or mandatory_by_slot[event.slot].name == name
                )
            ]
            if not open_instances:
                blocker = next(
                    (
                        mandatory_by_slot[event.slot]
                        for event in calendar.instances_of(name)
                        if event.slot in mandatory_by_slot
                    ),
                    None,
                )
                if blocker is None:
                    conflict_reason = f"{name} has no scheduled date."
                else:
                    conflict_reason = f"{name} conflicts with the career race {blocker.name}."
                break
            missing.append(min(open_instances, key=lambda event: event.turn))
        if conflict_reason:
            status: EpithetState = "impossible"
            recommended = False
        elif not missing_names:
            status = "complete"
            recommended = True
        else:
            status = "available"
            recommended = all(is_suitable(event, aptitudes, policy) for event in missing)
        statuses.append(
            EpithetStatus(
                name=definition.name,
                required_count=len(names),
                completed_count=len(completed),
                missing=tuple(missing) if status == "available" else (),
                status=status,
                is_recommended=recommended,
                conflict_reason=conflict_reason,
            )
        )
    return statuses


def add_missing_races(
    state: SelectionState,
    calendar: Calendar,
    mandatory: frozenset[str],
    race_names: Sequence[str],
    *,
    prevent_warning_additions: bool = True,
) -> EpithetAddResult:
    """Schedule one instance of each named race.

    Tries instances earliest first and takes the first free date that does not
    add warnings. Without warning prevention the earliest free instance is
    used as a fallback.
    """
    planned = set(state.effective)
    occupied = set(calendar.occupied_slots(planned | mandatory))
    added: list[str] = []
    added_with_warnings: list[str] = []
    skipped: list[str] = []
    for name in dict.fromkeys(race_names):
        free = [
            event
            for event in calendar.instances_of(name)
            if event.slot is not None and event.slot not in occupied
        ]
        baseline = len(compute_warnings(planned, calendar, mandatory))
        pick = next(
            (
                event
                for event in free
                if len(compute_warnings(planned | {event.event_id}, calendar, mandatory))
                <= baseline
            ),
            None,
        )
        if pick is None:
            if prevent_warning_additions or not free:
                skipped.append(name)
                continue
            pick = free[0]
            added_with_warnings.append(name)
        planned.add(pick.event_id)
        occupied.add(pick.slot)  # type: ignore[arg-type]
        added.append(pick.event_id)
    logger.info(
        "epithet.add requested=%s added=%s skipped=%s",
        len(race_names),
        len(added),
        len(skipped),
    )
    return EpithetAddResult(
        state=state.evolve(chosen=state.chosen | frozenset(added)),
        added=tuple(added),
        added_with_warnings=tuple(added_with_warnings),
        skipped_for_warnings=tuple(skipped),
    )

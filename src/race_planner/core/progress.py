"""Read-only views over a selection: next race, counts and reward totals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from race_planner.core.calendar import Calendar
from race_planner.domain.models import (
    DISTANCE_CATEGORIES,
    GRADED_TIERS,
    Event,
    SelectionState,
)

PLACEMENT_MULTIPLIERS: Final[dict[int, float]] = {
    1: 1.0,
    2: 0.4,
    3: 0.25,
    4: 0.15,
    5: 0.1,
}
# Debut, maiden and scenario rewards are placeholders below this value.
MIN_COUNTED_REWARD: Final = 100


@dataclass(frozen=True)
class UpcomingEvent:
    event: Event
    turns_after_previous: int


@dataclass(frozen=True)
class NextEventView:
    """Progress helper payload for the first unfinished scheduled race."""

    event: Event
    is_mandatory: bool
    is_exclusive: bool
    notes: str
    turns_until: int
    upcoming: tuple[UpcomingEvent, ...]
    previously_won: bool
    next_instance_planned: bool


@dataclass(frozen=True)
class ScheduleCounts:
    grades: dict[str, int]
    distances: dict[str, int]
    won: int
    total: int


def schedule(state: SelectionState, calendar: Calendar) -> list[Event]:
    """Effective schedule in turn order."""
    return calendar.events_for(state.effective)


def next_uncompleted(state: SelectionState, calendar: Calendar) -> Event | None:
    for event in schedule(state, calendar):
        if not state.record(event.event_id).is_finished:
            return event
    return None


def turns_until(state: SelectionState, calendar: Calendar, event: Event) -> int:
    """Free turns between the previous scheduled race and this one."""
    previous_turn = 0
    for scheduled in schedule(state, calendar):
        if scheduled.event_id == event.event_id:
            break
        previous_turn = scheduled.turn
    return event.turn - previous_turn - 1


def upcoming_after(
    state: SelectionState, calendar: Calendar, event: Event, *, limit: int = 3
) -> tuple[UpcomingEvent, ...]:
    ordered = schedule(state, calendar)
    ids = [scheduled.event_id for scheduled in ordered]
    if event.event_id not in ids:
        return ()
    start = ids.index(event.event_id)
    upcoming: list[UpcomingEvent] = []
    previous_turn = event.turn
    for scheduled in ordered[start + 1 : start + 1 + limit]:
        upcoming.append(
            UpcomingEvent(event=scheduled, turns_after_previous=scheduled.turn - previous_turn - 1)
        )
        previous_turn = scheduled.turn
    return tuple(upcoming)


def previously_won(
    state: SelectionState, calendar: Calendar, mandatory: frozenset[str], event: Event
) -> bool:
    """Another scheduled instance of this repeatable race is already won."""
    if event.event_id in mandatory or calendar.is_exclusive(event.name):
        return False
    return any(
        scheduled.name == event.name and state.record(scheduled.event_id).won
        for scheduled in schedule(state, calendar)
    )


def next_instance_planned(state: SelectionState, calendar: Calendar, event: Event) -> bool:
    if calendar.is_exclusive(event.name):
        return False
    return any(
        other.turn > event.turn and other.event_id in state.effective
        for other in calendar.instances_of(event.name)
    )


def next_event_view(
    state: SelectionState, calendar: Calendar, mandatory: frozenset[str]
) -> NextEventView | None:
    event = next_uncompleted(state, calendar)
    if event is None:
        return None
    return NextEventView(
        event=event,
        is_mandatory=event.event_id in mandatory,
        is_exclusive=calendar.is_exclusive(event.name),
        notes=state.record(event.event_id).notes,
        turns_until=turns_until(state, calendar, event),
        upcoming=upcoming_after(state, calendar, event),
        previously_won=previously_won(state, calendar, mandatory, event),
        next_instance_planned=next_instance_planned(state, calendar, event),
    )


def schedule_counts(state: SelectionState, calendar: Calendar) -> ScheduleCounts:
    grades = {grade: 0 for grade in GRADED_TIERS}
    distances = {category: 0 for category in DISTANCE_CATEGORIES}
    won = 0
    for event in calendar.events_for(state.effective):
        if event.grade in grades:
            grades[event.grade] += 1
        distances[event.distance_category] += 1
    for event_id in state.effective:
        if state.record(event_id).won:
            won += 1
    return ScheduleCounts(grades=grades, distances=distances, won=won, total=len(state.effective))


def total_base_reward(state: SelectionState, calendar: Calendar) -> int:
    """Sum of first-place rewards; placeholder rewards are not counted."""
    return sum(
        event.reward_first_place
        for event in calendar.events_for(state.effective)
        if event.reward_first_place is not None and event.reward_first_place > MIN_COUNTED_REWARD
    )


def estimated_total(base_reward: int, bonus_percent: float) -> int:
    multiplier = 1 + (bonus_percent or 0) / 100
    return round(base_reward * multiplier)


def reward_by_placement(first_place_reward: int | None, placement: int) -> int:
    multiplier = PLACEMENT_MULTIPLIERS.get(placement)
    if first_place_reward is None or multiplier is None:
        return 0
    return round(first_place_reward * multiplier)


def completion_status_text(state: SelectionState, calendar: Calendar) -> str:
    ordered = schedule(state, calendar)
    if not ordered:
        return "No races scheduled."
    finished = sum(1 for event in ordered if state.record(event.event_id).is_finished)
    won = sum(1 for event in ordered if state.record(event.event_id).won)
    if finished == len(ordered):
        return f"All races complete ({won} / {len(ordered)} won)."
    return f"{finished} / {len(ordered)} races done, {won} won."

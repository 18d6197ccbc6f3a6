"""State-in/state-out mutation primitives for the selection state."""

from __future__ import annotations

from dataclasses import replace

from race_planner.core.calendar import Calendar
from race_planner.domain.models import (
    CompletionField,
    CompletionRecord,
    CompletionStatus,
    SelectionState,
)


def apply_completion(
    record: CompletionRecord, field: CompletionField, value: bool | str
) -> CompletionRecord:
    """Transition one completion record.

    Mirrors the flag forcing rules: winning implies having run, skipping
    clears both, and un-running clears a win.
    """
    if field == "notes":
        return replace(record, notes=str(value))
    flag = bool(value)
    status: CompletionStatus = record.status
    if field == "won":
        if flag:
            status = "won"
        elif status == "won":
            status = "ran"
    elif field == "ran":
        if flag:
            status = "won" if status == "won" else "ran"
        elif status in ("ran", "won"):
            status = "not_started"
    elif field == "skipped":
        if flag:
            status = "skipped"
        elif status == "skipped":
            status = "not_started"
    else:
        raise ValueError(f"Unknown completion field '{field}'.")
    return replace(record, status=status)


def is_trigger_record(record: CompletionRecord) -> bool:
    """Skipped, or ran without winning: the states that free a later instance."""
    return record.skipped or (record.ran and not record.won)


def toggle_event(state: SelectionState, calendar: Calendar, event_id: str) -> SelectionState:
    """Add an event (evicting other chosen events on its date) or remove it."""
    event = calendar.event(event_id)
    if event is None:
        return state
    if event_id in state.chosen:
        return state.evolve(chosen=state.chosen - {event_id})
    same_date = {other.event_id for other in calendar.events_on_date(event.slot)}
    chosen = (state.chosen - same_date) | {event_id}
    return state.evolve(chosen=chosen, auto_substituted=state.auto_substituted - same_date)


def remove_event(
    state: SelectionState, mandatory: frozenset[str], event_id: str
) -> SelectionState:
    """Drop an event from the schedule; mandatory events are never removed."""
    if event_id in mandatory:
        return state
    if event_id not in state.effective:
        return state
    return state.evolve(
        chosen=state.chosen - {event_id},
        auto_substituted=state.auto_substituted - {event_id},
    )


def clear_optional(state: SelectionState, mandatory: frozenset[str]) -> SelectionState:
    """Keep only mandatory events in the chosen set."""
    return state.evolve(chosen=state.chosen & mandatory)


def reset_statuses(state: SelectionState) -> SelectionState:
    """Reset ran/won/skipped on every record, keep notes, undo auto-substitutions."""
    chosen = set(state.chosen)
    for substitute_id in state.auto_substituted:
        origin = chain_origin(state, substitute_id)
        if origin is not None:
            chosen.add(origin)
    completion = {
        event_id: CompletionRecord(notes=record.notes)
        for event_id, record in state.completion.items()
    }
    return state.evolve(
        chosen=chosen, auto_substituted=frozenset(), completion=completion, substituted_for={}
    )


def clear_notes(state: SelectionState) -> SelectionState:
    completion = {
        event_id: replace(record, notes="") for event_id, record in state.completion.items()
    }
    return state.evolve(completion=completion)


def chain_origin(state: SelectionState, substitute_id: str) -> str | None:
    """Event the user scheduled before a run of substitutions led to this one."""
    origin = state.substituted_for.get(substitute_id)
    seen = {substitute_id}
    while origin is not None and origin in state.substituted_for and origin not in seen:
        seen.add(origin)
        origin = state.substituted_for[origin]
    return origin

"""Completion updates with automatic promotion of later race instances."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from race_planner.core.calendar import Calendar
from race_planner.core.selection import apply_completion, is_trigger_record
from race_planner.core.warnings import adds_warnings
from race_planner.domain.models import CompletionField, Event, SelectionState

logger = logging.getLogger(__name__)

SkipReason = Literal[
    "unknown_event",
    "not_scheduled",
    "mandatory",
    "exclusive",
    "no_later_instance",
    "date_occupied",
    "would_add_warnings",
    "not_substituted",
]


@dataclass(frozen=True)
class CompletionOutcome:
    """New state plus what the substitution engine did, if anything."""

    state: SelectionState
    substituted_id: str | None = None
    reverted_id: str | None = None
    skipped_reason: SkipReason | None = None


def set_completion(
    state: SelectionState,
    calendar: Calendar,
    mandatory: frozenset[str],
    event_id: str,
    field: CompletionField,
    value: bool | str,
    *,
    prevent_warning_additions: bool = True,
) -> CompletionOutcome:
    """Apply a completion transition and its substitution side effect.

    Entering a trigger state (skipped, or ran without a win) on a repeatable,
    non-mandatory race promotes its next calendar instance; leaving that state
    withdraws the promoted instance again.
    """
    event = calendar.event(event_id)
    if event is None:
        return CompletionOutcome(state=state, skipped_reason="unknown_event")
    before = state.record(event_id)
    after = apply_completion(before, field, value)
    updated = state.with_record(event_id, after)
    if field == "notes":
        return CompletionOutcome(state=updated)

    was_trigger = is_trigger_record(before)
    now_trigger = is_trigger_record(after)
    if was_trigger == now_trigger:
        return CompletionOutcome(state=updated)
    if event_id in mandatory:
        return CompletionOutcome(state=updated, skipped_reason="mandatory")
    if calendar.is_exclusive(event.name):
        return CompletionOutcome(state=updated, skipped_reason="exclusive")
    later = calendar.next_instance(event)
    if later is None:
        return CompletionOutcome(state=updated, skipped_reason="no_later_instance")
    if now_trigger:
        return _promote(
            updated,
            calendar,
            mandatory,
            source=event,
            substitute=later,
            prevent_warning_additions=prevent_warning_additions,
        )
    return _withdraw(updated, source=event, substitute=later)


def _promote(
    state: SelectionState,
    calendar: Calendar,
    mandatory: frozenset[str],
    *,
    source: Event,
    substitute: Event,
    prevent_warning_additions: bool,
) -> CompletionOutcome:
    if source.event_id not in state.effective:
        return CompletionOutcome(state=state, skipped_reason="not_scheduled")
    remaining = state.effective - {source.event_id}
    occupied = calendar.occupied_slots(remaining | mandatory)
    if substitute.slot in occupied:
        logger.debug(
            "substitution.skip reason=date_occupied source=%s substitute=%s",
            source.event_id,
            substitute.event_id,
        )
        return CompletionOutcome(state=state, skipped_reason="date_occupied")
    candidate = remaining | {substitute.event_id}
    if prevent_warning_additions and adds_warnings(
        state.effective, candidate, calendar, mandatory
    ):
        logger.debug(
            "substitution.skip reason=would_add_warnings source=%s substitute=%s",
            source.event_id,
            substitute.event_id,
        )
        return CompletionOutcome(state=state, skipped_reason="would_add_warnings")
    promoted = state.evolve(
        chosen=state.chosen - {source.event_id},
        auto_substituted=(state.auto_substituted - {source.event_id}) | {substitute.event_id},
        substituted_for={**state.substituted_for, substitute.event_id: source.event_id},
    )
    logger.info(
        "substitution.promoted source=%s substitute=%s name=%s",
        source.event_id,
        substitute.event_id,
        source.name,
    )
    return CompletionOutcome(state=promoted, substituted_id=substitute.event_id)


def _withdraw(state: SelectionState, *, source: Event, substitute: Event) -> CompletionOutcome:
    if (
        substitute.event_id not in state.auto_substituted
        or state.substituted_for.get(substitute.event_id) != source.event_id
    ):
        return CompletionOutcome(state=state, skipped_reason="not_substituted")
    auto_substituted = set(state.auto_substituted - {substitute.event_id})
    chosen = set(state.chosen)
    # A source that was itself promoted goes back to the substituted set.
    if source.event_id in state.substituted_for:
        auto_substituted.add(source.event_id)
    else:
        chosen.add(source.event_id)
    withdrawn = state.evolve(chosen=chosen, auto_substituted=auto_substituted)
    logger.info(
        "substitution.withdrawn source=%s substitute=%s",
        source.event_id,
        substitute.event_id,
    )
    return CompletionOutcome(state=withdrawn, reverted_id=substitute.event_id)

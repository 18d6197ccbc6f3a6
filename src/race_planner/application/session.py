"""Stateful planning session over the pure scheduling engine."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from race_planner.application.history import UndoHistory
from race_planner.core import epithets, optimizer, progress, selection
from race_planner.core.calendar import Calendar
from race_planner.core.epithets import EpithetAddResult, EpithetDefinition, EpithetStatus
from race_planner.core.filters import FilterPolicy, relax_thresholds, visible_events
from race_planner.core.optimizer import BatchCriteria, BatchResult, OptimizerResult
from race_planner.core.progress import NextEventView, ScheduleCounts
from race_planner.core.roster import resolve_mandatory
from race_planner.core.substitution import CompletionOutcome, set_completion
from race_planner.core.warnings import compute_warnings
from race_planner.domain.models import (
    CompletionField,
    Event,
    Profile,
    SelectionState,
)

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """Raised when a command references a profile the session does not know."""


@dataclass(frozen=True)
class Applied:
    message: str
    changed: bool = True
    warnings_increased: bool = False
    policy_relaxed: bool = False


@dataclass(frozen=True)
class NeedsConfirmation:
    """Command held back; repeat it with an explicit choice to proceed."""

    reason: str
    message: str
    preview: SelectionState


CommandResult = Applied | NeedsConfirmation


@dataclass(frozen=True)
class SessionMemento:
    """Everything a saved checklist restores."""

    profile_name: str | None
    aptitudes: dict[str, str] = field(default_factory=dict)
    state: SelectionState = field(default_factory=SelectionState)
    policy: FilterPolicy = field(default_factory=FilterPolicy)
    reward_bonus: float = 0.0


class SchedulingSession:
    """One user's planning session: active profile, schedule and filters.

    Mutating commands snapshot the selection first so the last action can be
    undone. Profile and mode switches reset the undo log because they change
    the mandatory set the earlier snapshot was taken against.
    """

    def __init__(
        self,
        calendar: Calendar,
        profiles: Iterable[Profile] = (),
        *,
        epithet_definitions: Iterable[EpithetDefinition] = (),
        policy: FilterPolicy | None = None,
        reward_bonus: float = 0.0,
    ) -> None:
        self.calendar = calendar
        self._profiles = {profile.name: profile for profile in profiles}
        self.epithet_definitions = tuple(epithet_definitions)
        self.policy = policy or FilterPolicy()
        self.reward_bonus = reward_bonus
        self.history = UndoHistory()
        self.profile: Profile | None = None
        self.aptitudes: dict[str, str] = {}
        self.state = SelectionState()
        self._resolved: frozenset[str] = frozenset()

    @property
    def mandatory(self) -> frozenset[str]:
        if self.policy.no_mandatory_mode:
            return frozenset()
        return self._resolved

    def profile_names(self) -> list[str]:
        return sorted(self._profiles)

    def select_profile(self, name: str, *, keep_optional: bool | None = None) -> CommandResult:
        """Switch the active profile.

        When optional races are planned under a resolved mandatory set and no
        choice was given, returns ``NeedsConfirmation`` with the state that
        keeping them would produce.
        """
        profile = self._profiles.get(name)
        if profile is None:
            raise SessionError(f"Unknown profile '{name}'.")
        if self.profile is not None and self.profile.name == name:
            return Applied(message=f"{name} is already selected.", changed=False)

        resolved = resolve_mandatory(profile, self.calendar)
        optional = self.state.effective - self.mandatory
        if (
            keep_optional is None
            and not self.policy.no_mandatory_mode
            and self.mandatory
            and optional
        ):
            return NeedsConfirmation(
                reason="keep_optional",
                message=f"Keep {len(optional)} optional race(s) when switching to {name}?",
                preview=self._swapped_state(resolved, keep_optional=True),
            )

        keep = bool(keep_optional)
        warnings_before = len(self.warnings())
        new_state = self._swapped_state(resolved, keep_optional=keep)
        self.profile = profile
        self.aptitudes = dict(profile.aptitudes)
        self._resolved = resolved
        self.state = new_state
        relaxed = False
        if keep and not self.policy.no_mandatory_mode:
            kept = self.calendar.events_for(new_state.effective - resolved)
            self.policy, relaxed = relax_thresholds(self.policy, self.aptitudes, kept)
        self.history.clear()
        warnings_after = len(self.warnings())
        logger.info(
            "session.profile_selected name=%s mandatory=%s kept_optional=%s",
            name,
            len(resolved),
            len(new_state.effective - resolved),
        )
        return Applied(
            message=f"Selected {name}.",
            warnings_increased=warnings_after > warnings_before,
            policy_relaxed=relaxed,
        )

    def set_no_mandatory_mode(self, enabled: bool, *, confirm: bool = False) -> CommandResult:
        if enabled == self.policy.no_mandatory_mode:
            return Applied(message="Mode unchanged.", changed=False)
        if enabled:
            cleared = self.state.evolve(chosen=frozenset(), auto_substituted=frozenset())
            if self.state.effective and not confirm:
                return NeedsConfirmation(
                    reason="clear_schedule",
                    message="This will clear your current checklist. Continue?",
                    preview=cleared,
                )
            self.policy = replace(self.policy, no_mandatory_mode=True)
            self.state = cleared
        else:
            self.policy = replace(self.policy, no_mandatory_mode=False)
            if self.profile is not None:
                self.state = self.state.evolve(chosen=self._resolved, auto_substituted=frozenset())
        self.history.clear()
        logger.info("session.no_mandatory_mode enabled=%s", enabled)
        return Applied(message="Career races hidden." if enabled else "Career races restored.")

    def update_policy(self, **changes: object) -> FilterPolicy:
        if "no_mandatory_mode" in changes:
            raise SessionError("Use set_no_mandatory_mode to change the career mode.")
        self.policy = replace(self.policy, **changes)  # type: ignore[arg-type]
        return self.policy

    def set_aptitude(self, key: str, rank: str) -> None:
        self.aptitudes[key] = rank.strip().upper()

    def set_reward_bonus(self, percent: float) -> None:
        self.reward_bonus = float(percent)

    def toggle_event(self, event_id: str) -> Applied:
        event = self.calendar.event(event_id)
        if event is None:
            return Applied(message=f"Unknown race '{event_id}'.", changed=False)
        if event_id in self.mandatory:
            return Applied(message=f"{event.name} is a career race.", changed=False)
        if event_id in self.state.auto_substituted:
            return self.remove_event(event_id)
        if event.slot is not None and event.slot in self.calendar.occupied_slots(self.mandatory):
            return Applied(message=f"{event.name} falls on a career race date.", changed=False)
        adding = event_id not in self.state.chosen
        verb = "Added" if adding else "Removed"
        return self._apply(
            f"{verb} '{event.name}'.", selection.toggle_event(self.state, self.calendar, event_id)
        )

    def remove_event(self, event_id: str) -> Applied:
        event = self.calendar.event(event_id)
        if event is None:
            return Applied(message=f"Unknown race '{event_id}'.", changed=False)
        return self._apply(
            f"Removed '{event.name}'.", selection.remove_event(self.state, self.mandatory, event_id)
        )

    def set_completion(
        self, event_id: str, field_name: CompletionField, value: bool | str
    ) -> CompletionOutcome:
        outcome = set_completion(
            self.state,
            self.calendar,
            self.mandatory,
            event_id,
            field_name,
            value,
            prevent_warning_additions=self.policy.prevent_warning_additions,
        )
        self._apply(f"Updated {field_name} for '{event_id}'.", outcome.state)
        return outcome

    def batch_select(self, criteria: BatchCriteria) -> BatchResult:
        result = optimizer.batch_select(
            self.state,
            self.calendar,
            self.mandatory,
            criteria,
            self.visible_events(),
            prevent_warning_additions=self.policy.prevent_warning_additions,
        )
        self._apply("Performed multi-select action.", result.state)
        return result

    def batch_unselect(self, criteria: BatchCriteria) -> BatchResult:
        result = optimizer.batch_unselect(
            self.state, self.mandatory, criteria, self.visible_events()
        )
        self._apply("Performed multi-select action.", result.state)
        return result

    def optimize(self) -> OptimizerResult:
        """Best reward schedule over the visible optional races, without applying it."""
        mandatory = self.mandatory
        candidates = [event for event in self.visible_events() if event.event_id not in mandatory]
        return optimizer.maximize_reward(
            candidates,
            self.calendar.turns_of(mandatory),
            prevent_warning_additions=self.policy.prevent_warning_additions,
        )

    def maximize_reward(self) -> OptimizerResult:
        result = self.optimize()
        self._apply(
            "Optimal reward schedule selected.",
            optimizer.apply_optimizer(self.state, self.mandatory, result),
        )
        return result

    def epithet_statuses(self) -> list[EpithetStatus]:
        return epithets.epithet_statuses(
            self.epithet_definitions,
            self.calendar,
            self.state,
            self.mandatory,
            aptitudes=self.aptitudes,
            policy=self.policy,
        )

    def add_epithet_races(self, race_names: Sequence[str]) -> EpithetAddResult:
        result = epithets.add_missing_races(
            self.state,
            self.calendar,
            self.mandatory,
            race_names,
            prevent_warning_additions=self.policy.prevent_warning_additions,
        )
        self._apply(f"Added {len(result.added)} race(s) for epithets.", result.state)
        return result

    def clear_optional(self) -> Applied:
        cleared = selection.clear_optional(self.state, self.mandatory)
        return self._apply(
            "Cleared optional races.", cleared.evolve(auto_substituted=frozenset())
        )

    def reset_statuses(self) -> Applied:
        return self._apply("Reset all statuses.", selection.reset_statuses(self.state))

    def clear_notes(self) -> Applied:
        return self._apply("Cleared all notes.", selection.clear_notes(self.state))

    def undo(self) -> Applied:
        entry = self.history.pop()
        if entry is None:
            return Applied(message="Nothing to undo.", changed=False)
        self.state = entry.before
        logger.info("session.undo action=%s", entry.message)
        return Applied(message=f"Undid: {entry.message}")

    def visible_events(self) -> list[Event]:
        return visible_events(
            self.calendar,
            self.policy,
            aptitudes=self.aptitudes,
            mandatory=self.mandatory,
            effective=self.state.effective,
        )

    def warnings(self) -> frozenset[str]:
        return compute_warnings(self.state.effective, self.calendar, self.mandatory)

    def schedule(self) -> list[Event]:
        return progress.schedule(self.state, self.calendar)

    def next_event(self) -> NextEventView | None:
        return progress.next_event_view(self.state, self.calendar, self.mandatory)

    def counts(self) -> ScheduleCounts:
        return progress.schedule_counts(self.state, self.calendar)

    def estimated_reward(self) -> tuple[int, int]:
        """Base first-place reward of the schedule and its bonus-adjusted total."""
        base = progress.total_base_reward(self.state, self.calendar)
        return base, progress.estimated_total(base, self.reward_bonus)

    def status_text(self) -> str:
        return progress.completion_status_text(self.state, self.calendar)

    def snapshot(self) -> SessionMemento:
        return SessionMemento(
            profile_name=self.profile.name if self.profile is not None else None,
            aptitudes=dict(self.aptitudes),
            state=self.state,
            policy=self.policy,
            reward_bonus=self.reward_bonus,
        )

    def restore(self, memento: SessionMemento) -> None:
        """Load a saved checklist; ids the calendar does not know are dropped."""
        profile = self._profiles.get(memento.profile_name or "")
        self.profile = profile
        self._resolved = (
            resolve_mandatory(profile, self.calendar) if profile is not None else frozenset()
        )
        self.aptitudes = dict(memento.aptitudes or (profile.aptitudes if profile else {}))
        self.policy = memento.policy
        self.reward_bonus = memento.reward_bonus
        known = frozenset(event.event_id for event in self.calendar)
        state = memento.state
        self.state = state.evolve(
            chosen=(state.chosen & known) | self.mandatory,
            auto_substituted=state.auto_substituted & known,
            substituted_for={
                substitute: source
                for substitute, source in state.substituted_for.items()
                if substitute in known and source in known
            },
        )
        self.history.clear()
        logger.info(
            "session.restored profile=%s chosen=%s",
            memento.profile_name,
            len(self.state.chosen),
        )

    def _swapped_state(self, resolved: frozenset[str], *, keep_optional: bool) -> SelectionState:
        if self.policy.no_mandatory_mode:
            return self.state
        if not keep_optional:
            return self.state.evolve(chosen=resolved, auto_substituted=frozenset())
        blocked = set(self.calendar.occupied_slots(resolved))

        def keeps(event_id: str) -> bool:
            event = self.calendar.event(event_id)
            return event is not None and event.slot not in blocked

        kept_chosen = {
            event_id for event_id in self.state.chosen - self.mandatory if keeps(event_id)
        }
        kept_auto = {
            event_id for event_id in self.state.auto_substituted - self.mandatory if keeps(event_id)
        }
        return self.state.evolve(
            chosen=resolved | kept_chosen, auto_substituted=kept_auto - resolved
        )

    def _apply(self, message: str, new_state: SelectionState) -> Applied:
        if new_state == self.state:
            return Applied(message=message, changed=False)
        warnings_before = len(self.warnings())
        self.history.record(message, self.state)
        self.state = new_state
        logger.debug("session.applied action=%s effective=%s", message, len(new_state.effective))
        return Applied(message=message, warnings_increased=len(self.warnings()) > warnings_before)

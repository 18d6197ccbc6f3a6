from __future__ import annotations

from race_planner.core.calendar import Calendar
from race_planner.core.selection import reset_statuses
from race_planner.core.substitution import set_completion
from race_planner.domain.models import DateSlot, Event, SelectionState


def _event(event_id: str, name: str, turn: int) -> Event:
    slot = DateSlot.from_turn(turn)
    return Event(
        event_id=event_id,
        name=name,
        grade="G1",
        surface="Turf",
        distance_meters=2000,
        raw_date_label=slot.label,
        slot=slot,
        reward_first_place=16000,
    )


def _calendar() -> Calendar:
    return Calendar(
        [
            _event("cup-1", "Cup", 10),
            _event("cup-2", "Cup", 34),
            _event("cup-3", "Cup", 58),
            _event("solo", "Solo Stakes", 12),
            _event("rival", "Rival Stakes", 34),
            _event("t32", "Prep A", 32),
            _event("t33", "Prep B", 33),
        ]
    )


def _chosen(*event_ids: str) -> SelectionState:
    return SelectionState(chosen=frozenset(event_ids))


def test_skip_promotes_next_instance() -> None:
    outcome = set_completion(_chosen("cup-1"), _calendar(), frozenset(), "cup-1", "skipped", True)
    assert outcome.substituted_id == "cup-2"
    assert outcome.state.chosen == frozenset()
    assert outcome.state.auto_substituted == {"cup-2"}
    assert outcome.state.substituted_for == {"cup-2": "cup-1"}
    assert outcome.state.record("cup-1").status == "skipped"


def test_skip_then_unskip_restores_selection() -> None:
    calendar = _calendar()
    before = _chosen("cup-1", "solo")
    skipped = set_completion(before, calendar, frozenset(), "cup-1", "skipped", True)
    restored = set_completion(skipped.state, calendar, frozenset(), "cup-1", "skipped", False)
    assert restored.reverted_id == "cup-2"
    assert restored.state.chosen == before.chosen
    assert restored.state.auto_substituted == before.auto_substituted


def test_ran_without_win_promotes_and_win_withdraws() -> None:
    calendar = _calendar()
    ran = set_completion(_chosen("cup-1"), calendar, frozenset(), "cup-1", "ran", True)
    assert ran.substituted_id == "cup-2"
    won = set_completion(ran.state, calendar, frozenset(), "cup-1", "won", True)
    assert won.reverted_id == "cup-2"
    assert won.state.chosen == {"cup-1"}
    assert won.state.auto_substituted == frozenset()
    assert won.state.record("cup-1").status == "won"


def test_staying_in_trigger_state_changes_nothing() -> None:
    calendar = _calendar()
    ran = set_completion(_chosen("cup-1"), calendar, frozenset(), "cup-1", "ran", True)
    skipped = set_completion(ran.state, calendar, frozenset(), "cup-1", "skipped", True)
    assert skipped.substituted_id is None
    assert skipped.reverted_id is None
    assert skipped.state.auto_substituted == {"cup-2"}


def test_mandatory_and_exclusive_races_never_substitute() -> None:
    calendar = _calendar()
    mandatory = set_completion(
        _chosen("cup-1"), calendar, frozenset({"cup-1"}), "cup-1", "skipped", True
    )
    assert mandatory.skipped_reason == "mandatory"
    assert mandatory.state.chosen == {"cup-1"}
    exclusive = set_completion(_chosen("solo"), calendar, frozenset(), "solo", "skipped", True)
    assert exclusive.skipped_reason == "exclusive"
    assert exclusive.state.record("solo").status == "skipped"


def test_last_instance_has_nothing_to_promote() -> None:
    outcome = set_completion(_chosen("cup-3"), _calendar(), frozenset(), "cup-3", "skipped", True)
    assert outcome.skipped_reason == "no_later_instance"
    assert outcome.state.chosen == {"cup-3"}


def test_occupied_date_blocks_promotion() -> None:
    outcome = set_completion(
        _chosen("cup-1", "rival"), _calendar(), frozenset(), "cup-1", "skipped", True
    )
    assert outcome.skipped_reason == "date_occupied"
    assert outcome.state.chosen == {"cup-1", "rival"}
    assert outcome.state.record("cup-1").status == "skipped"


def test_warning_prevention_blocks_promotion() -> None:
    calendar = _calendar()
    state = _chosen("cup-1", "t32", "t33")
    blocked = set_completion(state, calendar, frozenset(), "cup-1", "skipped", True)
    assert blocked.skipped_reason == "would_add_warnings"
    allowed = set_completion(
        state,
        calendar,
        frozenset(),
        "cup-1",
        "skipped",
        True,
        prevent_warning_additions=False,
    )
    assert allowed.substituted_id == "cup-2"


def test_unscheduled_and_unknown_events() -> None:
    calendar = _calendar()
    outcome = set_completion(SelectionState(), calendar, frozenset(), "cup-1", "skipped", True)
    assert outcome.skipped_reason == "not_scheduled"
    assert outcome.state.record("cup-1").status == "skipped"
    unknown = set_completion(SelectionState(), calendar, frozenset(), "ghost", "won", True)
    assert unknown.skipped_reason == "unknown_event"
    assert unknown.state == SelectionState()


def test_chained_substitution_unwinds_in_order() -> None:
    calendar = _calendar()
    first = set_completion(_chosen("cup-1"), calendar, frozenset(), "cup-1", "skipped", True)
    second = set_completion(first.state, calendar, frozenset(), "cup-2", "skipped", True)
    assert second.substituted_id == "cup-3"
    assert second.state.auto_substituted == {"cup-3"}

    back_one = set_completion(second.state, calendar, frozenset(), "cup-2", "skipped", False)
    assert back_one.reverted_id == "cup-3"
    assert back_one.state.auto_substituted == {"cup-2"}
    assert back_one.state.chosen == frozenset()

    back_two = set_completion(back_one.state, calendar, frozenset(), "cup-1", "skipped", False)
    assert back_two.state.chosen == {"cup-1"}
    assert back_two.state.auto_substituted == frozenset()
    assert back_two.state.substituted_for == {}


def test_notes_do_not_trigger_substitution() -> None:
    outcome = set_completion(
        _chosen("cup-1"), _calendar(), frozenset(), "cup-1", "notes", "heavy ground"
    )
    assert outcome.substituted_id is None
    assert outcome.state.record("cup-1").notes == "heavy ground"
    assert outcome.state.chosen == {"cup-1"}


def test_unskip_returns_race_to_chosen_when_earlier_instance_was_never_planned() -> None:
    calendar = _calendar()
    earlier = set_completion(_chosen("cup-2"), calendar, frozenset(), "cup-1", "skipped", True)
    assert earlier.skipped_reason == "not_scheduled"
    skipped = set_completion(earlier.state, calendar, frozenset(), "cup-2", "skipped", True)
    assert skipped.substituted_id == "cup-3"
    restored = set_completion(skipped.state, calendar, frozenset(), "cup-2", "skipped", False)
    assert restored.reverted_id == "cup-3"
    assert restored.state.chosen == {"cup-2"}
    assert restored.state.auto_substituted == frozenset()


def test_reset_after_skip_restores_the_planned_instance() -> None:
    calendar = _calendar()
    earlier = set_completion(_chosen("cup-2"), calendar, frozenset(), "cup-1", "skipped", True)
    skipped = set_completion(earlier.state, calendar, frozenset(), "cup-2", "skipped", True)
    reset = reset_statuses(skipped.state)
    assert reset.chosen == {"cup-2"}
    assert reset.auto_substituted == frozenset()
    assert reset.record("cup-1").status == "not_started"


def test_blocked_promotion_leaves_no_link_behind() -> None:
    calendar = _calendar()
    blocked = set_completion(
        _chosen("cup-1", "rival"), calendar, frozenset(), "cup-1", "skipped", True
    )
    assert blocked.skipped_reason == "date_occupied"
    unskipped = set_completion(blocked.state, calendar, frozenset(), "cup-1", "skipped", False)
    assert unskipped.skipped_reason == "not_substituted"
    assert unskipped.state.chosen == {"cup-1", "rival"}

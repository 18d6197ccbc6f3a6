from __future__ import annotations

from race_planner.core.calendar import Calendar
from race_planner.core.progress import (
    completion_status_text,
    estimated_total,
    next_event_view,
    reward_by_placement,
    schedule_counts,
    total_base_reward,
)
from race_planner.domain.models import CompletionRecord, DateSlot, Event, SelectionState


def _event(
    event_id: str, name: str, turn: int, *, grade: str = "G1", reward: int = 10000
) -> Event:
    slot = DateSlot.from_turn(turn)
    return Event(
        event_id=event_id,
        name=name,
        grade=grade,  # type: ignore[arg-type]
        surface="Turf",
        distance_meters=1600 if grade == "G2" else 2400,
        raw_date_label=slot.label,
        slot=slot,
        reward_first_place=reward,
    )


def _calendar() -> Calendar:
    return Calendar(
        [
            _event("debut", "Make Debut", 12, grade="Debut", reward=50),
            _event("cup-1", "Cup", 20),
            _event("mile", "Mile Stakes", 26, grade="G2", reward=7000),
            _event("cup-2", "Cup", 44),
            _event("final", "Final Prize", 70),
        ]
    )


def _state(records: dict[str, CompletionRecord] | None = None) -> SelectionState:
    return SelectionState(
        chosen=frozenset({"debut", "cup-1", "mile", "final"}),
        auto_substituted=frozenset({"cup-2"}),
        completion=dict(records or {}),
    )


def test_next_event_view_points_at_first_unfinished_race() -> None:
    state = _state(
        {"debut": CompletionRecord(status="won"), "cup-1": CompletionRecord(status="won")}
    )
    view = next_event_view(state, _calendar(), frozenset({"final"}))
    assert view is not None
    assert view.event.event_id == "mile"
    assert view.turns_until == 5
    assert [item.event.event_id for item in view.upcoming] == ["cup-2", "final"]
    assert [item.turns_after_previous for item in view.upcoming] == [17, 25]
    assert view.is_mandatory is False
    assert view.is_exclusive is True


def test_next_event_view_reports_repeatable_race_context() -> None:
    state = _state(
        {
            "debut": CompletionRecord(status="won"),
            "cup-1": CompletionRecord(status="won", notes="keep pace"),
        }
    )
    calendar = _calendar()
    view = next_event_view(state.evolve(chosen=state.chosen - {"mile"}), calendar, frozenset())
    assert view is not None
    assert view.event.event_id == "cup-2"
    assert view.previously_won is True
    assert view.next_instance_planned is False

    both = SelectionState(chosen=frozenset({"cup-1", "cup-2"}))
    first = next_event_view(both, calendar, frozenset())
    assert first is not None
    assert first.next_instance_planned is True
    assert first.turns_until == 19


def test_next_event_view_is_none_when_everything_is_finished() -> None:
    state = SelectionState(
        chosen=frozenset({"cup-1"}), completion={"cup-1": CompletionRecord(status="skipped")}
    )
    assert next_event_view(state, _calendar(), frozenset()) is None


def test_schedule_counts() -> None:
    counts = schedule_counts(_state({"final": CompletionRecord(status="won")}), _calendar())
    assert counts.grades == {"G1": 3, "G2": 1, "G3": 0}
    assert counts.distances["mile"] == 1
    assert counts.distances["medium"] == 4
    assert counts.won == 1
    assert counts.total == 5


def test_reward_totals_skip_placeholder_values() -> None:
    assert total_base_reward(_state(), _calendar()) == 37000
    assert estimated_total(37000, 10.0) == 40700
    assert estimated_total(1000, 0) == 1000


def test_reward_by_placement() -> None:
    assert reward_by_placement(10000, 1) == 10000
    assert reward_by_placement(10000, 2) == 4000
    assert reward_by_placement(10000, 5) == 1000
    assert reward_by_placement(10000, 6) == 0
    assert reward_by_placement(None, 1) == 0


def test_completion_status_text() -> None:
    calendar = _calendar()
    assert completion_status_text(SelectionState(), calendar) == "No races scheduled."
    partial = _state({"debut": CompletionRecord(status="won")})
    assert completion_status_text(partial, calendar) == "1 / 5 races done, 1 won."
    done = SelectionState(
        chosen=frozenset({"cup-1", "mile"}),
        completion={
            "cup-1": CompletionRecord(status="won"),
            "mile": CompletionRecord(status="skipped"),
        },
    )
    assert completion_status_text(done, calendar) == "All races complete (1 / 2 won)."

from __future__ import annotations

from race_planner.core.calendar import Calendar
from race_planner.core.warnings import adds_warnings, compute_warnings
from race_planner.domain.models import DateSlot, Event


def _event(event_id: str, turn: int | None) -> Event:
    slot = DateSlot.from_turn(turn) if turn is not None else None
    return Event(
        event_id=event_id,
        name=f"Race {event_id}",
        grade="G3",
        surface="Dirt",
        distance_meters=1800,
        raw_date_label=slot.label if slot is not None else "",
        slot=slot,
        reward_first_place=4500,
    )


def _calendar() -> Calendar:
    return Calendar(
        [
            _event("t10", 10),
            _event("t11", 11),
            _event("t12", 12),
            _event("t13", 13),
            _event("t15", 15),
            _event("t16", 16),
            _event("nodate", None),
        ]
    )


def test_third_consecutive_race_is_flagged() -> None:
    calendar = _calendar()
    assert compute_warnings({"t10", "t11", "t12"}, calendar, ()) == {"t12"}
    assert compute_warnings({"t10", "t11", "t12", "t13"}, calendar, ()) == {"t12", "t13"}


def test_gaps_break_runs() -> None:
    calendar = _calendar()
    assert compute_warnings({"t12", "t13", "t15", "t16"}, calendar, ()) == frozenset()
    assert compute_warnings({"t10", "t11"}, calendar, ()) == frozenset()


def test_mandatory_races_are_never_flagged() -> None:
    calendar = _calendar()
    assert compute_warnings({"t10", "t11", "t12"}, calendar, {"t12"}) == frozenset()
    assert compute_warnings({"t10", "t11", "t12", "t13"}, calendar, {"t12"}) == {"t13"}


def test_unknown_and_unschedulable_ids_are_ignored() -> None:
    calendar = _calendar()
    assert compute_warnings({"t10", "t11", "nodate", "ghost"}, calendar, ()) == frozenset()


def test_adds_warnings_compares_counts() -> None:
    calendar = _calendar()
    assert adds_warnings({"t10", "t11"}, {"t10", "t11", "t12"}, calendar, ()) is True
    assert adds_warnings({"t10", "t11"}, {"t10", "t11", "t13"}, calendar, ()) is False
    assert adds_warnings({"t10", "t11"}, {"t10", "t11", "t12"}, calendar, {"t12"}) is False

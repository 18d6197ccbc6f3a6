from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from race_planner.api.contracts import (
    CHECKLIST_NAME_MAX_LENGTH,
    ChecklistSnapshot,
    CompletionRequest,
    EventRecord,
    FilterPolicyModel,
    ProfileRecord,
    SnapshotError,
    import_checklists,
    load_snapshot_json,
    migrate_year_filters,
    parse_snapshot_json,
    save_snapshot_json,
)
from race_planner.application.session import SessionMemento
from race_planner.core.filters import FilterPolicy
from race_planner.domain.models import CompletionRecord, DateSlot, SelectionState


def _snapshot_payload() -> dict[str, object]:
    return {
        "name": "Derby run",
        "profileName": "Special Week",
        "selectedEventIds": [10, "12", "12", "21"],
        "completion": {"10": {"ran": True, "won": True, "notes": "clean start"}},
        "rewardBonus": None,
    }


def test_event_record_parses_published_row() -> None:
    record = EventRecord.model_validate(
        {
            "id": 12,
            "name": "Tokyo Yushun (Japanese Derby)",
            "grade": "G1",
            "ground": "Turf",
            "distance": "2400m",
            "date": "Year 2 Late May",
            "fans_gained": "TBD",
            "direction": "CCW",
            "racetrack": "Tokyo",
            "unused": "ignored",
        }
    )
    event = record.to_event()
    assert event.event_id == "12"
    assert event.distance_meters == 2400
    assert event.slot == DateSlot(2, 5, 2)
    assert event.raw_date_label == "Classic Year Late May"
    assert event.reward_first_place is None
    assert event.venue == "Tokyo"


def test_event_record_maps_ground_and_grade() -> None:
    event = EventRecord(id="7", name="February Stakes", grade="g1", ground="dirt", distance=1600)
    converted = event.to_event()
    assert converted.surface == "Dirt"
    assert converted.grade == "G1"
    assert converted.slot is None


def test_profile_record_normalizes_aptitudes() -> None:
    record = ProfileRecord.model_validate(
        {
            "name": "Haru Urara",
            "aptitudes": {"Turf": "g", "DIRT": "a", "short": "a", "mile": "b"},
            "careerObjectives": [
                {"type": "Race", "description": "Run in the February Stakes", "details": "x"}
            ],
        }
    )
    profile = record.to_profile()
    assert profile.aptitudes == {"turf": "G", "dirt": "A", "sprint": "A", "mile": "B"}
    assert profile.objectives[0].date_constraint_label == "x"


def test_snapshot_coerces_ids_and_defaults() -> None:
    snapshot = ChecklistSnapshot.model_validate(_snapshot_payload())
    assert snapshot.selected_event_ids == ["10", "12", "21"]
    assert snapshot.reward_bonus == 0.0
    assert snapshot.filter_policy.to_policy() == FilterPolicy()
    memento = snapshot.to_memento()
    assert memento.state.record("10") == CompletionRecord(status="won", notes="clean start")
    assert memento.state.chosen == {"10", "12", "21"}


def test_snapshot_name_is_truncated_and_defaulted() -> None:
    long_name = "x" * (CHECKLIST_NAME_MAX_LENGTH + 20)
    snapshot = ChecklistSnapshot.model_validate({**_snapshot_payload(), "name": long_name})
    assert len(snapshot.name) == CHECKLIST_NAME_MAX_LENGTH
    blank = ChecklistSnapshot.model_validate({**_snapshot_payload(), "name": "   "})
    assert blank.name == "Special Week"
    anonymous = ChecklistSnapshot.model_validate({"selectedEventIds": ["1"]})
    assert anonymous.name == "Untitled"
    long_profile = ChecklistSnapshot.model_validate({"profileName": "p" * 150})
    assert len(long_profile.name) == CHECKLIST_NAME_MAX_LENGTH


def test_snapshot_without_name_or_selection_parses() -> None:
    snapshot = parse_snapshot_json(
        '{"profileName": "X", "completion": {}, "filterPolicy": {},'
        ' "savedAt": "2024-01-01T00:00:00+00:00"}'
    )
    assert snapshot.name == "X"
    assert snapshot.selected_event_ids == []
    assert snapshot.substituted_for == {}
    assert snapshot.to_memento().state == SelectionState()


def test_snapshot_keeps_substitution_links() -> None:
    payload = {
        **_snapshot_payload(),
        "autoSubstitutedIds": ["21"],
        "substitutedFor": {"21": 12, "99": "12"},
    }
    snapshot = ChecklistSnapshot.model_validate(payload)
    assert snapshot.substituted_for == {"21": "12", "99": "12"}
    sanitized, _ = snapshot.sanitized({"10", "12", "21"})
    assert sanitized.substituted_for == {"21": "12"}
    memento = sanitized.to_memento()
    assert memento.state.substituted_for == {"21": "12"}
    assert ChecklistSnapshot.from_memento("copy", memento).substituted_for == {"21": "12"}


def test_snapshot_accepts_legacy_layout() -> None:
    legacy = {
        "name": "Old plan",
        "characterName": "Gold Ship",
        "selectedRaceIds": [1, 2],
        "checklistData": {"1": {"skipped": True}},
        "fanBonus": 15,
        "filters": {"trackAptitude": "c", "hideSummer": False},
        "yearFilters": {"Year 1": False, "Year 2": True, "Year 3": True},
        "isNoCareerMode": True,
    }
    snapshot = ChecklistSnapshot.model_validate(legacy)
    assert snapshot.profile_name == "Gold Ship"
    assert snapshot.selected_event_ids == ["1", "2"]
    assert snapshot.reward_bonus == 15
    policy = snapshot.filter_policy.to_policy()
    assert policy.track_aptitude == "C"
    assert policy.hide_summer is False
    assert policy.no_mandatory_mode is True
    assert policy.year_phases == {2, 3}
    assert snapshot.to_memento().state.record("1").status == "skipped"


def test_migrate_year_filters() -> None:
    assert migrate_year_filters({"Year 1": True, "Year 2": False}) == {
        "Junior Year": True,
        "Classic Year": False,
        "Senior Year": True,
    }
    assert migrate_year_filters({"Junior Year": False}) == {"Junior Year": False}
    assert migrate_year_filters(None) is None


def test_memento_round_trip_through_json(tmp_path: Path) -> None:
    policy = FilterPolicy(track_aptitude="C", hide_summer=False, grades=frozenset({"G1"}))
    memento = SessionMemento(
        profile_name="Special Week",
        aptitudes={"turf": "A"},
        state=SelectionState(
            chosen=frozenset({"10", "12"}),
            auto_substituted=frozenset({"35"}),
            completion={
                "10": CompletionRecord(status="ran", notes="blocked"),
                "21": CompletionRecord(status="skipped"),
            },
        ),
        policy=policy,
        reward_bonus=12.5,
    )
    path = tmp_path / "checklists" / "plan.json"
    save_snapshot_json(path, ChecklistSnapshot.from_memento("Plan", memento))
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["selectedEventIds"] == ["10", "12"]
    assert stored["autoSubstitutedIds"] == ["35"]

    loaded = load_snapshot_json(path).to_memento()
    assert loaded == memento


def test_sanitized_drops_unknown_ids() -> None:
    snapshot = ChecklistSnapshot.model_validate(
        {**_snapshot_payload(), "autoSubstitutedIds": ["99"]}
    )
    cleaned, removed = snapshot.sanitized({"10", "12"})
    assert removed == 1
    assert cleaned.selected_event_ids == ["10", "12"]
    assert cleaned.auto_substituted_ids == []
    assert set(cleaned.completion) == {"10"}


def test_parse_snapshot_json_wraps_errors() -> None:
    with pytest.raises(SnapshotError, match="Invalid checklist payload"):
        parse_snapshot_json('{"name": "Bad ids", "selectedEventIds": "10"}')
    with pytest.raises(SnapshotError, match="Invalid checklist payload"):
        parse_snapshot_json("[1, 2]")


def test_import_accepts_single_object_or_list() -> None:
    single = import_checklists(_snapshot_payload(), {"10", "12", "21"})
    assert [(snapshot.name, removed) for snapshot, removed in single] == [("Derby run", 0)]

    many = import_checklists(
        [_snapshot_payload(), {"name": "broken"}, {**_snapshot_payload(), "name": "Second"}],
        {"10"},
    )
    assert [(snapshot.name, removed) for snapshot, removed in many] == [
        ("Derby run", 2),
        ("Second", 2),
    ]


def test_import_without_valid_entries_fails() -> None:
    with pytest.raises(SnapshotError, match="No valid checklists"):
        import_checklists([42, {"name": "broken", "completion": []}], set())


def test_filter_policy_model_uses_saved_key_names() -> None:
    dumped = FilterPolicyModel.from_policy(FilterPolicy()).model_dump(by_alias=True)
    assert dumped["trackAptitude"] == "B"
    assert dumped["hideNonHighlighted"] is True
    assert dumped["yearFilters"] == {
        "Junior Year": True,
        "Classic Year": True,
        "Senior Year": True,
    }


def test_completion_request_rejects_unknown_field() -> None:
    with pytest.raises(ValidationError):
        CompletionRequest.model_validate(
            {"snapshot": _snapshot_payload(), "event_id": "10", "field": "placed", "value": True}
        )

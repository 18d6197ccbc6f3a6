from __future__ import annotations

from race_planner.core.calendar import Calendar
from race_planner.core.roster import extract_race_name, resolve_mandatory, unresolved_objectives
from race_planner.core.turns import parse_date_label
from race_planner.domain.models import Event, Objective, Profile


def _event(event_id: str, name: str, label: str) -> Event:
    return Event(
        event_id=event_id,
        name=name,
        grade="G1",
        surface="Turf",
        distance_meters=2400,
        raw_date_label=label,
        slot=parse_date_label(label),
        reward_first_place=20000,
    )


def _calendar() -> Calendar:
    return Calendar(
        [
            _event("derby", "Tokyo Yushun (Japanese Derby)", "Classic Year Late May"),
            _event("jc-2", "Japan Cup", "Classic Year Late November"),
            _event("jc-3", "Japan Cup", "Senior Year Late November"),
            _event("arima-2", "Arima Kinen", "Classic Year Late December"),
        ]
    )


def _race(description: str, details: str) -> Objective:
    return Objective(type="Race", description=description, date_constraint_label=details)


def test_extract_race_name_variants() -> None:
    assert extract_race_name("Run in the Satsuki Sho, place within top 5") == "Satsuki Sho"
    assert extract_race_name("Win the Japan Cup") == "Japan Cup"
    assert (
        extract_race_name("Finish in top 3 in the Tokyo Yushun (Japanese Derby)")
        == "Tokyo Yushun (Japanese Derby)"
    )


def test_extract_race_name_ignores_debut_and_partial_words() -> None:
    assert extract_race_name("Make debut") is None
    assert extract_race_name("Win the Make Debut race") is None
    assert extract_race_name("Gather other fans") is None


def test_resolve_mandatory_matches_name_and_date() -> None:
    profile = Profile(
        name="Special Week",
        objectives=(
            _race("Make debut", "Junior Year Late June"),
            _race(
                "Finish in top 3 in the Tokyo Yushun (Japanese Derby)", "Classic Year Late May"
            ),
            _race("Win the Japan Cup", "Senior Year Late November"),
            Objective(type="Fans", description="Gather the fans", date_constraint_label=""),
        ),
    )
    assert resolve_mandatory(profile, _calendar()) == {"derby", "jc-3"}


def test_resolve_mandatory_rewrites_legacy_year_labels() -> None:
    profile = Profile(
        name="Gold Ship",
        objectives=(_race("Win the Arima Kinen", "Year 2 Late December"),),
    )
    assert resolve_mandatory(profile, _calendar()) == {"arima-2"}


def test_unmatched_objectives_are_dropped_and_reported() -> None:
    missing_race = _race(
        "Run in the JBC Sprint, place within top 5", "Senior Year Early November"
    )
    wrong_date = _race("Win the Japan Cup", "Senior Year Early November")
    profile = Profile(name="Haru Urara", objectives=(missing_race, wrong_date))
    calendar = _calendar()
    assert resolve_mandatory(profile, calendar) == frozenset()
    assert unresolved_objectives(profile, calendar) == [missing_race, wrong_date]

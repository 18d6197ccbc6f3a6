"""Visibility filters and aptitude suitability over the calendar."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from race_planner.core.calendar import Calendar
from race_planner.core.turns import is_summer_slot
from race_planner.domain.models import (
    DISTANCE_CATEGORIES,
    GRADED_TIERS,
    OPTIONAL_TIERS,
    Event,
    rank_at_least,
    rank_value,
)

_HIDDEN_TIERS = frozenset({"Debut", "Maiden"})


@dataclass(frozen=True)
class FilterPolicy:
    """User-tunable filters and the warning-prevention toggle."""

    track_aptitude: str = "B"
    distance_aptitude: str = "A"
    hide_unsuitable: bool = True
    hide_summer: bool = True
    prevent_warning_additions: bool = True
    show_optional_grades: bool = False
    always_show_mandatory: bool = True
    no_mandatory_mode: bool = False
    show_only_selected: bool = False
    search_text: str = ""
    grades: frozenset[str] = field(default_factory=lambda: frozenset(GRADED_TIERS))
    year_phases: frozenset[int] = frozenset({1, 2, 3})
    surfaces: frozenset[str] = frozenset({"Turf", "Dirt"})
    distances: frozenset[str] = field(default_factory=lambda: frozenset(DISTANCE_CATEGORIES))


def surface_aptitude_key(event: Event) -> str:
    return "turf" if event.surface == "Turf" else "dirt"


def is_suitable(
    event: Event, aptitudes: Mapping[str, str] | None, policy: FilterPolicy
) -> bool:
    """Both the track and the distance aptitude meet the policy thresholds."""
    if not aptitudes:
        return False
    track_ok = rank_at_least(aptitudes.get(surface_aptitude_key(event)), policy.track_aptitude)
    distance_ok = rank_at_least(
        aptitudes.get(event.distance_category), policy.distance_aptitude
    )
    return track_ok and distance_ok


def visible_events(
    calendar: Calendar,
    policy: FilterPolicy,
    *,
    aptitudes: Mapping[str, str] | None,
    mandatory: frozenset[str],
    effective: frozenset[str],
) -> list[Event]:
    """Events the planner table shows under the given filters, turn ascending."""
    mandatory_slots = set(calendar.occupied_slots(mandatory))
    search = policy.search_text.strip().lower()
    visible: list[Event] = []
    for event in calendar:
        if event.grade in _HIDDEN_TIERS:
            continue
        if policy.show_only_selected and event.event_id not in effective:
            continue
        if policy.always_show_mandatory and event.event_id in mandatory:
            visible.append(event)
            continue
        if search and search not in event.name.lower():
            continue
        if event.year_phase not in policy.year_phases:
            continue
        if event.surface not in policy.surfaces:
            continue
        if event.distance_category not in policy.distances:
            continue
        if policy.hide_summer and is_summer_slot(event.slot):
            continue
        if (
            not policy.no_mandatory_mode
            and event.slot in mandatory_slots
            and event.event_id not in mandatory
        ):
            continue
        if not policy.show_optional_grades and event.grade in OPTIONAL_TIERS:
            continue
        if event.grade in GRADED_TIERS and event.grade not in policy.grades:
            continue
        if policy.hide_unsuitable and not is_suitable(event, aptitudes, policy):
            continue
        visible.append(event)
    return visible


def relax_thresholds(
    policy: FilterPolicy, aptitudes: Mapping[str, str], kept: Iterable[Event]
) -> tuple[FilterPolicy, bool]:
    """Lower aptitude thresholds so every kept race stays visible.

    Takes the minimum rank across the kept races; this is a display heuristic,
    not a scheduling rule.
    """
    min_track = "S"
    min_distance = "S"
    for event in kept:
        track = aptitudes.get(surface_aptitude_key(event))
        distance = aptitudes.get(event.distance_category)
        if track is not None and rank_value(track) < rank_value(min_track):
            min_track = track
        if distance is not None and rank_value(distance) < rank_value(min_distance):
            min_distance = distance
    relaxed = policy
    if rank_value(min_track) < rank_value(policy.track_aptitude):
        relaxed = replace(relaxed, track_aptitude=min_track)
    if rank_value(min_distance) < rank_value(policy.distance_aptitude):
        relaxed = replace(relaxed, distance_aptitude=min_distance)
    return relaxed, relaxed != policy

"""Static race calendar with name-group and date indexes."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, replace

from race_planner.domain.models import MAX_TURN, DateSlot, Event, GradeTier

logger = logging.getLogger(__name__)

_GRADE_ALIASES: dict[str, GradeTier] = {
    "g1": "G1",
    "g2": "G2",
    "g3": "G3",
    "op": "OP",
    "open": "OP",
    "pre-op": "Pre-OP",
    "1 win class": "Pre-OP",
    "debut": "Debut",
    "maiden": "Maiden",
}


def normalize_grade(label: str) -> GradeTier:
    """Map raw grade labels onto grade tiers; unknown labels are scenario races."""
    return _GRADE_ALIASES.get(label.strip().lower(), "Scenario")


@dataclass(frozen=True)
class TurnCell:
    """One half-month cell of the three-year calendar grid."""

    turn: int
    slot: DateSlot
    events: tuple[Event, ...]


class Calendar:
    """Immutable event list with lookups used by every scheduling rule."""

    def __init__(self, events: Iterable[Event]) -> None:
        ordered = sorted(events, key=lambda event: (event.turn, event.event_id))
        self._events: tuple[Event, ...] = tuple(ordered)
        self._by_id: dict[str, Event] = {}
        by_name: dict[str, list[Event]] = defaultdict(list)
        by_slot: dict[DateSlot, list[Event]] = defaultdict(list)
        for event in self._events:
            if event.event_id in self._by_id:
                raise ValueError(f"Duplicate event id '{event.event_id}' in calendar.")
            self._by_id[event.event_id] = event
            by_name[event.name.strip()].append(event)
            if event.slot is not None:
                by_slot[event.slot].append(event)
        self._by_name = {name: tuple(group) for name, group in by_name.items()}
        self._by_slot = {slot: tuple(group) for slot, group in by_slot.items()}
        unschedulable = sum(1 for event in self._events if event.slot is None)
        if unschedulable:
            logger.warning("calendar.unschedulable_events count=%s", unschedulable)

    @classmethod
    def build(
        cls,
        events: Iterable[Event],
        *,
        reward_overrides: Mapping[str, int] | None = None,
    ) -> Calendar:
        """Create a calendar, remapping known reward values once."""
        overrides = dict(reward_overrides or {})
        remapped: list[Event] = []
        replaced = 0
        for event in events:
            if event.reward_first_place is not None:
                key = str(event.reward_first_place)
                if key in overrides:
                    event = replace(event, reward_first_place=overrides[key])
                    replaced += 1
            remapped.append(event)
        calendar = cls(remapped)
        logger.info(
            "calendar.built events=%s name_groups=%s reward_overrides=%s",
            len(calendar),
            calendar.name_group_count,
            replaced,
        )
        return calendar

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._by_id

    @property
    def events(self) -> tuple[Event, ...]:
        return self._events

    @property
    def name_group_count(self) -> int:
        return len(self._by_name)

    def event(self, event_id: str) -> Event | None:
        return self._by_id.get(event_id)

    def events_for(self, event_ids: Iterable[str]) -> list[Event]:
        """Known events for the given ids, turn ascending."""
        found = [self._by_id[event_id] for event_id in set(event_ids) if event_id in self._by_id]
        return sorted(found, key=lambda event: (event.turn, event.event_id))

    def events_on_date(self, slot: DateSlot | None) -> tuple[Event, ...]:
        if slot is None:
            return ()
        return self._by_slot.get(slot, ())

    def events_on_turn(self, turn: int) -> tuple[Event, ...]:
        if not 1 <= turn <= MAX_TURN:
            return ()
        return self.events_on_date(DateSlot.from_turn(turn))

    def instances_of(self, name: str) -> tuple[Event, ...]:
        return self._by_name.get(name.strip(), ())

    def exclusivity_count_of(self, name: str) -> int:
        return max(1, len(self.instances_of(name)))

    def is_exclusive(self, name: str) -> bool:
        return self.exclusivity_count_of(name) == 1

    def next_instance(self, event: Event) -> Event | None:
        """Chronologically next event of the same name-group, if any."""
        later = [
            candidate
            for candidate in self.instances_of(event.name)
            if candidate.slot is not None and candidate.turn > event.turn
        ]
        if not later:
            return None
        return min(later, key=lambda candidate: (candidate.turn, candidate.event_id))

    def occupied_slots(self, event_ids: Iterable[str]) -> dict[DateSlot, str]:
        """Map each date held by the given events to the holding event id."""
        slots: dict[DateSlot, str] = {}
        for event in self.events_for(event_ids):
            if event.slot is not None:
                slots[event.slot] = event.event_id
        return slots

    def turns_of(self, event_ids: Iterable[str]) -> set[int]:
        return {event.turn for event in self.events_for(event_ids) if event.slot is not None}

    def grid(self) -> list[TurnCell]:
        """All 72 turns with the events placed on each."""
        return [
            TurnCell(turn=turn, slot=DateSlot.from_turn(turn), events=self.events_on_turn(turn))
            for turn in range(1, MAX_TURN + 1)
        ]

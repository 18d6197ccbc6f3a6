"""Core race planning domain models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Final, Literal

GradeTier = Literal["G1", "G2", "G3", "OP", "Pre-OP", "Debut", "Maiden", "Scenario"]
Surface = Literal["Turf", "Dirt"]
DistanceCategory = Literal["sprint", "mile", "medium", "long"]
Rank = Literal["S", "A", "B", "C", "D", "E", "F", "G"]
CompletionStatus = Literal["not_started", "ran", "won", "skipped"]
CompletionField = Literal["ran", "won", "skipped", "notes"]

GRADED_TIERS: Final[tuple[GradeTier, ...]] = ("G1", "G2", "G3")
OPTIONAL_TIERS: Final[tuple[GradeTier, ...]] = ("OP", "Pre-OP")
DISTANCE_CATEGORIES: Final[tuple[DistanceCategory, ...]] = ("sprint", "mile", "medium", "long")
RANKS: Final[tuple[Rank, ...]] = ("S", "A", "B", "C", "D", "E", "F", "G")
RANK_VALUES: Final[dict[str, int]] = {
    "S": 6,
    "A": 5,
    "B": 4,
    "C": 3,
    "D": 2,
    "E": 1,
    "F": 0,
    "G": -1,
}
YEAR_PHASE_NAMES: Final[dict[int, str]] = {
    1: "Junior Year",
    2: "Classic Year",
    3: "Senior Year",
}
MONTH_NAMES: Final[tuple[str, ...]] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
TURNS_PER_YEAR: Final = 24
MAX_TURN: Final = 72
INVALID_TURN: Final = -1


def rank_value(rank: str | None) -> int:
    """Return the ordinal value of an aptitude rank; unknown ranks sort lowest."""
    if rank is None:
        return RANK_VALUES["G"] - 1
    return RANK_VALUES.get(rank.strip().upper(), RANK_VALUES["G"] - 1)


def rank_at_least(rank: str | None, threshold: str) -> bool:
    return rank_value(rank) >= rank_value(threshold)


def distance_category(meters: int) -> DistanceCategory:
    """Bucket a race length into its distance category."""
    if meters < 1600:
        return "sprint"
    if meters <= 1800:
        return "mile"
    if meters <= 2400:
        return "medium"
    return "long"


@dataclass(frozen=True, order=True)
class DateSlot:
    """Structured half-month date inside the three-year horizon."""

    year_phase: int
    month: int
    half: int

    @property
    def turn(self) -> int:
        return (self.year_phase - 1) * TURNS_PER_YEAR + (self.month - 1) * 2 + self.half

    @property
    def half_name(self) -> str:
        return "Early" if self.half == 1 else "Late"

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    @property
    def year_name(self) -> str:
        return YEAR_PHASE_NAMES[self.year_phase]

    @property
    def label(self) -> str:
        return f"{self.year_name} - {self.month_name} - {self.half_name}"

    @classmethod
    def from_turn(cls, turn: int) -> DateSlot:
        if not 1 <= turn <= MAX_TURN:
            raise ValueError(f"turn must be within 1..{MAX_TURN}, got {turn}")
        index = turn - 1
        year_phase, within_year = divmod(index, TURNS_PER_YEAR)
        month_index, half_index = divmod(within_year, 2)
        return cls(year_phase=year_phase + 1, month=month_index + 1, half=half_index + 1)


@dataclass(frozen=True)
class Event:
    """One calendar race instance; immutable once the calendar is loaded."""

    event_id: str
    name: str
    grade: GradeTier
    surface: Surface
    distance_meters: int
    raw_date_label: str
    slot: DateSlot | None
    reward_first_place: int | None = None
    direction: str | None = None
    venue: str | None = None

    @property
    def turn(self) -> int:
        return self.slot.turn if self.slot is not None else INVALID_TURN

    @property
    def is_schedulable(self) -> bool:
        return self.slot is not None

    @property
    def distance_category(self) -> DistanceCategory:
        return distance_category(self.distance_meters)

    @property
    def year_phase(self) -> int | None:
        return self.slot.year_phase if self.slot is not None else None


@dataclass(frozen=True)
class Objective:
    """A profile objective as published in the game data."""

    type: str
    description: str
    date_constraint_label: str


@dataclass(frozen=True)
class Profile:
    """A selectable character with aptitudes and ordered career objectives."""

    name: str
    aptitudes: dict[str, str] = field(default_factory=dict)
    objectives: tuple[Objective, ...] = ()

    def aptitude(self, key: str) -> str | None:
        return self.aptitudes.get(key)


@dataclass(frozen=True)
class CompletionRecord:
    """Progress of one scheduled event."""

    status: CompletionStatus = "not_started"
    notes: str = ""

    @property
    def ran(self) -> bool:
        return self.status in ("ran", "won")

    @property
    def won(self) -> bool:
        return self.status == "won"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def is_finished(self) -> bool:
        return self.status != "not_started"


EMPTY_COMPLETION: Final = CompletionRecord()


@dataclass(frozen=True)
class SelectionState:
    """Chosen, auto-substituted and completion data of one planning session.

    ``substituted_for`` maps each promoted instance to the event it replaced.
    A link is kept while its substitute, or a later link of the same chain,
    is still auto-substituted.
    """

    chosen: frozenset[str] = frozenset()
    auto_substituted: frozenset[str] = frozenset()
    completion: dict[str, CompletionRecord] = field(default_factory=dict)
    substituted_for: dict[str, str] = field(default_factory=dict)

    @property
    def effective(self) -> frozenset[str]:
        return self.chosen | self.auto_substituted

    def record(self, event_id: str) -> CompletionRecord:
        return self.completion.get(event_id, EMPTY_COMPLETION)

    def with_record(self, event_id: str, record: CompletionRecord) -> SelectionState:
        completion = dict(self.completion)
        completion[event_id] = record
        return replace(self, completion=completion)

    def evolve(
        self,
        *,
        chosen: frozenset[str] | set[str] | None = None,
        auto_substituted: frozenset[str] | set[str] | None = None,
        completion: dict[str, CompletionRecord] | None = None,
        substituted_for: dict[str, str] | None = None,
    ) -> SelectionState:
        auto = frozenset(self.auto_substituted if auto_substituted is None else auto_substituted)
        return SelectionState(
            chosen=frozenset(self.chosen if chosen is None else chosen),
            auto_substituted=auto,
            completion=dict(self.completion if completion is None else completion),
            substituted_for=live_links(
                self.substituted_for if substituted_for is None else substituted_for, auto
            ),
        )


def live_links(
    substituted_for: dict[str, str], auto_substituted: frozenset[str]
) -> dict[str, str]:
    """Substitution links reachable from a current auto-substituted event."""
    kept: dict[str, str] = {}
    for event_id in sorted(auto_substituted):
        current = event_id
        while current in substituted_for and current not in kept:
            kept[current] = substituted_for[current]
            current = substituted_for[current]
    return kept

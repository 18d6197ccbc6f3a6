"""Typed contracts for dataset files, saved checklists and HTTP payloads."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from race_planner.application.session import SessionMemento
from race_planner.core.calendar import normalize_grade
from race_planner.core.epithets import EpithetDefinition
from race_planner.core.filters import FilterPolicy
from race_planner.core.progress import PLACEMENT_MULTIPLIERS, reward_by_placement
from race_planner.core.turns import canonical_date_label, is_standard_distance, parse_date_label
from race_planner.domain.models import (
    DISTANCE_CATEGORIES,
    GRADED_TIERS,
    YEAR_PHASE_NAMES,
    CompletionRecord,
    Event,
    Objective,
    Profile,
    SelectionState,
)

logger = logging.getLogger(__name__)

CHECKLIST_NAME_MAX_LENGTH = 100
DEFAULT_CHECKLIST_NAME = "Untitled"
_DIGITS = re.compile(r"\d+")
_LEGACY_YEAR_KEYS = {"Year 1": 1, "Year 2": 2, "Year 3": 3}


class SnapshotError(ValueError):
    """Raised when a checklist payload cannot be parsed or validated."""


class ContractModel(BaseModel):
    """Base model config used by request and response contracts."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class RecordModel(BaseModel):
    """Lenient base for dataset files and imported checklists."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def migrate_year_filters(filters: dict[str, bool] | None) -> dict[str, bool] | None:
    """Rename legacy ``Year N`` filter keys to the named year phases."""
    if not filters or "Year 1" not in filters:
        return filters
    return {
        YEAR_PHASE_NAMES[phase]: bool(filters.get(legacy, True))
        for legacy, phase in _LEGACY_YEAR_KEYS.items()
    }


class EventRecord(RecordModel):
    """One race row of the published race list."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    grade: str = ""
    ground: str = "Turf"
    distance: int = Field(ge=0)
    date: str = ""
    fans_gained: int | None = None
    direction: str | None = None
    racetrack: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("distance", mode="before")
    @classmethod
    def _parse_distance(cls, value: Any) -> Any:
        if isinstance(value, str):
            match = _DIGITS.search(value.replace(",", ""))
            return int(match.group(0)) if match else value
        return value

    @field_validator("fans_gained", mode="before")
    @classmethod
    def _numeric_reward(cls, value: Any) -> int | None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value)

    def to_event(self) -> Event:
        date_label = canonical_date_label(self.date)
        return Event(
            event_id=self.id,
            name=self.name,
            grade=normalize_grade(self.grade),
            surface="Dirt" if self.ground.lower() == "dirt" else "Turf",
            distance_meters=self.distance,
            raw_date_label=date_label,
            slot=parse_date_label(date_label),
            reward_first_place=self.fans_gained,
            direction=self.direction,
            venue=self.racetrack,
        )


class ObjectiveRecord(RecordModel):
    type: str = ""
    description: str = ""
    details: str = ""

    def to_objective(self) -> Objective:
        return Objective(
            type=self.type,
            description=self.description,
            date_constraint_label=self.details,
        )


class ProfileRecord(RecordModel):
    """One selectable character with aptitudes and career objectives."""

    name: str = Field(min_length=1)
    aptitudes: dict[str, str] = Field(default_factory=dict)
    career_objectives: list[ObjectiveRecord] = Field(
        default_factory=list, alias="careerObjectives"
    )

    @field_validator("aptitudes")
    @classmethod
    def _normalize_aptitudes(cls, values: dict[str, str]) -> dict[str, str]:
        normalized = {
            str(key).strip().lower(): str(value).strip().upper() for key, value in values.items()
        }
        if "short" in normalized:
            normalized.setdefault("sprint", normalized["short"])
            del normalized["short"]
        return normalized

    def to_profile(self) -> Profile:
        return Profile(
            name=self.name,
            aptitudes=dict(self.aptitudes),
            objectives=tuple(objective.to_objective() for objective in self.career_objectives),
        )


class EpithetRecord(RecordModel):
    name: str = Field(min_length=1)
    races: list[str] = Field(default_factory=list)

    def to_definition(self) -> EpithetDefinition:
        return EpithetDefinition(name=self.name, races=tuple(self.races))


class CompletionModel(RecordModel):
    """Stored ran/won/skipped flags plus notes of one event."""

    ran: bool = False
    won: bool = False
    skipped: bool = False
    notes: str = ""

    def to_record(self) -> CompletionRecord:
        if self.won:
            return CompletionRecord(status="won", notes=self.notes)
        if self.skipped:
            return CompletionRecord(status="skipped", notes=self.notes)
        if self.ran:
            return CompletionRecord(status="ran", notes=self.notes)
        return CompletionRecord(notes=self.notes)

    @classmethod
    def from_record(cls, record: CompletionRecord) -> CompletionModel:
        return cls(ran=record.ran, won=record.won, skipped=record.skipped, notes=record.notes)


class FilterPolicyModel(RecordModel):
    """Serialized planner filters; keys follow the saved-checklist format."""

    track_aptitude: str = Field(default="B", alias="trackAptitude")
    distance_aptitude: str = Field(default="A", alias="distanceAptitude")
    hide_unsuitable: bool = Field(default=True, alias="hideNonHighlighted")
    hide_summer: bool = Field(default=True, alias="hideSummer")
    prevent_warning_additions: bool = Field(default=True, alias="preventWarningAdd")
    show_optional_grades: bool = Field(default=False, alias="showOptionalGrades")
    always_show_mandatory: bool = Field(default=True, alias="alwaysShowCareer")
    no_mandatory_mode: bool = Field(default=False, alias="isNoCareerMode")
    grade_filters: dict[str, bool] = Field(
        default_factory=lambda: {grade: True for grade in GRADED_TIERS}, alias="gradeFilters"
    )
    year_filters: dict[str, bool] = Field(
        default_factory=lambda: {name: True for name in YEAR_PHASE_NAMES.values()},
        alias="yearFilters",
    )
    track_filters: dict[str, bool] = Field(
        default_factory=lambda: {"Turf": True, "Dirt": True}, alias="trackFilters"
    )
    distance_filters: dict[str, bool] = Field(
        default_factory=lambda: {category: True for category in DISTANCE_CATEGORIES},
        alias="distanceFilters",
    )

    @field_validator("year_filters", mode="before")
    @classmethod
    def _migrate_years(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return migrate_year_filters(value)
        return value

    def to_policy(self) -> FilterPolicy:
        def enabled(filters: dict[str, bool], keys: Iterable[str]) -> frozenset[str]:
            return frozenset(key for key in keys if filters.get(key, True))

        year_phases = frozenset(
            phase
            for phase, name in YEAR_PHASE_NAMES.items()
            if self.year_filters.get(name, True)
        )
        return FilterPolicy(
            track_aptitude=self.track_aptitude.upper(),
            distance_aptitude=self.distance_aptitude.upper(),
            hide_unsuitable=self.hide_unsuitable,
            hide_summer=self.hide_summer,
            prevent_warning_additions=self.prevent_warning_additions,
            show_optional_grades=self.show_optional_grades,
            always_show_mandatory=self.always_show_mandatory,
            no_mandatory_mode=self.no_mandatory_mode,
            grades=enabled(self.grade_filters, GRADED_TIERS),
            year_phases=year_phases,
            surfaces=enabled(self.track_filters, ("Turf", "Dirt")),
            distances=enabled(self.distance_filters, DISTANCE_CATEGORIES),
        )

    @classmethod
    def from_policy(cls, policy: FilterPolicy) -> FilterPolicyModel:
        return cls(
            track_aptitude=policy.track_aptitude,
            distance_aptitude=policy.distance_aptitude,
            hide_unsuitable=policy.hide_unsuitable,
            hide_summer=policy.hide_summer,
            prevent_warning_additions=policy.prevent_warning_additions,
            show_optional_grades=policy.show_optional_grades,
            always_show_mandatory=policy.always_show_mandatory,
            no_mandatory_mode=policy.no_mandatory_mode,
            grade_filters={grade: grade in policy.grades for grade in GRADED_TIERS},
            year_filters={
                name: phase in policy.year_phases for phase, name in YEAR_PHASE_NAMES.items()
            },
            track_filters={surface: surface in policy.surfaces for surface in ("Turf", "Dirt")},
            distance_filters={
                category: category in policy.distances for category in DISTANCE_CATEGORIES
            },
        )


def _migrate_legacy_checklist(data: dict[str, Any]) -> dict[str, Any]:
    """Fold the older flat checklist layout into the current field names."""
    migrated = dict(data)
    renames = {
        "characterName": "profileName",
        "selectedRaceIds": "selectedEventIds",
        "checklistData": "completion",
        "fanBonus": "rewardBonus",
        "modifiedAptitudes": "aptitudes",
    }
    for legacy, current in renames.items():
        if legacy in migrated and current not in migrated:
            migrated[current] = migrated.pop(legacy)
    if "filterPolicy" not in migrated and "filter_policy" not in migrated:
        policy = dict(migrated.get("filters") or {})
        for key in (
            "gradeFilters",
            "yearFilters",
            "trackFilters",
            "distanceFilters",
            "showOptionalGrades",
            "alwaysShowCareer",
            "isNoCareerMode",
        ):
            if migrated.get(key) is not None:
                policy[key] = migrated[key]
        migrated["filterPolicy"] = policy
    return migrated


class ChecklistSnapshot(RecordModel):
    """A named, saved planning session."""

    name: str = Field(default=DEFAULT_CHECKLIST_NAME, min_length=1)
    profile_name: str | None = Field(default=None, alias="profileName")
    aptitudes: dict[str, str] | None = None
    selected_event_ids: list[str] = Field(default_factory=list, alias="selectedEventIds")
    auto_substituted_ids: list[str] = Field(default_factory=list, alias="autoSubstitutedIds")
    substituted_for: dict[str, str] = Field(default_factory=dict, alias="substitutedFor")
    completion: dict[str, CompletionModel] = Field(default_factory=dict)
    filter_policy: FilterPolicyModel = Field(
        default_factory=FilterPolicyModel, alias="filterPolicy"
    )
    reward_bonus: float = Field(default=0.0, alias="rewardBonus")
    saved_at: str = Field(default_factory=_utc_now_iso, alias="savedAt")

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_layout(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        migrated = _migrate_legacy_checklist(data)
        name = migrated.get("name")
        if not isinstance(name, str) or not name.strip():
            profile_name = migrated.get("profileName") or migrated.get("profile_name")
            migrated["name"] = (
                profile_name
                if isinstance(profile_name, str) and profile_name.strip()
                else DEFAULT_CHECKLIST_NAME
            )
        return migrated

    @field_validator("name", mode="before")
    @classmethod
    def _truncate_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()[:CHECKLIST_NAME_MAX_LENGTH]
        return value

    @field_validator("selected_event_ids", "auto_substituted_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, values: Any) -> Any:
        if isinstance(values, list):
            return list(dict.fromkeys(str(value) for value in values))
        return values

    @field_validator("substituted_for", mode="before")
    @classmethod
    def _coerce_links(cls, values: Any) -> Any:
        if isinstance(values, dict):
            return {str(key): str(value) for key, value in values.items()}
        return values

    @field_validator("reward_bonus", mode="before")
    @classmethod
    def _default_bonus(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    def sanitized(self, known_event_ids: Iterable[str]) -> tuple[ChecklistSnapshot, int]:
        """Drop ids the current calendar does not know; returns the removed count."""
        known = set(known_event_ids)
        selected = [event_id for event_id in self.selected_event_ids if event_id in known]
        auto = [event_id for event_id in self.auto_substituted_ids if event_id in known]
        completion = {
            event_id: record for event_id, record in self.completion.items() if event_id in known
        }
        links = {
            substitute: source
            for substitute, source in self.substituted_for.items()
            if substitute in known and source in known
        }
        removed = len(self.selected_event_ids) - len(selected)
        return (
            self.model_copy(
                update={
                    "selected_event_ids": selected,
                    "auto_substituted_ids": auto,
                    "substituted_for": links,
                    "completion": completion,
                }
            ),
            removed,
        )

    def to_memento(self) -> SessionMemento:
        return SessionMemento(
            profile_name=self.profile_name,
            aptitudes=dict(self.aptitudes or {}),
            state=SelectionState(
                chosen=frozenset(self.selected_event_ids),
                auto_substituted=frozenset(self.auto_substituted_ids),
                completion={
                    event_id: model.to_record() for event_id, model in self.completion.items()
                },
                substituted_for=dict(self.substituted_for),
            ),
            policy=self.filter_policy.to_policy(),
            reward_bonus=self.reward_bonus,
        )

    @classmethod
    def from_memento(
        cls, name: str, memento: SessionMemento, *, saved_at: str | None = None
    ) -> ChecklistSnapshot:
        return cls(
            name=name,
            profile_name=memento.profile_name,
            aptitudes=dict(memento.aptitudes) or None,
            selected_event_ids=sorted(memento.state.chosen),
            auto_substituted_ids=sorted(memento.state.auto_substituted),
            substituted_for=dict(sorted(memento.state.substituted_for.items())),
            completion={
                event_id: CompletionModel.from_record(record)
                for event_id, record in sorted(memento.state.completion.items())
            },
            filter_policy=FilterPolicyModel.from_policy(memento.policy),
            reward_bonus=memento.reward_bonus,
            saved_at=saved_at or _utc_now_iso(),
        )


def parse_snapshot_json(text: str) -> ChecklistSnapshot:
    try:
        return ChecklistSnapshot.model_validate_json(text)
    except ValidationError as exc:
        raise SnapshotError(f"Invalid checklist payload: {exc.error_count()} error(s).") from exc


def dump_snapshot_json(snapshot: ChecklistSnapshot) -> str:
    return snapshot.model_dump_json(indent=2, by_alias=True)


def save_snapshot_json(path: Path, snapshot: ChecklistSnapshot) -> None:
    """Persist a checklist as readable JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_snapshot_json(snapshot) + "\n", encoding="utf-8")


def load_snapshot_json(path: Path) -> ChecklistSnapshot:
    """Load and validate checklist JSON from disk."""
    return parse_snapshot_json(path.read_text(encoding="utf-8"))


def _is_checklist_entry(entry: Any) -> bool:
    if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
        return False
    event_ids = entry.get("selectedEventIds", entry.get("selectedRaceIds"))
    return isinstance(event_ids, list)


def import_checklists(
    payload: Any, known_event_ids: Iterable[str]
) -> list[tuple[ChecklistSnapshot, int]]:
    """Validate one checklist or a list of them, sanitized against the calendar.

    An imported entry must be named and carry a list of race ids. Invalid
    entries of a list are skipped; a payload without any valid checklist
    raises ``SnapshotError``.
    """
    entries = payload if isinstance(payload, list) else [payload]
    known = set(known_event_ids)
    imported: list[tuple[ChecklistSnapshot, int]] = []
    for index, entry in enumerate(entries):
        if not _is_checklist_entry(entry):
            logger.warning("checklist.import_skipped index=%s errors=shape", index)
            continue
        try:
            snapshot = ChecklistSnapshot.model_validate(entry)
        except ValidationError as exc:
            logger.warning(
                "checklist.import_skipped index=%s errors=%s", index, exc.error_count()
            )
            continue
        imported.append(snapshot.sanitized(known))
    if not imported:
        raise SnapshotError("No valid checklists found in the file.")
    return imported


class EventResponse(ContractModel):
    id: str
    name: str
    grade: str
    surface: str
    distance_meters: int
    distance_category: str
    standard_distance: bool
    date: str
    turn: int
    reward_first_place: int | None = None
    placement_rewards: list[int] = Field(default_factory=list)
    direction: str | None = None
    venue: str | None = None

    @classmethod
    def from_event(cls, event: Event) -> EventResponse:
        return cls(
            id=event.event_id,
            name=event.name,
            grade=event.grade,
            surface=event.surface,
            distance_meters=event.distance_meters,
            distance_category=event.distance_category,
            standard_distance=is_standard_distance(event.distance_meters),
            date=event.slot.label if event.slot is not None else event.raw_date_label,
            turn=event.turn,
            reward_first_place=event.reward_first_place,
            placement_rewards=[
                reward_by_placement(event.reward_first_place, placement)
                for placement in sorted(PLACEMENT_MULTIPLIERS)
            ],
            direction=event.direction,
            venue=event.venue,
        )


class TurnCellResponse(ContractModel):
    turn: int
    date: str
    summer: bool
    event_ids: list[str]


class ProfileSummaryResponse(ContractModel):
    name: str
    aptitudes: dict[str, str]
    objective_count: int


class MandatoryResponse(ContractModel):
    profile_name: str
    event_ids: list[str]
    unresolved: list[str]


class WarningsResponse(ContractModel):
    warning_ids: list[str]


class OptimizeResponse(ContractModel):
    event_ids: list[str]
    total_reward: int
    snapshot: ChecklistSnapshot


class PlanSummaryResponse(ContractModel):
    schedule: list[EventResponse]
    warning_ids: list[str]
    next_event_id: str | None = None
    status_text: str
    base_reward: int
    estimated_reward: int
    won: int
    total: int


class CompletionRequest(ContractModel):
    snapshot: ChecklistSnapshot
    event_id: str = Field(min_length=1)
    field: Literal["ran", "won", "skipped", "notes"]
    value: bool | str


class CompletionResponse(ContractModel):
    snapshot: ChecklistSnapshot
    substituted_id: str | None = None
    reverted_id: str | None = None
    skipped_reason: str | None = None


class ChecklistSummaryResponse(ContractModel):
    name: str
    profile_name: str | None = None
    event_count: int
    position: int
    saved_at: str


class ChecklistRenameRequest(ContractModel):
    new_name: str = Field(min_length=1, max_length=CHECKLIST_NAME_MAX_LENGTH)


class ChecklistMoveRequest(ContractModel):
    direction: Literal["up", "down"]


class ChecklistSortRequest(ContractModel):
    key: Literal["name", "profile"]


class ChecklistImportResponse(ContractModel):
    imported: list[str]
    skipped: list[str]
    removed_event_ids: int

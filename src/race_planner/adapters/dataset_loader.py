"""Load the race, profile, epithet and reward-override data files."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from race_planner.api.contracts import EpithetRecord, EventRecord, ProfileRecord
from race_planner.core.calendar import Calendar
from race_planner.core.epithets import EpithetDefinition
from race_planner.domain.models import Profile

logger = logging.getLogger(__name__)

RACES_FILE = "races.json"
PROFILES_FILE = "profiles.json"
EPITHETS_FILE = "epithets.json"
REWARD_OVERRIDES_FILE = "reward_overrides.json"

_EVENTS = TypeAdapter(list[EventRecord])
_PROFILES = TypeAdapter(list[ProfileRecord])
_EPITHETS = TypeAdapter(list[EpithetRecord])
_OVERRIDES = TypeAdapter(dict[str, int])


class DatasetError(ValueError):
    """Raised when a data file is missing, malformed or empty."""


@dataclass(frozen=True)
class Dataset:
    calendar: Calendar
    profiles: tuple[Profile, ...]
    epithets: tuple[EpithetDefinition, ...]

    def profile(self, name: str) -> Profile | None:
        return next((profile for profile in self.profiles if profile.name == name), None)


def resolve_data_dir(data_dir: Path | None = None) -> Path:
    """Resolve data dir from explicit arg, env var, then the bundled sample data."""
    if data_dir is not None:
        return data_dir
    env_value = os.environ.get("RACE_PLANNER_DATA_DIR", "").strip()
    if env_value:
        return Path(env_value)
    return Path(str(resources.files("race_planner").joinpath("data")))


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DatasetError(f"Data file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise DatasetError(f"Data file {path.name} is not valid JSON: {exc.msg}.") from exc


def _validate(adapter: TypeAdapter[Any], payload: Any, *, source: str) -> Any:
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        raise DatasetError(
            f"Data file {source} failed validation with {exc.error_count()} error(s)."
        ) from exc


def load_dataset(data_dir: Path | None = None) -> Dataset:
    """Build the calendar, profiles and epithets from one data directory.

    Races and profiles are required and must be non-empty; epithets and
    reward overrides are optional.
    """
    root = resolve_data_dir(data_dir)
    event_records: list[EventRecord] = _validate(
        _EVENTS, _read_json(root / RACES_FILE), source=RACES_FILE
    )
    profile_records: list[ProfileRecord] = _validate(
        _PROFILES, _read_json(root / PROFILES_FILE), source=PROFILES_FILE
    )
    if not event_records or not profile_records:
        raise DatasetError("Race and profile data must both be non-empty.")

    epithet_records: list[EpithetRecord] = []
    if (root / EPITHETS_FILE).exists():
        epithet_records = _validate(
            _EPITHETS, _read_json(root / EPITHETS_FILE), source=EPITHETS_FILE
        )
    overrides: dict[str, int] = {}
    if (root / REWARD_OVERRIDES_FILE).exists():
        overrides = _validate(
            _OVERRIDES, _read_json(root / REWARD_OVERRIDES_FILE), source=REWARD_OVERRIDES_FILE
        )

    try:
        calendar = Calendar.build(
            (record.to_event() for record in event_records), reward_overrides=overrides
        )
    except ValueError as exc:
        raise DatasetError(str(exc)) from exc
    profiles = tuple(
        sorted((record.to_profile() for record in profile_records), key=lambda item: item.name)
    )
    epithets = tuple(record.to_definition() for record in epithet_records)
    logger.info(
        "dataset.loaded dir=%s events=%s profiles=%s epithets=%s",
        root,
        len(calendar),
        len(profiles),
        len(epithets),
    )
    return Dataset(calendar=calendar, profiles=profiles, epithets=epithets)

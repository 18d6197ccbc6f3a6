"""Domain models for race planning."""

from race_planner.domain.models import (
    CompletionRecord,
    DateSlot,
    Event,
    Objective,
    Profile,
    SelectionState,
)

__all__ = [
    "CompletionRecord",
    "DateSlot",
    "Event",
    "Objective",
    "Profile",
    "SelectionState",
]

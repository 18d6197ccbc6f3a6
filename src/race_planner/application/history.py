"""Single-level undo log for session commands."""

from __future__ import annotations

from dataclasses import dataclass

from race_planner.domain.models import SelectionState


@dataclass(frozen=True)
class UndoEntry:
    message: str
    before: SelectionState


class UndoHistory:
    """Keeps only the most recent action, matching the planner's undo button."""

    def __init__(self) -> None:
        self._last: UndoEntry | None = None

    def record(self, message: str, before: SelectionState) -> None:
        self._last = UndoEntry(message=message, before=before)

    @property
    def can_undo(self) -> bool:
        return self._last is not None

    @property
    def last_message(self) -> str | None:
        return self._last.message if self._last is not None else None

    def pop(self) -> UndoEntry | None:
        entry = self._last
        self._last = None
        return entry

    def clear(self) -> None:
        self._last = None

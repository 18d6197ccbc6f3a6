"""Typed contracts shared by the HTTP app, the CLI and the data loaders."""

from race_planner.api.contracts import (
    ChecklistSnapshot,
    SnapshotError,
    load_snapshot_json,
    save_snapshot_json,
)

__all__ = [
    "ChecklistSnapshot",
    "SnapshotError",
    "load_snapshot_json",
    "save_snapshot_json",
]

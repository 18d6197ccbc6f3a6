"""SQLite-backed library of named, user-ordered checklists."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

logger = logging.getLogger(__name__)

SortKey = Literal["name", "profile"]
MoveDirection = Literal["up", "down"]


@dataclass(frozen=True)
class StoredChecklist:
    """One saved checklist row; the payload is the snapshot JSON."""

    name: str
    profile_name: str | None
    position: int
    payload_json: str
    saved_at_utc: str


class SQLiteChecklistStore:
    """Persist checklists in one table, keeping the order the user arranged."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self._db_path))
        connection.row_factory = sqlite3.Row
        return connection

    def _initialize_schema(self) -> None:
        with self._connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS checklists (
                    name TEXT PRIMARY KEY,
                    profile_name TEXT,
                    position INTEGER NOT NULL,
                    payload_json TEXT NOT NULL,
                    saved_at_utc TEXT NOT NULL
                )
                """
            )
            connection.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_checklists_position
                ON checklists(position)
                """
            )

    def save(
        self,
        *,
        name: str,
        profile_name: str | None,
        payload_json: str,
        saved_at_utc: str | None = None,
    ) -> StoredChecklist:
        """Insert a checklist at the end, or overwrite one with the same name in place."""
        saved_at = saved_at_utc or datetime.now(UTC).isoformat()
        with self._connect() as connection:
            existing = connection.execute(
                "SELECT position FROM checklists WHERE name = ?", (name,)
            ).fetchone()
            if existing is not None:
                connection.execute(
                    """
                    UPDATE checklists
                    SET profile_name = ?, payload_json = ?, saved_at_utc = ?
                    WHERE name = ?
                    """,
                    (profile_name, payload_json, saved_at, name),
                )
                position = int(existing["position"])
            else:
                position = self._next_position(connection)
                connection.execute(
                    """
                    INSERT INTO checklists
                        (name, profile_name, position, payload_json, saved_at_utc)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (name, profile_name, position, payload_json, saved_at),
                )
        logger.info(
            "checklist.saved name=%s overwrite=%s position=%s",
            name,
            existing is not None,
            position,
        )
        return StoredChecklist(
            name=name,
            profile_name=profile_name,
            position=position,
            payload_json=payload_json,
            saved_at_utc=saved_at,
        )

    def get(self, *, name: str) -> StoredChecklist | None:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT name, profile_name, position, payload_json, saved_at_utc
                FROM checklists
                WHERE name = ?
                """,
                (name,),
            ).fetchone()
        if row is None:
            return None
        return self._checklist_from_row(row)

    def list_checklists(self) -> list[StoredChecklist]:
        """All checklists in the user's order."""
        with self._connect() as connection:
            rows = connection.execute(
                """
                SELECT name, profile_name, position, payload_json, saved_at_utc
                FROM checklists
                ORDER BY position ASC, name ASC
                """
            ).fetchall()
        return [self._checklist_from_row(row) for row in rows]

    def exists(self, *, name: str) -> bool:
        return self.get(name=name) is not None

    def rename(self, *, name: str, new_name: str, payload_json: str | None = None) -> bool:
        """Rename a checklist; fails when the source is missing or the target is taken."""
        if name == new_name:
            return self.exists(name=name)
        try:
            with self._connect() as connection:
                cursor = connection.execute(
                    """
                    UPDATE checklists
                    SET name = ?, payload_json = COALESCE(?, payload_json)
                    WHERE name = ?
                    """,
                    (new_name, payload_json, name),
                )
        except sqlite3.IntegrityError:
            return False
        renamed = cursor.rowcount > 0
        if renamed:
            logger.info("checklist.renamed name=%s new_name=%s", name, new_name)
        return renamed

    def delete(self, *, name: str) -> bool:
        with self._connect() as connection:
            cursor = connection.execute("DELETE FROM checklists WHERE name = ?", (name,))
            self._compact_positions(connection)
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("checklist.deleted name=%s", name)
        return deleted

    def move(self, *, name: str, direction: MoveDirection) -> bool:
        """Swap a checklist with its neighbour; no-op at either end of the list."""
        names = [checklist.name for checklist in self.list_checklists()]
        if name not in names:
            return False
        index = names.index(name)
        target = index - 1 if direction == "up" else index + 1
        if not 0 <= target < len(names):
            return False
        names[index], names[target] = names[target], names[index]
        self._write_order(names)
        return True

    def sort(self, *, key: SortKey) -> list[StoredChecklist]:
        """Reorder the library by checklist name or by profile name."""
        checklists = self.list_checklists()
        if key == "name":
            ordered = sorted(checklists, key=lambda item: item.name.casefold())
        else:
            ordered = sorted(
                checklists,
                key=lambda item: ((item.profile_name or "").casefold(), item.name.casefold()),
            )
        self._write_order([checklist.name for checklist in ordered])
        return self.list_checklists()

    def replace_all(self, checklists: list[StoredChecklist]) -> None:
        """Replace the whole library, keeping the given order."""
        with self._connect() as connection:
            connection.execute("DELETE FROM checklists")
            connection.executemany(
                """
                INSERT INTO checklists (name, profile_name, position, payload_json, saved_at_utc)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        checklist.name,
                        checklist.profile_name,
                        position,
                        checklist.payload_json,
                        checklist.saved_at_utc,
                    )
                    for position, checklist in enumerate(checklists)
                ],
            )
        logger.info("checklist.replaced count=%s", len(checklists))

    def _write_order(self, names: list[str]) -> None:
        with self._connect() as connection:
            connection.executemany(
                "UPDATE checklists SET position = ? WHERE name = ?",
                [(position, name) for position, name in enumerate(names)],
            )

    @staticmethod
    def _next_position(connection: sqlite3.Connection) -> int:
        row = connection.execute("SELECT MAX(position) AS top FROM checklists").fetchone()
        return 0 if row is None or row["top"] is None else int(row["top"]) + 1

    @staticmethod
    def _compact_positions(connection: sqlite3.Connection) -> None:
        rows = connection.execute(
            "SELECT name FROM checklists ORDER BY position ASC, name ASC"
        ).fetchall()
        connection.executemany(
            "UPDATE checklists SET position = ? WHERE name = ?",
            [(position, row["name"]) for position, row in enumerate(rows)],
        )

    @staticmethod
    def _checklist_from_row(row: sqlite3.Row) -> StoredChecklist:
        return StoredChecklist(
            name=str(row["name"]),
            profile_name=str(row["profile_name"]) if row["profile_name"] is not None else None,
            position=int(row["position"]),
            payload_json=str(row["payload_json"]),
            saved_at_utc=str(row["saved_at_utc"]),
        )

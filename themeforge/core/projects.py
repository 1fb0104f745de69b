"""Project metadata repository and project theme.json access."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Protocol

from themeforge import paths
from themeforge.errors import ErrorCode, ThemeForgeError
from themeforge.themes.loader import load_json_document, write_json_document

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id                        TEXT    PRIMARY KEY,
    folder_name               TEXT    NOT NULL UNIQUE,
    name                      TEXT    NOT NULL DEFAULT '',
    theme                     TEXT    NOT NULL DEFAULT '',
    theme_version             TEXT,
    receive_theme_updates     INTEGER NOT NULL DEFAULT 1,
    last_theme_update_at      TEXT,
    last_theme_update_version TEXT,
    created                   TEXT    NOT NULL,
    updated                   TEXT    NOT NULL
);
"""

_COLUMNS = (
    "id",
    "folder_name",
    "name",
    "theme",
    "theme_version",
    "receive_theme_updates",
    "last_theme_update_at",
    "last_theme_update_version",
    "created",
    "updated",
)
_UPDATABLE = frozenset(_COLUMNS) - {"id"}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ProjectRecord:
    """A project and its binding to a theme."""

    id: str
    folder_name: str
    name: str
    theme: str
    theme_version: str | None = None
    receive_theme_updates: bool = True
    last_theme_update_at: str | None = None
    last_theme_update_version: str | None = None
    created: str = ""
    updated: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "folderName": self.folder_name,
            "name": self.name,
            "theme": self.theme,
            "themeVersion": self.theme_version,
            "receiveThemeUpdates": self.receive_theme_updates,
            "lastThemeUpdateAt": self.last_theme_update_at,
            "lastThemeUpdateVersion": self.last_theme_update_version,
            "created": self.created,
            "updated": self.updated,
        }


class ProjectRepository(Protocol):
    def get_project_by_id(self, project_id: str) -> ProjectRecord | None: ...

    def update_project(self, project_id: str, updates: Mapping[str, Any]) -> ProjectRecord | None: ...

    def list_projects(self) -> list[ProjectRecord]: ...


class SqliteProjectRepository:
    """Stores project records in a SQLite database."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def open(self) -> None:
        """Open the DB and initialize schema."""
        if self._conn is not None:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute(SCHEMA_SQL)
        conn.commit()
        self._conn = conn

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None

    def create_project(
        self,
        name: str,
        folder_name: str,
        theme: str,
        theme_version: str | None = None,
        *,
        project_id: str | None = None,
    ) -> ProjectRecord:
        now = utc_now()
        record = ProjectRecord(
            id=project_id or str(uuid.uuid4()),
            folder_name=folder_name,
            name=name,
            theme=theme,
            theme_version=theme_version,
            created=now,
            updated=now,
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._lock:
            conn = self._conn_or_raise()
            conn.execute(
                f"INSERT INTO projects ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                self._to_row(record),
            )
            conn.commit()
        return record

    def get_project_by_id(self, project_id: str) -> ProjectRecord | None:
        with self._lock:
            row = self._conn_or_raise().execute(
                f"SELECT {', '.join(_COLUMNS)} FROM projects WHERE id = ?",
                (project_id,),
            ).fetchone()
        return self._from_row(row) if row is not None else None

    def list_projects(self) -> list[ProjectRecord]:
        with self._lock:
            rows = self._conn_or_raise().execute(
                f"SELECT {', '.join(_COLUMNS)} FROM projects ORDER BY name COLLATE NOCASE"
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def update_project(self, project_id: str, updates: Mapping[str, Any]) -> ProjectRecord | None:
        """Apply field updates; returns the updated record or None if it does not exist."""
        unknown = set(updates) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown project fields: {', '.join(sorted(unknown))}")
        if updates:
            assignments = ", ".join(f"{column} = ?" for column in updates)
            values = [int(v) if k == "receive_theme_updates" else v for k, v in updates.items()]
            with self._lock:
                conn = self._conn_or_raise()
                conn.execute(f"UPDATE projects SET {assignments} WHERE id = ?", (*values, project_id))
                conn.commit()
        return self.get_project_by_id(project_id)

    def delete_project(self, project_id: str) -> None:
        with self._lock:
            conn = self._conn_or_raise()
            conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            conn.commit()

    def _conn_or_raise(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SqliteProjectRepository is not open")
        return self._conn

    @staticmethod
    def _to_row(record: ProjectRecord) -> tuple:
        values = [getattr(record, f.name) for f in fields(record)]
        values[_COLUMNS.index("receive_theme_updates")] = int(record.receive_theme_updates)
        return tuple(values)

    @staticmethod
    def _from_row(row: tuple) -> ProjectRecord:
        data = dict(zip(_COLUMNS, row))
        data["receive_theme_updates"] = bool(data["receive_theme_updates"])
        return ProjectRecord(**data)


def read_project_theme(projects_root: Path, folder_name: str) -> dict[str, Any]:
    """Load a project's theme.json (its settings document)."""
    json_path = paths.project_theme_json_path(projects_root, folder_name)
    try:
        return load_json_document(json_path)
    except FileNotFoundError as exc:
        raise ThemeForgeError(
            ErrorCode.FILE_NOT_FOUND,
            f"Theme settings file not found for project {folder_name}.",
            path=json_path,
        ) from exc


def save_project_theme(projects_root: Path, folder_name: str, document: Mapping[str, Any]) -> Path:
    json_path = paths.project_theme_json_path(projects_root, folder_name)
    write_json_document(json_path, document)
    return json_path

"""Persistent session store backed by SQLite — survives process restarts.

Drop-in replacement for SessionStore when you need durability.

Usage:
    store = SqliteSessionStore(db_path="~/.pii-shield/sessions.db")
    # Same API as SessionStore: create, get, update, list_sessions, ...
"""

from __future__ import annotations
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from .errors import NotFoundError, ValidationError
from .store import validate_update
from .types import DocumentSession, now_iso

_SCHEMA = """
CREATE TABLE IF NOT EXISTS document_sessions (
    id TEXT PRIMARY KEY,
    original_filename TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    mime_type TEXT NOT NULL,
    upload_path TEXT NOT NULL,
    processing_status TEXT NOT NULL DEFAULT 'created',
    processed_path TEXT,
    encryption_key_hash TEXT,
    pii_detected TEXT NOT NULL DEFAULT '[]',
    error_message TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_sessions_status
    ON document_sessions(processing_status);
"""

_COLUMNS = (
    "id", "original_filename", "file_size", "mime_type", "upload_path",
    "processing_status", "processed_path", "encryption_key_hash",
    "pii_detected", "error_message", "created_at", "updated_at",
)


def _to_row(record: dict[str, Any]) -> dict[str, Any]:
    row = dict(record)
    row["pii_detected"] = json.dumps(row["pii_detected"], ensure_ascii=False)
    return row


def _from_row(row: tuple) -> DocumentSession:
    data = dict(zip(_COLUMNS, row))
    data["pii_detected"] = json.loads(data["pii_detected"])
    return DocumentSession.from_dict(data)


class SqliteSessionStore:
    """Persistent DocumentSession store."""

    __slots__ = ("_db", "_lock")

    def __init__(self, *, db_path: str | Path = "sessions.db") -> None:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.executescript(_SCHEMA)
        self._lock = threading.Lock()

    def create(self, session: DocumentSession) -> DocumentSession:
        row = _to_row(session.to_dict())
        placeholders = ", ".join(f":{c}" for c in _COLUMNS)
        with self._lock:
            try:
                self._db.execute(
                    f"INSERT INTO document_sessions ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                    row,
                )
            except sqlite3.IntegrityError as e:
                raise ValidationError(f"Session {session.id} already exists") from e
            self._db.commit()
        return self.get(session.id)

    def get(self, session_id: str) -> DocumentSession:
        with self._lock:
            row = self._db.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM document_sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError("Session not found")
        return _from_row(row)

    def update(self, session_id: str, **fields: Any) -> DocumentSession:
        fields = validate_update(fields)
        values: dict[str, Any] = {}
        for name, value in fields.items():
            if name == "pii_detected":
                value = json.dumps(value, ensure_ascii=False)
            elif name == "processing_status":
                value = value.value
            values[name] = value
        values["updated_at"] = now_iso()

        assignments = ", ".join(f"{name} = :{name}" for name in values)
        with self._lock:
            cur = self._db.execute(
                f"UPDATE document_sessions SET {assignments} WHERE id = :where_id",
                {**values, "where_id": session_id},
            )
            self._db.commit()
        if cur.rowcount == 0:
            raise NotFoundError("Session not found")
        return self.get(session_id)

    def list_sessions(self) -> list[str]:
        """List all session IDs in the database."""
        with self._lock:
            rows = self._db.execute(
                "SELECT id FROM document_sessions ORDER BY created_at"
            ).fetchall()
        return [r[0] for r in rows]

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._db.execute("DELETE FROM document_sessions WHERE id = ?", (session_id,))
            self._db.commit()

    @property
    def size(self) -> int:
        with self._lock:
            return self._db.execute("SELECT COUNT(*) FROM document_sessions").fetchone()[0]

    def close(self) -> None:
        self._db.close()

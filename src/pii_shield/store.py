"""Session records and object storage — in-memory and filesystem backends.

Two collaborators the pipeline talks to:
  - a session store holding DocumentSession records (status, key hash,
    detected-PII metadata), and
  - an object store holding the original upload and the processed artifact.

Both are last-writer-wins: nothing here coordinates concurrent runs
against the same session.
"""

from __future__ import annotations
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .errors import NotFoundError, StorageError, ValidationError
from .types import DocumentSession, SessionStatus, now_iso

_UPDATABLE = frozenset({
    "processing_status", "processed_path", "encryption_key_hash",
    "pii_detected", "error_message",
})


@runtime_checkable
class SessionBackend(Protocol):
    """What the pipeline needs from a session store."""

    def create(self, session: DocumentSession) -> DocumentSession: ...
    def get(self, session_id: str) -> DocumentSession: ...
    def update(self, session_id: str, **fields: Any) -> DocumentSession: ...
    def list_sessions(self) -> list[str]: ...
    def delete(self, session_id: str) -> None: ...

    @property
    def size(self) -> int: ...

    def close(self) -> None: ...


@runtime_checkable
class ObjectBackend(Protocol):
    """What the pipeline needs from an object store."""

    def upload(self, path: str, data: bytes, content_type: str = ...,
               *, upsert: bool = ...) -> None: ...
    def download(self, path: str) -> bytes: ...
    def exists(self, path: str) -> bool: ...
    def delete(self, path: str) -> None: ...


def upload_path(session_id: str, filename: str) -> str:
    """Object path for an original upload."""
    name = Path(filename).name or "document"
    return f"uploads/{session_id}/{name}"


def processed_path(session_id: str) -> str:
    """Object path for the rewritten document."""
    return f"processed/{session_id}.txt"


def validate_update(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - _UPDATABLE
    if unknown:
        raise ValidationError(f"Cannot update session fields: {', '.join(sorted(unknown))}")
    if "processing_status" in fields:
        fields["processing_status"] = SessionStatus(fields["processing_status"])
    return fields


class SessionStore:
    """In-memory DocumentSession store."""

    __slots__ = ("_sessions", "_lock")

    def __init__(self) -> None:
        self._sessions: dict[str, DocumentSession] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def create(self, session: DocumentSession) -> DocumentSession:
        with self._lock:
            if session.id in self._sessions:
                raise ValidationError(f"Session {session.id} already exists")
            self._sessions[session.id] = replace(session, pii_detected=list(session.pii_detected))
        return self.get(session.id)

    def get(self, session_id: str) -> DocumentSession:
        """Return a copy of the record.  Raises NotFoundError."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError("Session not found")
            return replace(session, pii_detected=list(session.pii_detected))

    def update(self, session_id: str, **fields: Any) -> DocumentSession:
        """Overwrite the given fields.  Raises NotFoundError."""
        fields = validate_update(fields)
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise NotFoundError("Session not found")
            updated = replace(session, **fields, updated_at=now_iso())
            self._sessions[session_id] = updated
            return replace(updated, pii_detected=list(updated.pii_detected))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def list_sessions(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    @property
    def size(self) -> int:
        return len(self._sessions)

    def close(self) -> None:
        pass


class MemoryObjectStore:
    """Object store kept in a dict: path → (bytes, content type)."""

    __slots__ = ("_objects", "_lock")

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream",
               *, upsert: bool = False) -> None:
        with self._lock:
            if path in self._objects and not upsert:
                raise StorageError(f"Object already exists: {path}")
            self._objects[path] = (bytes(data), content_type)

    def download(self, path: str) -> bytes:
        with self._lock:
            if path not in self._objects:
                raise NotFoundError(f"Object not found: {path}")
            return self._objects[path][0]

    def exists(self, path: str) -> bool:
        return path in self._objects

    def delete(self, path: str) -> None:
        with self._lock:
            self._objects.pop(path, None)


class FileObjectStore:
    """Object store rooted at a directory on disk."""

    __slots__ = ("_root",)

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if target != self._root and self._root not in target.parents:
            raise ValidationError(f"Path escapes storage root: {path}")
        return target

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream",
               *, upsert: bool = False) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb" if upsert else "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise StorageError(f"Object already exists: {path}") from e
        except OSError as e:
            raise StorageError(f"Failed to upload {path}: {e.strerror}") from e

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"Object not found: {path}") from e
        except OSError as e:
            raise StorageError(f"Failed to download {path}: {e.strerror}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def delete(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)

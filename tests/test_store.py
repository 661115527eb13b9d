"""Tests for session stores, object stores and the status lifecycle."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from pii_shield.errors import NotFoundError, StorageError, ValidationError
from pii_shield.store import (
    FileObjectStore, MemoryObjectStore, ObjectBackend, SessionBackend, SessionStore,
    processed_path, upload_path,
)
from pii_shield.store_sqlite import SqliteSessionStore
from pii_shield.types import DocumentSession, SessionStatus


def _session(session_id="s1"):
    return DocumentSession(
        id=session_id,
        original_filename="a.txt",
        file_size=3,
        mime_type="text/plain",
        upload_path=upload_path(session_id, "a.txt"),
    )


@pytest.fixture(params=["memory", "sqlite"])
def sessions(request, tmp_path):
    if request.param == "memory":
        store = SessionStore()
    else:
        store = SqliteSessionStore(db_path=tmp_path / "sessions.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "filesystem"])
def objects(request, tmp_path):
    if request.param == "memory":
        return MemoryObjectStore()
    return FileObjectStore(tmp_path / "objects")


# ── Lifecycle ────────────────────────────────────────────────────────

def test_status_transitions():
    S = SessionStatus
    assert S.CREATED.can_transition(S.ANALYZING)
    assert S.ANALYZING.can_transition(S.ENCRYPTING)
    assert S.ANALYZING.can_transition(S.COMPLETED)
    assert S.ENCRYPTING.can_transition(S.COMPLETED)
    for s in (S.CREATED, S.ANALYZING, S.ENCRYPTING):
        assert s.can_transition(S.ERROR)
    assert not S.CREATED.can_transition(S.COMPLETED)
    assert not S.ENCRYPTING.can_transition(S.ANALYZING)
    assert S.COMPLETED.terminal and S.ERROR.terminal
    assert not S.CREATED.terminal


def test_session_dict_roundtrip():
    s = _session()
    s.pii_detected = [{"type": "email", "start": 0, "end": 5}]
    assert DocumentSession.from_dict(s.to_dict()) == s


# ── Session stores ───────────────────────────────────────────────────

def test_create_and_get(sessions):
    sessions.create(_session())
    got = sessions.get("s1")
    assert got.original_filename == "a.txt"
    assert got.processing_status is SessionStatus.CREATED
    assert got.pii_detected == []


def test_duplicate_create(sessions):
    sessions.create(_session())
    with pytest.raises(ValidationError):
        sessions.create(_session())


def test_get_missing(sessions):
    with pytest.raises(NotFoundError):
        sessions.get("nope")


def test_update(sessions):
    sessions.create(_session())
    records = [{"type": "ssn", "start": 1, "end": 12, "encrypted": "QQ=="}]
    updated = sessions.update(
        "s1",
        processing_status=SessionStatus.COMPLETED,
        processed_path=processed_path("s1"),
        encryption_key_hash="hash",
        pii_detected=records,
    )
    assert updated.processing_status is SessionStatus.COMPLETED
    got = sessions.get("s1")
    assert got.processed_path == "processed/s1.txt"
    assert got.encryption_key_hash == "hash"
    assert got.pii_detected == records


def test_update_accepts_status_string(sessions):
    sessions.create(_session())
    assert sessions.update("s1", processing_status="error").processing_status is SessionStatus.ERROR


def test_update_missing(sessions):
    with pytest.raises(NotFoundError):
        sessions.update("nope", error_message="x")


def test_update_rejects_unknown_fields(sessions):
    sessions.create(_session())
    with pytest.raises(ValidationError):
        sessions.update("s1", upload_path="elsewhere")


def test_get_returns_copy(sessions):
    sessions.create(_session())
    got = sessions.get("s1")
    got.pii_detected.append({"type": "x"})
    assert sessions.get("s1").pii_detected == []


def test_list_and_delete(sessions):
    sessions.create(_session("s1"))
    sessions.create(_session("s2"))
    assert sorted(sessions.list_sessions()) == ["s1", "s2"]
    assert sessions.size == 2
    sessions.delete("s1")
    assert sessions.list_sessions() == ["s2"]


def test_sqlite_survives_reopen(tmp_path):
    db = tmp_path / "sessions.db"
    store = SqliteSessionStore(db_path=db)
    store.create(_session())
    store.update("s1", processing_status=SessionStatus.ANALYZING)
    store.close()

    reopened = SqliteSessionStore(db_path=db)
    assert reopened.get("s1").processing_status is SessionStatus.ANALYZING
    reopened.close()


# ── Object stores ────────────────────────────────────────────────────

def test_upload_download(objects):
    objects.upload("uploads/s1/a.txt", b"abc", "text/plain")
    assert objects.exists("uploads/s1/a.txt")
    assert objects.download("uploads/s1/a.txt") == b"abc"


def test_upload_conflict_and_upsert(objects):
    objects.upload("processed/s1.txt", b"one")
    with pytest.raises(StorageError):
        objects.upload("processed/s1.txt", b"two")
    objects.upload("processed/s1.txt", b"two", upsert=True)
    assert objects.download("processed/s1.txt") == b"two"


def test_download_missing(objects):
    with pytest.raises(NotFoundError):
        objects.download("uploads/none")
    assert not objects.exists("uploads/none")


def test_delete_object(objects):
    objects.upload("x.txt", b"x")
    objects.delete("x.txt")
    assert not objects.exists("x.txt")


def test_filesystem_rejects_escape(tmp_path):
    store = FileObjectStore(tmp_path / "objects")
    with pytest.raises(ValidationError):
        store.upload("../outside.txt", b"x")


def test_upload_path_strips_directories():
    assert upload_path("s1", "../../etc/passwd") == "uploads/s1/passwd"


def test_backends_satisfy_protocols(sessions, objects):
    assert isinstance(sessions, SessionBackend)
    assert isinstance(objects, ObjectBackend)


if __name__ == "__main__":
    import pytest
    pytest.main([__file__, "-v"])

"""Core types."""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class PIIKind(str, Enum):
    """Detected PII kinds, in pattern-table order."""

    EMAIL = "email"
    SSN = "ssn"
    PHONE = "phone"
    CREDIT_CARD = "credit_card"
    ZIP_CODE = "zip_code"


class SessionStatus(str, Enum):
    """Processing lifecycle of a document session."""

    CREATED = "created"
    ANALYZING = "analyzing"
    ENCRYPTING = "encrypting"
    COMPLETED = "completed"
    ERROR = "error"

    def can_transition(self, to: SessionStatus) -> bool:
        return to in _TRANSITIONS[self]

    @property
    def terminal(self) -> bool:
        return not _TRANSITIONS[self]


_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.CREATED: frozenset({SessionStatus.ANALYZING, SessionStatus.ERROR}),
    SessionStatus.ANALYZING: frozenset({
        SessionStatus.ENCRYPTING, SessionStatus.COMPLETED, SessionStatus.ERROR,
    }),
    SessionStatus.ENCRYPTING: frozenset({SessionStatus.COMPLETED, SessionStatus.ERROR}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ERROR: frozenset(),
}


@dataclass(frozen=True, slots=True)
class PIIMatch:
    """A single detected PII occurrence."""
    kind: PIIKind
    value: str
    start: int             # offsets into the original text
    end: int
    confidence: float      # 0.0–1.0


@dataclass(frozen=True, slots=True)
class EncryptedMatch:
    """A PIIMatch plus its placeholder index and encrypted blob."""
    kind: PIIKind
    value: str
    start: int
    end: int
    confidence: float
    index: int
    encrypted: str         # base64(nonce ‖ ciphertext ‖ tag)

    @classmethod
    def from_match(cls, match: PIIMatch, *, index: int, encrypted: str) -> EncryptedMatch:
        return cls(
            kind=match.kind,
            value=match.value,
            start=match.start,
            end=match.end,
            confidence=match.confidence,
            index=index,
            encrypted=encrypted,
        )

    def to_record(self, *, retain_value: bool = False) -> dict[str, Any]:
        """Persisted form. The plaintext value is only kept on request."""
        record: dict[str, Any] = {
            "type": self.kind.value,
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
            "index": self.index,
            "encrypted": self.encrypted,
        }
        if retain_value:
            record["value"] = self.value
        return record


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class DocumentSession:
    """Durable record of one document's trip through the pipeline."""
    id: str
    original_filename: str
    file_size: int
    mime_type: str
    upload_path: str
    processing_status: SessionStatus = SessionStatus.CREATED
    processed_path: str | None = None
    encryption_key_hash: str | None = None       # SHA-256 of the exported key, never the key
    pii_detected: list[dict[str, Any]] = field(default_factory=list)
    error_message: str | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "original_filename": self.original_filename,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "upload_path": self.upload_path,
            "processing_status": self.processing_status.value,
            "processed_path": self.processed_path,
            "encryption_key_hash": self.encryption_key_hash,
            "pii_detected": [dict(r) for r in self.pii_detected],
            "error_message": self.error_message,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentSession:
        return cls(
            id=data["id"],
            original_filename=data["original_filename"],
            file_size=int(data["file_size"]),
            mime_type=data["mime_type"],
            upload_path=data["upload_path"],
            processing_status=SessionStatus(data.get("processing_status", "created")),
            processed_path=data.get("processed_path"),
            encryption_key_hash=data.get("encryption_key_hash"),
            pii_detected=list(data.get("pii_detected") or []),
            error_message=data.get("error_message"),
            created_at=data.get("created_at") or now_iso(),
            updated_at=data.get("updated_at") or now_iso(),
        )


@dataclass(slots=True)
class ProcessResult:
    """What a successful run hands back to its caller, and only its caller."""
    session_id: str
    key_base64: str | None      # None when nothing was found
    pii_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "keyBase64": self.key_base64,
            "piiCount": self.pii_count,
        }

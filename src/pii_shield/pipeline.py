"""Document pipeline — the main API.  Detect, encrypt, rewrite, persist.

Usage:
    from pii_shield import DocumentProcessor, SessionStore, MemoryObjectStore

    processor = DocumentProcessor(SessionStore(), MemoryObjectStore())

    session = processor.submit("letter.txt", b"Mail john@acme.com", "text/plain")
    result = processor.process(session.id)
    result.key_base64        # the only copy of the key; keep it
    processor.restore(session.id, result.key_base64)   # "Mail john@acme.com"

The key is generated once per run, returned once, and never stored: the
session record only keeps its SHA-256 fingerprint.
"""

from __future__ import annotations
import json
import logging
import uuid
from dataclasses import dataclass

from .crypto import encrypt, export_key, generate_key, import_key, key_fingerprint, verify_key
from .errors import IntegrityError, InvalidTransitionError, ValidationError
from .patterns import scan_regex
from .rewriter import OverlapPolicy, resolve_overlaps, restore, rewrite
from .store import ObjectBackend, SessionBackend, processed_path, upload_path
from .types import DocumentSession, EncryptedMatch, ProcessResult, SessionStatus

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Configuration for the DocumentProcessor."""
    overlap_policy: OverlapPolicy = OverlapPolicy.KEEP_BEST
    # Persist the plaintext of each match next to its ciphertext.  Off by
    # default: with it on, the record alone discloses the PII.
    retain_values: bool = False
    encoding: str = "utf-8"


class DocumentProcessor:
    """Runs one document at a time through detect → encrypt → rewrite."""

    def __init__(
        self,
        sessions: SessionBackend,
        objects: ObjectBackend,
        config: PipelineConfig | None = None,
    ) -> None:
        self.sessions = sessions
        self.objects = objects
        self.config = config or PipelineConfig()

    def submit(self, filename: str, data: bytes, mime_type: str = "text/plain") -> DocumentSession:
        """Store an upload and open a session for it in `created`."""
        if not filename:
            raise ValidationError("Filename is required")
        session_id = str(uuid.uuid4())
        path = upload_path(session_id, filename)
        self.objects.upload(path, data, mime_type)
        session = self.sessions.create(DocumentSession(
            id=session_id,
            original_filename=filename,
            file_size=len(data),
            mime_type=mime_type,
            upload_path=path,
        ))
        logger.info("created session for %s (%d bytes)", filename, len(data),
                    extra={"session_id": session_id, "status": session.processing_status.value})
        return session

    def status(self, session_id: str) -> DocumentSession:
        return self.sessions.get(session_id)

    def process(self, session_id: str) -> ProcessResult:
        """Run the pipeline for one session.

        Any failure after the session is loaded is recorded on the session
        (status `error`, error_message) and re-raised.
        """
        session = self.sessions.get(session_id)
        if session.processing_status is not SessionStatus.CREATED:
            raise ValidationError(
                f"Session is {session.processing_status.value}, expected created"
            )

        try:
            return self._run(session)
        except Exception as e:
            self._fail(session, e)
            raise

    def _run(self, session: DocumentSession) -> ProcessResult:
        session = self._advance(session, SessionStatus.ANALYZING)
        raw = self.objects.download(session.upload_path)
        text = raw.decode(self.config.encoding, errors="replace")

        matches = scan_regex(text)
        if not matches:
            self._advance(session, SessionStatus.COMPLETED, pii_detected=[])
            return ProcessResult(session_id=session.id, key_base64=None, pii_count=0)

        session = self._advance(session, SessionStatus.ENCRYPTING)
        matches = resolve_overlaps(matches, self.config.overlap_policy)

        key = generate_key()
        key_base64 = export_key(key)
        encrypted = [
            EncryptedMatch.from_match(m, index=i, encrypted=encrypt(key, m.value))
            for i, m in enumerate(matches)
        ]
        processed = rewrite(text, encrypted)

        path = processed_path(session.id)
        self.objects.upload(path, processed.encode("utf-8"), "text/plain", upsert=True)

        records = [m.to_record(retain_value=self.config.retain_values) for m in encrypted]
        if key_base64 in json.dumps(records):
            raise RuntimeError("Encryption key must never be persisted")

        session = self._advance(
            session,
            SessionStatus.COMPLETED,
            processed_path=path,
            encryption_key_hash=key_fingerprint(key_base64),
            pii_detected=records,
        )
        logger.info("encrypted %d match(es)", len(encrypted),
                    extra={"session_id": session.id, "status": session.processing_status.value,
                           "pii_count": len(encrypted)})
        return ProcessResult(session_id=session.id, key_base64=key_base64, pii_count=len(encrypted))

    def _advance(self, session: DocumentSession, to: SessionStatus, **fields) -> DocumentSession:
        if not session.processing_status.can_transition(to):
            raise InvalidTransitionError(
                f"{session.processing_status.value} -> {to.value} is not allowed"
            )
        updated = self.sessions.update(session.id, processing_status=to, **fields)
        logger.debug("status %s", to.value, extra={"session_id": session.id, "status": to.value})
        return updated

    def _fail(self, session: DocumentSession, error: Exception) -> None:
        logger.error("processing failed: %s", error,
                     extra={"session_id": session.id, "status": SessionStatus.ERROR.value})
        try:
            self.sessions.update(
                session.id,
                processing_status=SessionStatus.ERROR,
                error_message=str(error) or type(error).__name__,
            )
        except Exception:
            logger.exception("could not record failure", extra={"session_id": session.id})

    def verify_key(self, session_id: str, key_base64: str) -> bool:
        """Check a caller-held key against the stored fingerprint."""
        session = self.sessions.get(session_id)
        if session.encryption_key_hash is None:
            return False
        return verify_key(key_base64, session.encryption_key_hash)

    def restore(self, session_id: str, key_base64: str) -> str:
        """Decrypt the processed document for a key holder."""
        session = self.sessions.get(session_id)
        if session.processing_status is not SessionStatus.COMPLETED:
            raise ValidationError(f"Session is {session.processing_status.value}, expected completed")
        if session.processed_path is None:
            # nothing was found, the original is the result
            return self.objects.download(session.upload_path).decode(
                self.config.encoding, errors="replace")
        if not self.verify_key(session_id, key_base64):
            raise IntegrityError("Failed to decrypt text. Invalid key or corrupted data.")
        text = self.objects.download(session.processed_path).decode("utf-8")
        return restore(text, import_key(key_base64))

"""pii-shield — detect PII in documents and encrypt it in place."""

from .pipeline import DocumentProcessor, PipelineConfig
from .store import SessionStore, MemoryObjectStore, FileObjectStore, SessionBackend, ObjectBackend
from .store_sqlite import SqliteSessionStore
from .rewriter import OverlapPolicy
from .config import create_processor, load_config, load_from_yaml
from .errors import (
    PIIShieldError, NotFoundError, StorageError, IntegrityError,
    ValidationError, OverlapError, InvalidTransitionError,
)
from .types import (
    PIIKind, PIIMatch, EncryptedMatch, SessionStatus, DocumentSession, ProcessResult,
)

__all__ = [
    "DocumentProcessor", "PipelineConfig",
    "SessionStore", "SqliteSessionStore",
    "MemoryObjectStore", "FileObjectStore",
    "SessionBackend", "ObjectBackend",
    "OverlapPolicy",
    "create_processor", "load_config", "load_from_yaml",
    "PIIShieldError", "NotFoundError", "StorageError", "IntegrityError",
    "ValidationError", "OverlapError", "InvalidTransitionError",
    "PIIKind", "PIIMatch", "EncryptedMatch", "SessionStatus", "DocumentSession", "ProcessResult",
]
__version__ = "0.1.0"

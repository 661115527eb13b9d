"""Error taxonomy.

Every error the pipeline raises on purpose derives from PIIShieldError and
carries the HTTP status the sidecar answers with.
"""

from __future__ import annotations


class PIIShieldError(Exception):
    """Base class for all pii-shield errors."""
    http_status = 500


class NotFoundError(PIIShieldError):
    """Session record or stored object does not exist."""
    http_status = 404


class StorageError(PIIShieldError):
    """Object store read/write failed."""
    http_status = 500


class IntegrityError(PIIShieldError):
    """AEAD tag did not verify: wrong key, or tampered/corrupted blob."""
    http_status = 400


class ValidationError(PIIShieldError):
    """Missing or malformed input."""
    http_status = 400


class OverlapError(ValidationError):
    """Two matches cover intersecting spans and the policy forbids it."""


class InvalidTransitionError(PIIShieldError):
    """A session status change the lifecycle does not allow."""
    http_status = 409

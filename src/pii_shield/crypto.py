"""Encryption unit — AES-256-GCM with a fresh nonce per call.

Every encrypted unit is self-describing: base64(nonce ‖ ciphertext ‖ tag),
so any single blob can be decrypted on its own with the document key.

Usage:
    key = generate_key()
    blob = encrypt(key, "john@acme.com")
    decrypt(key, blob)            # b"john@acme.com"

    key_b64 = export_key(key)     # handed to the caller once
    fingerprint = key_fingerprint(key_b64)   # what gets persisted
"""

from __future__ import annotations
import base64
import binascii
import hashlib
import hmac
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import IntegrityError, ValidationError

KEY_BITS = 256
NONCE_SIZE = 12          # 96-bit nonce for GCM
TAG_SIZE = 16

DECRYPT_FAILED = "Failed to decrypt text. Invalid key or corrupted data."


def generate_key() -> bytes:
    return AESGCM.generate_key(bit_length=KEY_BITS)


def export_key(key: bytes) -> str:
    return base64.b64encode(key).decode("ascii")


def import_key(key_base64: str) -> bytes:
    """Decode an exported key.  Raises ValidationError if it isn't one."""
    try:
        key = base64.b64decode(key_base64, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise ValidationError("Key is not valid base64") from e
    if len(key) * 8 != KEY_BITS:
        raise ValidationError(f"Key must be {KEY_BITS} bits")
    return key


def encrypt(key: bytes, plaintext: bytes | str) -> str:
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    nonce = os.urandom(NONCE_SIZE)
    sealed = AESGCM(key).encrypt(nonce, plaintext, None)
    return base64.b64encode(nonce + sealed).decode("ascii")


def decrypt(key: bytes, blob: str) -> bytes:
    """Authenticated decrypt.  Raises IntegrityError on any mismatch."""
    try:
        combined = base64.b64decode(blob, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise IntegrityError(DECRYPT_FAILED) from e
    if len(combined) < NONCE_SIZE + TAG_SIZE:
        raise IntegrityError(DECRYPT_FAILED)

    nonce, sealed = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, sealed, None)
    except (InvalidTag, ValueError) as e:
        raise IntegrityError(DECRYPT_FAILED) from e


def decrypt_text(key_base64: str, blob: str) -> str:
    """Stateless decrypt for key holders.

    Wrong key, malformed key, tampering and bad UTF-8 all surface as the
    same IntegrityError message.
    """
    try:
        key = import_key(key_base64)
        return decrypt(key, blob).decode("utf-8")
    except (ValidationError, UnicodeDecodeError) as e:
        raise IntegrityError(DECRYPT_FAILED) from e


def key_fingerprint(key_base64: str) -> str:
    """base64(SHA-256(exported key)), persisted in place of the key."""
    digest = hashlib.sha256(key_base64.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_key(key_base64: str, fingerprint: str) -> bool:
    return hmac.compare_digest(key_fingerprint(key_base64), fingerprint)

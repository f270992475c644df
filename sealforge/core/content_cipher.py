"""AES-256-GCM content cipher.

Wire format of every sealed blob: ``nonce (12 B) || ciphertext || tag (16 B)``.
A fresh random 96-bit nonce is drawn per call.  No associated data is
bound to the content; the container's manifest is protected separately
by ``seal_manifest`` (HMAC-SHA256 under an HKDF sub-key of the data key).

Security note: never log key material, plaintext or ciphertext.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sealforge.core.cancellation import UNBOUNDED, OperationGuard
from sealforge.core.errors import CryptoError

logger = logging.getLogger(__name__)

ALGORITHM = "AES-256-GCM"
KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16


def generate_data_key() -> bytes:
    """Return a fresh random 256-bit data key."""
    return os.urandom(KEY_SIZE)


def _cipher(key: bytes) -> AESGCM:
    if len(key) != KEY_SIZE:
        raise CryptoError(
            f"invalid key length {len(key)} (expected {KEY_SIZE} bytes)"
        )
    try:
        return AESGCM(key)
    except (TypeError, ValueError) as exc:
        raise CryptoError(f"cipher setup failed: {exc}") from exc


def encrypt_stream(
    plain: bytes,
    data_key: bytes,
    *,
    guard: OperationGuard = UNBOUNDED,
) -> bytes:
    """Encrypt *plain* under *data_key*; returns ``nonce || ciphertext || tag``."""
    cipher = _cipher(data_key)
    guard.check("encryption")
    nonce = os.urandom(NONCE_SIZE)
    sealed = nonce + cipher.encrypt(nonce, plain, None)
    guard.check("encryption")
    return sealed


def decrypt_stream(
    sealed: bytes,
    data_key: bytes,
    *,
    guard: OperationGuard = UNBOUNDED,
) -> bytes:
    """Reverse ``encrypt_stream``.

    Raises
    ------
    CryptoError
        ``"authentication failed"`` when the input is shorter than a nonce
        plus tag, or when the GCM tag does not verify (tamper or wrong key).
    """
    cipher = _cipher(data_key)
    if len(sealed) < NONCE_SIZE + TAG_SIZE:
        raise CryptoError("authentication failed")
    guard.check("decryption")
    nonce, body = sealed[:NONCE_SIZE], sealed[NONCE_SIZE:]
    try:
        plain = cipher.decrypt(nonce, body, None)
    except InvalidTag as exc:
        raise CryptoError("authentication failed") from exc
    guard.check("decryption")
    return plain


# ---------------------------------------------------------------------------
# Manifest seal
# ---------------------------------------------------------------------------


def seal_manifest(seal_key: bytes, manifest: bytes) -> bytes:
    """HMAC-SHA256 of the container manifest bytes."""
    return hmac.new(seal_key, manifest, hashlib.sha256).digest()


def verify_manifest_seal(seal_key: bytes, manifest: bytes, seal: bytes) -> None:
    """Raise ``CryptoError`` unless *seal* authenticates *manifest*."""
    expected = seal_manifest(seal_key, manifest)
    if not seal or not hmac.compare_digest(expected, seal):
        raise CryptoError("manifest authentication failed")

"""Password-based and sub-key derivation.

``derive_wrapping_key`` turns a low-entropy secret into a 256-bit wrapping
key with PBKDF2-HMAC-SHA256.  It is deterministic: the wrapping key is
never persisted, so unwrap after a restart depends on re-deriving the
identical key from ``(secret, salt, iterations)``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from sealforge.core.content_cipher import KEY_SIZE
from sealforge.core.errors import CryptoError
from sealforge.core.hasher import sha256_hex

if TYPE_CHECKING:
    from sealforge.config import VaultSettings

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 100_000
SALT_SIZE = 16

_SEAL_INFO = b"sealforge-manifest-seal-v1"


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def derive_wrapping_key(
    secret: str | bytes,
    salt: str | bytes,
    iterations: int = DEFAULT_ITERATIONS,
) -> bytes:
    """Derive a 32-byte wrapping key via PBKDF2-HMAC-SHA256.

    Parameters
    ----------
    secret:
        The low-entropy secret (master passphrase or user passphrase).
    salt:
        Salt bytes (or a string, UTF-8 encoded).
    iterations:
        PBKDF2 iteration count.  Production use requires at least
        ``DEFAULT_ITERATIONS``; test fixtures may go lower.
    """
    if iterations < 1:
        raise CryptoError(f"KDF iterations must be positive, got {iterations}")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=_as_bytes(salt),
        iterations=iterations,
    )
    return kdf.derive(_as_bytes(secret))


def derive_seal_key(data_key: bytes) -> bytes:
    """HKDF-SHA256 sub-key of the data key used only for the manifest seal."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=_SEAL_INFO,
    )
    return hkdf.derive(data_key)


class RuntimeKey:
    """The server-held master wrapping key for the Runtime access method.

    Derived once (typically at process start) and held read-only.  Pass
    the instance into ``VaultEngine`` rather than reaching for a global.
    """

    __slots__ = ("_key", "_key_id")

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise CryptoError(
                f"runtime key must be {KEY_SIZE} bytes, got {len(key)}"
            )
        self._key = bytes(key)
        self._key_id = sha256_hex(b"sealforge-runtime-key-id" + self._key)[:16]

    @classmethod
    def derive(
        cls, secret: str | bytes, salt: str | bytes, iterations: int = DEFAULT_ITERATIONS
    ) -> RuntimeKey:
        return cls(derive_wrapping_key(secret, salt, iterations))

    @classmethod
    def from_settings(cls, settings: VaultSettings) -> RuntimeKey:
        """Derive the master key from ``master_secret``/``kdf_salt``/``kdf_iterations``."""
        logger.debug(
            "Deriving runtime master key (%d PBKDF2 iterations).",
            settings.kdf_iterations,
        )
        return cls.derive(
            settings.master_secret, settings.kdf_salt, settings.kdf_iterations
        )

    @property
    def key(self) -> bytes:
        return self._key

    @property
    def key_id(self) -> str:
        """Non-reversible identifier recorded alongside Runtime records."""
        return self._key_id

    def __repr__(self) -> str:
        return f"RuntimeKey(key_id={self._key_id!r})"

"""Crypto bridge — asymmetric primitives via PyNaCl (libsodium).

Bridge boundary
---------------
Symmetric work (AES-256-GCM, PBKDF2, HKDF) lives in ``sealforge.core``.
This module owns the public-key side:

1. **Sealed boxes** (``nacl.public.SealedBox``, X25519 + XSalsa20-Poly1305):
   anonymous hybrid encryption used by the Certificate access method.
   Only the holder of the matching private key can open a box.

2. **Ed25519 signatures** (``nacl.signing``): used to mint and verify
   multi-factor proof tokens for the MultiFactor policy.

All keys cross the boundary hex-encoded.  Verification is fail-closed:
malformed keys or signatures verify as ``False``.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import nacl.public
import nacl.signing
from nacl.exceptions import BadSignatureError
from nacl.exceptions import CryptoError as NaclCryptoError

from sealforge.core.errors import CryptoError, InvalidRequestError, VaultIOError
from sealforge.core.hasher import canonical_json_bytes, key_fingerprint

logger = logging.getLogger(__name__)

MFA_PURPOSE = "sealforge-mfa"
CLOCK_SKEW_SECONDS = 30

__all__ = [
    "generate_box_keypair",
    "seal_to_public_key",
    "open_sealed",
    "public_key_for",
    "read_key_file",
    "generate_signing_keypair",
    "sign_data",
    "verify_data",
    "issue_mfa_proof",
    "verify_mfa_proof",
    "key_fingerprint",
]


# ---------------------------------------------------------------------------
# Key files
# ---------------------------------------------------------------------------


def read_key_file(path: str | Path) -> str:
    """Read a hex-encoded key from *path*, stripping surrounding whitespace."""
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise VaultIOError(f"cannot read key file {path}: {exc}") from exc


def _key_bytes(key_hex: str, what: str) -> bytes:
    try:
        raw = bytes.fromhex(key_hex)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError(f"{what} is not valid hex") from exc
    if len(raw) != 32:
        raise InvalidRequestError(f"{what} must be 32 bytes, got {len(raw)}")
    return raw


# ---------------------------------------------------------------------------
# Sealed boxes (Certificate access method)
# ---------------------------------------------------------------------------


def generate_box_keypair() -> tuple[str, str]:
    """Generate an X25519 key-pair.

    Returns
    -------
    tuple[str, str]
        ``(private_key_hex, public_key_hex)``
    """
    sk = nacl.public.PrivateKey.generate()
    return (sk.encode().hex(), sk.public_key.encode().hex())


def seal_to_public_key(data: bytes, public_key: str) -> bytes:
    """Encrypt *data* so that only the holder of *public_key*'s private half can read it."""
    pk = nacl.public.PublicKey(_key_bytes(public_key, "public key"))
    return nacl.public.SealedBox(pk).encrypt(data)


def public_key_for(private_key: str) -> str:
    """Return the hex X25519 public key belonging to *private_key*."""
    sk = nacl.public.PrivateKey(_key_bytes(private_key, "private key"))
    return sk.public_key.encode().hex()


def open_sealed(sealed: bytes, private_key: str) -> bytes:
    """Open a sealed box with *private_key*.

    Raises
    ------
    CryptoError
        If the box does not authenticate under this key.
    """
    sk = nacl.public.PrivateKey(_key_bytes(private_key, "private key"))
    try:
        return nacl.public.SealedBox(sk).decrypt(sealed)
    except NaclCryptoError as exc:
        raise CryptoError("authentication failed") from exc


# ---------------------------------------------------------------------------
# Ed25519 signatures (MultiFactor proofs)
# ---------------------------------------------------------------------------


def generate_signing_keypair() -> tuple[str, str]:
    """Generate an Ed25519 key-pair as ``(private_key_hex, public_key_hex)``."""
    sk = nacl.signing.SigningKey.generate()
    return (sk.encode().hex(), sk.verify_key.encode().hex())


def sign_data(data: bytes, private_key: str) -> str:
    """Sign *data* and return the hex-encoded signature (128 hex chars)."""
    sk = nacl.signing.SigningKey(_key_bytes(private_key, "signing key"))
    return sk.sign(data).signature.hex()


def verify_data(data: bytes, signature: str, public_key: str) -> bool:
    """Verify that *signature* is valid for *data* under *public_key*.

    Fail-closed: returns ``False`` if the signature is empty/malformed,
    the key is malformed, or verification fails.
    """
    if not signature:
        return False
    try:
        vk = nacl.signing.VerifyKey(bytes.fromhex(public_key))
        vk.verify(data, bytes.fromhex(signature))
        return True
    except (BadSignatureError, ValueError, TypeError):
        # BadSignatureError: cryptographic mismatch
        # ValueError / TypeError: malformed hex or wrong byte length
        return False


def _mfa_payload(artifact_id: str, issued_at: int) -> bytes:
    return canonical_json_bytes({
        "artifact_id": artifact_id,
        "issued_at": issued_at,
        "purpose": MFA_PURPOSE,
    })


def issue_mfa_proof(
    artifact_id: str,
    signing_key: str,
    *,
    issued_at: int | None = None,
) -> str:
    """Mint a proof token ``"<issued_at>.<signature_hex>"`` for one artifact."""
    ts = int(time.time()) if issued_at is None else int(issued_at)
    return f"{ts}.{sign_data(_mfa_payload(artifact_id, ts), signing_key)}"


def verify_mfa_proof(
    token: str,
    artifact_id: str,
    verify_key: str,
    *,
    now: float,
    max_age_seconds: float,
) -> tuple[bool, str]:
    """Check a proof token.  Returns ``(ok, reason)``; reason is empty when ok."""
    if not token:
        return False, "no multi-factor proof supplied"
    issued_raw, sep, signature = token.partition(".")
    if not sep or not issued_raw.isdigit():
        return False, "malformed multi-factor proof"
    issued_at = int(issued_raw)
    if not verify_data(_mfa_payload(artifact_id, issued_at), signature, verify_key):
        logger.warning(
            "Multi-factor proof signature rejected for artifact %s.", artifact_id
        )
        return False, "multi-factor proof signature is invalid"
    age = now - issued_at
    if age < -CLOCK_SKEW_SECONDS:
        return False, "multi-factor proof is issued in the future"
    if age > max_age_seconds:
        return False, f"multi-factor proof expired ({int(age)}s old)"
    return True, ""

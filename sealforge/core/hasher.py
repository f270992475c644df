"""Canonical serialization and hashing helpers.

Canonical JSON is used wherever bytes must be reproducible: container
manifest sections, multi-factor proof payloads and audit ledger seals.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_data_key(data_key: bytes) -> str:
    """Verification hash of a data key: base64(SHA-256(key)).

    One-way; the key cannot be reconstructed from it.
    """
    return base64.b64encode(hashlib.sha256(data_key).digest()).decode("ascii")


def key_fingerprint(public_key: str) -> str:
    """First 16 hex characters of SHA-256 over a hex-encoded public key."""
    if not public_key:
        return ""
    return sha256_hex(public_key.encode("utf-8"))[:16]


def compute_entry_hash(entry_dict: dict[str, Any]) -> str:
    """SHA-256 of an audit ledger entry, excluding the entry_hash field itself."""
    d = {k: v for k, v in entry_dict.items() if k != "entry_hash"}
    return sha256_hex(canonical_json_bytes(d))

"""Audit models — write-once records, never mutated.

``AuditEntry`` is what the ledger persists (hash-chained per resource).
``DecryptionAttempt`` is the forensic view of a single decrypt attempt.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AuditAction(str, Enum):
    ARTIFACT_ENCRYPTED = "artifact_encrypted"
    ARTIFACT_ENCRYPT_FAILED = "artifact_encrypt_failed"
    ARTIFACT_DECRYPTED = "artifact_decrypted"
    ARTIFACT_DECRYPT_FAILED = "artifact_decrypt_failed"
    POLICY_VIOLATION = "policy_violation"


class AuditEntry(BaseModel):
    """A single append-only audit ledger entry."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    actor_id: str
    action: str
    resource_type: str
    resource_id: str
    success: bool
    metadata: str = ""
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    previous_entry_hash: str = ""
    entry_hash: str = ""


class DecryptionAttempt(BaseModel):
    """Outcome of one decrypt attempt, success or a specific failure branch."""

    model_config = ConfigDict(frozen=True)

    artifact_id: str
    actor_id: str
    method_type: str
    success: bool
    reason: str = ""
    origin: dict[str, str] = {}
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

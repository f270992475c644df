"""Sealforge data models — all Pydantic v2, all frozen (immutable)."""

from sealforge.models.artifacts import (
    FORMAT_VERSION,
    AccessMethod,
    AccessMethodType,
    ArtifactMetadata,
    EncryptedArtifact,
    EncryptionPolicy,
    PolicyType,
)
from sealforge.models.audit import AuditAction, AuditEntry, DecryptionAttempt
from sealforge.models.requests import (
    AccessMethodConfig,
    DecryptionRequest,
    EncryptionRequest,
    ExecutionContext,
    PolicyConfig,
)
from sealforge.models.results import DecryptionResult, EncryptionResult

__all__ = [
    # artifacts
    "FORMAT_VERSION",
    "AccessMethodType",
    "PolicyType",
    "AccessMethod",
    "EncryptionPolicy",
    "ArtifactMetadata",
    "EncryptedArtifact",
    # requests
    "AccessMethodConfig",
    "PolicyConfig",
    "EncryptionRequest",
    "DecryptionRequest",
    "ExecutionContext",
    # results
    "EncryptionResult",
    "DecryptionResult",
    # audit
    "AuditAction",
    "AuditEntry",
    "DecryptionAttempt",
]

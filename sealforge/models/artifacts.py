"""Encrypted artifact models (immutable once assembled)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

FORMAT_VERSION = "1.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessMethodType(str, Enum):
    """Variants of the access method registry."""

    PASSPHRASE = "passphrase"
    CERTIFICATE = "certificate"
    RUNTIME = "runtime"
    POLICY = "policy"


class PolicyType(str, Enum):
    """Variants of gating policy."""

    TTL = "ttl"
    ENVIRONMENT = "environment"
    INSTANCE = "instance"
    REGION = "region"
    MULTI_FACTOR = "multi_factor"


class AccessMethod(BaseModel):
    """One independently configured way to unwrap an artifact's data key.

    ``encrypted_key`` is the base64 wrapped data key.  It is empty for the
    ``policy`` variant, which never wraps on its own.  ``config`` never
    contains secrets (passphrases, private keys).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    artifact_id: str = ""
    type: AccessMethodType
    name: str
    config: dict[str, Any] = {}
    encrypted_key: str = ""
    key_id: str = ""  # public-key fingerprint for asymmetric variants
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class EncryptionPolicy(BaseModel):
    """A gating rule evaluated at decrypt time, independent of key material."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    artifact_id: str = ""
    type: PolicyType
    name: str
    rules: dict[str, Any] = {}
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class ArtifactMetadata(BaseModel):
    """Public, key-free description of an encrypted artifact.

    Serialized into the container's metadata section.  ``data_key_hash``
    is a one-way verification hash; the data key itself is never stored.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str = ""
    name: str
    description: str = ""
    file_path: str = ""
    original_path: str = ""
    algorithm: str = "AES-256-GCM"
    format_version: str = FORMAT_VERSION
    data_key_hash: str
    compression: bool = True
    content_size: int = 0  # plaintext bytes of regular files archived
    archive_size: int = 0  # bytes of the (optionally gzipped) tar stream
    file_count: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class EncryptedArtifact(ArtifactMetadata):
    """Metadata plus the ordered access methods and policies."""

    access_methods: list[AccessMethod]
    policies: list[EncryptionPolicy] = []

    @model_validator(mode="after")
    def _require_active_method(self) -> EncryptedArtifact:
        if not any(m.is_active for m in self.access_methods):
            raise ValueError("an artifact must carry at least one active access method")
        return self

    @property
    def metadata(self) -> ArtifactMetadata:
        return ArtifactMetadata.model_validate(
            self.model_dump(exclude={"access_methods", "policies"})
        )

    def active_methods(self, method_type: AccessMethodType) -> list[AccessMethod]:
        return [m for m in self.access_methods if m.type == method_type and m.is_active]

    @property
    def active_policies(self) -> list[EncryptionPolicy]:
        return [p for p in self.policies if p.is_active]

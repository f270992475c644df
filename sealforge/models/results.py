"""Transient result objects summarizing a completed operation."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class EncryptionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact_id: str
    file_path: str
    original_size: int
    encrypted_size: int
    algorithm: str
    access_method_names: list[str]
    policy_names: list[str] = []
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DecryptionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact_id: str
    file_path: str
    original_size: int
    decrypted_size: int
    method_type: str
    success: bool = True
    reason: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

"""Input value objects consumed by the engine.

Method and policy ``type`` fields are plain strings here so the registry
can reject unknown variants with ``UnsupportedMethodType`` rather than a
generic validation error.  Configs may carry secrets (passphrases,
private keys) and are therefore excluded from ``repr``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AccessMethodConfig(BaseModel):
    """``{type, name, config}`` for one access method."""

    model_config = ConfigDict(frozen=True)

    type: str
    name: str = ""
    config: dict[str, Any] = Field(default_factory=dict, repr=False)


class PolicyConfig(BaseModel):
    """``{type, name, rules}`` for one gating policy."""

    model_config = ConfigDict(frozen=True)

    type: str
    name: str = ""
    rules: dict[str, Any] = Field(default_factory=dict)


class EncryptionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_path: str
    output_path: str
    access_methods: list[AccessMethodConfig] = Field(min_length=1)
    policies: list[PolicyConfig] = []
    description: str = ""
    compression: bool = True
    timeout_seconds: float | None = None


class ExecutionContext(BaseModel):
    """Caller-side facts that policies are evaluated against.

    The evaluation time is not part of the context: it comes from the
    validator's clock, so a caller cannot pin it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str = ""
    instance: str = ""
    region: str = ""
    mfa_token: str = Field(default="", repr=False)
    origin: dict[str, str] = {}  # e.g. {"ip": ..., "user_agent": ...}


class DecryptionRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact_path: str
    output_path: str
    access_method: AccessMethodConfig
    force: bool = False
    context: ExecutionContext | None = None
    timeout_seconds: float | None = None

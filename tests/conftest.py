"""Shared test fixtures for Sealforge."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from sealforge.config import VaultSettings
from sealforge.core.engine import VaultEngine
from sealforge.core.key_derivation import RuntimeKey
from sealforge.models.requests import (
    AccessMethodConfig,
    DecryptionRequest,
    EncryptionRequest,
    PolicyConfig,
)

# Low iteration count so PBKDF2 does not dominate the suite.
TEST_ITERATIONS = 1_000


class RecordingAuditSink:
    """AuditSink that keeps every record in memory."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def record(
        self,
        actor_id: str,
        action: str,
        resource_type: str,
        resource_id: str,
        success: bool,
        metadata: str,
    ) -> None:
        self.records.append({
            "actor_id": actor_id,
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "success": success,
            "metadata": metadata,
        })

    @property
    def actions(self) -> list[str]:
        return [r["action"] for r in self.records]


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def settings(tmp_dir: Path) -> VaultSettings:
    """Settings isolated from the environment, with fast KDF parameters."""
    return VaultSettings(
        _env_file=None,
        environment="test",
        master_secret="test-master-secret",
        kdf_salt="test-salt",
        kdf_iterations=TEST_ITERATIONS,
        passphrase_kdf_iterations=TEST_ITERATIONS,
        audit_enabled=False,
        audit_ledger_path=tmp_dir / "audit.db",
        instance_id="node-1",
        region="eu-west-1",
    )


@pytest.fixture
def runtime_key(settings: VaultSettings) -> RuntimeKey:
    return RuntimeKey.from_settings(settings)


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def engine(
    settings: VaultSettings, runtime_key: RuntimeKey, audit_sink: RecordingAuditSink
) -> VaultEngine:
    """Provide a VaultEngine wired to the recording audit sink."""
    return VaultEngine(settings, runtime_key, audit_sink=audit_sink)


@pytest.fixture
def source_tree(tmp_dir: Path) -> Path:
    """Two-file tree: ``a.txt`` = "hello", ``b/c.txt`` = "world"."""
    root = tmp_dir / "src"
    (root / "b").mkdir(parents=True)
    (root / "a.txt").write_bytes(b"hello")
    (root / "b" / "c.txt").write_bytes(b"world")
    return root


# ---------------------------------------------------------------------------
# Request factories shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_encrypt_request(
    source_tree: Path, tmp_dir: Path
) -> Callable[..., EncryptionRequest]:
    """Factory fixture: an EncryptionRequest with one Runtime method by default."""

    def _factory(
        methods: list[dict[str, Any]] | None = None,
        policies: list[dict[str, Any]] | None = None,
        **overrides: Any,
    ) -> EncryptionRequest:
        defaults: dict[str, Any] = {
            "source_path": str(source_tree),
            "output_path": str(tmp_dir / "out" / "artifact.sfg"),
            "access_methods": [
                AccessMethodConfig(**m) for m in (methods or [{"type": "runtime", "name": "runtime"}])
            ],
            "policies": [PolicyConfig(**p) for p in (policies or [])],
            "description": "test artifact",
        }
        defaults.update(overrides)
        return EncryptionRequest(**defaults)

    return _factory


@pytest.fixture
def make_decrypt_request(tmp_dir: Path) -> Callable[..., DecryptionRequest]:
    """Factory fixture: a DecryptionRequest for the Runtime method by default."""

    def _factory(
        artifact_path: str | Path,
        method: dict[str, Any] | None = None,
        **overrides: Any,
    ) -> DecryptionRequest:
        defaults: dict[str, Any] = {
            "artifact_path": str(artifact_path),
            "output_path": str(tmp_dir / "restored"),
            "access_method": AccessMethodConfig(**(method or {"type": "runtime"})),
        }
        defaults.update(overrides)
        return DecryptionRequest(**defaults)

    return _factory

"""Vault engine — the envelope-encryption encrypt/decrypt flow.

The VaultEngine wires together the Archiver, Content Cipher, Access Method
Registry, Policy Validator and Artifact container into the two public
operations, and reports every attempt to the configured ``AuditSink``.

Encrypt: archive source → random data key → encrypt archive → wrap the
data key once per access method → assemble container → atomic write.

Decrypt: load container → select the requested access method → unwrap
the data key → verify key hash and manifest seal → validate policies →
decrypt content → unpack into a staging directory → move into place.
"""

from __future__ import annotations

import hmac
import logging
import os
import shutil
import tempfile
import uuid
from pathlib import Path

from sealforge.bridge.audit_bridge import (
    AuditSink,
    LedgerAuditSink,
    describe,
    emit,
    record_decryption_attempt,
    record_policy_violation,
)
from sealforge.config import VaultSettings
from sealforge.core import archiver, container
from sealforge.core.access_methods import (
    KEYED_METHOD_TYPES,
    MIN_PASSPHRASE_ITERATIONS,
    AccessMethodRegistry,
    resolve_method_type,
)
from sealforge.core.audit_ledger import AuditLedger
from sealforge.core.cancellation import CancelToken, OperationGuard
from sealforge.core.content_cipher import (
    ALGORITHM,
    decrypt_stream,
    encrypt_stream,
    generate_data_key,
    verify_manifest_seal,
)
from sealforge.core.errors import (
    CryptoError,
    InvalidRequestError,
    PolicyViolation,
    VaultIOError,
)
from sealforge.core.hasher import hash_data_key
from sealforge.core.key_derivation import DEFAULT_ITERATIONS, RuntimeKey, derive_seal_key
from sealforge.core.policy_validator import PolicyValidator
from sealforge.core.production_guard import enforce_production_constraints
from sealforge.models.artifacts import ArtifactMetadata, EncryptedArtifact
from sealforge.models.audit import AuditAction, DecryptionAttempt
from sealforge.models.requests import DecryptionRequest, EncryptionRequest, ExecutionContext
from sealforge.models.results import DecryptionResult, EncryptionResult

logger = logging.getLogger(__name__)


class VaultEngine:
    """Encrypts sources into artifacts and unlocks them again.

    Parameters
    ----------
    settings:
        Vault settings.  Uses ``VaultSettings()`` if not provided.
    runtime_key:
        The Runtime master wrapping key.  Derived from *settings* when
        omitted (one PBKDF2 pass at construction).
    audit_sink:
        Receiver of audit records.  When omitted and ``audit_enabled`` is
        set, a ``LedgerAuditSink`` over ``audit_ledger_path`` is used.
    registry, validator:
        Replacement access-method registry / policy validator.
    """

    def __init__(
        self,
        settings: VaultSettings | None = None,
        runtime_key: RuntimeKey | None = None,
        *,
        audit_sink: AuditSink | None = None,
        registry: AccessMethodRegistry | None = None,
        validator: PolicyValidator | None = None,
    ) -> None:
        self.settings = settings or VaultSettings()

        # Production guard fails hard before any key is derived
        enforce_production_constraints(self.settings)

        self.runtime_key = runtime_key or RuntimeKey.from_settings(self.settings)
        self.registry = registry or AccessMethodRegistry(
            self.runtime_key,
            passphrase_iterations=self.settings.passphrase_kdf_iterations,
            min_passphrase_iterations=(
                DEFAULT_ITERATIONS if self.settings.is_production else MIN_PASSPHRASE_ITERATIONS
            ),
        )
        self.validator = validator or PolicyValidator()

        if audit_sink is None and self.settings.audit_enabled:
            audit_sink = LedgerAuditSink(AuditLedger(self.settings.audit_ledger_path))
        self.audit_sink = audit_sink

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _guard(self, timeout_seconds: float | None, cancel_token: CancelToken | None) -> OperationGuard:
        if timeout_seconds is None:
            timeout_seconds = self.settings.operation_timeout_seconds
        return OperationGuard(timeout_seconds, cancel_token)

    def default_context(self) -> ExecutionContext:
        """Execution context built from this process's settings."""
        return ExecutionContext(
            environment=self.settings.environment,
            instance=self.settings.instance_id,
            region=self.settings.region,
        )

    @staticmethod
    def _read_artifact(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise VaultIOError(f"cannot read artifact {path}: {exc}") from exc

    def inspect(self, artifact_path: str | Path) -> EncryptedArtifact:
        """Load an artifact's public metadata, methods and policies. No key material is used."""
        return container.load(self._read_artifact(Path(artifact_path))).artifact

    # ------------------------------------------------------------------
    # Encrypt
    # ------------------------------------------------------------------

    def encrypt(
        self,
        request: EncryptionRequest,
        *,
        actor_id: str = "anonymous",
        cancel_token: CancelToken | None = None,
    ) -> EncryptionResult:
        """Package ``request.source_path`` into an encrypted artifact.

        Nothing is left at ``request.output_path`` unless the whole
        operation succeeds.

        Raises
        ------
        VaultIOError, CryptoError, UnsupportedMethodType, InvalidRequestError,
        OperationCancelled
        """
        artifact_id = str(uuid.uuid4())
        guard = self._guard(request.timeout_seconds, cancel_token)
        methods = ", ".join(m.name or m.type for m in request.access_methods)
        try:
            result = self._encrypt(request, artifact_id, actor_id, guard)
        except Exception as exc:
            emit(
                self.audit_sink, actor_id, AuditAction.ARTIFACT_ENCRYPT_FAILED, artifact_id, False,
                describe(
                    source=request.source_path,
                    output=request.output_path,
                    methods=methods,
                    error=f"{type(exc).__name__}: {exc}",
                ),
            )
            raise

        emit(
            self.audit_sink, actor_id, AuditAction.ARTIFACT_ENCRYPTED, artifact_id, True,
            describe(
                source=request.source_path,
                output=result.file_path,
                methods=", ".join(result.access_method_names),
                policies=", ".join(result.policy_names),
            ),
        )
        logger.info(
            "Encrypted %s into artifact %s (%d bytes).",
            request.source_path, artifact_id, result.encrypted_size,
        )
        return result

    def _encrypt(
        self,
        request: EncryptionRequest,
        artifact_id: str,
        actor_id: str,
        guard: OperationGuard,
    ) -> EncryptionResult:
        method_types = [resolve_method_type(m.type) for m in request.access_methods]
        if not any(t in KEYED_METHOD_TYPES for t in method_types):
            raise InvalidRequestError(
                "at least one runtime, passphrase or certificate access method is required"
            )
        policies = [
            self.validator.create_policy(p, artifact_id=artifact_id) for p in request.policies
        ]

        source = Path(request.source_path)
        output = Path(request.output_path)
        if output.is_dir():
            raise VaultIOError(f"output path is a directory: {output}")

        packed = archiver.pack(source, request.compression, guard=guard)
        data_key = generate_data_key()
        encrypted_content = encrypt_stream(packed.data, data_key, guard=guard)

        access_methods = [
            self.registry.create_access_method(m, data_key, artifact_id=artifact_id, guard=guard)
            for m in request.access_methods
        ]
        metadata = ArtifactMetadata(
            id=artifact_id,
            owner_id=actor_id,
            name=source.name or str(source),
            description=request.description,
            file_path=str(output),
            original_path=str(source),
            algorithm=ALGORITHM,
            data_key_hash=hash_data_key(data_key),
            compression=request.compression,
            content_size=packed.content_size,
            archive_size=len(packed.data),
            file_count=packed.file_count,
        )
        blob = container.assemble(
            encrypted_content,
            metadata,
            access_methods,
            policies,
            seal_key=derive_seal_key(data_key),
        )
        self._write_atomic(output, blob, guard)

        return EncryptionResult(
            artifact_id=artifact_id,
            file_path=str(output),
            original_size=packed.content_size,
            encrypted_size=len(blob),
            algorithm=ALGORITHM,
            access_method_names=[m.name for m in access_methods],
            policy_names=[p.name for p in policies],
            created_at=metadata.created_at,
        )

    @staticmethod
    def _write_atomic(output: Path, blob: bytes, guard: OperationGuard) -> None:
        """Write to a sibling temp file, then rename over *output*."""
        tmp_path: str | None = None
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{output.name}.", suffix=".partial", dir=output.parent
            )
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
                fh.flush()
                os.fsync(fh.fileno())
            guard.check("artifact write")
            os.replace(tmp_path, output)
            tmp_path = None
        except OSError as exc:
            raise VaultIOError(f"failed to write artifact {output}: {exc}") from exc
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)

    # ------------------------------------------------------------------
    # Decrypt
    # ------------------------------------------------------------------

    def decrypt(
        self,
        request: DecryptionRequest,
        *,
        actor_id: str = "anonymous",
        cancel_token: CancelToken | None = None,
    ) -> DecryptionResult:
        """Unlock an artifact through one access method and unpack it.

        Every failure branch is audited individually before the error is
        re-raised.

        Raises
        ------
        VaultIOError, ArtifactFormatError, AccessMethodNotFound,
        UnsupportedMethodType, CryptoError, PolicyViolation, OperationCancelled
        """
        guard = self._guard(request.timeout_seconds, cancel_token)
        context = request.context or self.default_context()
        artifact_path = Path(request.artifact_path)
        output = Path(request.output_path)
        artifact_id = ""
        stage = "output check"

        try:
            self._check_output(output, request.force)

            stage = "artifact load"
            loaded = container.load(self._read_artifact(artifact_path))
            artifact = loaded.artifact
            artifact_id = artifact.id

            stage = "access method lookup"
            record = self.registry.find_access_method(artifact, request.access_method)

            stage = "key unwrap"
            data_key = self.registry.unwrap(
                artifact, record, dict(request.access_method.config), guard=guard
            )
            if not hmac.compare_digest(hash_data_key(data_key), artifact.data_key_hash):
                raise CryptoError("unwrapped data key does not match artifact")
            verify_manifest_seal(derive_seal_key(data_key), loaded.manifest, loaded.seal)

            stage = "policy validation"
            self.validator.validate(artifact.policies, context, artifact=artifact)

            stage = "content decryption"
            plain = decrypt_stream(loaded.encrypted_content, data_key, guard=guard)

            stage = "archive extraction"
            unpacked = self._extract(plain, output, loaded.compressed, guard)
        except Exception as exc:
            if isinstance(exc, PolicyViolation):
                record_policy_violation(self.audit_sink, actor_id, artifact_id, exc)
            record_decryption_attempt(
                self.audit_sink,
                DecryptionAttempt(
                    artifact_id=artifact_id or str(artifact_path),
                    actor_id=actor_id,
                    method_type=request.access_method.type,
                    success=False,
                    reason=f"{stage}: {exc}",
                    origin=context.origin,
                ),
                artifact=str(artifact_path),
                output=str(output),
            )
            logger.warning("Decrypt of %s failed at %s: %s", artifact_path, stage, exc)
            raise

        record_decryption_attempt(
            self.audit_sink,
            DecryptionAttempt(
                artifact_id=artifact_id,
                actor_id=actor_id,
                method_type=record.type.value,
                success=True,
                origin=context.origin,
            ),
            artifact=str(artifact_path),
            output=str(output),
        )
        logger.info(
            "Decrypted artifact %s via %s method '%s' into %s.",
            artifact_id, record.type.value, record.name, output,
        )
        return DecryptionResult(
            artifact_id=artifact_id,
            file_path=str(output),
            original_size=artifact.content_size,
            decrypted_size=unpacked.content_size,
            method_type=record.type.value,
        )

    @staticmethod
    def _check_output(output: Path, force: bool) -> None:
        if output.exists() and not output.is_dir():
            raise VaultIOError(f"output path exists and is not a directory: {output}")
        if not force and output.is_dir() and any(output.iterdir()):
            raise VaultIOError(f"output directory is not empty: {output} (use force to overwrite)")

    @staticmethod
    def _extract(
        plain: bytes, output: Path, compressed: bool, guard: OperationGuard
    ) -> archiver.UnpackResult:
        """Unpack into a staging directory beside *output*, then move into place."""
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(prefix=".sealforge-", dir=output.parent) as staging:
                staged = Path(staging) / "out"
                result = archiver.unpack(plain, staged, compressed, guard=guard)
                guard.check("output placement")
                if output.exists():
                    shutil.copytree(staged, output, dirs_exist_ok=True)
                else:
                    os.replace(staged, output)
        except OSError as exc:
            if isinstance(exc, VaultIOError):
                raise
            raise VaultIOError(f"failed to place output at {output}: {exc}") from exc
        return result

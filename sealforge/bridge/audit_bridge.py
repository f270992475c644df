"""Audit bridge — the engine's narrow outward logging callback.

Bridge boundary
---------------
The engine only knows the ``AuditSink`` protocol::

    record(actor_id, action, resource_type, resource_id, success, metadata)

It calls it on every encrypt attempt, every decrypt attempt (success and
each failure branch separately) and every policy violation.  Storage is
the sink's business; two sinks ship here:

- ``LedgerAuditSink`` writes to the hash-chained SQLite ``AuditLedger``.
- ``LoggingAuditSink`` writes to the ``sealforge.audit`` logger.

Design rationale
~~~~~~~~~~~~~~~~
Audit writes are best-effort from the engine's point of view: a failing
sink is logged with its traceback but never replaces the error (or
result) of the operation being audited.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from sealforge.core.audit_ledger import AuditLedger
from sealforge.core.errors import PolicyViolation
from sealforge.models.audit import AuditAction, AuditEntry, DecryptionAttempt

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("sealforge.audit")

RESOURCE_ARTIFACT = "artifact"


@runtime_checkable
class AuditSink(Protocol):
    """Receives success/failure notifications for encrypt/decrypt attempts."""

    def record(
        self,
        actor_id: str,
        action: str,
        resource_type: str,
        resource_id: str,
        success: bool,
        metadata: str,
    ) -> None: ...


class LedgerAuditSink:
    """Persists every record as a sealed ``AuditEntry``."""

    def __init__(self, ledger: AuditLedger) -> None:
        self._ledger = ledger

    @property
    def ledger(self) -> AuditLedger:
        return self._ledger

    def record(
        self,
        actor_id: str,
        action: str,
        resource_type: str,
        resource_id: str,
        success: bool,
        metadata: str,
    ) -> None:
        sealed = self._ledger.append(AuditEntry(
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            success=success,
            metadata=metadata,
        ))
        logger.debug("AuditLedger: appended %s (%s) for %s", sealed.entry_id, action, resource_id)


class LoggingAuditSink:
    """Emits every record to the ``sealforge.audit`` logger."""

    def record(
        self,
        actor_id: str,
        action: str,
        resource_type: str,
        resource_id: str,
        success: bool,
        metadata: str,
    ) -> None:
        level = logging.INFO if success else logging.WARNING
        audit_logger.log(
            level, "%s %s/%s by %s success=%s: %s",
            action, resource_type, resource_id, actor_id, success, metadata,
        )


# ---------------------------------------------------------------------------
# Helpers used by the engine
# ---------------------------------------------------------------------------


def describe(**fields: object) -> str:
    """Human-readable metadata string, e.g. ``"Method: runtime, Output: /tmp/x"``."""
    return ", ".join(
        f"{key.replace('_', ' ').capitalize()}: {value}"
        for key, value in fields.items()
        if value not in (None, "")
    )


def emit(
    sink: AuditSink | None,
    actor_id: str,
    action: AuditAction | str,
    resource_id: str,
    success: bool,
    metadata: str,
    *,
    resource_type: str = RESOURCE_ARTIFACT,
) -> None:
    """Best-effort write to *sink*; a failing sink never masks the audited outcome."""
    if sink is None:
        return
    action_name = getattr(action, "value", action)
    try:
        sink.record(actor_id, action_name, resource_type, resource_id, success, metadata)
    except Exception:
        logger.exception(
            "Audit sink failed to record %s for %s %s.", action_name, resource_type, resource_id
        )


def record_decryption_attempt(
    sink: AuditSink | None,
    attempt: DecryptionAttempt,
    **detail: object,
) -> None:
    """Record one decrypt attempt (success or a specific failure branch)."""
    action = (
        AuditAction.ARTIFACT_DECRYPTED if attempt.success else AuditAction.ARTIFACT_DECRYPT_FAILED
    )
    origin = ", ".join(f"{k}={v}" for k, v in sorted(attempt.origin.items()))
    emit(
        sink,
        attempt.actor_id,
        action,
        attempt.artifact_id,
        attempt.success,
        describe(method=attempt.method_type, reason=attempt.reason, origin=origin, **detail),
    )


def record_policy_violation(
    sink: AuditSink | None,
    actor_id: str,
    artifact_id: str,
    violation: PolicyViolation,
) -> None:
    emit(
        sink,
        actor_id,
        AuditAction.POLICY_VIOLATION,
        artifact_id,
        False,
        describe(policy=violation.policy_name, type=violation.policy_type, reason=violation.reason),
    )

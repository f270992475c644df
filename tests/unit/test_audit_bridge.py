"""Tests for the audit bridge sinks and engine-facing helpers."""

from __future__ import annotations

import logging
from pathlib import Path

from sealforge.bridge.audit_bridge import (
    AuditSink,
    LedgerAuditSink,
    LoggingAuditSink,
    describe,
    emit,
    record_decryption_attempt,
    record_policy_violation,
)
from sealforge.core.audit_ledger import AuditLedger
from sealforge.core.errors import PolicyViolation
from sealforge.models.audit import AuditAction, DecryptionAttempt


class _ExplodingSink:
    def record(self, actor_id, action, resource_type, resource_id, success, metadata):
        raise RuntimeError("disk full")


class TestSinks:
    def test_sinks_satisfy_protocol(self, tmp_dir: Path, audit_sink):
        assert isinstance(LedgerAuditSink(AuditLedger(tmp_dir / "a.db")), AuditSink)
        assert isinstance(LoggingAuditSink(), AuditSink)
        assert isinstance(audit_sink, AuditSink)

    def test_ledger_sink_appends_chained_entries(self, tmp_dir: Path):
        sink = LedgerAuditSink(AuditLedger(tmp_dir / "a.db"))
        sink.record("alice", "artifact_encrypted", "artifact", "art-1", True, "Method: runtime")
        sink.record("bob", "artifact_decrypt_failed", "artifact", "art-1", False, "Reason: x")
        entries = sink.ledger.get_entries()
        assert [e.actor_id for e in entries] == ["alice", "bob"]
        assert sink.ledger.verify_chain() is True

    def test_logging_sink_levels(self, caplog):
        caplog.set_level(logging.INFO, logger="sealforge.audit")
        sink = LoggingAuditSink()
        sink.record("alice", "artifact_decrypted", "artifact", "art-1", True, "ok")
        sink.record("alice", "artifact_decrypt_failed", "artifact", "art-1", False, "bad")
        levels = [r.levelno for r in caplog.records if r.name == "sealforge.audit"]
        assert levels == [logging.INFO, logging.WARNING]


class TestHelpers:
    def test_describe_skips_empty_fields(self):
        assert describe(method="runtime", reason="", output_dir=None, source="/s") == (
            "Method: runtime, Source: /s"
        )

    def test_emit_without_sink_is_noop(self):
        emit(None, "alice", AuditAction.ARTIFACT_ENCRYPTED, "art-1", True, "")

    def test_emit_uses_enum_value(self, audit_sink):
        emit(audit_sink, "alice", AuditAction.ARTIFACT_ENCRYPTED, "art-1", True, "m")
        assert audit_sink.records[0]["action"] == "artifact_encrypted"
        assert audit_sink.records[0]["resource_type"] == "artifact"

    def test_failing_sink_is_logged_not_raised(self, caplog):
        emit(_ExplodingSink(), "alice", AuditAction.ARTIFACT_ENCRYPTED, "art-1", True, "")
        assert any("Audit sink failed" in r.getMessage() for r in caplog.records)

    def test_decryption_attempt_actions(self, audit_sink):
        ok = DecryptionAttempt(artifact_id="a", actor_id="u", method_type="runtime", success=True)
        bad = ok.model_copy(update={"success": False, "reason": "key unwrap: authentication failed"})
        record_decryption_attempt(audit_sink, ok)
        record_decryption_attempt(audit_sink, bad, output="/tmp/x")
        assert audit_sink.actions == ["artifact_decrypted", "artifact_decrypt_failed"]
        assert "Reason: key unwrap" in audit_sink.records[1]["metadata"]
        assert "Output: /tmp/x" in audit_sink.records[1]["metadata"]

    def test_policy_violation_record(self, audit_sink):
        record_policy_violation(audit_sink, "u", "a", PolicyViolation("ttl", "expired", "ttl"))
        (rec,) = audit_sink.records
        assert rec["action"] == "policy_violation"
        assert rec["success"] is False
        assert "Policy: ttl" in rec["metadata"]
        assert "Reason: expired" in rec["metadata"]

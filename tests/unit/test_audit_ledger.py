"""Tests for the AuditLedger — append-only, hash-chained, tamper-evident."""

from __future__ import annotations

from pathlib import Path

import pytest

from sealforge.core.audit_ledger import AuditLedger
from sealforge.models.audit import AuditEntry


@pytest.fixture
def ledger(tmp_dir: Path) -> AuditLedger:
    return AuditLedger(tmp_dir / "ledger" / "audit.db")


def _entry(resource_id: str = "art-1", action: str = "artifact_encrypted", success: bool = True):
    return AuditEntry(
        actor_id="alice", action=action, resource_type="artifact",
        resource_id=resource_id, success=success, metadata="Method: runtime",
    )


class TestAuditLedger:
    def test_creates_parent_directory(self, ledger: AuditLedger):
        assert ledger.db_path.exists()

    def test_append_sets_entry_hash(self, ledger: AuditLedger):
        sealed = ledger.append(_entry())
        assert sealed.entry_hash != ""
        assert sealed.previous_entry_hash == ""  # first entry

    def test_hash_chain_links(self, ledger: AuditLedger):
        e1 = ledger.append(_entry())
        e2 = ledger.append(_entry(action="artifact_decrypted"))
        assert e2.previous_entry_hash == e1.entry_hash

    def test_chain_spans_resources(self, ledger: AuditLedger):
        e1 = ledger.append(_entry("art-1"))
        e2 = ledger.append(_entry("art-2"))
        assert e2.previous_entry_hash == e1.entry_hash

    def test_verify_chain_valid(self, ledger: AuditLedger):
        for i in range(3):
            ledger.append(_entry(f"art-{i}"))
        assert ledger.verify_chain() is True

    def test_verify_chain_empty(self, ledger: AuditLedger):
        assert ledger.verify_chain() is True

    def test_round_trip_fields(self, ledger: AuditLedger):
        sealed = ledger.append(_entry(success=False))
        (stored,) = ledger.get_entries()
        assert stored == sealed
        assert stored.success is False

    def test_filter_by_resource(self, ledger: AuditLedger):
        ledger.append(_entry("art-1"))
        ledger.append(_entry("art-2"))
        ledger.append(_entry("art-1", action="artifact_decrypted"))
        assert [e.action for e in ledger.get_entries("art-1")] == [
            "artifact_encrypted", "artifact_decrypted",
        ]

    def test_limit_keeps_most_recent(self, ledger: AuditLedger):
        for i in range(5):
            ledger.append(_entry(f"art-{i}"))
        assert [e.resource_id for e in ledger.get_entries(limit=2)] == ["art-3", "art-4"]

    def test_get_latest(self, ledger: AuditLedger):
        assert ledger.get_latest() is None
        ledger.append(_entry("art-1"))
        e2 = ledger.append(_entry("art-2"))
        assert ledger.get_latest().entry_id == e2.entry_id

    def test_survives_reopen(self, ledger: AuditLedger):
        ledger.append(_entry())
        reopened = AuditLedger(ledger.db_path)
        assert len(reopened.get_entries()) == 1
        assert reopened.verify_chain() is True

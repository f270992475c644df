"""Append-only, hash-chained audit ledger backed by SQLite.

Design:
- Append-only: only ``append()`` writes; no update, no delete.
- Hash-chained: each entry includes the SHA-256 seal of the previous entry.
- WAL journal mode for concurrent readers.
- entry_hash UNIQUE constraint for tamper detection.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from sealforge.core.hasher import compute_entry_hash
from sealforge.models.audit import AuditEntry

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS audit_ledger (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id            TEXT NOT NULL UNIQUE,
    actor_id            TEXT NOT NULL,
    action              TEXT NOT NULL,
    resource_type       TEXT NOT NULL,
    resource_id         TEXT NOT NULL,
    success             INTEGER NOT NULL,
    metadata            TEXT NOT NULL DEFAULT '',
    timestamp_utc       TEXT NOT NULL,
    previous_entry_hash TEXT NOT NULL DEFAULT '',
    entry_hash          TEXT NOT NULL UNIQUE
);
"""

_CREATE_IDX_RESOURCE = """
CREATE INDEX IF NOT EXISTS idx_resource ON audit_ledger(resource_id, id);
"""

_COLUMNS = (
    "entry_id, actor_id, action, resource_type, resource_id, success, "
    "metadata, timestamp_utc, previous_entry_hash, entry_hash"
)


class LedgerIntegrityError(RuntimeError):
    """Raised when the hash chain is broken."""


class AuditLedger:
    """Append-only, hash-chained audit ledger.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(_CREATE_LEDGER)
                conn.execute(_CREATE_IDX_RESOURCE)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Core: append-only write
    # ------------------------------------------------------------------

    def append(self, entry: AuditEntry) -> AuditEntry:
        """Seal *entry* onto the end of the chain and persist it.

        Returns the entry with ``previous_entry_hash`` and ``entry_hash`` set.
        """
        conn = self._connect()
        try:
            with conn:
                # BEGIN IMMEDIATE serializes writers so the chain stays linear.
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    "SELECT entry_hash FROM audit_ledger ORDER BY id DESC LIMIT 1"
                ).fetchone()
                previous_hash = row[0] if row else ""

                entry_dict = entry.model_dump(mode="json")
                entry_dict["previous_entry_hash"] = previous_hash
                sealed = entry.model_copy(
                    update={
                        "previous_entry_hash": previous_hash,
                        "entry_hash": compute_entry_hash(entry_dict),
                    }
                )
                conn.execute(
                    f"INSERT INTO audit_ledger ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        sealed.entry_id,
                        sealed.actor_id,
                        sealed.action,
                        sealed.resource_type,
                        sealed.resource_id,
                        int(sealed.success),
                        sealed.metadata,
                        sealed.timestamp_utc.isoformat(),
                        sealed.previous_entry_hash,
                        sealed.entry_hash,
                    ),
                )
        finally:
            conn.close()
        return sealed

    # ------------------------------------------------------------------
    # Query methods (read-only)
    # ------------------------------------------------------------------

    def get_entries(self, resource_id: str | None = None, limit: int | None = None) -> list[AuditEntry]:
        """Return entries in chronological order, optionally for one resource."""
        sql = f"SELECT {_COLUMNS} FROM audit_ledger"
        params: tuple = ()
        if resource_id is not None:
            sql += " WHERE resource_id = ?"
            params = (resource_id,)
        sql += " ORDER BY id ASC"
        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        entries = [self._row_to_entry(row) for row in rows]
        return entries[-limit:] if limit else entries

    def get_latest(self) -> AuditEntry | None:
        entries = self.get_entries(limit=1)
        return entries[0] if entries else None

    # ------------------------------------------------------------------
    # Chain verification
    # ------------------------------------------------------------------

    def verify_chain(self) -> bool:
        """Walk every entry, recomputing seals and checking links.

        Returns True if the chain is valid, raises LedgerIntegrityError otherwise.
        """
        prev_hash = ""
        for entry in self.get_entries():
            if entry.previous_entry_hash != prev_hash:
                raise LedgerIntegrityError(
                    f"Chain broken at entry {entry.entry_id}: "
                    f"expected previous_hash={prev_hash!r}, "
                    f"got {entry.previous_entry_hash!r}"
                )
            expected_hash = compute_entry_hash(entry.model_dump(mode="json"))
            if entry.entry_hash != expected_hash:
                raise LedgerIntegrityError(
                    f"Tampered entry {entry.entry_id}: "
                    f"expected hash={expected_hash!r}, got {entry.entry_hash!r}"
                )
            prev_hash = entry.entry_hash
        return True

    @staticmethod
    def _row_to_entry(row: tuple) -> AuditEntry:
        (
            entry_id,
            actor_id,
            action,
            resource_type,
            resource_id,
            success,
            metadata,
            timestamp_utc,
            previous_entry_hash,
            entry_hash,
        ) = row
        return AuditEntry(
            entry_id=entry_id,
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            success=bool(success),
            metadata=metadata,
            timestamp_utc=datetime.fromisoformat(timestamp_utc),
            previous_entry_hash=previous_entry_hash,
            entry_hash=entry_hash,
        )

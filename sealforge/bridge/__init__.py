"""Boundary layer between the engine and the outside world.

Modules
-------
crypto_bridge
    Public-key primitives via PyNaCl: X25519 sealed boxes for the
    Certificate access method and Ed25519 signatures for multi-factor
    proof tokens.
audit_bridge
    The ``AuditSink`` protocol the engine reports to, plus a ledger-backed
    and a logging-backed sink.
"""

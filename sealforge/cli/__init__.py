"""Sealforge CLI — Typer-based command-line interface.

Provides the ``sealforge`` command with subcommands for encrypting and
decrypting artifacts, inspecting them, generating keys, minting
multi-factor tokens and reviewing the audit ledger.

All output uses Rich for formatted terminal display.
"""

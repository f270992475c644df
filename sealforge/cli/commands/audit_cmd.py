"""``sealforge audit`` — list audit ledger entries and verify the hash chain."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from sealforge.cli.commands.common import console
from sealforge.config import VaultSettings
from sealforge.core.audit_ledger import AuditLedger, LedgerIntegrityError


def audit_cmd(
    artifact_id: Optional[str] = typer.Option(None, "--artifact", "-a", help="Only this artifact."),
    limit: int = typer.Option(20, "--limit", "-n", help="Show the most recent N entries (0 = all)."),
    verify: bool = typer.Option(
        True, "--verify/--no-verify", help="Verify hash chain integrity."
    ),
    ledger_db: Optional[Path] = typer.Option(
        None, "--ledger", "-l", help="Ledger database (defaults to SEALFORGE_AUDIT_LEDGER_PATH)."
    ),
) -> None:
    """Show recent audit entries."""
    db_path = ledger_db or VaultSettings().audit_ledger_path
    if not db_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {db_path}")
        raise typer.Exit(code=1)

    ledger = AuditLedger(db_path)
    entries = ledger.get_entries(resource_id=artifact_id, limit=limit or None)

    table = Table(title=f"Audit Ledger ({db_path})")
    table.add_column("Time (UTC)", style="dim")
    table.add_column("Actor")
    table.add_column("Action", style="cyan")
    table.add_column("Resource")
    table.add_column("OK", justify="center")
    table.add_column("Detail")
    for e in entries:
        ok = "[green]Yes[/green]" if e.success else "[red]No[/red]"
        table.add_row(
            e.timestamp_utc.strftime("%Y-%m-%d %H:%M:%S"),
            e.actor_id, e.action, e.resource_id, ok, e.metadata,
        )
    console.print(table)

    if verify:
        try:
            ledger.verify_chain()
        except LedgerIntegrityError as exc:
            console.print(f"[bold red]Chain BROKEN:[/bold red] {exc}")
            raise typer.Exit(code=1)
        console.print("[bold green]Chain valid.[/bold green]")

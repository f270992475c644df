"""``sealforge inspect ARTIFACT`` — show public metadata without any key material."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.panel import Panel
from rich.table import Table

from sealforge.cli.commands.common import console, handle_errors
from sealforge.core import container
from sealforge.core.errors import VaultIOError


def inspect_cmd(
    artifact: Path = typer.Argument(..., help="Artifact file to inspect."),
    as_json: bool = typer.Option(False, "--json", help="Print the manifest as JSON."),
) -> None:
    """Print an artifact's metadata, access methods and policies."""
    with handle_errors():
        try:
            data = artifact.read_bytes()
        except OSError as exc:
            raise VaultIOError(f"cannot read artifact {artifact}: {exc}") from exc
        loaded = container.load(data).artifact

    if as_json:
        console.print_json(json.dumps(loaded.model_dump(mode="json")))
        return

    console.print(
        Panel(
            "\n".join([
                f"[bold]Id:[/bold]          {loaded.id}",
                f"[bold]Name:[/bold]        {loaded.name}",
                f"[bold]Owner:[/bold]       {loaded.owner_id or '-'}",
                f"[bold]Description:[/bold] {loaded.description or '-'}",
                f"[bold]Algorithm:[/bold]   {loaded.algorithm} (format {loaded.format_version})",
                f"[bold]Content:[/bold]     {loaded.file_count} file(s), {loaded.content_size} bytes"
                f"{' (compressed)' if loaded.compression else ''}",
                f"[bold]Created:[/bold]     {loaded.created_at.isoformat()}",
            ]),
            title="[bold]Artifact[/bold]",
            border_style="cyan",
        )
    )

    methods = Table(title="Access Methods")
    methods.add_column("Type", style="cyan")
    methods.add_column("Name")
    methods.add_column("Key id")
    methods.add_column("Active", justify="center")
    for m in loaded.access_methods:
        active = "[green]Yes[/green]" if m.is_active else "[red]No[/red]"
        methods.add_row(m.type.value, m.name, m.key_id or "-", active)
    console.print(methods)

    if loaded.policies:
        policies = Table(title="Policies")
        policies.add_column("Type", style="cyan")
        policies.add_column("Name")
        policies.add_column("Rules")
        for p in loaded.policies:
            policies.add_row(p.type.value, p.name, json.dumps(p.rules, sort_keys=True))
        console.print(policies)
    else:
        console.print("[dim]No policies attached.[/dim]")

"""``sealforge encrypt SOURCE -o ARTIFACT`` — package a file or tree into an artifact.

Access methods are chosen with flags; at least one keyed method
(runtime, passphrase or certificate) is required.  Policies are attached
with ``--ttl``, ``--environment``, ``--instance``, ``--region`` and
``--mfa-verify-key``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer
from rich.panel import Panel

from sealforge.cli.commands.common import build_engine, console, handle_errors, read_passphrase
from sealforge.models.requests import AccessMethodConfig, EncryptionRequest, PolicyConfig


def _tag_policy(kind: str, values: list[str]) -> PolicyConfig:
    rules: dict[str, Any] = {kind: values[0]} if len(values) == 1 else {f"{kind}s": values}
    return PolicyConfig(type=kind, rules=rules)


def encrypt_cmd(
    source: Path = typer.Argument(..., help="File or directory to encrypt."),
    output: Path = typer.Option(..., "--output", "-o", help="Artifact file to write."),
    runtime: bool = typer.Option(
        True, "--runtime/--no-runtime", help="Add a Runtime (server master key) access method."
    ),
    passphrase: bool = typer.Option(
        False, "--passphrase", "-p", help="Add a Passphrase access method (prompted)."
    ),
    public_key_file: Optional[Path] = typer.Option(
        None, "--public-key-file", help="Add a Certificate access method for this X25519 public key."
    ),
    policy_only: bool = typer.Option(
        False, "--policy-method", help="Add a Policy access method (delegates unwrap)."
    ),
    ttl: Optional[str] = typer.Option(None, "--ttl", help="Expire after e.g. 90s, 24h, 7d."),
    environment: list[str] = typer.Option([], "--environment", help="Allowed environment (repeatable)."),
    instance: list[str] = typer.Option([], "--instance", help="Allowed instance (repeatable)."),
    region: list[str] = typer.Option([], "--region", help="Allowed region (repeatable)."),
    mfa_verify_key: Optional[str] = typer.Option(
        None, "--mfa-verify-key", help="Ed25519 public key (hex) that signs multi-factor tokens."
    ),
    description: str = typer.Option("", "--description", "-d", help="Free-text description."),
    compress: bool = typer.Option(True, "--compress/--no-compress", help="Gzip the archive."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Deadline in seconds."),
    actor: str = typer.Option("cli", "--actor", help="Actor id recorded in the audit ledger."),
) -> None:
    """Encrypt SOURCE into a portable artifact."""
    methods: list[AccessMethodConfig] = []
    if runtime:
        methods.append(AccessMethodConfig(type="runtime", name="runtime"))
    if passphrase:
        methods.append(AccessMethodConfig(
            type="passphrase", name="passphrase",
            config={"passphrase": read_passphrase(confirm=True)},
        ))
    if public_key_file is not None:
        methods.append(AccessMethodConfig(
            type="certificate", name="certificate",
            config={"public_key_file": str(public_key_file)},
        ))
    if policy_only:
        methods.append(AccessMethodConfig(type="policy", name="policy"))
    if not methods:
        console.print("[bold red]No access method selected.[/bold red]")
        raise typer.Exit(code=1)

    policies: list[PolicyConfig] = []
    if ttl:
        policies.append(PolicyConfig(type="ttl", rules={"duration": ttl}))
    for kind, values in (("environment", environment), ("instance", instance), ("region", region)):
        if values:
            policies.append(_tag_policy(kind, values))
    if mfa_verify_key:
        policies.append(PolicyConfig(type="multi_factor", rules={"verify_key": mfa_verify_key}))

    request = EncryptionRequest(
        source_path=str(source),
        output_path=str(output),
        access_methods=methods,
        policies=policies,
        description=description,
        compression=compress,
        timeout_seconds=timeout,
    )

    with handle_errors():
        result = build_engine().encrypt(request, actor_id=actor)

    console.print(
        Panel(
            "\n".join([
                f"[bold]Artifact:[/bold]  {result.artifact_id}",
                f"[bold]File:[/bold]      {result.file_path}",
                f"[bold]Size:[/bold]      {result.original_size} -> {result.encrypted_size} bytes",
                f"[bold]Methods:[/bold]   {', '.join(result.access_method_names)}",
                f"[bold]Policies:[/bold]  {', '.join(result.policy_names) or '-'}",
            ]),
            title=f"[bold green]Encrypted ({result.algorithm})[/bold green]",
            border_style="green",
        )
    )

"""``sealforge decrypt ARTIFACT -o DIR`` — unlock an artifact through one access method."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer

from sealforge.cli.commands.common import build_engine, console, handle_errors, read_passphrase
from sealforge.models.requests import AccessMethodConfig, DecryptionRequest, ExecutionContext

_METHODS = ("runtime", "passphrase", "certificate", "policy")


def decrypt_cmd(
    artifact: Path = typer.Argument(..., help="Artifact file to decrypt."),
    output: Path = typer.Option(..., "--output", "-o", help="Directory to unpack into."),
    method: str = typer.Option(
        "runtime", "--method", "-m", help=f"Access method: {', '.join(_METHODS)}."
    ),
    name: str = typer.Option("", "--name", help="Prefer the access method with this name."),
    passphrase: bool = typer.Option(
        False, "--passphrase", "-p",
        help="Supply a passphrase (prompted), e.g. for a policy method that delegates to one.",
    ),
    private_key_file: Optional[Path] = typer.Option(
        None, "--private-key-file", help="X25519 private key for the certificate method."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite a non-empty output directory."),
    mfa_token: str = typer.Option("", "--mfa-token", help="Multi-factor proof token."),
    environment: Optional[str] = typer.Option(None, "--environment", help="Override the context environment."),
    instance: Optional[str] = typer.Option(None, "--instance", help="Override the context instance."),
    region: Optional[str] = typer.Option(None, "--region", help="Override the context region."),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Deadline in seconds."),
    actor: str = typer.Option("cli", "--actor", help="Actor id recorded in the audit ledger."),
) -> None:
    """Decrypt ARTIFACT into OUTPUT."""
    credentials: dict[str, Any] = {}
    if passphrase or method.lower() == "passphrase":
        credentials["passphrase"] = read_passphrase(confirm=False)
    if private_key_file is not None:
        credentials["private_key_file"] = str(private_key_file)

    with handle_errors():
        engine = build_engine()
        defaults = engine.default_context()
        context = ExecutionContext(
            environment=defaults.environment if environment is None else environment,
            instance=defaults.instance if instance is None else instance,
            region=defaults.region if region is None else region,
            mfa_token=mfa_token,
            origin={"client": "sealforge-cli"},
        )
        request = DecryptionRequest(
            artifact_path=str(artifact),
            output_path=str(output),
            access_method=AccessMethodConfig(type=method, name=name, config=credentials),
            force=force,
            context=context,
            timeout_seconds=timeout,
        )
        result = engine.decrypt(request, actor_id=actor)

    console.print(
        f"[bold green]Decrypted[/bold green] {result.artifact_id} via {result.method_type} "
        f"into {result.file_path} ({result.decrypted_size} bytes)"
    )

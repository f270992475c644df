"""``sealforge mfa-token ARTIFACT`` — mint a multi-factor proof token."""

from __future__ import annotations

from pathlib import Path

import typer

from sealforge.bridge.crypto_bridge import issue_mfa_proof, read_key_file
from sealforge.cli.commands.common import console, handle_errors
from sealforge.core import container
from sealforge.core.errors import VaultIOError


def mfa_token_cmd(
    artifact: str = typer.Argument(..., help="Artifact file or artifact id."),
    signing_key_file: Path = typer.Option(
        ..., "--signing-key-file", help="Ed25519 private key (hex) from 'keygen --kind signing'."
    ),
) -> None:
    """Print a token for ``decrypt --mfa-token``."""
    with handle_errors():
        artifact_id = artifact
        path = Path(artifact)
        if path.is_file():
            try:
                artifact_id = container.load(path.read_bytes()).metadata.id
            except OSError as exc:
                raise VaultIOError(f"cannot read artifact {path}: {exc}") from exc
        token = issue_mfa_proof(artifact_id, read_key_file(signing_key_file))

    # Plain print so the token can be captured by scripts.
    console.print(token, soft_wrap=True, highlight=False)

"""``sealforge keygen`` — generate key-pairs for certificates and multi-factor tokens.

``--kind box`` writes an X25519 pair for the Certificate access method;
``--kind signing`` writes an Ed25519 pair whose public half goes into a
multi_factor policy's ``verify_key``.
"""

from __future__ import annotations

import os
from pathlib import Path

import typer

from sealforge.bridge.crypto_bridge import generate_box_keypair, generate_signing_keypair
from sealforge.cli.commands.common import console, handle_errors
from sealforge.core.errors import VaultIOError
from sealforge.core.hasher import key_fingerprint


def keygen_cmd(
    kind: str = typer.Option("box", "--kind", "-k", help="box (X25519) or signing (Ed25519)."),
    out_dir: Path = typer.Option(Path("."), "--out-dir", help="Directory for the key files."),
    name: str = typer.Option("sealforge", "--name", "-n", help="Base name of the key files."),
) -> None:
    """Write NAME.key (private, mode 0600) and NAME.pub into OUT_DIR."""
    if kind == "box":
        private_key, public_key = generate_box_keypair()
    elif kind == "signing":
        private_key, public_key = generate_signing_keypair()
    else:
        console.print(f"[bold red]Unknown key kind:[/bold red] {kind}")
        raise typer.Exit(code=1)

    private_path = out_dir / f"{name}.key"
    public_path = out_dir / f"{name}.pub"
    with handle_errors():
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
            fd = os.open(private_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(private_key + "\n")
            public_path.write_text(public_key + "\n", encoding="utf-8")
        except OSError as exc:
            raise VaultIOError(f"cannot write key files in {out_dir}: {exc}") from exc

    console.print(f"[bold green]Private key:[/bold green] {private_path}")
    console.print(f"[bold green]Public key:[/bold green]  {public_path}")
    console.print(f"[bold]Fingerprint:[/bold] {key_fingerprint(public_key)}")

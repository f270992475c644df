"""Main Typer application — imports and registers all CLI commands.

Entry point: ``sealforge`` (configured via pyproject.toml project.scripts).

Commands: encrypt, decrypt, inspect, keygen, mfa-token, audit.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from sealforge.cli.commands.audit_cmd import audit_cmd
from sealforge.cli.commands.decrypt import decrypt_cmd
from sealforge.cli.commands.encrypt import encrypt_cmd
from sealforge.cli.commands.inspect_cmd import inspect_cmd
from sealforge.cli.commands.keygen import keygen_cmd
from sealforge.cli.commands.mfa_token import mfa_token_cmd
from sealforge.config import settings

app = typer.Typer(
    name="sealforge",
    help="Sealforge: portable envelope-encrypted artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging from SEALFORGE_LOG_LEVEL (or --verbose)."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="encrypt", help="Encrypt a file or directory into an artifact.")(encrypt_cmd)
app.command(name="decrypt", help="Decrypt an artifact through one access method.")(decrypt_cmd)
app.command(name="inspect", help="Show an artifact's public metadata.")(inspect_cmd)
app.command(name="keygen", help="Generate certificate or multi-factor key-pairs.")(keygen_cmd)
app.command(name="mfa-token", help="Mint a multi-factor proof token.")(mfa_token_cmd)
app.command(name="audit", help="Show the audit ledger and verify its chain.")(audit_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

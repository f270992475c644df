"""Shared CLI plumbing: console, engine construction and error mapping."""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console

from sealforge.config import VaultSettings
from sealforge.core.engine import VaultEngine
from sealforge.core.errors import SealforgeError
from sealforge.core.production_guard import ProductionConfigError

console = Console()

PASSPHRASE_ENV = "SEALFORGE_PASSPHRASE"


def build_engine() -> VaultEngine:
    """Engine over freshly read settings (env and .env)."""
    return VaultEngine(VaultSettings())


def read_passphrase(*, confirm: bool) -> str:
    """Passphrase from ``SEALFORGE_PASSPHRASE`` or an interactive hidden prompt."""
    value = os.environ.get(PASSPHRASE_ENV)
    if value:
        return value
    return typer.prompt("Passphrase", hide_input=True, confirmation_prompt=confirm)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Map sealforge failures to a red message and exit code 1."""
    try:
        yield
    except (SealforgeError, ProductionConfigError) as exc:
        console.print(f"[bold red]{type(exc).__name__}:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

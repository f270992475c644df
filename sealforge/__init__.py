"""Sealforge: portable envelope-encrypted artifacts.

A file or directory tree is archived, encrypted once under a random
per-artifact data key, and that key is wrapped independently by each
configured access method:
  - Runtime (server-held master key derived from settings)
  - Passphrase (PBKDF2-derived, per-method salt)
  - Certificate (X25519 sealed box via PyNaCl)
  - Policy (gating only, delegates unwrap)

Gating policies (TTL, environment, instance, region, multi-factor) must
all pass before an unwrapped key is used.
"""

__version__ = "0.1.0"
__description__ = (
    "Portable envelope-encrypted artifacts with independent access methods"
)

from sealforge.core.engine import VaultEngine
from sealforge.cli.app import app as cli

__all__ = ["VaultEngine", "cli", "__version__"]

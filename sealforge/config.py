"""Runtime configuration — env-driven.

Centralized settings using pydantic-settings.  Reads from a .env file and
SEALFORGE_* environment variables.  The Runtime master wrapping key is
*derived* from these settings once (``RuntimeKey.from_settings``) and is
never stored here.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder master secret for development.  The production guard
# refuses to start with it.
DEV_MASTER_SECRET = "sealforge-dev-master-secret-change-me"


class VaultSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export SEALFORGE_ENVIRONMENT=production
        export SEALFORGE_MASTER_SECRET='long random passphrase'
        export SEALFORGE_KDF_SALT='deployment-specific-salt'

    Or via .env file::

        SEALFORGE_REGION=eu-west-1
        SEALFORGE_INSTANCE_ID=vault-node-3
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SEALFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Runtime master key material (PBKDF2 input)
    master_secret: str = DEV_MASTER_SECRET
    kdf_salt: str = "sealforge-runtime-salt"
    kdf_iterations: int = 100_000

    # Passphrase access methods
    passphrase_kdf_iterations: int = 100_000

    # Audit
    audit_enabled: bool = True
    audit_ledger_path: Path = Path(".sealforge/audit.db")

    # Default execution-context tags evaluated by policies
    instance_id: str = ""
    region: str = ""

    # Deadline applied to encrypt/decrypt when the caller supplies none
    operation_timeout_seconds: float | None = None

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton; import as `from sealforge.config import settings`
settings = VaultSettings()

"""Tests for VaultSettings — env-driven settings."""

from __future__ import annotations

from pathlib import Path

from sealforge.config import DEV_MASTER_SECRET, VaultSettings


class TestVaultSettings:
    def test_defaults(self):
        config = VaultSettings(_env_file=None)
        assert config.log_level == "INFO"
        assert config.kdf_iterations == 100_000
        assert config.passphrase_kdf_iterations == 100_000
        assert config.operation_timeout_seconds is None
        assert config.audit_enabled is True

    def test_is_production_when_set(self):
        assert VaultSettings(_env_file=None, environment="production").is_production is True
        assert VaultSettings(_env_file=None, environment="staging").is_production is False

    def test_default_paths(self):
        assert VaultSettings(_env_file=None).audit_ledger_path == Path(".sealforge/audit.db")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SEALFORGE_REGION", "eu-west-1")
        monkeypatch.setenv("SEALFORGE_KDF_ITERATIONS", "250000")
        monkeypatch.setenv("SEALFORGE_OPERATION_TIMEOUT_SECONDS", "2.5")
        config = VaultSettings(_env_file=None)
        assert config.region == "eu-west-1"
        assert config.kdf_iterations == 250_000
        assert config.operation_timeout_seconds == 2.5

    def test_dotenv_file(self, tmp_dir: Path, monkeypatch):
        monkeypatch.delenv("SEALFORGE_INSTANCE_ID", raising=False)
        env_file = tmp_dir / ".env"
        env_file.write_text("SEALFORGE_INSTANCE_ID=vault-node-3\n")
        assert VaultSettings(_env_file=env_file).instance_id == "vault-node-3"

    def test_dev_master_secret_is_default(self, monkeypatch):
        monkeypatch.delenv("SEALFORGE_MASTER_SECRET", raising=False)
        assert VaultSettings(_env_file=None).master_secret == DEV_MASTER_SECRET

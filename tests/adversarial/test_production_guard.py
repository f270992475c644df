"""Adversarial tests — production configuration guard.

The engine must refuse to start in production with a well-known master
secret, debug mode, or weakened KDF parameters.
"""

from __future__ import annotations

import pytest

from sealforge.config import DEV_MASTER_SECRET, VaultSettings
from sealforge.core.engine import VaultEngine
from sealforge.core.errors import InvalidRequestError
from sealforge.core.production_guard import (
    ProductionConfigError,
    enforce_production_constraints,
)


def _prod(**overrides) -> VaultSettings:
    values = {
        "environment": "production",
        "master_secret": "a long and unguessable deployment secret",
        "kdf_salt": "deployment-salt",
        "audit_enabled": False,
    }
    values.update(overrides)
    return VaultSettings(_env_file=None, **values)


class TestProductionGuard:
    def test_development_is_not_guarded(self):
        enforce_production_constraints(
            VaultSettings(_env_file=None, debug=True, kdf_iterations=1)
        )

    def test_valid_production_passes(self):
        enforce_production_constraints(_prod())

    def test_dev_master_secret_rejected(self):
        with pytest.raises(ProductionConfigError, match="master_secret"):
            enforce_production_constraints(_prod(master_secret=DEV_MASTER_SECRET))

    def test_empty_master_secret_rejected(self):
        with pytest.raises(ProductionConfigError, match="master_secret"):
            enforce_production_constraints(_prod(master_secret=""))

    def test_debug_rejected(self):
        with pytest.raises(ProductionConfigError, match="debug"):
            enforce_production_constraints(_prod(debug=True))

    @pytest.mark.parametrize("field", ["kdf_iterations", "passphrase_kdf_iterations"])
    def test_weak_kdf_rejected(self, field):
        with pytest.raises(ProductionConfigError, match=field):
            enforce_production_constraints(_prod(**{field: 10_000}))

    def test_all_violations_listed(self):
        with pytest.raises(ProductionConfigError) as info:
            enforce_production_constraints(
                _prod(debug=True, master_secret="", kdf_iterations=1)
            )
        message = str(info.value)
        assert "debug" in message
        assert "master_secret" in message
        assert "kdf_iterations" in message

    def test_engine_refuses_to_start(self):
        with pytest.raises(ProductionConfigError):
            VaultEngine(_prod(master_secret=DEV_MASTER_SECRET))


class TestProductionPassphraseFloor:
    def test_pinned_iterations_below_floor_rejected(self, runtime_key, make_encrypt_request):
        engine = VaultEngine(_prod(), runtime_key)
        request = make_encrypt_request(methods=[
            {"type": "passphrase", "config": {"passphrase": "pw", "iterations": 1_000}},
        ])
        with pytest.raises(InvalidRequestError, match="outside"):
            engine.encrypt(request)

    def test_floor_not_applied_outside_production(self, engine, make_encrypt_request):
        request = make_encrypt_request(methods=[
            {"type": "passphrase", "config": {"passphrase": "pw", "iterations": 1_000}},
        ])
        assert engine.encrypt(request).access_method_names == ["passphrase"]

"""Production configuration guard — enforces hard constraints in production.

Runs once at startup and fails hard (raises ``ProductionConfigError``)
if the deployment would derive a weak or well-known Runtime master key.
Other code should not scatter ``if is_production`` checks.
"""

from __future__ import annotations

import logging

from sealforge.config import DEV_MASTER_SECRET, VaultSettings
from sealforge.core.key_derivation import DEFAULT_ITERATIONS

logger = logging.getLogger(__name__)


class ProductionConfigError(RuntimeError):
    """Raised when production configuration constraints are violated.

    The process should exit; this must not be caught and ignored.
    """


def enforce_production_constraints(config: VaultSettings) -> None:
    """Validate all production-critical configuration constraints.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. The master secret must be set and must not be the development default.
    3. ``kdf_iterations`` and ``passphrase_kdf_iterations`` must be at
       least ``DEFAULT_ITERATIONS``.

    Raises
    ------
    ProductionConfigError
        Listing every violated constraint.
    """
    if not config.is_production:
        return  # Guard only applies in production

    violations: list[str] = []

    if config.debug:
        violations.append(
            "debug=True is not allowed in production. Set SEALFORGE_DEBUG=false."
        )

    if not config.master_secret or config.master_secret == DEV_MASTER_SECRET:
        violations.append(
            "master_secret is unset or the development default. "
            "Set SEALFORGE_MASTER_SECRET."
        )

    for field in ("kdf_iterations", "passphrase_kdf_iterations"):
        value = getattr(config, field)
        if value < DEFAULT_ITERATIONS:
            violations.append(
                f"{field}={value} is below the production minimum of "
                f"{DEFAULT_ITERATIONS}. Set SEALFORGE_{field.upper()}."
            )

    if violations:
        msg = "Production configuration guard failed.\n" + "\n".join(
            f"  - {v}" for v in violations
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")

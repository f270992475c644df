"""Access method registry — independent ways to wrap one data key.

Each variant wraps a copy of the *same* per-artifact data key under its
own key material.  Any one variant can later unwrap it on its own.

Variants
--------
- ``runtime``: AES-256-GCM under the server-held ``RuntimeKey``.
- ``passphrase``: AES-256-GCM under PBKDF2(passphrase, per-method salt).
  Independent of the runtime key.
- ``certificate``: X25519 sealed box to a recipient public key.
- ``policy``: wraps nothing; unwrap delegates to a co-located runtime or
  passphrase record so policies can gate an artifact without adding a
  separately keyed unlock path.

Secrets supplied in a method's config (passphrases, private keys) are
used transiently and never copied into the persisted ``AccessMethod``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, ClassVar, NamedTuple

from sealforge.bridge import crypto_bridge
from sealforge.core.cancellation import OperationGuard
from sealforge.core.content_cipher import decrypt_stream, encrypt_stream
from sealforge.core.errors import (
    AccessMethodNotFound,
    CryptoError,
    InvalidRequestError,
    UnsupportedMethodType,
)
from sealforge.core.hasher import key_fingerprint
from sealforge.core.key_derivation import (
    DEFAULT_ITERATIONS,
    SALT_SIZE,
    RuntimeKey,
    derive_wrapping_key,
)
from sealforge.models.artifacts import AccessMethod, AccessMethodType, EncryptedArtifact
from sealforge.models.requests import AccessMethodConfig

logger = logging.getLogger(__name__)

# Config keys that must never reach the container.
SECRET_CONFIG_KEYS = frozenset({"passphrase", "password", "private_key", "private_key_file"})

# Accepted PBKDF2 iteration counts for passphrase records.  Stored counts are
# read before the manifest seal can be checked, so they are bounded here.
MIN_PASSPHRASE_ITERATIONS = 1_000
MAX_PASSPHRASE_ITERATIONS = 10_000_000


class WrappedKey(NamedTuple):
    encrypted_key: str  # base64, empty for the policy variant
    key_id: str
    config: dict[str, Any]  # sanitized config to persist


def public_config(config: dict[str, Any]) -> dict[str, Any]:
    """Drop secret keys from a method config."""
    return {k: v for k, v in config.items() if k not in SECRET_CONFIG_KEYS}


def _b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CryptoError("malformed wrapped key") from exc


def resolve_method_type(value: str | AccessMethodType) -> AccessMethodType:
    """Map a user-supplied type string to ``AccessMethodType``."""
    try:
        return AccessMethodType(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        raise UnsupportedMethodType(str(value)) from None


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class KeyWrapper(ABC):
    """One access method variant."""

    method_type: ClassVar[AccessMethodType]

    @abstractmethod
    def wrap(self, data_key: bytes, config: dict[str, Any]) -> WrappedKey:
        """Wrap *data_key* under this variant's key material."""

    @abstractmethod
    def unwrap(
        self,
        record: AccessMethod,
        credentials: dict[str, Any],
        artifact: EncryptedArtifact,
    ) -> bytes:
        """Recover the data key from *record*.

        Raises ``CryptoError`` when the key material does not authenticate.
        """

    def select(
        self, candidates: list[AccessMethod], requested: AccessMethodConfig
    ) -> AccessMethod:
        """Pick the record to unwrap among active records of this type."""
        for record in candidates:
            if requested.name and record.name == requested.name:
                return record
        return candidates[0]


class RuntimeWrapper(KeyWrapper):
    method_type = AccessMethodType.RUNTIME

    def __init__(self, runtime_key: RuntimeKey) -> None:
        self._runtime_key = runtime_key

    def wrap(self, data_key: bytes, config: dict[str, Any]) -> WrappedKey:
        sealed = encrypt_stream(data_key, self._runtime_key.key)
        return WrappedKey(_b64encode(sealed), self._runtime_key.key_id, public_config(config))

    def unwrap(
        self,
        record: AccessMethod,
        credentials: dict[str, Any],
        artifact: EncryptedArtifact,
    ) -> bytes:
        if record.key_id and record.key_id != self._runtime_key.key_id:
            logger.warning(
                "Runtime record %s was wrapped under master key %s; this process holds %s.",
                record.id, record.key_id, self._runtime_key.key_id,
            )
        return decrypt_stream(_b64decode(record.encrypted_key), self._runtime_key.key)


class PassphraseWrapper(KeyWrapper):
    method_type = AccessMethodType.PASSPHRASE

    def __init__(
        self,
        default_iterations: int = DEFAULT_ITERATIONS,
        *,
        min_iterations: int = MIN_PASSPHRASE_ITERATIONS,
    ) -> None:
        self._default_iterations = default_iterations
        self._min_iterations = max(min_iterations, MIN_PASSPHRASE_ITERATIONS)

    @staticmethod
    def _passphrase(config: dict[str, Any]) -> str:
        value = config.get("passphrase") or config.get("password")
        if not value:
            raise InvalidRequestError("passphrase access method requires a passphrase")
        return str(value)

    def wrap(self, data_key: bytes, config: dict[str, Any]) -> WrappedKey:
        passphrase = self._passphrase(config)
        try:
            iterations = int(config.get("iterations") or self._default_iterations)
        except (TypeError, ValueError):
            raise InvalidRequestError(
                f"invalid passphrase iterations: {config.get('iterations')!r}"
            ) from None
        if not self._min_iterations <= iterations <= MAX_PASSPHRASE_ITERATIONS:
            raise InvalidRequestError(
                f"passphrase iterations {iterations} outside "
                f"[{self._min_iterations}, {MAX_PASSPHRASE_ITERATIONS}]"
            )
        salt = os.urandom(SALT_SIZE)
        wrapping_key = derive_wrapping_key(passphrase, salt, iterations)
        persisted = public_config(config)
        persisted.update({"kdf": "pbkdf2-sha256", "salt": salt.hex(), "iterations": iterations})
        return WrappedKey(_b64encode(encrypt_stream(data_key, wrapping_key)), "", persisted)

    def unwrap(
        self,
        record: AccessMethod,
        credentials: dict[str, Any],
        artifact: EncryptedArtifact,
    ) -> bytes:
        passphrase = self._passphrase(credentials)
        try:
            salt = bytes.fromhex(record.config["salt"])
            iterations = int(record.config["iterations"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CryptoError(f"passphrase record {record.id} has no usable KDF parameters") from exc
        if not MIN_PASSPHRASE_ITERATIONS <= iterations <= MAX_PASSPHRASE_ITERATIONS:
            raise CryptoError(
                f"passphrase record {record.id} has an out-of-range KDF iteration count"
            )
        wrapping_key = derive_wrapping_key(passphrase, salt, iterations)
        return decrypt_stream(_b64decode(record.encrypted_key), wrapping_key)


class CertificateWrapper(KeyWrapper):
    method_type = AccessMethodType.CERTIFICATE

    @staticmethod
    def _public_key(config: dict[str, Any]) -> str:
        if config.get("public_key"):
            return str(config["public_key"])
        path = config.get("public_key_file") or config.get("certificate_file")
        if path:
            return crypto_bridge.read_key_file(path)
        raise InvalidRequestError(
            "certificate access method requires 'public_key' or 'public_key_file'"
        )

    @staticmethod
    def _private_key(credentials: dict[str, Any]) -> str:
        if credentials.get("private_key"):
            return str(credentials["private_key"])
        if credentials.get("private_key_file"):
            return crypto_bridge.read_key_file(credentials["private_key_file"])
        raise InvalidRequestError(
            "certificate unwrap requires 'private_key' or 'private_key_file'"
        )

    def wrap(self, data_key: bytes, config: dict[str, Any]) -> WrappedKey:
        public_key = self._public_key(config)
        sealed = crypto_bridge.seal_to_public_key(data_key, public_key)
        persisted = public_config(config)
        persisted["public_key"] = public_key
        return WrappedKey(_b64encode(sealed), key_fingerprint(public_key), persisted)

    def select(
        self, candidates: list[AccessMethod], requested: AccessMethodConfig
    ) -> AccessMethod:
        try:
            private_key = self._private_key(requested.config)
            wanted = key_fingerprint(crypto_bridge.public_key_for(private_key))
        except InvalidRequestError:
            return super().select(candidates, requested)
        for record in candidates:
            if record.key_id == wanted:
                return record
        return super().select(candidates, requested)

    def unwrap(
        self,
        record: AccessMethod,
        credentials: dict[str, Any],
        artifact: EncryptedArtifact,
    ) -> bytes:
        private_key = self._private_key(credentials)
        return crypto_bridge.open_sealed(_b64decode(record.encrypted_key), private_key)


class PolicyWrapper(KeyWrapper):
    """Carries no key; unwrap goes through a co-located keyed record."""

    method_type = AccessMethodType.POLICY
    _DELEGATES = (AccessMethodType.RUNTIME, AccessMethodType.PASSPHRASE)

    def __init__(self, registry: AccessMethodRegistry) -> None:
        self._registry = registry

    def wrap(self, data_key: bytes, config: dict[str, Any]) -> WrappedKey:
        return WrappedKey("", "", public_config(config))

    def unwrap(
        self,
        record: AccessMethod,
        credentials: dict[str, Any],
        artifact: EncryptedArtifact,
    ) -> bytes:
        for delegate_type in self._DELEGATES:
            delegates = artifact.active_methods(delegate_type)
            if delegates:
                logger.debug(
                    "Policy method %s delegates unwrap to %s record %s.",
                    record.name, delegate_type.value, delegates[0].name,
                )
                wrapper = self._registry.wrapper(delegate_type)
                return wrapper.unwrap(delegates[0], credentials, artifact)
        raise AccessMethodNotFound(
            AccessMethodType.POLICY.value,
            "policy access method has no co-located runtime or passphrase record",
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


# Variants that carry their own wrapped copy of the data key.
KEYED_METHOD_TYPES = frozenset({
    AccessMethodType.RUNTIME,
    AccessMethodType.PASSPHRASE,
    AccessMethodType.CERTIFICATE,
})


class AccessMethodRegistry:
    """Maps variant tags to wrappers and performs create / find / unwrap.

    Parameters
    ----------
    runtime_key:
        The master wrapping key for the runtime variant.
    passphrase_iterations:
        PBKDF2 iterations for passphrase methods that do not pin their own.
    min_passphrase_iterations:
        Lowest iteration count a request may pin.  Production engines pass
        ``DEFAULT_ITERATIONS``.
    """

    def __init__(
        self,
        runtime_key: RuntimeKey,
        *,
        passphrase_iterations: int = DEFAULT_ITERATIONS,
        min_passphrase_iterations: int = MIN_PASSPHRASE_ITERATIONS,
    ) -> None:
        self._wrappers: dict[AccessMethodType, KeyWrapper] = {}
        self.register(RuntimeWrapper(runtime_key))
        self.register(PassphraseWrapper(
            passphrase_iterations, min_iterations=min_passphrase_iterations
        ))
        self.register(CertificateWrapper())
        self.register(PolicyWrapper(self))

    def register(self, wrapper: KeyWrapper) -> None:
        self._wrappers[wrapper.method_type] = wrapper

    def wrapper(self, method_type: str | AccessMethodType) -> KeyWrapper:
        resolved = resolve_method_type(method_type)
        try:
            return self._wrappers[resolved]
        except KeyError:
            raise UnsupportedMethodType(resolved.value) from None

    @property
    def supported_types(self) -> list[str]:
        return [t.value for t in self._wrappers]

    def create_access_method(
        self,
        method_config: AccessMethodConfig,
        data_key: bytes,
        *,
        artifact_id: str = "",
        guard: OperationGuard | None = None,
    ) -> AccessMethod:
        """Wrap *data_key* for one configured method.

        *guard* is checked before and after wrapping, which may run a KDF.

        Raises
        ------
        UnsupportedMethodType
            For unknown variant tags.
        """
        wrapper = self.wrapper(method_config.type)
        if guard is not None:
            guard.check("key wrap")
        wrapped = wrapper.wrap(data_key, dict(method_config.config))
        if guard is not None:
            guard.check("key wrap")
        method = AccessMethod(
            artifact_id=artifact_id,
            type=wrapper.method_type,
            name=method_config.name or wrapper.method_type.value,
            config=wrapped.config,
            encrypted_key=wrapped.encrypted_key,
            key_id=wrapped.key_id,
        )
        logger.debug("Created %s access method '%s'.", method.type.value, method.name)
        return method

    def find_access_method(
        self, artifact: EncryptedArtifact, requested: AccessMethodConfig
    ) -> AccessMethod:
        """Return the active record matching the requested variant.

        Raises
        ------
        UnsupportedMethodType
            For unknown variant tags.
        AccessMethodNotFound
            When the artifact holds no active record of that variant.
        """
        wrapper = self.wrapper(requested.type)
        candidates = artifact.active_methods(wrapper.method_type)
        if not candidates:
            raise AccessMethodNotFound(wrapper.method_type.value)
        return wrapper.select(candidates, requested)

    def unwrap(
        self,
        artifact: EncryptedArtifact,
        record: AccessMethod,
        credentials: dict[str, Any],
        *,
        guard: OperationGuard | None = None,
    ) -> bytes:
        """Recover the data key through *record*'s variant.

        *guard* is checked before and after the unwrap, which may run a KDF.
        """
        if guard is not None:
            guard.check("key unwrap")
        data_key = self.wrapper(record.type).unwrap(record, credentials, artifact)
        if guard is not None:
            guard.check("key unwrap")
        return data_key

"""Error taxonomy for the envelope-encryption engine.

Every failure the engine can surface derives from ``SealforgeError`` so
callers (the CLI, an application layer) can catch the whole family at
once while still distinguishing *why* an operation failed.
"""

from __future__ import annotations


class SealforgeError(RuntimeError):
    """Base class for all sealforge errors."""


class VaultIOError(SealforgeError, OSError):
    """Filesystem access, archive read/write or permission failure."""


class CryptoError(SealforgeError):
    """AEAD setup failure, authentication-tag mismatch or malformed ciphertext.

    Always treated as evidence of tampering or a wrong key.
    """


class AccessMethodNotFound(SealforgeError):
    """No active access method of the requested type exists on the artifact."""

    def __init__(self, method_type: str, message: str = "") -> None:
        self.method_type = method_type
        super().__init__(
            message or f"no active access method of type '{method_type}' on artifact"
        )


class UnsupportedMethodType(SealforgeError):
    """The access method type is not known to the registry."""

    def __init__(self, method_type: str) -> None:
        self.method_type = method_type
        super().__init__(f"unsupported access method type: {method_type}")


class PolicyViolation(SealforgeError):
    """A gating policy denied the decrypt attempt."""

    def __init__(self, policy_name: str, reason: str, policy_type: str = "") -> None:
        self.policy_name = policy_name
        self.policy_type = policy_type or policy_name
        self.reason = reason
        super().__init__(f"policy '{policy_name}' ({self.policy_type}) violated: {reason}")


class ArtifactFormatError(SealforgeError):
    """Container header or section corruption."""


class InvalidRequestError(SealforgeError, ValueError):
    """An encryption or decryption request cannot be honoured as given."""


class OperationCancelled(SealforgeError):
    """The operation was cancelled cooperatively by the caller."""


class OperationTimeout(OperationCancelled):
    """The operation exceeded its caller-supplied deadline."""

"""Policy validator — gating rules evaluated before an unwrap is honoured.

All active policies must pass (logical AND).  The first failing policy,
in artifact order, is reported.

Rule payloads
-------------
- ``ttl``: ``{"duration": "24h"}`` — integer seconds or ``90s`` / ``15m`` /
  ``24h`` / ``7d`` / ``2w`` / ``1h30m``.  Fails once
  ``created_at + duration`` has been reached.
- ``environment`` / ``region``: ``{"environment": "prod"}`` or
  ``{"environments": ["prod", "staging"]}``.  Case-insensitive.
- ``instance``: ``{"instance": "i-0abc"}`` or ``{"instances": [...]}``.
  Exact match.
- ``multi_factor``: ``{"verify_key": "<ed25519 hex>", "max_age_seconds": 300}``.
  The caller supplies ``ExecutionContext.mfa_token`` minted by
  ``crypto_bridge.issue_mfa_proof``.

Malformed rules fail closed.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sealforge.bridge import crypto_bridge
from sealforge.core.errors import InvalidRequestError, PolicyViolation
from sealforge.models.artifacts import ArtifactMetadata, EncryptionPolicy, PolicyType
from sealforge.models.requests import ExecutionContext, PolicyConfig

logger = logging.getLogger(__name__)

DEFAULT_MFA_MAX_AGE_SECONDS = 300

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d|w)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: Any) -> timedelta:
    """Parse integer seconds or a compact duration string into a timedelta."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if re.fullmatch(r"\d+(?:\.\d+)?", text):
            seconds = float(text)
        else:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ValueError(f"invalid duration: {value!r}")
            seconds = sum(float(n) * _UNIT_SECONDS[u] for n, u in parts)
    if seconds <= 0:
        raise ValueError(f"duration must be positive: {value!r}")
    return timedelta(seconds=seconds)


def _allowed_values(policy_type: PolicyType, rules: dict[str, Any]) -> list[str]:
    key = policy_type.value
    values: list[str] = []
    single = rules.get(key)
    if single not in (None, ""):
        values.append(str(single))
    many = rules.get(f"{key}s") or []
    if isinstance(many, str):
        many = [many]
    values.extend(str(v) for v in many)
    return values


def _utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PolicyValidator:
    """Evaluates ``EncryptionPolicy`` records against an ``ExecutionContext``.

    Time-based checks (TTL, multi-factor token age) read *clock*, never the
    caller's request.  Tests inject a fixed clock here.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow
        self._checks: dict[
            PolicyType,
            Callable[[EncryptionPolicy, ArtifactMetadata, ExecutionContext, datetime], str],
        ] = {
            PolicyType.TTL: self._check_ttl,
            PolicyType.ENVIRONMENT: self._check_tag,
            PolicyType.INSTANCE: self._check_tag,
            PolicyType.REGION: self._check_tag,
            PolicyType.MULTI_FACTOR: self._check_multi_factor,
        }

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_policy(self, config: PolicyConfig, *, artifact_id: str = "") -> EncryptionPolicy:
        """Build an ``EncryptionPolicy`` from request config, validating its rules.

        Raises
        ------
        InvalidRequestError
            For unknown policy types or rules that could never pass.
        """
        try:
            policy_type = PolicyType(config.type.strip().lower())
        except ValueError:
            raise InvalidRequestError(f"unsupported policy type: {config.type}") from None

        rules = dict(config.rules)
        if policy_type is PolicyType.TTL:
            try:
                parse_duration(rules.get("duration"))
            except ValueError as exc:
                raise InvalidRequestError(f"ttl policy: {exc}") from exc
        elif policy_type is PolicyType.MULTI_FACTOR:
            if not rules.get("verify_key"):
                raise InvalidRequestError("multi_factor policy requires 'verify_key'")
        elif not _allowed_values(policy_type, rules):
            raise InvalidRequestError(
                f"{policy_type.value} policy requires '{policy_type.value}' "
                f"or '{policy_type.value}s'"
            )

        return EncryptionPolicy(
            artifact_id=artifact_id,
            type=policy_type,
            name=config.name or policy_type.value,
            rules=rules,
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def first_violation(
        self,
        policies: list[EncryptionPolicy],
        context: ExecutionContext,
        *,
        artifact: ArtifactMetadata,
    ) -> PolicyViolation | None:
        """Return the first failing active policy as a ``PolicyViolation``, else ``None``."""
        now = _utc(self._clock())
        for policy in policies:
            if not policy.is_active:
                continue
            reason = self._checks[policy.type](policy, artifact, context, now)
            if reason:
                return PolicyViolation(policy.name, reason, policy.type.value)
        return None

    def validate(
        self,
        policies: list[EncryptionPolicy],
        context: ExecutionContext,
        *,
        artifact: ArtifactMetadata,
    ) -> None:
        """Raise ``PolicyViolation`` unless every active policy passes."""
        violation = self.first_violation(policies, context, artifact=artifact)
        if violation is not None:
            logger.warning("Artifact %s: %s", artifact.id, violation)
            raise violation

    # ------------------------------------------------------------------
    # Per-variant checks: return "" on pass, else the reason
    # ------------------------------------------------------------------

    @staticmethod
    def _check_ttl(
        policy: EncryptionPolicy,
        artifact: ArtifactMetadata,
        context: ExecutionContext,
        now: datetime,
    ) -> str:
        try:
            duration = parse_duration(policy.rules.get("duration"))
        except ValueError as exc:
            return f"invalid ttl rule: {exc}"
        expires_at = _utc(artifact.created_at) + duration
        if now >= expires_at:
            return f"artifact expired at {expires_at.isoformat()}"
        return ""

    @staticmethod
    def _check_tag(
        policy: EncryptionPolicy,
        artifact: ArtifactMetadata,
        context: ExecutionContext,
        now: datetime,
    ) -> str:
        allowed = _allowed_values(policy.type, policy.rules)
        if not allowed:
            return f"no allowed {policy.type.value} values configured"
        actual = getattr(context, policy.type.value, "") or ""
        if not actual:
            return f"caller supplied no {policy.type.value}"
        if policy.type is PolicyType.INSTANCE:
            matched = actual in allowed
        else:
            matched = actual.strip().lower() in {v.strip().lower() for v in allowed}
        if not matched:
            return f"{policy.type.value} '{actual}' is not in {sorted(allowed)}"
        return ""

    @staticmethod
    def _check_multi_factor(
        policy: EncryptionPolicy,
        artifact: ArtifactMetadata,
        context: ExecutionContext,
        now: datetime,
    ) -> str:
        verify_key = policy.rules.get("verify_key", "")
        if not verify_key:
            return "no multi-factor verification key configured"
        try:
            max_age = float(policy.rules.get("max_age_seconds", DEFAULT_MFA_MAX_AGE_SECONDS))
        except (TypeError, ValueError):
            return "invalid multi-factor max_age_seconds"
        ok, reason = crypto_bridge.verify_mfa_proof(
            context.mfa_token,
            artifact.id,
            str(verify_key),
            now=now.timestamp(),
            max_age_seconds=max_age,
        )
        return "" if ok else reason

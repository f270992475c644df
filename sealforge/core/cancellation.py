"""Cooperative cancellation and deadlines for long-running operations.

Archiving walks and AEAD passes call ``OperationGuard.check()`` at safe
points.  A guard trips when its ``CancelToken`` is set from another thread
or when its monotonic deadline passes.  Cleanup of partial temporary
output is the caller's job and happens in ``finally`` blocks.
"""

from __future__ import annotations

import threading
import time

from sealforge.core.errors import OperationCancelled, OperationTimeout


class CancelToken:
    """Thread-safe flag a caller sets to request cancellation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class OperationGuard:
    """Combines an optional ``CancelToken`` with an optional deadline.

    Parameters
    ----------
    timeout_seconds:
        Seconds from construction after which ``check()`` raises
        ``OperationTimeout``.  ``None`` disables the deadline.
    cancel_token:
        Token that, once cancelled, makes ``check()`` raise
        ``OperationCancelled``.
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self._token = cancel_token
        self._timeout = timeout_seconds
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    @property
    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self, stage: str = "") -> None:
        """Raise if the operation should stop now."""
        where = f" during {stage}" if stage else ""
        if self._token is not None and self._token.cancelled:
            raise OperationCancelled(f"operation cancelled{where}")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise OperationTimeout(
                f"operation exceeded its {self._timeout:g}s deadline{where}"
            )


# Shared no-op guard for callers that supply neither token nor deadline.
UNBOUNDED = OperationGuard()

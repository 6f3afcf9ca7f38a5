"""Routing and notification error types."""

from __future__ import annotations

import enum


class NotificationDispatchReason(enum.StrEnum):
    """Machine-readable reasons for notification failures."""

    RESOLUTION_FAILED = "resolution_failed"
    ENQUEUE_FAILED = "enqueue_failed"
    TIMED_OUT = "timed_out"


class NotificationDispatchError(Exception):
    """Raised when recipients cannot be resolved or notified.

    Never rolls back the lead write that triggered the notification.
    """

    def __init__(
        self,
        message: str,
        reason: NotificationDispatchReason | str | None = None,
    ) -> None:
        """Store a machine-readable reason for programmatic handling."""
        super().__init__(message)
        self.reason = reason

    @classmethod
    def resolution_failed(cls, exc: BaseException) -> NotificationDispatchError:
        """Create an error for a recipient lookup that raised."""
        return cls(
            f"recipient resolution failed: {exc}",
            reason=NotificationDispatchReason.RESOLUTION_FAILED,
        )

    @classmethod
    def enqueue_failed(cls, exc: BaseException) -> NotificationDispatchError:
        """Create an error for a notification that could not be queued."""
        return cls(
            f"failed to enqueue lead notification: {exc}",
            reason=NotificationDispatchReason.ENQUEUE_FAILED,
        )

    @classmethod
    def timed_out(cls, timeout_seconds: float) -> NotificationDispatchError:
        """Create an error for a routing step that exceeded its timeout."""
        return cls(
            f"lead routing exceeded {timeout_seconds:g}s",
            reason=NotificationDispatchReason.TIMED_OUT,
        )

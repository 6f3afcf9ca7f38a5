"""Pipeline error types."""

from __future__ import annotations

import enum


class TransientStoreReason(enum.StrEnum):
    """Machine-readable reasons for retryable processing failures."""

    TIMED_OUT = "timed_out"
    CONNECTIVITY = "connectivity"
    UNKNOWN_WORKSPACE = "unknown_workspace"


class TransientStoreError(Exception):
    """Raised when processing should be retried later.

    The raw event stays unprocessed with ``processing_error`` set to this
    error's message, and no ledger entry is written.
    """

    def __init__(
        self,
        message: str,
        reason: TransientStoreReason | str | None = None,
    ) -> None:
        """Store a machine-readable reason for programmatic handling."""
        super().__init__(message)
        self.reason = reason

    @classmethod
    def timed_out(cls, operation: str, timeout_seconds: float) -> TransientStoreError:
        """Create an error for a store call that exceeded its timeout."""
        return cls(
            f"{operation} timed out after {timeout_seconds:g}s",
            reason=TransientStoreReason.TIMED_OUT,
        )

    @classmethod
    def connectivity(cls, operation: str, exc: BaseException) -> TransientStoreError:
        """Create an error for a lost or refused database connection."""
        return cls(
            f"{operation} failed: database unavailable ({type(exc).__name__})",
            reason=TransientStoreReason.CONNECTIVITY,
        )

    @classmethod
    def unknown_workspace(cls) -> TransientStoreError:
        """Create an error for an event whose workspace is not yet known."""
        return cls(
            TransientStoreReason.UNKNOWN_WORKSPACE.value,
            reason=TransientStoreReason.UNKNOWN_WORKSPACE,
        )

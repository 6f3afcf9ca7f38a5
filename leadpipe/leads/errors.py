"""Lead upsert error types."""

from __future__ import annotations

import enum


class LeadUpsertReason(enum.StrEnum):
    """Machine-readable reasons for lead upsert failures."""

    CONCURRENT_INSERT = "concurrent_insert"
    CONCURRENT_MERGE = "concurrent_merge"


class LeadUpsertError(Exception):
    """Raised when a lead cannot be written deterministically."""

    def __init__(
        self,
        message: str,
        reason: LeadUpsertReason | str | None = None,
    ) -> None:
        """Store a machine-readable reason for programmatic handling."""
        super().__init__(message)
        self.reason = reason

    @classmethod
    def concurrent_insert(cls, workspace_id: str) -> LeadUpsertError:
        """Create an error for an insert race that merge retry could not settle."""
        return cls(
            f"failed to insert lead in workspace {workspace_id}; concurrent upsert?",
            reason=LeadUpsertReason.CONCURRENT_INSERT,
        )

    @classmethod
    def concurrent_merge(cls, workspace_id: str) -> LeadUpsertError:
        """Create an error for a merge that lost to other writers twice."""
        return cls(
            f"lead in workspace {workspace_id} changed mid-merge; concurrent upsert?",
            reason=LeadUpsertReason.CONCURRENT_MERGE,
        )

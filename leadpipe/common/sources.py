"""Upstream source kinds accepted by the webhook surface."""

from __future__ import annotations

import enum


class SourceKind(enum.StrEnum):
    """Payload family, selected by the webhook URL path."""

    SUPERPIXEL = "superpixel"
    AUDIENCESYNC = "audiencesync"
    BATCH_EXPORT = "batch_export"

    @classmethod
    def parse(cls, value: str) -> SourceKind | None:
        """Return the matching kind, or ``None`` for unknown values."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

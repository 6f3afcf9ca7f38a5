"""Schema validation for inbound webhook payloads."""

from __future__ import annotations

from .errors import PayloadValidationError
from .payloads import (
    AudienceSyncRow,
    BatchExportBundle,
    BatchExportRow,
    ResolutionFields,
    SuperPixelEvent,
    TypedPayload,
)
from .validator import (
    canonical_key,
    canonicalise_fields,
    flatten_payload,
    unwrap_envelope,
    unwrap_events,
    validate,
    validate_batch_row,
    validate_bundle,
)

__all__ = [
    "AudienceSyncRow",
    "BatchExportBundle",
    "BatchExportRow",
    "PayloadValidationError",
    "ResolutionFields",
    "SuperPixelEvent",
    "TypedPayload",
    "canonical_key",
    "canonicalise_fields",
    "flatten_payload",
    "unwrap_envelope",
    "unwrap_events",
    "validate",
    "validate_batch_row",
    "validate_bundle",
]

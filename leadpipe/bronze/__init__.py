"""Raw event storage: the append-only record of every webhook delivery."""

from __future__ import annotations

from .errors import (
    RawEventNotFoundError,
    RawEventPersistError,
    TimezoneAwareRequiredError,
    UnsupportedPayloadTypeError,
)
from .services import (
    PixelWorkspaceResolver,
    RawEventEnvelope,
    RawEventWriter,
    canonical_json,
    make_dedupe_key,
)
from .storage import Base, PixelWorkspace, RawEvent, UTCDateTime, init_storage

__all__ = [
    "Base",
    "PixelWorkspace",
    "PixelWorkspaceResolver",
    "RawEvent",
    "RawEventEnvelope",
    "RawEventNotFoundError",
    "RawEventPersistError",
    "RawEventWriter",
    "TimezoneAwareRequiredError",
    "UTCDateTime",
    "UnsupportedPayloadTypeError",
    "canonical_json",
    "init_storage",
    "make_dedupe_key",
]

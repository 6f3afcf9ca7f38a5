"""Shared Bronze-layer error types."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when datetime inputs lack timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_payload(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating payload timestamps were naive."""
        return cls("payload datetime values")

    @classmethod
    def for_receipt(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating received_at was naive."""
        return cls("received_at")


class UnsupportedPayloadTypeError(ValueError):
    """Raised when payload contains non JSON-serialisable types."""

    def __init__(self, type_name: str) -> None:
        """Record the offending type name for diagnostics."""
        super().__init__(f"payload contains unsupported type {type_name}")


class RawEventPersistError(RuntimeError):
    """Raised when dedupe checks cannot locate an expected row."""

    def __init__(self) -> None:
        """Include a deterministic error message for logging."""
        super().__init__("expected existing raw_event after rollback")


class RawEventNotFoundError(LookupError):
    """Raised when a raw event id does not resolve to a stored row."""

    def __init__(self, raw_event_id: int) -> None:
        """Record the missing id."""
        self.raw_event_id = raw_event_id
        super().__init__(f"raw event {raw_event_id} does not exist")

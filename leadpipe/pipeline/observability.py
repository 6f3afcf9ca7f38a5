"""Structured lifecycle events and error categorization for the pipeline.

Every event is a single bracketed log line (``[pipeline.event.completed]
raw_event_id=... outcome=...``) suitable for parsing by log aggregators.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from leadpipe.intake.errors import PayloadValidationError
from leadpipe.leads.errors import LeadUpsertError
from leadpipe.logging import (
    get_logger,
    log_error,
    log_info,
    log_warning,
    truncate_for_log,
)
from leadpipe.pipeline.errors import TransientStoreError
from leadpipe.routing.errors import NotificationDispatchError

if typ.TYPE_CHECKING:
    import datetime as dt

logger = get_logger(__name__)


class PipelineEventType(enum.StrEnum):
    """Structured log event types for event processing."""

    EVENT_COMPLETED = "pipeline.event.completed"
    EVENT_DUPLICATE = "pipeline.event.duplicate"
    EVENT_DEFERRED = "pipeline.event.deferred"
    EVENT_FAILED = "pipeline.event.failed"
    VALIDATION_FAILED = "pipeline.validation.failed"
    BATCH_COMPLETED = "pipeline.batch.completed"
    RETRY_COMPLETED = "pipeline.retry.completed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    VALIDATION = "validation"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATABASE_ERROR = "database_error"
    NOTIFICATION = "notification"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (TransientStoreError, ErrorCategory.TRANSIENT),
    (TimeoutError, ErrorCategory.TRANSIENT),
    (PayloadValidationError, ErrorCategory.VALIDATION),
    (LeadUpsertError, ErrorCategory.DATA_INTEGRITY),
    (NotificationDispatchError, ErrorCategory.NOTIFICATION),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes."""
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNKNOWN


class PipelineEventLogger:
    """Emit structured pipeline events via femtologging."""

    def log_event_completed(
        self,
        *,
        raw_event_id: int,
        outcome: str,
        reason: str | None,
        lead_id: str | None,
        notified: int,
        duration: dt.timedelta,
    ) -> None:
        """Log a raw event reaching a terminal outcome."""
        log_info(
            logger,
            "[%s] raw_event_id=%d outcome=%s reason=%s lead_id=%s "
            "notified=%d duration_seconds=%.3f",
            PipelineEventType.EVENT_COMPLETED,
            raw_event_id,
            outcome,
            reason,
            lead_id,
            notified,
            duration.total_seconds(),
        )

    def log_event_duplicate(self, *, raw_event_id: int, outcome: str) -> None:
        """Log a replay short-circuited by the ledger."""
        log_info(
            logger,
            "[%s] raw_event_id=%d outcome=%s",
            PipelineEventType.EVENT_DUPLICATE,
            raw_event_id,
            outcome,
        )

    def log_event_deferred(
        self, *, raw_event_id: int | None, error: TransientStoreError
    ) -> None:
        """Log a retryable failure that left the event unprocessed."""
        log_warning(
            logger,
            "[%s] raw_event_id=%s reason=%s error_category=%s error_message=%s",
            PipelineEventType.EVENT_DEFERRED,
            raw_event_id,
            error.reason,
            categorize_error(error),
            str(error),
        )

    def log_event_failed(
        self, *, raw_event_id: int, error: BaseException, duration: dt.timedelta
    ) -> None:
        """Log a terminal failure recorded in the ledger as ``error``."""
        log_error(
            logger,
            "[%s] raw_event_id=%d duration_seconds=%.3f "
            "error_type=%s error_category=%s error_message=%s",
            PipelineEventType.EVENT_FAILED,
            raw_event_id,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_validation_failed(
        self,
        *,
        source: str,
        error: PayloadValidationError,
        raw_body: str | bytes | None = None,
    ) -> None:
        """Log a payload rejected by the validator, with a clipped body."""
        log_warning(
            logger,
            "[%s] source=%s field=%s reason=%s raw_body=%s",
            PipelineEventType.VALIDATION_FAILED,
            source,
            error.field,
            error.reason,
            truncate_for_log(raw_body) if raw_body is not None else None,
        )

    def log_batch_completed(
        self, *, rows: int, counts: typ.Mapping[str, int], errors: int
    ) -> None:
        """Log the summary of a batch export run."""
        log_info(
            logger,
            "[%s] rows=%d created=%d merged=%d rejected=%d error=%d "
            "row_errors=%d",
            PipelineEventType.BATCH_COMPLETED,
            rows,
            counts.get("created", 0),
            counts.get("merged", 0),
            counts.get("rejected", 0),
            counts.get("error", 0),
            errors,
        )

    def log_retry_completed(self, *, attempted: int, settled: int) -> None:
        """Log an admin retry sweep over unprocessed events."""
        log_info(
            logger,
            "[%s] attempted=%d settled=%d",
            PipelineEventType.RETRY_COMPLETED,
            attempted,
            settled,
        )

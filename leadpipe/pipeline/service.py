"""Orchestrate raw events from webhook body to a recorded outcome.

The single-event path runs strictly in sequence: validate, store the raw
event, normalize, upsert the lead, route it, and write the ledger entry.
Every store call is bounded by ``asyncio.timeout``; timeouts and lost
connections leave the event unprocessed for a later retry instead of
writing a ledger entry.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ

import msgspec
from sqlalchemy.exc import InterfaceError, OperationalError

from leadpipe.bronze.errors import RawEventNotFoundError
from leadpipe.bronze.services import RawEventEnvelope
from leadpipe.common.sources import SourceKind
from leadpipe.common.time import utcnow
from leadpipe.intake.errors import PayloadValidationError
from leadpipe.intake.validator import validate, validate_batch_row, validate_bundle
from leadpipe.leads.upsert import Provenance
from leadpipe.ledger.storage import Outcome
from leadpipe.normalize.fields import extract_event_type, extract_ip_address
from leadpipe.normalize.normalizer import normalize
from leadpipe.pipeline.config import PipelineConfig
from leadpipe.pipeline.errors import TransientStoreError
from leadpipe.pipeline.observability import PipelineEventLogger

if typ.TYPE_CHECKING:
    import datetime as dt

    from leadpipe.bronze.services import PixelWorkspaceResolver, RawEventWriter
    from leadpipe.bronze.storage import RawEvent
    from leadpipe.intake.payloads import TypedPayload
    from leadpipe.leads.upsert import LeadUpserter
    from leadpipe.ledger.services import ProcessingLedger
    from leadpipe.ledger.storage import ProcessingLedgerEntry
    from leadpipe.routing.protocol import NotifiedUser
    from leadpipe.routing.router import LeadRouter


@dc.dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of processing one raw event.

    ``raw_event_id`` is ``None`` only when the raw event could not be
    stored at all. ``retryable`` marks transient failures that left the
    event unprocessed.
    """

    raw_event_id: int | None
    outcome: Outcome
    reason: str | None = None
    lead_id: str | None = None
    duplicate: bool = False
    retryable: bool = False
    notified: tuple[NotifiedUser, ...] = ()

    @classmethod
    def from_entry(
        cls,
        entry: ProcessingLedgerEntry,
        *,
        duplicate: bool = False,
        notified: tuple[NotifiedUser, ...] = (),
    ) -> PipelineResult:
        """Build a result mirroring a stored ledger entry."""
        return cls(
            raw_event_id=entry.raw_event_id,
            outcome=Outcome(entry.outcome),
            reason=entry.reason,
            lead_id=entry.lead_id,
            duplicate=duplicate,
            notified=notified,
        )

    def as_dict(self) -> dict[str, typ.Any]:
        """Render as a JSON-safe mapping for HTTP responses."""
        return {
            "raw_event_id": self.raw_event_id,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "lead_id": self.lead_id,
            "duplicate": self.duplicate,
            "retryable": self.retryable,
            "notified": [user.user_id for user in self.notified],
        }


@dc.dataclass(frozen=True, slots=True)
class RowError:
    """A batch row that failed validation or could not be stored."""

    row_index: int
    field: str
    reason: str


@dc.dataclass(slots=True)
class BatchSummary:
    """Per-row results and row-level errors of one batch export."""

    export_id: str | None = None
    results: list[PipelineResult] = dc.field(default_factory=list)
    errors: list[RowError] = dc.field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        """Return the number of results per outcome, zero-filled."""
        counts = {outcome.value: 0 for outcome in Outcome}
        for result in self.results:
            counts[result.outcome.value] += 1
        return counts

    def as_dict(self) -> dict[str, typ.Any]:
        """Render as a JSON-safe mapping for HTTP responses."""
        return {
            "export_id": self.export_id,
            "processed": len(self.results),
            "counts": self.counts,
            "results": [result.as_dict() for result in self.results],
            "errors": [dc.asdict(error) for error in self.errors],
        }


class IngestionPipeline:
    """Run raw events through normalization, lead upsert, routing and ledger.

    Collaborators are injected so the HTTP surface, Dramatiq workers and
    tests can share one implementation with different wiring.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        raw_events: RawEventWriter,
        ledger: ProcessingLedger,
        upserter: LeadUpserter,
        router: LeadRouter,
        workspace_resolver: PixelWorkspaceResolver | None = None,
        config: PipelineConfig | None = None,
        event_logger: PipelineEventLogger | None = None,
    ) -> None:
        """Store collaborators and configuration."""
        self._raw_events = raw_events
        self._ledger = ledger
        self._upserter = upserter
        self._router = router
        self._workspace_resolver = workspace_resolver
        self._config = config or PipelineConfig()
        self._event_logger = event_logger or PipelineEventLogger()

    @property
    def config(self) -> PipelineConfig:
        """Return the active pipeline configuration."""
        return self._config

    async def ingest_event(
        self,
        raw_event: object,
        source: SourceKind | str,
        *,
        workspace_id: str | None = None,
    ) -> PipelineResult:
        """Validate, store and process one event body.

        Raises
        ------
        PayloadValidationError
            If the body does not match the source's shape; nothing is stored.
        TransientStoreError
            If the raw event itself could not be stored.

        """
        results = await self.ingest_events(
            [raw_event], source, workspace_id=workspace_id
        )
        return results[0]

    async def ingest_events(
        self,
        raw_events: typ.Sequence[object],
        source: SourceKind | str,
        *,
        workspace_id: str | None = None,
    ) -> list[PipelineResult]:
        """Validate every event first, then store and process each in order.

        A validation failure in any event rejects the whole delivery before
        anything is stored.
        """
        kind = SourceKind.parse(str(source))
        if kind is None:
            raise PayloadValidationError.unknown_source(str(source))
        payloads = [self._validate(raw, kind) for raw in raw_events]
        return [
            await self._ingest_typed(raw, payload, kind, workspace_id)
            for raw, payload in zip(raw_events, payloads, strict=True)
        ]

    async def ingest_batch(
        self, raw_body: object, *, workspace_id: str | None = None
    ) -> BatchSummary:
        """Process a batch export bundle row by row.

        Malformed rows are collected as row-level errors; the remaining rows
        are processed through the single-event path.

        Raises
        ------
        PayloadValidationError
            If the bundle itself is malformed or exceeds ``batch_max_rows``.

        """
        try:
            bundle = validate_bundle(raw_body, max_rows=self._config.batch_max_rows)
        except PayloadValidationError as exc:
            self._log_validation(SourceKind.BATCH_EXPORT, exc, raw_body)
            raise

        summary = BatchSummary(export_id=bundle.export_id)
        for index, row in enumerate(bundle.rows):
            try:
                payload = validate_batch_row(
                    row, export_id=bundle.export_id, row_index=index
                )
            except PayloadValidationError as exc:
                self._log_validation(SourceKind.BATCH_EXPORT, exc, row)
                summary.errors.append(RowError(index, exc.field, exc.reason))
                continue
            try:
                result = await self._ingest_typed(
                    row, payload, SourceKind.BATCH_EXPORT, workspace_id
                )
            except TransientStoreError as exc:
                self._event_logger.log_event_deferred(raw_event_id=None, error=exc)
                summary.errors.append(RowError(index, "$", str(exc)))
                continue
            summary.results.append(result)

        self._event_logger.log_batch_completed(
            rows=len(bundle.rows), counts=summary.counts, errors=len(summary.errors)
        )
        return summary

    async def process(self, raw_event_id: int) -> PipelineResult:
        """Drive a stored raw event to a terminal or retryable outcome.

        A ledger entry short-circuits processing: the stored outcome is
        returned with ``duplicate=True`` and nothing is written or notified.

        Raises
        ------
        RawEventNotFoundError
            If ``raw_event_id`` does not name a stored raw event.

        """
        started = utcnow()
        try:
            return await self._process(raw_event_id, started)
        except TransientStoreError as exc:
            return await self._defer(raw_event_id, exc)
        except RawEventNotFoundError:
            raise
        except Exception as exc:  # noqa: BLE001 - recorded as a terminal outcome
            return await self._fail(raw_event_id, exc, started)

    async def retry_pending(self, limit: int | None = None) -> list[PipelineResult]:
        """Re-run unprocessed raw events in id order."""
        raw_event_ids = await self._guard(
            "list unprocessed", self._raw_events.list_unprocessed(limit)
        )
        results = [await self.process(raw_event_id) for raw_event_id in raw_event_ids]
        self._event_logger.log_retry_completed(
            attempted=len(results),
            settled=sum(not result.retryable for result in results),
        )
        return results

    async def _process(
        self, raw_event_id: int, started: dt.datetime
    ) -> PipelineResult:
        entry = await self._guard(
            "ledger lookup", self._ledger.get_entry(raw_event_id)
        )
        if entry is not None:
            self._event_logger.log_event_duplicate(
                raw_event_id=raw_event_id, outcome=entry.outcome
            )
            return PipelineResult.from_entry(entry, duplicate=True)

        raw_event = await self._guard(
            "load raw event", self._raw_events.get(raw_event_id)
        )
        if raw_event is None:
            raise RawEventNotFoundError(raw_event_id)
        workspace_id = await self._workspace_for(raw_event)

        payload = validate(raw_event.payload, raw_event.source)
        identity = normalize(payload, weights=self._config.score_weights)
        upsert = await self._guard(
            "lead upsert",
            self._upserter.upsert(
                identity,
                workspace_id,
                provenance=Provenance(
                    raw_event_id=raw_event.id,
                    source=raw_event.source,
                    event_type=identity.event_type,
                ),
            ),
        )

        notified: list[NotifiedUser] = []
        if upsert.lead is not None:
            notified = await self._router.route(upsert.lead)

        entry = await self._guard(
            "ledger write",
            self._ledger.mark_processed(
                raw_event.id,
                Outcome(upsert.outcome.value),
                reason=upsert.reason.value if upsert.reason else None,
                lead_id=upsert.lead.id if upsert.lead else None,
            ),
        )
        result = PipelineResult.from_entry(entry, notified=tuple(notified))
        self._event_logger.log_event_completed(
            raw_event_id=raw_event.id,
            outcome=result.outcome,
            reason=result.reason,
            lead_id=result.lead_id,
            notified=len(notified),
            duration=utcnow() - started,
        )
        return result

    async def _ingest_typed(
        self,
        raw_event: object,
        payload: TypedPayload,
        source: SourceKind,
        workspace_id: str | None,
    ) -> PipelineResult:
        pixel_id = payload.resolution.PIXEL_ID
        resolved = workspace_id or await self._resolve_workspace(pixel_id)
        envelope = RawEventEnvelope(
            source=source,
            payload=typ.cast("dict[str, typ.Any]", raw_event),
            event_type=extract_event_type(payload),
            source_event_id=payload.event_id,
            workspace_id=resolved,
            pixel_id=pixel_id,
            ip_address=extract_ip_address(payload),
        )
        stored = await self._guard(
            "store raw event", self._raw_events.ingest(envelope)
        )
        return await self.process(stored.id)

    async def _workspace_for(self, raw_event: RawEvent) -> str:
        """Return the event's workspace, resolving a late pixel mapping."""
        if raw_event.workspace_id:
            return raw_event.workspace_id
        workspace_id = await self._resolve_workspace(raw_event.pixel_id)
        if workspace_id is None:
            raise TransientStoreError.unknown_workspace()
        await self._guard(
            "assign workspace",
            self._raw_events.assign_workspace(raw_event.id, workspace_id),
        )
        return workspace_id

    async def _resolve_workspace(self, pixel_id: str | None) -> str | None:
        if self._workspace_resolver is None or not pixel_id:
            return None
        return await self._guard(
            "resolve workspace", self._workspace_resolver.resolve(pixel_id)
        )

    async def _guard[T](self, operation: str, call: typ.Awaitable[T]) -> T:
        """Await a store call under the configured timeout.

        Timeouts and connectivity failures become :class:`TransientStoreError`.
        """
        timeout = self._config.store_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                return await call
        except TimeoutError as exc:
            raise TransientStoreError.timed_out(operation, timeout) from exc
        except (OperationalError, InterfaceError) as exc:
            raise TransientStoreError.connectivity(operation, exc) from exc

    async def _defer(
        self, raw_event_id: int, exc: TransientStoreError
    ) -> PipelineResult:
        """Leave the event unprocessed with the failure recorded on it."""
        self._event_logger.log_event_deferred(raw_event_id=raw_event_id, error=exc)
        try:
            await self._guard(
                "record failure",
                self._ledger.record_failure(raw_event_id, str(exc)),
            )
        except TransientStoreError as nested:
            self._event_logger.log_event_deferred(
                raw_event_id=raw_event_id, error=nested
            )
        return PipelineResult(
            raw_event_id=raw_event_id,
            outcome=Outcome.ERROR,
            reason=str(exc),
            retryable=True,
        )

    async def _fail(
        self, raw_event_id: int, exc: Exception, started: dt.datetime
    ) -> PipelineResult:
        """Record a terminal ``error`` outcome for an unexpected failure."""
        self._event_logger.log_event_failed(
            raw_event_id=raw_event_id, error=exc, duration=utcnow() - started
        )
        reason = f"{type(exc).__name__}: {exc}"
        try:
            entry = await self._guard(
                "ledger write",
                self._ledger.mark_processed(raw_event_id, Outcome.ERROR, reason=reason),
            )
        except TransientStoreError as nested:
            return await self._defer(raw_event_id, nested)
        return PipelineResult.from_entry(entry)

    def _validate(self, raw_event: object, source: SourceKind) -> TypedPayload:
        try:
            return validate(raw_event, source)
        except PayloadValidationError as exc:
            self._log_validation(source, exc, raw_event)
            raise

    def _log_validation(
        self, source: SourceKind, exc: PayloadValidationError, raw: object
    ) -> None:
        try:
            body: bytes | None = msgspec.json.encode(raw)
        except (TypeError, msgspec.EncodeError):
            body = None
        self._event_logger.log_validation_failed(
            source=source, error=exc, raw_body=body
        )

"""Services for persisting raw webhook events."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import json
import typing as typ

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from leadpipe.bronze.errors import (
    RawEventPersistError,
    TimezoneAwareRequiredError,
    UnsupportedPayloadTypeError,
)
from leadpipe.bronze.storage import PixelWorkspace, RawEvent
from leadpipe.common.hashing import DEFAULT_HASHER, Hasher
from leadpipe.common.time import utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leadpipe.common.sources import SourceKind

Payload: typ.TypeAlias = dict[str, typ.Any]
JSONValue: typ.TypeAlias = (
    dict[str, typ.Any] | list[typ.Any] | str | int | float | bool | None
)


def _normalise_datetime_for_payload(value: dt.datetime) -> str:
    if value.tzinfo is None:
        raise TimezoneAwareRequiredError.for_payload()
    return value.astimezone(dt.UTC).isoformat()


def _normalise_payload(payload: object) -> JSONValue:
    """Deep-copy payload converting datetimes and rejecting unsupported types.

    Supported types: dict, list, str, int, float, bool, None, and datetime
    (timezone-aware). Anything else raises UnsupportedPayloadTypeError so the
    dedupe hash stays deterministic and JSON-safe.
    """
    match payload:
        case dict():
            return {str(k): _normalise_payload(v) for k, v in payload.items()}
        case list() | tuple():
            return [_normalise_payload(item) for item in payload]
        case dt.datetime():
            return _normalise_datetime_for_payload(payload)
        case None | bool() | int() | float() | str():
            return payload
        case _:
            raise UnsupportedPayloadTypeError(type(payload).__name__)


def canonical_json(payload: object) -> str:
    """Return a deterministic JSON rendering used for hashing payloads."""
    return json.dumps(
        _normalise_payload(payload), sort_keys=True, separators=(",", ":")
    )


@dc.dataclass(frozen=True, slots=True)
class RawEventEnvelope:
    """Structured input for raw event ingestion."""

    source: SourceKind
    payload: Payload
    event_type: str = "unknown"
    source_event_id: str | None = None
    workspace_id: str | None = None
    pixel_id: str | None = None
    ip_address: str | None = None
    received_at: dt.datetime = dc.field(default_factory=utcnow)


def make_dedupe_key(envelope: RawEventEnvelope, hasher: Hasher = DEFAULT_HASHER) -> str:
    """Construct the key that collapses webhook re-deliveries onto one row.

    When the upstream supplies an event id the key depends on the id alone;
    otherwise it is the hash of the canonical payload. Receipt time is not
    part of the key, so a retried delivery maps to the same row.
    """
    if envelope.source_event_id:
        material = f"{envelope.source}|id|{envelope.source_event_id}"
    else:
        digest = hasher.sha256_hex(canonical_json(envelope.payload).encode("utf-8"))
        material = f"{envelope.source}|body|{digest}"
    return hasher.sha256_hex(material.encode("utf-8"))


class RawEventWriter:
    """Append-only writer that records webhook events."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hasher: Hasher = DEFAULT_HASHER,
    ) -> None:
        """Store the session factory used for ingestion operations."""
        self._session_factory = session_factory
        self._hasher = hasher

    async def ingest(self, envelope: RawEventEnvelope) -> RawEvent:
        """Persist a raw event, returning the existing row on re-delivery.

        Idempotency is enforced via the hashed dedupe key so webhook retries
        cannot create duplicate rows. The payload is deep-copied so later
        caller-side mutation cannot leak into the stored audit copy.
        """
        if envelope.received_at.tzinfo is None:
            raise TimezoneAwareRequiredError.for_receipt()

        payload_copy = _normalise_payload(envelope.payload)
        dedupe_key = make_dedupe_key(envelope, self._hasher)

        async with self._session_factory() as session:
            raw_event = RawEvent(
                source=str(envelope.source),
                source_event_id=envelope.source_event_id,
                event_type=envelope.event_type,
                workspace_id=envelope.workspace_id,
                pixel_id=envelope.pixel_id,
                ip_address=envelope.ip_address,
                received_at=envelope.received_at,
                payload=payload_copy,
                dedupe_key=dedupe_key,
            )
            session.add(raw_event)

            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                existing = await self._load_existing(
                    session, str(envelope.source), dedupe_key
                )
                if existing is None:
                    raise RawEventPersistError from exc
                if existing.workspace_id is None and envelope.workspace_id:
                    # A re-delivery may arrive after the pixel was mapped.
                    existing.workspace_id = envelope.workspace_id
                    await session.commit()
                return existing

            await session.refresh(raw_event)
            return raw_event

    async def get(self, raw_event_id: int) -> RawEvent | None:
        """Load a raw event by id."""
        async with self._session_factory() as session:
            return await session.get(RawEvent, raw_event_id)

    async def list_unprocessed(self, limit: int | None = None) -> list[int]:
        """Return ids of raw events still awaiting processing, oldest first."""
        stmt = (
            select(RawEvent.id)
            .where(RawEvent.processed.is_(False))
            .order_by(RawEvent.id)
        )
        async with self._session_factory() as session:
            result = await session.scalars(
                stmt.limit(limit) if limit is not None else stmt
            )
            return list(result)

    async def assign_workspace(self, raw_event_id: int, workspace_id: str) -> None:
        """Attach a late-resolved workspace to an event that had none."""
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(RawEvent)
                .where(RawEvent.id == raw_event_id, RawEvent.workspace_id.is_(None))
                .values(workspace_id=workspace_id)
            )

    @staticmethod
    async def _load_existing(
        session: AsyncSession, source: str, dedupe_key: str
    ) -> RawEvent | None:
        stmt = select(RawEvent).where(
            RawEvent.source == source,
            RawEvent.dedupe_key == dedupe_key,
        )
        return await session.scalar(stmt)


class PixelWorkspaceResolver:
    """Resolve the owning workspace for a pixel id.

    Resolution is strict: inactive or unknown pixels resolve to ``None`` and
    there is no domain or admin fallback, keeping tenants isolated.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for lookups."""
        self._session_factory = session_factory

    async def resolve(self, pixel_id: str | None) -> str | None:
        """Return the active workspace id mapped to ``pixel_id``."""
        if not pixel_id:
            return None
        async with self._session_factory() as session:
            return await session.scalar(
                select(PixelWorkspace.workspace_id).where(
                    PixelWorkspace.pixel_id == pixel_id,
                    PixelWorkspace.is_active.is_(True),
                )
            )

"""Idempotency ledger recording the terminal outcome of each raw event."""

from __future__ import annotations

import typing as typ

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from leadpipe.bronze.errors import RawEventNotFoundError
from leadpipe.bronze.storage import RawEvent
from leadpipe.ledger.storage import Outcome, ProcessingLedgerEntry

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class ProcessingLedger:
    """Write-once record of processing outcomes keyed by raw event id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for ledger operations."""
        self._session_factory = session_factory

    async def is_already_processed(self, raw_event_id: int) -> bool:
        """Return True when a ledger entry exists for ``raw_event_id``."""
        return await self.get_entry(raw_event_id) is not None

    async def get_entry(self, raw_event_id: int) -> ProcessingLedgerEntry | None:
        """Return the stored entry for ``raw_event_id``, if any."""
        async with self._session_factory() as session:
            return await self._load(session, raw_event_id)

    async def mark_processed(
        self,
        raw_event_id: int,
        outcome: Outcome | str,
        reason: str | None = None,
        lead_id: str | None = None,
    ) -> ProcessingLedgerEntry:
        """Record ``outcome`` and flip the raw event to processed.

        Both writes share one transaction. When another worker recorded the
        event first, its entry is returned unchanged.

        Raises
        ------
        RawEventNotFoundError
            If ``raw_event_id`` does not name a stored raw event.

        """
        outcome = Outcome(outcome)
        async with self._session_factory() as session:
            raw_event = await session.get(RawEvent, raw_event_id)
            if raw_event is None:
                raise RawEventNotFoundError(raw_event_id)

            entry = ProcessingLedgerEntry(
                raw_event_id=raw_event_id,
                outcome=outcome.value,
                reason=reason,
                lead_id=lead_id,
            )
            session.add(entry)
            raw_event.processed = True
            raw_event.processing_error = reason if outcome is Outcome.ERROR else None

            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = await self._load(session, raw_event_id)
                if existing is None:
                    raise
                return existing
            return entry

    async def record_failure(self, raw_event_id: int, message: str) -> None:
        """Store ``message`` on the raw event without marking it processed."""
        async with self._session_factory() as session, session.begin():
            await session.execute(
                update(RawEvent)
                .where(RawEvent.id == raw_event_id)
                .values(processed=False, processing_error=message)
            )

    @staticmethod
    async def _load(
        session: AsyncSession, raw_event_id: int
    ) -> ProcessingLedgerEntry | None:
        return await session.scalar(
            select(ProcessingLedgerEntry).where(
                ProcessingLedgerEntry.raw_event_id == raw_event_id
            )
        )

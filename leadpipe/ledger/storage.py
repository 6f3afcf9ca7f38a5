"""Persistence model for the processing ledger."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from leadpipe.bronze.storage import Base, UTCDateTime
from leadpipe.common.time import utcnow


class Outcome(enum.StrEnum):
    """Terminal processing outcome of one raw event."""

    CREATED = "created"
    MERGED = "merged"
    REJECTED = "rejected"
    ERROR = "error"


class ProcessingLedgerEntry(Base):
    """At most one row per raw event, written when processing finishes."""

    __tablename__ = "processing_ledger"
    __table_args__ = (
        UniqueConstraint("raw_event_id", name="uq_processing_ledger_raw_event"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    raw_event_id: Mapped[int] = mapped_column(
        ForeignKey("raw_events.id", ondelete="CASCADE")
    )
    outcome: Mapped[str] = mapped_column(String(16))
    reason: Mapped[str | None] = mapped_column(Text(), default=None)
    lead_id: Mapped[str | None] = mapped_column(String(36), default=None)
    processed_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

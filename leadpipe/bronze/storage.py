"""Persistence models for the raw webhook event store."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine

from leadpipe.bronze.errors import TimezoneAwareRequiredError
from leadpipe.common.time import utcnow


class Base(DeclarativeBase):
    """Declarative base shared by every leadpipe table."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_receipt()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class RawEvent(Base):
    """Append-only record of one upstream webhook event.

    Only ``processed``, ``processing_error`` and ``workspace_id`` change
    after insert; rows are never deleted so the table doubles as an audit
    trail.
    """

    __tablename__ = "raw_events"
    __table_args__ = (
        UniqueConstraint("source", "dedupe_key", name="uq_raw_event_dedupe"),
        Index("ix_raw_events_processed", "processed"),
        Index("ix_raw_events_workspace_time", "workspace_id", "received_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(32))
    source_event_id: Mapped[str | None] = mapped_column(String(255), default=None)
    event_type: Mapped[str] = mapped_column(String(64), default="unknown")
    workspace_id: Mapped[str | None] = mapped_column(String(36), default=None)
    pixel_id: Mapped[str | None] = mapped_column(String(255), default=None)
    ip_address: Mapped[str | None] = mapped_column(String(64), default=None)
    received_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    dedupe_key: Mapped[str] = mapped_column(String(128))
    payload: Mapped[dict[str, typ.Any]] = mapped_column(JSON)
    processed: Mapped[bool] = mapped_column(Boolean, default=False)
    processing_error: Mapped[str | None] = mapped_column(Text(), default=None)


class PixelWorkspace(Base):
    """Mapping from an upstream pixel id to the owning workspace."""

    __tablename__ = "pixel_workspaces"

    pixel_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String(36))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


async def init_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent.

    Every leadpipe model shares :class:`Base`, so callers must import the
    lead, ledger and routing storage modules before calling this to have
    their tables created too. :func:`leadpipe.pipeline.init_pipeline_storage`
    does that.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

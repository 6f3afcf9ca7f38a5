"""Persistence model for workspace leads."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ
import uuid

from sqlalchemy import JSON, Boolean, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from leadpipe.bronze.storage import Base, UTCDateTime
from leadpipe.common.time import utcnow


class Lead(Base):
    """Deduplicated person/company lead scoped to one workspace.

    ``email_key`` and ``phone_key`` are the dedupe columns; either may be
    null, but a non-null key is unique within its workspace. ``version`` is
    bumped on every update so a merge computed from a stale read fails with
    ``StaleDataError`` instead of overwriting another writer's provenance.
    """

    __tablename__ = "leads"
    __table_args__ = (
        UniqueConstraint("workspace_id", "email_key", name="uq_leads_workspace_email"),
        UniqueConstraint("workspace_id", "phone_key", name="uq_leads_workspace_phone"),
        Index("ix_leads_workspace_created", "workspace_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    workspace_id: Mapped[str] = mapped_column(String(36))
    email_key: Mapped[str | None] = mapped_column(String(320), default=None)
    phone_key: Mapped[str | None] = mapped_column(String(32), default=None)
    email: Mapped[str | None] = mapped_column(String(320), default=None)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    phone: Mapped[str | None] = mapped_column(String(32), default=None)
    first_name: Mapped[str | None] = mapped_column(String(255), default=None)
    last_name: Mapped[str | None] = mapped_column(String(255), default=None)
    company_name: Mapped[str | None] = mapped_column(String(255), default=None)
    company_domain: Mapped[str | None] = mapped_column(String(255), default=None)
    company_industry: Mapped[str | None] = mapped_column(String(255), default=None)
    job_title: Mapped[str | None] = mapped_column(String(255), default=None)
    city: Mapped[str | None] = mapped_column(String(255), default=None)
    state: Mapped[str | None] = mapped_column(String(64), default=None)
    postal_code: Mapped[str | None] = mapped_column(String(32), default=None)
    ip_address: Mapped[str | None] = mapped_column(String(64), default=None)
    landing_url: Mapped[str | None] = mapped_column(String(2048), default=None)
    source: Mapped[str] = mapped_column(String(32))
    quality_passed: Mapped[bool] = mapped_column(Boolean, default=False)
    deliverability_score: Mapped[float] = mapped_column(Float, default=0.0)
    intent_signals: Mapped[list[str]] = mapped_column(JSON, default=list)
    provenance: Mapped[list[dict[str, typ.Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

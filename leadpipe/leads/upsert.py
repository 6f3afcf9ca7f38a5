"""Create or merge workspace leads from normalized identities."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import enum
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from leadpipe.common.time import isoformat_utc, utcnow
from leadpipe.leads.errors import LeadUpsertError
from leadpipe.leads.quality import RejectionReason, meets_quality_bar
from leadpipe.leads.storage import Lead
from leadpipe.normalize.fields import email_dedupe_key
from leadpipe.normalize.scoring import LEAD_CREATION_SCORE_THRESHOLD, is_lead_worthy

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leadpipe.normalize.identity import NormalizedIdentity

# Lead columns filled from the identity on merge when still empty.
_FILLABLE_FIELDS = (
    "first_name",
    "last_name",
    "company_name",
    "company_domain",
    "company_industry",
    "job_title",
    "city",
    "state",
    "postal_code",
    "ip_address",
    "landing_url",
)


class UpsertOutcome(enum.StrEnum):
    """Result of a single upsert call."""

    CREATED = "created"
    MERGED = "merged"
    REJECTED = "rejected"


@dc.dataclass(frozen=True, slots=True)
class Provenance:
    """The raw event an identity came from, recorded on the lead."""

    raw_event_id: int
    source: str
    event_type: str
    at: dt.datetime = dc.field(default_factory=utcnow)

    def as_entry(self, action: UpsertOutcome) -> dict[str, typ.Any]:
        """Render as a JSON-safe provenance list entry."""
        return {
            "raw_event_id": self.raw_event_id,
            "source": self.source,
            "event_type": self.event_type,
            "at": isoformat_utc(self.at),
            "action": str(action),
        }


@dc.dataclass(frozen=True, slots=True)
class UpsertResult:
    """Outcome of :meth:`LeadUpserter.upsert`; ``lead`` is unset on rejection."""

    outcome: UpsertOutcome
    lead: Lead | None = None
    reason: RejectionReason | None = None


def _identity_value(identity: NormalizedIdentity, field: str) -> str | None:
    value = getattr(identity, field)
    return value or None


class LeadUpserter:
    """Deduplicate identities against a workspace's leads.

    A match on the email or phone dedupe key merges into the existing lead
    without overwriting populated fields. Otherwise the identity must pass
    the quality bar and the lead-worthiness policy before a lead is
    inserted. Each call performs at most one write.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        threshold: float = LEAD_CREATION_SCORE_THRESHOLD,
    ) -> None:
        """Store the session factory and lead-creation threshold."""
        self._session_factory = session_factory
        self._threshold = threshold

    async def upsert(
        self,
        identity: NormalizedIdentity,
        workspace_id: str,
        *,
        provenance: Provenance,
    ) -> UpsertResult:
        """Merge ``identity`` into a matching lead or create a new one.

        Raises
        ------
        LeadUpsertError
            If concurrent writers keep the insert or merge from settling.

        """
        try:
            return await self._upsert_once(identity, workspace_id, provenance)
        except StaleDataError:
            # Another writer updated the lead after we read it; redo from a
            # fresh read so its provenance survives.
            try:
                return await self._upsert_once(identity, workspace_id, provenance)
            except StaleDataError as exc:
                raise LeadUpsertError.concurrent_merge(workspace_id) from exc

    async def _upsert_once(
        self,
        identity: NormalizedIdentity,
        workspace_id: str,
        provenance: Provenance,
    ) -> UpsertResult:
        primary_email = identity.primary_email
        email_key = email_dedupe_key(primary_email) if primary_email else None
        phone_key = identity.primary_phone

        async with self._session_factory() as session:
            existing = await self._find(session, workspace_id, email_key, phone_key)
            if existing is not None:
                result = await self._merge(session, existing, identity, provenance)
                await session.commit()
                return result

            reason = self._rejection_reason(identity)
            if reason is not None:
                return UpsertResult(UpsertOutcome.REJECTED, reason=reason)

            lead = self._build_lead(
                identity, workspace_id, provenance, email_key, phone_key
            )
            try:
                async with session.begin_nested():
                    session.add(lead)
                    await session.flush()
            except IntegrityError as exc:
                # Another writer inserted the same key first; merge into it once.
                with session.no_autoflush:
                    existing = await self._find(
                        session, workspace_id, email_key, phone_key
                    )
                if existing is None:
                    raise LeadUpsertError.concurrent_insert(workspace_id) from exc
                result = await self._merge(session, existing, identity, provenance)
                await session.commit()
                return result

            await session.commit()
            return UpsertResult(UpsertOutcome.CREATED, lead=lead)

    def _rejection_reason(self, identity: NormalizedIdentity) -> RejectionReason | None:
        reason = meets_quality_bar(identity)
        if reason is not None:
            return reason
        if not is_lead_worthy(identity, self._threshold):
            return RejectionReason.LOW_SCORE
        return None

    @staticmethod
    async def _find(
        session: AsyncSession,
        workspace_id: str,
        email_key: str | None,
        phone_key: str | None,
    ) -> Lead | None:
        if email_key is not None:
            lead = await session.scalar(
                select(Lead).where(
                    Lead.workspace_id == workspace_id, Lead.email_key == email_key
                )
            )
            if lead is not None:
                return lead
        if phone_key is not None:
            return await session.scalar(
                select(Lead).where(
                    Lead.workspace_id == workspace_id, Lead.phone_key == phone_key
                )
            )
        return None

    @staticmethod
    def _build_lead(
        identity: NormalizedIdentity,
        workspace_id: str,
        provenance: Provenance,
        email_key: str | None,
        phone_key: str | None,
    ) -> Lead:
        primary = identity.emails[0] if identity.emails else None
        lead = Lead(
            workspace_id=workspace_id,
            email_key=email_key,
            phone_key=phone_key,
            email=primary.address if primary else None,
            email_verified=primary.verified if primary else False,
            phone=identity.primary_phone,
            source=provenance.source,
            quality_passed=True,
            deliverability_score=identity.deliverability_score,
            intent_signals=sorted(identity.intent_signals),
            provenance=[provenance.as_entry(UpsertOutcome.CREATED)],
        )
        for field in _FILLABLE_FIELDS:
            setattr(lead, field, _identity_value(identity, field))
        return lead

    async def _merge(
        self,
        session: AsyncSession,
        lead: Lead,
        identity: NormalizedIdentity,
        provenance: Provenance,
    ) -> UpsertResult:
        """Fill empty fields on ``lead`` and record the contribution.

        A raw event already present in the provenance is a replay; the
        recorded action is returned without touching the row.
        """
        for entry in lead.provenance:
            if entry.get("raw_event_id") == provenance.raw_event_id:
                return UpsertResult(UpsertOutcome(entry["action"]), lead=lead)

        for field in _FILLABLE_FIELDS:
            value = _identity_value(identity, field)
            if value is not None and not getattr(lead, field):
                setattr(lead, field, value)

        await self._fill_contact(session, lead, identity)
        lead.deliverability_score = max(
            lead.deliverability_score, identity.deliverability_score
        )
        # JSON columns only detect reassignment, not in-place mutation.
        lead.intent_signals = sorted(
            set(lead.intent_signals) | set(identity.intent_signals)
        )
        lead.provenance = [
            *lead.provenance,
            provenance.as_entry(UpsertOutcome.MERGED),
        ]
        await session.flush()
        return UpsertResult(UpsertOutcome.MERGED, lead=lead)

    @staticmethod
    async def _fill_contact(
        session: AsyncSession, lead: Lead, identity: NormalizedIdentity
    ) -> None:
        """Adopt the identity's email and phone where the lead has none.

        A dedupe key is only claimed when no other lead in the workspace
        already holds it.
        """
        primary = identity.emails[0] if identity.emails else None
        if lead.email is None and primary is not None:
            key = email_dedupe_key(primary.address)
            taken = await session.scalar(
                select(Lead.id).where(
                    Lead.workspace_id == lead.workspace_id,
                    Lead.email_key == key,
                    Lead.id != lead.id,
                )
            )
            if taken is None:
                lead.email = primary.address
                lead.email_key = key
                lead.email_verified = primary.verified
        elif lead.email is not None and not lead.email_verified:
            lead.email_verified = any(
                email.verified and email.address == lead.email
                for email in identity.emails
            )

        phone = identity.primary_phone
        if lead.phone is None and phone is not None:
            taken = await session.scalar(
                select(Lead.id).where(
                    Lead.workspace_id == lead.workspace_id,
                    Lead.phone_key == phone,
                    Lead.id != lead.id,
                )
            )
            if taken is None:
                lead.phone = phone
                lead.phone_key = phone

"""Build a :class:`NormalizedIdentity` from a typed payload."""

from __future__ import annotations

import dataclasses as dc

from leadpipe.intake.payloads import TypedPayload
from leadpipe.normalize.fields import (
    clean_text,
    email_candidates,
    extract_event_type,
    extract_intent_signals,
    extract_ip_address,
    is_guessed_status,
    is_verified_email,
    optional_text,
    phone_candidates,
    sanitize_name,
)
from leadpipe.normalize.identity import (
    ContactRank,
    EmailAddress,
    NormalizedIdentity,
    PhoneNumber,
)
from leadpipe.normalize.scoring import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    compute_deliverability_score,
)


def _rank_emails(payload: TypedPayload) -> tuple[EmailAddress, ...]:
    emails: list[EmailAddress] = []
    for address, status in email_candidates(payload):
        verified = is_verified_email(address, payload)
        if verified:
            rank = ContactRank.VERIFIED
        elif is_guessed_status(status):
            rank = ContactRank.GUESSED
        else:
            rank = ContactRank.UNVERIFIED
        emails.append(EmailAddress(address=address, verified=verified, rank=rank))
    # sorted() is stable, so equal ranks keep their order of appearance.
    return tuple(sorted(emails, key=lambda email: -email.rank))


def _rank_phones(payload: TypedPayload) -> tuple[PhoneNumber, ...]:
    best: dict[str, int] = {}
    for number, direct in phone_candidates(payload.resolution):
        rank = ContactRank.UNVERIFIED if direct else ContactRank.GUESSED
        best[number] = max(best.get(number, rank), rank)
    phones = [PhoneNumber(number=number, rank=rank) for number, rank in best.items()]
    return tuple(sorted(phones, key=lambda phone: -phone.rank))


def _first_text(*candidates: object) -> str | None:
    for candidate in candidates:
        text = optional_text(candidate)
        if text:
            return text
    return None


def _state(raw: str | None) -> str | None:
    if raw is None:
        return None
    return raw.upper() if len(raw) == 2 else raw


def normalize(
    payload: TypedPayload, *, weights: ScoringWeights = DEFAULT_WEIGHTS
) -> NormalizedIdentity:
    """Normalize ``payload`` into a canonical identity.

    Pure and deterministic: the same payload and weights always give an
    equal identity. Emails and phones are ordered by descending confidence,
    ties keeping their order of first appearance.
    """
    fields = payload.resolution
    event_type = extract_event_type(payload)
    domain = _first_text(fields.COMPANY_DOMAIN)
    identity = NormalizedIdentity(
        emails=_rank_emails(payload),
        phones=_rank_phones(payload),
        first_name=sanitize_name(fields.FIRST_NAME),
        last_name=sanitize_name(fields.LAST_NAME),
        company_name=clean_text(fields.COMPANY_NAME) or clean_text(fields.COMPANY),
        ip_address=extract_ip_address(payload),
        event_type=event_type,
        intent_signals=extract_intent_signals(payload, event_type),
        company_domain=domain.lower() if domain else None,
        company_industry=_first_text(fields.COMPANY_INDUSTRY),
        job_title=_first_text(fields.JOB_TITLE),
        city=_first_text(fields.PERSONAL_CITY, fields.CITY),
        state=_state(_first_text(fields.PERSONAL_STATE, fields.STATE)),
        postal_code=_first_text(fields.PERSONAL_ZIP, fields.ZIP),
        landing_url=_first_text(fields.LANDING_URL, fields.PAGE_URL),
    )
    score = compute_deliverability_score(identity, weights)
    return dc.replace(identity, deliverability_score=score)

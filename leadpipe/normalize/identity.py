"""Canonical identity record produced by the field normalizer."""

from __future__ import annotations

import dataclasses as dc
import enum


class ContactRank(enum.IntEnum):
    """Confidence rank for an email or phone; higher sorts first."""

    GUESSED = 0
    UNVERIFIED = 1
    VERIFIED = 2


@dc.dataclass(frozen=True, slots=True)
class EmailAddress:
    """A normalized email address and how far upstream vouched for it."""

    address: str
    verified: bool
    rank: int


@dc.dataclass(frozen=True, slots=True)
class PhoneNumber:
    """A digits-only phone number with its confidence rank."""

    number: str
    rank: int


@dc.dataclass(frozen=True, slots=True)
class NormalizedIdentity:
    """Canonical person/company record derived from one raw event.

    ``emails`` and ``phones`` are ordered by descending rank with ties kept
    in order of first appearance, so :attr:`primary_email` is always the
    best candidate.
    """

    emails: tuple[EmailAddress, ...] = ()
    phones: tuple[PhoneNumber, ...] = ()
    first_name: str = ""
    last_name: str = ""
    company_name: str = ""
    ip_address: str | None = None
    event_type: str = "unknown"
    deliverability_score: float = 0.0
    intent_signals: frozenset[str] = frozenset()
    company_domain: str | None = None
    company_industry: str | None = None
    job_title: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    landing_url: str | None = None

    @property
    def primary_email(self) -> str | None:
        """Return the highest-ranked email address, if any."""
        return self.emails[0].address if self.emails else None

    @property
    def primary_phone(self) -> str | None:
        """Return the highest-ranked phone number, if any."""
        return self.phones[0].number if self.phones else None

    @property
    def has_verified_email(self) -> bool:
        """Return True when any email carries an explicit verification flag."""
        return any(email.verified for email in self.emails)

    @property
    def has_full_name(self) -> bool:
        """Return True when both first and last names are present."""
        return bool(self.first_name and self.last_name)

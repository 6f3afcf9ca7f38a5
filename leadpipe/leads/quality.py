"""Quality bar applied before a new lead is created."""

from __future__ import annotations

import enum
import typing as typ

if typ.TYPE_CHECKING:
    from leadpipe.normalize.identity import NormalizedIdentity


class RejectionReason(enum.StrEnum):
    """Why an identity did not become a lead; a normal terminal outcome."""

    LOW_SCORE = "low_score"
    MISSING_FIRST_NAME = "missing_first_name"
    MISSING_LAST_NAME = "missing_last_name"
    MISSING_COMPANY_NAME = "missing_company_name"
    MISSING_EMAIL = "missing_email"


def meets_quality_bar(identity: NormalizedIdentity) -> RejectionReason | None:
    """Return the first missing required field, or ``None`` when all present.

    Fields are checked in a fixed order (first name, last name, company,
    email) so the reported reason is deterministic.
    """
    if not identity.first_name:
        return RejectionReason.MISSING_FIRST_NAME
    if not identity.last_name:
        return RejectionReason.MISSING_LAST_NAME
    if not identity.company_name:
        return RejectionReason.MISSING_COMPANY_NAME
    if identity.primary_email is None:
        return RejectionReason.MISSING_EMAIL
    return None

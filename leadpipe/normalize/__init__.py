"""Field normalization and deliverability scoring."""

from __future__ import annotations

from .fields import (
    email_dedupe_key,
    extract_event_type,
    extract_ip_address,
    is_verified_email,
    normalize_email,
    normalize_phone,
    sanitize_name,
)
from .identity import ContactRank, EmailAddress, NormalizedIdentity, PhoneNumber
from .normalizer import normalize
from .scoring import (
    DEFAULT_WEIGHTS,
    LEAD_CREATION_SCORE_THRESHOLD,
    ScoringWeights,
    compute_deliverability_score,
    is_lead_worthy,
    is_valid_email_syntax,
)

__all__ = [
    "DEFAULT_WEIGHTS",
    "LEAD_CREATION_SCORE_THRESHOLD",
    "ContactRank",
    "EmailAddress",
    "NormalizedIdentity",
    "PhoneNumber",
    "ScoringWeights",
    "compute_deliverability_score",
    "email_dedupe_key",
    "extract_event_type",
    "extract_ip_address",
    "is_lead_worthy",
    "is_valid_email_syntax",
    "is_verified_email",
    "normalize",
    "normalize_email",
    "normalize_phone",
    "sanitize_name",
]

"""Identity upsert and lead creation."""

from __future__ import annotations

from .errors import LeadUpsertError, LeadUpsertReason
from .quality import RejectionReason, meets_quality_bar
from .storage import Lead
from .upsert import LeadUpserter, Provenance, UpsertOutcome, UpsertResult

__all__ = [
    "Lead",
    "LeadUpsertError",
    "LeadUpsertReason",
    "LeadUpserter",
    "Provenance",
    "RejectionReason",
    "UpsertOutcome",
    "UpsertResult",
    "meets_quality_bar",
]

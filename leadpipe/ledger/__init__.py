"""Processing ledger guaranteeing exactly-once outcomes per raw event."""

from __future__ import annotations

from .services import ProcessingLedger
from .storage import Outcome, ProcessingLedgerEntry

__all__ = ["Outcome", "ProcessingLedger", "ProcessingLedgerEntry"]

"""Lead routing and notification."""

from __future__ import annotations

from .errors import NotificationDispatchError, NotificationDispatchReason
from .notifications import (
    DramatiqNotificationDispatcher,
    build_notification,
    deliver_lead_notification,
)
from .protocol import (
    NotificationDispatcher,
    NotifiedUser,
    RecipientBudget,
    RecipientResolver,
)
from .router import LeadRouter
from .targeting import (
    TargetingRecipientResolver,
    UserTargeting,
    at_cap,
    charge_delivery,
    matches_targeting,
)

__all__ = [
    "DramatiqNotificationDispatcher",
    "LeadRouter",
    "NotificationDispatchError",
    "NotificationDispatchReason",
    "NotificationDispatcher",
    "NotifiedUser",
    "RecipientBudget",
    "RecipientResolver",
    "TargetingRecipientResolver",
    "UserTargeting",
    "at_cap",
    "build_notification",
    "charge_delivery",
    "deliver_lead_notification",
    "matches_targeting",
]

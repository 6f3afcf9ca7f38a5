"""Collaborator protocols for lead routing."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    from leadpipe.leads.storage import Lead


@dc.dataclass(frozen=True, slots=True)
class NotifiedUser:
    """A workspace user selected to hear about a lead."""

    user_id: str
    workspace_id: str


@typ.runtime_checkable
class RecipientResolver(typ.Protocol):
    """Select the users who should be told about a lead."""

    async def resolve(self, lead: Lead) -> list[NotifiedUser]:
        """Return recipients for ``lead``; may be empty."""
        ...


@typ.runtime_checkable
class RecipientBudget(typ.Protocol):
    """A resolver whose recipients spend a delivery budget."""

    async def charge(self, recipients: typ.Sequence[NotifiedUser]) -> None:
        """Record one delivered lead for each of ``recipients``."""
        ...


@typ.runtime_checkable
class NotificationDispatcher(typ.Protocol):
    """Deliver a lead notification to resolved recipients.

    Implementations raise
    :class:`~leadpipe.routing.errors.NotificationDispatchError` when the
    notification cannot be handed off.
    """

    async def dispatch(
        self, lead: Lead, recipients: typ.Sequence[NotifiedUser]
    ) -> None:
        """Hand the notification for ``lead`` to the delivery channel."""
        ...

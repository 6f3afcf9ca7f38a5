"""Route new and merged leads to the users who should act on them."""

from __future__ import annotations

import asyncio
import typing as typ

from leadpipe.logging import get_logger, log_warning
from leadpipe.routing.errors import NotificationDispatchError
from leadpipe.routing.protocol import RecipientBudget

if typ.TYPE_CHECKING:
    from leadpipe.leads.storage import Lead
    from leadpipe.routing.protocol import (
        NotificationDispatcher,
        NotifiedUser,
        RecipientResolver,
    )

logger = get_logger(__name__)


class LeadRouter:
    """Resolve recipients for a lead and dispatch the notification.

    Resolvers that also implement
    :class:`~leadpipe.routing.protocol.RecipientBudget` are charged only
    after the dispatcher accepted the notification.

    Routing is best-effort: a failure is logged as a
    :class:`NotificationDispatchError` and reported as no recipients, never
    raised into the caller that already committed the lead.
    """

    def __init__(
        self,
        resolver: RecipientResolver,
        dispatcher: NotificationDispatcher,
        *,
        timeout_seconds: float = 5.0,
    ) -> None:
        """Store collaborators and the per-call timeout."""
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._timeout_seconds = timeout_seconds

    async def route(self, lead: Lead) -> list[NotifiedUser]:
        """Notify the resolved recipients of ``lead`` and return them."""
        try:
            return await self._route(lead)
        except NotificationDispatchError as exc:
            log_warning(
                logger,
                "Lead %s notification failed (reason=%s): %s",
                lead.id,
                exc.reason,
                exc,
            )
            return []

    async def _route(self, lead: Lead) -> list[NotifiedUser]:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                recipients = await self._resolver.resolve(lead)
        except TimeoutError as exc:
            raise NotificationDispatchError.timed_out(self._timeout_seconds) from exc
        except NotificationDispatchError:
            raise
        except Exception as exc:
            raise NotificationDispatchError.resolution_failed(exc) from exc

        if not recipients:
            return []

        try:
            async with asyncio.timeout(self._timeout_seconds):
                await self._dispatcher.dispatch(lead, recipients)
        except TimeoutError as exc:
            raise NotificationDispatchError.timed_out(self._timeout_seconds) from exc
        except NotificationDispatchError:
            raise
        except Exception as exc:
            raise NotificationDispatchError.enqueue_failed(exc) from exc

        if isinstance(self._resolver, RecipientBudget):
            await self._charge(lead, self._resolver, recipients)
        return recipients

    async def _charge(
        self,
        lead: Lead,
        budget: RecipientBudget,
        recipients: list[NotifiedUser],
    ) -> None:
        """Spend recipients' budgets; the notification is already sent."""
        try:
            async with asyncio.timeout(self._timeout_seconds):
                await budget.charge(recipients)
        except Exception as exc:  # noqa: BLE001 - logged; notification already sent
            log_warning(
                logger,
                "Lead %s notified but delivery budgets were not charged: %s",
                lead.id,
                exc,
            )

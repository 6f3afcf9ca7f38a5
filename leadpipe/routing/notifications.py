"""Queue-backed lead notifications.

:class:`DramatiqNotificationDispatcher` enqueues one
``deliver_lead_notification`` message per lead; delivery then retries with
Dramatiq's backoff independently of the pipeline that created the lead.

Usage
-----
>>> deliver_lead_notification.send(
...     {"lead_id": "6f1c...", "workspace_id": "ws-1", "recipients": ["u-1"]}
... )

"""

from __future__ import annotations

import asyncio
import os
import typing as typ

import dramatiq
import httpx
from dramatiq.errors import DramatiqError

from leadpipe.common.broker import ensure_broker_configured
from leadpipe.logging import get_logger, log_info
from leadpipe.routing.errors import NotificationDispatchError

if typ.TYPE_CHECKING:
    from leadpipe.leads.storage import Lead
    from leadpipe.routing.protocol import NotifiedUser

logger = get_logger(__name__)

NOTIFY_WEBHOOK_URL_ENV = "LEADPIPE_NOTIFY_WEBHOOK_URL"
_DELIVERY_TIMEOUT_SECONDS = 10.0


def build_notification(
    lead: Lead, recipients: typ.Sequence[NotifiedUser]
) -> dict[str, typ.Any]:
    """Render the JSON message describing ``lead`` for ``recipients``."""
    return {
        "lead_id": lead.id,
        "workspace_id": lead.workspace_id,
        "source": lead.source,
        "email": lead.email,
        "phone": lead.phone,
        "first_name": lead.first_name,
        "last_name": lead.last_name,
        "company_name": lead.company_name,
        "deliverability_score": lead.deliverability_score,
        "intent_signals": list(lead.intent_signals),
        "recipients": [recipient.user_id for recipient in recipients],
    }


@dramatiq.actor(max_retries=5, min_backoff=1_000, max_backoff=300_000)
def deliver_lead_notification(notification: dict[str, typ.Any]) -> None:
    """Deliver one lead notification to the configured webhook.

    With ``LEADPIPE_NOTIFY_WEBHOOK_URL`` unset the notification is only
    logged. HTTP failures raise so Dramatiq retries the message.
    """
    ensure_broker_configured()
    url = os.environ.get(NOTIFY_WEBHOOK_URL_ENV, "").strip()
    if not url:
        log_info(
            logger,
            "Lead %s notification for %d recipient(s) not delivered: %s unset",
            notification.get("lead_id"),
            len(notification.get("recipients", [])),
            NOTIFY_WEBHOOK_URL_ENV,
        )
        return

    with httpx.Client(timeout=_DELIVERY_TIMEOUT_SECONDS) as client:
        response = client.post(url, json=notification)
        response.raise_for_status()
    log_info(
        logger,
        "Lead %s notification delivered (status=%d)",
        notification.get("lead_id"),
        response.status_code,
    )


class DramatiqNotificationDispatcher:
    """Dispatch lead notifications by enqueuing a Dramatiq message."""

    def __init__(self, actor: dramatiq.Actor | None = None) -> None:
        """Use ``actor`` for delivery, defaulting to the webhook actor."""
        self._actor = actor or deliver_lead_notification

    async def dispatch(
        self, lead: Lead, recipients: typ.Sequence[NotifiedUser]
    ) -> None:
        """Enqueue a notification for ``lead``.

        Raises
        ------
        NotificationDispatchError
            If the broker rejects the message.

        """
        message = build_notification(lead, recipients)
        try:
            await asyncio.to_thread(self._actor.send, message)
        except (DramatiqError, OSError) as exc:
            raise NotificationDispatchError.enqueue_failed(exc) from exc

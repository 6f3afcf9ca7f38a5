"""Dramatiq worker entry module.

Run workers with::

    dramatiq leadpipe.worker

Importing this module selects the process broker and binds the
notification and retry actors to it; the ``broker`` attribute is what the
Dramatiq CLI picks up.
"""

from __future__ import annotations

import dramatiq

from leadpipe.common.broker import bind_actors, ensure_broker_configured
from leadpipe.pipeline.actor import retry_pending_events_job
from leadpipe.routing.notifications import deliver_lead_notification

ACTORS: tuple[dramatiq.Actor, ...] = (
    deliver_lead_notification,
    retry_pending_events_job,
)


def configure_actors() -> dramatiq.Broker:
    """Select the broker and declare every leadpipe actor on it."""
    selected = ensure_broker_configured()
    bind_actors(selected, ACTORS)
    return selected


broker = configure_actors()

"""Health probe resources for liveness and readiness checks.

These resources are stateless and do not touch the database. They are
always registered, including in health-only mode.

Usage
-----
Register health endpoints on the Falcon app::

    from leadpipe.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource())

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource.

    Reports ``ingesting`` when the webhook pipeline is wired and
    ``health_only`` otherwise; both are HTTP 200.
    """

    def __init__(self, *, ingesting: bool = False) -> None:
        """Record whether webhook ingestion is enabled."""
        self._mode = "ingesting" if ingesting else "health_only"

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        resp.media = {"status": "ready", "mode": self._mode}
        resp.status = HTTPStatus.OK

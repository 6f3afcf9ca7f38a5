"""Application factory for the leadpipe Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when an ingestion pipeline is
supplied, the AudienceLab webhook endpoint.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with the webhook endpoint::

    from leadpipe.api.app import AppDependencies, create_app

    deps = AppDependencies(pipeline=build_pipeline(session_factory))
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from leadpipe.api.errors import register_error_handlers
from leadpipe.api.health.resources import HealthResource, ReadyResource
from leadpipe.common.hashing import DEFAULT_HASHER, Hasher
from leadpipe.pipeline.config import WebhookConfig

if typ.TYPE_CHECKING:
    from leadpipe.pipeline.service import IngestionPipeline

__all__ = ["AppDependencies", "create_app"]

WEBHOOK_ROUTE = "/webhooks/audiencelab/{source}"


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    pipeline
        Ingestion pipeline; when ``None`` only health endpoints exist.
    webhook_config
        Secret and body-size settings for the webhook endpoint.
    hasher
        Hashing capability used for webhook signature checks.

    """

    pipeline: IngestionPipeline | None = None
    webhook_config: WebhookConfig = dc.field(default_factory=WebhookConfig)
    hasher: Hasher = DEFAULT_HASHER


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. Without a pipeline only
        ``/health`` and ``/ready`` are registered.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()
    pipeline = dependencies.pipeline if dependencies is not None else None

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(ingesting=pipeline is not None))

    if dependencies is not None and pipeline is not None:
        from leadpipe.api.webhooks.resources import (
            WebhookResource,
            WebhookResourceDependencies,
        )

        app.add_route(
            WEBHOOK_ROUTE,
            WebhookResource(
                WebhookResourceDependencies(
                    pipeline=pipeline,
                    config=dependencies.webhook_config,
                    hasher=dependencies.hasher,
                )
            ),
        )

    register_error_handlers(app)
    return app

"""Process entrypoint serving the webhook app with Granian.

``leadpipe.runtime:create_app`` is the Granian factory target. With
``LEADPIPE_DATABASE_URL`` unset it serves only the probes; with it set the
ingestion pipeline is wired and ``/webhooks/audiencelab/{source}`` accepts
deliveries.

Environment
-----------
``LEADPIPE_HOST``
    Bind address, default ``0.0.0.0``.
``LEADPIPE_PORT``
    Listen port, default ``8080``.
``LEADPIPE_LOG_LEVEL``
    femtologging level, default ``INFO``.
``LEADPIPE_DATABASE_URL``
    SQLAlchemy async URL; enables webhook ingestion.
``LEADPIPE_WEBHOOK_SECRET``
    Shared secret webhook senders must prove; deliveries are refused without
    it unless ``LEADPIPE_WEBHOOK_ALLOW_UNSIGNED`` is truthy.
``LEADPIPE_BROKER_URL``
    AMQP URL of the broker lead notifications are queued on.
``LEADPIPE_CREATE_SCHEMA``
    Create missing tables before serving when truthy.

Run with ``python -m leadpipe.runtime`` or the ``leadpipe`` console script.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import os
import typing as typ

from leadpipe.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi
    from sqlalchemy.ext.asyncio import AsyncEngine

    from leadpipe.api.app import AppDependencies

__all__ = ["RuntimeSettings", "create_app", "main"]

logger = get_logger(__name__)

_PORT_RANGE = range(1, 65536)
_TRUTHY = frozenset({"1", "true", "yes"})


def _parse_port(raw: str) -> int:
    """Return ``raw`` as a TCP port or exit the process with status 1."""
    try:
        port = int(raw)
    except ValueError:
        port = None
    if port is None or port not in _PORT_RANGE:
        log_error(
            logger,
            "Invalid LEADPIPE_PORT value: %r (must be %d-%d)",
            raw,
            _PORT_RANGE.start,
            _PORT_RANGE.stop - 1,
        )
        raise SystemExit(1)
    return port


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUTHY


@dc.dataclass(frozen=True, slots=True)
class RuntimeSettings:
    """Server settings read once at process start."""

    host: str = "0.0.0.0"  # noqa: S104 - containers bind every interface
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> RuntimeSettings:
        """Read ``LEADPIPE_HOST``, ``LEADPIPE_PORT`` and ``LEADPIPE_LOG_LEVEL``.

        Raises
        ------
        SystemExit
            If ``LEADPIPE_PORT`` is not a port number.

        """
        defaults = cls()
        return cls(
            host=os.environ.get("LEADPIPE_HOST", defaults.host),
            port=_parse_port(os.environ.get("LEADPIPE_PORT", str(defaults.port))),
            log_level=os.environ.get("LEADPIPE_LOG_LEVEL", defaults.log_level),
        )


async def _bootstrap_schema(engine: AsyncEngine) -> None:
    """Create missing tables, then release connections bound to this loop."""
    from leadpipe.pipeline import init_pipeline_storage

    try:
        await init_pipeline_storage(engine)
    finally:
        await engine.dispose()


def _pipeline_dependencies(database_url: str) -> AppDependencies:
    """Build the database-backed pipeline and webhook settings."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from leadpipe.api.app import AppDependencies
    from leadpipe.pipeline import PipelineConfig, WebhookConfig, build_pipeline
    from leadpipe.worker import configure_actors

    config = PipelineConfig.from_env()
    webhook_config = WebhookConfig.from_env()
    if not webhook_config.requires_auth:
        log_warning(
            logger, "LEADPIPE_WEBHOOK_ALLOW_UNSIGNED set; accepting unsigned webhooks"
        )
    elif not webhook_config.secret:
        log_warning(
            logger, "LEADPIPE_WEBHOOK_SECRET unset; every webhook will be refused"
        )
    engine = create_async_engine(database_url)
    if _env_flag("LEADPIPE_CREATE_SCHEMA"):
        asyncio.run(_bootstrap_schema(engine))
    configure_actors()
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return AppDependencies(
        pipeline=build_pipeline(session_factory, config=config),
        webhook_config=webhook_config,
    )


def create_app() -> falcon.asgi.App:
    """Return the Falcon app, with ingestion when a database is configured.

    Raises
    ------
    ValueError
        If a ``LEADPIPE_*`` pipeline or webhook variable is invalid.

    """
    from leadpipe.api.app import create_app as build_api_app

    database_url = os.environ.get("LEADPIPE_DATABASE_URL")
    if database_url is None:
        log_info(logger, "LEADPIPE_DATABASE_URL unset; serving health probes only")
        return build_api_app()
    return build_api_app(_pipeline_dependencies(database_url))


def main() -> None:
    """Configure logging and serve ``create_app`` with Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    settings = RuntimeSettings.from_env()
    level, invalid = configure_logging(settings.log_level)
    if invalid:
        log_warning(
            logger,
            "Invalid LEADPIPE_LOG_LEVEL %r, falling back to %s",
            settings.log_level,
            level,
        )
    log_info(
        logger,
        "Starting leadpipe on %s:%d (log_level=%s)",
        settings.host,
        settings.port,
        level,
    )

    Granian(
        "leadpipe.runtime:create_app",
        address=settings.host,
        port=settings.port,
        interface=Interfaces.ASGI,
        factory=True,
    ).serve()


if __name__ == "__main__":
    main()

"""Dramatiq actor for retrying unprocessed raw events.

Usage
-----
Queue a retry sweep over at most 500 pending events:

>>> retry_pending_events_job.send(
...     database_url="postgresql+asyncpg://...",
...     limit=500,
... )

"""

from __future__ import annotations

import asyncio
import threading

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from leadpipe.common.broker import ensure_broker_configured
from leadpipe.pipeline.factory import build_pipeline
from leadpipe.pipeline.service import IngestionPipeline

type SessionFactory = async_sessionmaker[AsyncSession]

# Reused across actor invocations within one worker process.
_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_PIPELINE_CACHE: dict[str, IngestionPipeline] = {}
_CACHE_LOCK = threading.Lock()


def _get_or_create_pipeline(database_url: str) -> IngestionPipeline:
    """Return the cached pipeline for *database_url*, creating it if absent.

    Thread-safe: Dramatiq runs actors on several worker threads.
    """
    with _CACHE_LOCK:
        if database_url not in _PIPELINE_CACHE:
            if database_url not in _ENGINE_CACHE:
                _ENGINE_CACHE[database_url] = create_async_engine(database_url)
            session_factory: SessionFactory = async_sessionmaker(
                _ENGINE_CACHE[database_url], expire_on_commit=False
            )
            _PIPELINE_CACHE[database_url] = build_pipeline(session_factory)
        return _PIPELINE_CACHE[database_url]


@dramatiq.actor
def retry_pending_events_job(database_url: str, *, limit: int | None = None) -> int:
    """Re-run unprocessed raw events and return how many settled.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the database.
    limit
        Maximum number of pending events to attempt, oldest first.

    Returns
    -------
    int
        Events that reached a terminal outcome; the rest stay pending.

    """
    ensure_broker_configured()
    pipeline = _get_or_create_pipeline(database_url)
    results = asyncio.run(pipeline.retry_pending(limit))
    return sum(not result.retryable for result in results)

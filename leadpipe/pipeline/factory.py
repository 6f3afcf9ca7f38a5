"""Build a fully wired :class:`IngestionPipeline` from a session factory.

Usage
-----
Build a pipeline for the API layer or a Dramatiq worker::

    from leadpipe.pipeline.factory import build_pipeline

    pipeline = build_pipeline(session_factory)

"""

from __future__ import annotations

import typing as typ

from leadpipe.bronze.services import PixelWorkspaceResolver, RawEventWriter
from leadpipe.common.hashing import DEFAULT_HASHER, Hasher
from leadpipe.leads.upsert import LeadUpserter
from leadpipe.ledger.services import ProcessingLedger
from leadpipe.pipeline.config import PipelineConfig
from leadpipe.pipeline.observability import PipelineEventLogger
from leadpipe.pipeline.service import IngestionPipeline
from leadpipe.routing.notifications import DramatiqNotificationDispatcher
from leadpipe.routing.router import LeadRouter
from leadpipe.routing.targeting import TargetingRecipientResolver

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leadpipe.routing.protocol import NotificationDispatcher, RecipientResolver

__all__ = ["build_pipeline"]


def build_pipeline(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    config: PipelineConfig | None = None,
    resolver: RecipientResolver | None = None,
    dispatcher: NotificationDispatcher | None = None,
    hasher: Hasher = DEFAULT_HASHER,
) -> IngestionPipeline:
    """Assemble the pipeline and its store-backed collaborators.

    Parameters
    ----------
    session_factory
        Async session factory shared by every store.
    config
        Pipeline tunables; read from the environment when omitted.
    resolver
        Recipient resolver; defaults to the ``user_targeting`` rules.
    dispatcher
        Notification dispatcher; defaults to the Dramatiq webhook actor.
    hasher
        Hashing capability used for raw event dedupe keys.

    """
    config = config or PipelineConfig.from_env()
    router = LeadRouter(
        resolver or TargetingRecipientResolver(session_factory),
        dispatcher or DramatiqNotificationDispatcher(),
        timeout_seconds=config.notify_timeout_seconds,
    )
    return IngestionPipeline(
        raw_events=RawEventWriter(session_factory, hasher),
        ledger=ProcessingLedger(session_factory),
        upserter=LeadUpserter(session_factory, threshold=config.lead_score_threshold),
        router=router,
        workspace_resolver=PixelWorkspaceResolver(session_factory),
        config=config,
        event_logger=PipelineEventLogger(),
    )

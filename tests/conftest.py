"""Shared fixtures for unit tests."""

from __future__ import annotations

import dramatiq
from dramatiq.brokers.stub import StubBroker

# Actors bind to the global broker when their module is first imported.
dramatiq.set_broker(StubBroker())

import typing as typ  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from leadpipe.pipeline import (  # noqa: E402
    IngestionPipeline,
    PipelineConfig,
    build_pipeline,
    init_pipeline_storage,
)
from tests.helpers.pipeline_doubles import (  # noqa: E402
    RecordingDispatcher,
    StaticRecipientResolver,
)

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine and create every leadpipe table."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'leadpipe.db'}")
    try:
        await init_pipeline_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    """Return a dispatcher that records notifications instead of sending."""
    return RecordingDispatcher()


@pytest.fixture
def resolver() -> StaticRecipientResolver:
    """Return a resolver that routes every lead to one sales user."""
    return StaticRecipientResolver(["user-1"])


@pytest.fixture
def pipeline(
    session_factory: async_sessionmaker[AsyncSession],
    resolver: StaticRecipientResolver,
    dispatcher: RecordingDispatcher,
) -> IngestionPipeline:
    """Build a store-backed pipeline with recording routing doubles."""
    return build_pipeline(
        session_factory,
        config=PipelineConfig(),
        resolver=resolver,
        dispatcher=dispatcher,
    )

"""Schema bootstrap for every table the pipeline owns."""

from __future__ import annotations

import typing as typ

# Imported for their side effect of registering tables on the shared Base.
import leadpipe.leads.storage  # noqa: F401
import leadpipe.ledger.storage  # noqa: F401
import leadpipe.routing.targeting  # noqa: F401
from leadpipe.bronze.storage import init_storage

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def init_pipeline_storage(engine: AsyncEngine) -> None:
    """Create raw event, lead, ledger and targeting tables if absent."""
    await init_storage(engine)

from typing import AsyncIterator

from rewards_api.config import settings
from rewards_api.database import AsyncSessionLocal
from rewards_api.repositories.base import Repositories
from rewards_api.repositories.memory import build_memory_repositories, default_store
from rewards_api.repositories.sql import build_sql_repositories


async def get_repositories() -> AsyncIterator[Repositories]:
    """FastAPI dependency: the repository bundle for the configured backend.

    SQL requests get one session, committed when the handler returns and
    rolled back if it raises.
    """
    if settings.STORAGE_BACKEND == "memory":
        yield build_memory_repositories(default_store)
        return

    async with AsyncSessionLocal() as session:
        try:
            yield build_sql_repositories(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

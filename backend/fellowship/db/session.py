from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fellowship.core.config import settings

# -----------------------------
# Async engine (FastAPI)
# -----------------------------
# sqlite+aiosqlite for local runs, postgresql+asyncpg in deployments.
# The CLEAN URL drops sslmode/channel_binding, which asyncpg rejects.
DATABASE_URL_ASYNC = settings.DATABASE_URL_ASYNC_CLEAN


def _engine_kwargs(url: str) -> dict[str, Any]:
    if make_url(url).get_backend_name() == "sqlite":
        # aiosqlite runs the connection on its own thread
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,  # managed Postgres drops idle connections
        "pool_recycle": 300,
    }


engine: AsyncEngine = create_async_engine(
    DATABASE_URL_ASYNC,
    echo=False,
    **_engine_kwargs(DATABASE_URL_ASYNC),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One AsyncSession per request, closed when the request ends."""
    async with AsyncSessionLocal() as session:
        yield session

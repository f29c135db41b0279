from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from fellowship.crud.roles import ensure_default_roles
from fellowship.db.session import get_db
from fellowship.storage.blob import LocalBlobStore, get_blob_store

# Ensure Base + models are registered before create_all
from fellowship.db.base import Base  # noqa: F401
import fellowship.models  # noqa: F401


# ---------------------------------------------------------
# Engine: one in-memory SQLite database per test
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        future=True,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )


# ---------------------------------------------------------
# 🔑 AUTOUSE: built-in roles exist in every test database
# ---------------------------------------------------------
@pytest_asyncio.fixture(autouse=True)
async def _seed_roles(sessionmaker):
    async with sessionmaker() as session:
        await ensure_default_roles(session)
    yield


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    Commit before calling the API; the app uses its own sessions.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"))


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker, blob_store):
    from fellowship.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    fastapi_app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac

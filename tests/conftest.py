"""Shared test fixtures and configuration.

Each test gets its own SQLite database (through aiosqlite) in tmp_path, so the
transactional code paths run against a real store. The engine uses a
single-connection queue pool: concurrent units of work queue for the
connection exactly as production requests queue on an exhausted pool.
"""

from __future__ import annotations

import os

# Must be set before app.db.session is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import httpx
import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from app.db.base import Base
from app.db import models  # noqa: F401
from app.db.models.user_rank import UserRank as UserRankORM
from app.db.session import get_db
from app.exceptions import AuthenticationError
from app.main import app
from app.middleware.auth import Identity, get_identity_verifier


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=30,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def set_completed_count(db):
    """Seed a user's lifetime count directly, leaving the stored tier alone."""
    async def _set(user_id: str, count: int) -> None:
        await db.execute(
            update(UserRankORM)
            .where(UserRankORM.user_id == user_id)
            .values(total_completed_tasks=count)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    return _set


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture()
def alice() -> Identity:
    return Identity(user_id="user_alice", username="alice")


@pytest.fixture()
def bob() -> Identity:
    return Identity(user_id="user_bob", username="bob")


class FakeVerifier:
    """Maps bearer tokens straight to identities."""

    def __init__(self, identities: dict[str, Identity]):
        self.identities = identities

    async def verify(self, token: str) -> Identity:
        identity = self.identities.get(token)
        if identity is None:
            raise AuthenticationError("Invalid token")
        return identity


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture()
async def client(session_factory, alice, bob):
    """AsyncClient against the app with the test database and fake auth.

    Use headers={"Authorization": "Bearer alice-token"} (or bob-token).
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    verifier = FakeVerifier({"alice-token": alice, "bob-token": bob})

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

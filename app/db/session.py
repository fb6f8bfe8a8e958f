"""Database session configuration"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker

from app.config import (
    DATABASE_URL,
    DB_POOL_SIZE as POOL_SIZE,
    DB_MAX_OVERFLOW as MAX_OVERFLOW,
    DB_POOL_TIMEOUT as POOL_TIMEOUT,
    DB_POOL_RECYCLE as POOL_RECYCLE,
)
from app.exceptions import TransactionError

logger = logging.getLogger(__name__)

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")


def to_async_url(url: str) -> str:
    """
    Convert a database URL to the async driver this service runs on.

    postgresql:// is served by psycopg; sqlite+aiosqlite:// is accepted
    as-is for local runs and tests.
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql+psycopg://") or url.startswith("sqlite+aiosqlite://"):
        return url
    if url.startswith("postgresql+asyncpg://"):
        # Legacy support: convert asyncpg URLs to psycopg
        return url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)
    raise ValueError(f"Unsupported database URL format: {url}")


ASYNC_DATABASE_URL = to_async_url(DATABASE_URL)


def build_engine(url: str) -> AsyncEngine:
    """Create the process-wide async engine with connection pooling"""
    if url.startswith("sqlite"):
        # SQLite picks its own pool class; sizing arguments do not apply
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using them
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=False,  # Set to True to see SQL queries in logs
    )


engine = build_engine(ASYNC_DATABASE_URL)

SessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI routes.

    Usage:
        @app.get("/example")
        async def example(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with SessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run one unit of work in its own transaction.

    Commits when the block exits normally. Any exception rolls the whole
    unit back; storage-layer failures are re-raised as TransactionError so
    callers never see driver details, domain errors propagate unchanged.

    Usage:
        async with transaction(db):
            ...
    """
    if db.in_transaction():
        # Close the implicit transaction a previous read may have opened
        await db.commit()
    try:
        async with db.begin():
            yield db
    except SQLAlchemyError as e:
        logger.error(f"Transaction rolled back: {e}", exc_info=True)
        raise TransactionError() from e


def get_pool_stats() -> dict:
    """
    Get current connection pool statistics.

    Returns:
        Dictionary with pool statistics:
        - size: Total pool size
        - checked_in: Connections currently checked in (available)
        - checked_out: Connections currently checked out (in use)
        - overflow: Overflow connections
        - invalid: Invalid connections
    """
    try:
        # For async engines, access the underlying sync pool
        sync_pool = engine.sync_engine.pool

        # Not every pool class exposes every counter (SQLite's StaticPool has none)
        size_func = getattr(sync_pool, "size", None)
        checkedin_func = getattr(sync_pool, "checkedin", None)
        checkedout_func = getattr(sync_pool, "checkedout", None)
        overflow_func = getattr(sync_pool, "overflow", None)
        invalid_func = getattr(sync_pool, "invalid", None)

        size_val = size_func() if callable(size_func) else POOL_SIZE
        checked_in_val = checkedin_func() if callable(checkedin_func) else 0
        checked_out_val = checkedout_func() if callable(checkedout_func) else 0
        overflow_val = overflow_func() if callable(overflow_func) else 0
        invalid_val = invalid_func() if callable(invalid_func) else 0
        max_overflow_val = getattr(sync_pool, "_max_overflow", MAX_OVERFLOW)

        return {
            "size": int(size_val) if size_val is not None else POOL_SIZE,
            "checked_in": int(checked_in_val) if checked_in_val is not None else 0,
            "checked_out": int(checked_out_val) if checked_out_val is not None else 0,
            # overflow() starts at -pool_size while the pool is filling up
            "overflow": max(0, int(overflow_val)) if overflow_val is not None else 0,
            "invalid": int(invalid_val) if invalid_val is not None else 0,
            "max_overflow": max(0, int(max_overflow_val)) if max_overflow_val is not None else MAX_OVERFLOW,
        }
    except Exception as e:
        logger.warning(f"Error getting pool stats: {e}")
        return {
            "size": POOL_SIZE,
            "checked_in": 0,
            "checked_out": 0,
            "overflow": 0,
            "invalid": 0,
            "max_overflow": MAX_OVERFLOW,
        }


def log_pool_stats(context: str = ""):
    """
    Log current connection pool statistics.

    Args:
        context: Optional context string to include in log message
    """
    stats = get_pool_stats()
    in_use = stats["checked_out"]
    total_capacity = stats["size"] + stats["max_overflow"]
    utilization = (in_use / total_capacity * 100) if total_capacity > 0 else 0

    context_str = f" [{context}]" if context else ""
    logger.info(
        f"Connection pool stats{context_str}: "
        f"available={stats['checked_in']}, in_use={in_use}, overflow={stats['overflow']}, "
        f"utilization={utilization:.1f}%"
    )

    if utilization > 80:
        logger.warning(
            f"Connection pool utilization is high ({utilization:.1f}%)! "
            f"Requests will queue until a connection is released."
        )


# Pool activity listeners (async engines expose them on the sync_engine)
from sqlalchemy import event  # noqa: E402


@event.listens_for(engine.sync_engine, "connect")
def on_connect(dbapi_conn, connection_record):
    """Log when a new connection is created"""
    logger.debug("New database connection created")


@event.listens_for(engine.sync_engine, "checkout")
def on_checkout(dbapi_conn, connection_record, connection_proxy):
    """Log when the pool is exhausted and callers start queueing"""
    stats = get_pool_stats()
    if stats["checked_out"] >= stats["size"] + stats["max_overflow"]:
        logger.debug(
            f"Connection pool exhausted: "
            f"{stats['checked_out']}/{stats['size'] + stats['max_overflow']} in use"
        )


@event.listens_for(engine.sync_engine, "invalidate")
def on_invalidate(dbapi_conn, connection_record, exception):
    """Log when a connection is invalidated"""
    logger.warning(
        f"Database connection invalidated: {exception}",
        exc_info=exception
    )

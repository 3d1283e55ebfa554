"""
Database session management for Track-Hub.
Async SQLAlchemy engine, session factory, and FastAPI dependency.
PostgreSQL (asyncpg) in production, SQLite (aiosqlite) in tests.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from trackhub.core.config import settings

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────
# Engine factory
# ────────────────────────────────────────────────
def build_engine(url: str, **overrides) -> AsyncEngine:
    """
    Create an async engine. Pool tuning only applies to PostgreSQL;
    SQLite and NullPool engines reject those arguments.
    """
    options = {
        "echo": False,
        "future": True,
    }
    if url.startswith("postgresql") and "poolclass" not in overrides:
        options.update(
            pool_pre_ping=True,       # Detect & replace stale connections
            pool_size=5,
            max_overflow=5,
            pool_timeout=30,
            pool_recycle=600,
        )
    options.update(overrides)
    return create_async_engine(url, **options)


# ────────────────────────────────────────────────
# Global Async Engine (singleton – created once)
# ────────────────────────────────────────────────
engine: AsyncEngine = build_engine(settings.DATABASE_URL)


# ────────────────────────────────────────────────
# Async Session Factory (per-request sessions)
# ────────────────────────────────────────────────
async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,       # Prevent expired objects after commit
    class_=AsyncSession,
)


# ────────────────────────────────────────────────
# FastAPI Dependency: per-request async session
# ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency: yields a new async session per request.
    Automatically commits on success, rolls back on error, closes always.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ────────────────────────────────────────────────
# Worker sessions (Celery)
# ────────────────────────────────────────────────
@asynccontextmanager
async def task_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for Celery tasks. Each task runs its own event loop via
    asyncio.run, so pooled connections must not outlive it.
    """
    task_engine = build_engine(settings.DATABASE_URL, poolclass=NullPool)
    factory = async_sessionmaker(task_engine, expire_on_commit=False, class_=AsyncSession)
    try:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
    finally:
        await task_engine.dispose()


# ────────────────────────────────────────────────
# Startup: Test connection + optional Redis ping
# ────────────────────────────────────────────────
async def init_db():
    """
    Run on app startup – verifies the database connection.
    Pings Redis when it backs the broker or the rate limiter.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info(
            "Database connection verified successfully",
            extra={"driver": engine.url.drivername},
        )
    except Exception as e:
        logger.critical(
            "Database connection failed on startup",
            exc_info=True,
            extra={"driver": engine.url.drivername},
        )
        raise RuntimeError("Database unavailable") from e

    if settings.REDIS_URL and settings.RATE_LIMIT_ENABLED:
        try:
            from redis.asyncio import Redis
            redis = Redis.from_url(settings.REDIS_URL)
            await redis.ping()
            await redis.aclose()
            logger.info("Redis connection verified")
        except Exception as redis_exc:
            logger.warning("Redis ping failed (continuing without)", exc_info=redis_exc)


# ────────────────────────────────────────────────
# Lifespan context manager (use in main.py)
# ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app):
    """
    FastAPI lifespan handler – initialize & clean up database connections.
    """
    await init_db()

    yield  # App runs here

    try:
        await engine.dispose()
        logger.info("Database engine disposed on shutdown")
    except Exception as dispose_exc:
        logger.warning("Error during DB shutdown", exc_info=dispose_exc)


def get_engine() -> AsyncEngine:
    return engine

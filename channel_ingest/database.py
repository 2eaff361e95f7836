"""Async engine, session factory and schema setup for the upload tables."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from channel_ingest.config import settings

ASYNC_SCHEME = "postgresql+asyncpg://"
SYNC_SCHEMES = ("postgresql://", "postgres://")


class Base(DeclarativeBase):
    """Declarative base shared by the upload batch and line models."""


def get_async_database_url(url: str) -> str:
    """Point a PostgreSQL URL at the asyncpg driver.

    Both ``postgresql://`` and the older ``postgres://`` scheme are
    rewritten. Any other URL is returned unchanged.
    """
    for scheme in SYNC_SCHEMES:
        if url.startswith(scheme):
            return ASYNC_SCHEME + url[len(scheme):]
    return url


async_engine = create_async_engine(
    get_async_database_url(settings.database_url),
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_upload_tables(engine: AsyncEngine = async_engine) -> None:
    """Create the upload_batches and upload_lines tables if they are missing."""
    import channel_ingest.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session.

    Commits once the route returns and rolls back if it raises, so a
    rejected upload leaves no partial batch.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from portal_chat.config import settings


def build_engine(url: str) -> AsyncEngine:
    # create_async_engine picks AsyncAdaptedQueuePool for asyncpg
    return create_async_engine(
        url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=settings.DB_POOL_RECYCLE,
        echo=settings.DB_ECHO,
    )


engine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def ping_database() -> None:
    """Raises if the database cannot answer a trivial query."""
    async with AsyncSessionLocal() as session:
        await session.execute(text("SELECT 1"))

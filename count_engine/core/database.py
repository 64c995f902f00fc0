# count_engine/core/database.py
from typing import AsyncIterator
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from count_engine.core.config import settings
from count_engine.db.base import Base

database_url = settings.DATABASE_URL

engine_options = {
    "echo": settings.DEBUG,
    "future": True,
    "pool_pre_ping": True,
}

# SQLite (tests, local tooling) does not take the pool sizing arguments
if make_url(database_url).get_backend_name() != "sqlite":
    engine_options.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )

engine = create_async_engine(database_url, **engine_options)

async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

async def get_async_session() -> AsyncIterator[AsyncSession]:
    async with async_session_maker() as session:
        yield session

__all__ = ["Base", "engine", "async_session_maker", "get_async_session"]

"""
Async SQLAlchemy engine, session factory and declarative base.

Usage:
    from database import get_db

    @router.get("/items")
    async def get_items(db: AsyncSession = Depends(get_db)):
        ...
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config import settings


def normalize_database_url(url: str) -> str:
    """Map sync driver URLs onto their async drivers."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    return url


def engine_options(url: str) -> Dict[str, Any]:
    """Driver-specific engine keyword arguments."""
    if url.startswith("sqlite"):
        # Concurrent writers wait on the database lock instead of failing at once.
        return {"connect_args": {"timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


DATABASE_URL = normalize_database_url(settings.DATABASE_URL)

engine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides a database session."""
    async with async_session_maker() as session:
        yield session

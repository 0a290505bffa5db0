"""Database engine, session factory and declarative base."""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class Base(DeclarativeBase):
    """Base class for ORM models."""


def create_engine_for(database_url: str, pool_size: int | None = None):
    """Create an async engine, skipping pool options SQLite does not accept."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, connect_args={"check_same_thread": False})
    return create_async_engine(
        database_url,
        pool_size=pool_size or settings.database_pool_size,
        pool_pre_ping=True,
    )


engine = create_engine_for(settings.database_url)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session."""
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """Create tables that do not exist yet."""
    # Register models on the metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")

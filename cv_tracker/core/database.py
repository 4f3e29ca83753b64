from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from .config import Settings

# Base class for SQLAlchemy models
Base = declarative_base()


def create_engine_for(settings: Settings) -> AsyncEngine:
    """Create the async engine (asyncpg in deployment, aiosqlite locally)."""
    url = settings.database_url
    kwargs = {"echo": settings.app_env == "dev", "future": True}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on Base (idempotent)."""
    # Register models on Base.metadata
    import cv_tracker.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Dependency to get async DB session
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory = request.app.state.container.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()

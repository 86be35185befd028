"""Async database setup for the bills store"""

from typing import Any, AsyncGenerator, Dict
import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from billdesk.config import settings

logger = logging.getLogger(__name__)


def engine_options(database_url: str) -> Dict[str, Any]:
    """Engine keyword arguments for a database URL"""
    options: Dict[str, Any] = {"echo": settings.DEBUG, "future": True}
    if database_url.startswith("sqlite"):
        # Connections are shared across threads
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

# Loaded rows stay readable after commit
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()


async def init_db() -> None:
    """Create the bills table if it does not exist yet"""
    # Registers the bills table on Base.metadata
    from billdesk.models import db_models  # noqa: F401
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Bills store ready: {', '.join(sorted(Base.metadata.tables))}")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session (dependency for FastAPI)"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from core.config import settings

logger = logging.getLogger(__name__)


def create_engine(database_url: str | None = None, null_pool: bool = False) -> AsyncEngine:
    """
    Build an async engine for the configured database.

    Celery tasks run each job in a fresh event loop, so they ask for a
    ``NullPool`` engine and dispose it when the job ends.
    """
    url = database_url or settings.database_url
    if null_pool:
        return create_async_engine(url, echo=False, poolclass=NullPool)
    return create_async_engine(
        url,
        echo=False,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the expiry semantics the store relies on."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


logger.info("Configuring database engine for %s", settings.app_name)

db_engine = create_engine()

# Create async session maker to be used throughout the application
AsyncSessionLocal = create_session_factory(db_engine)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


# Function to initialize the database (create tables)
async def init_db(engine: AsyncEngine | None = None):
    # Import models so they register with the metadata
    import database.models  # noqa: F401

    async with (engine or db_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()

from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)
from sqlalchemy.orm import DeclarativeBase

from src.infrastructure.config.settings import Settings, get_settings

# Deterministic constraint names keep migrations diffable
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def engine_options(database_url: str) -> dict[str, Any]:
    """Pool tuning for PostgreSQL; sqlite (tests, local runs) keeps driver defaults"""
    if make_url(database_url).get_backend_name() != "postgresql":
        return {}
    return {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {"jit": "off", "application_name": "agency-ops"},
            "command_timeout": 60,
        },
    }


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        **engine_options(settings.database_url),
    )


# Created once at import; tests override the session dependencies instead
engine = build_engine(get_settings())

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all database models"""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


async def init_db() -> None:
    """Create all tables (used when database_auto_create is on)"""
    # Register models on Base.metadata
    import src.infrastructure.persistence.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Session for read-only requests; nothing is committed"""
    async with AsyncSessionLocal() as session:
        yield session


async def get_db_transactional() -> AsyncIterator[AsyncSession]:
    """
    Session wrapped in one transaction per request.

    Commits when the endpoint returns and rolls back if it raises, so a
    workflow write and its validation failure never leave partial rows.
    Use for POST, PATCH and DELETE endpoints and for event ingestion.
    """
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session

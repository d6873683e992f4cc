"""Database engines and session factories.

Two stores are kept apart on purpose: the remote relational store shared by
every device, and the local progress database that only this device reads.
"""

from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from gbegne.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Declarative base for tables in the remote store."""


class LocalBase(DeclarativeBase):
    """Declarative base for tables in the local progress database."""


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


engine = create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

_ensure_sqlite_directory(settings.local_database_url)
local_engine = create_async_engine(settings.local_database_url, echo=settings.debug)
local_session_maker = async_sessionmaker(
    local_engine, class_=AsyncSession, expire_on_commit=False
)


async def init_db() -> None:
    """Create tables in both stores if they don't exist."""
    # Import models so they register on the metadata
    from gbegne.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with local_engine.begin() as conn:
        await conn.run_sync(LocalBase.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session on the remote store."""
    async with async_session_maker() as session:
        yield session

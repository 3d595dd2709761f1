"""Database initialization helpers."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import Settings, get_settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create a configured SQLAlchemy async engine."""

    settings = settings or get_settings()
    return create_async_engine(settings.database_url, echo=settings.echo_sql)


engine = create_engine()
SessionFactory = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield an :class:`AsyncSession` for FastAPI dependencies."""

    async with SessionFactory() as session:
        yield session


@asynccontextmanager
async def unit_of_work(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Run the enclosed writes as one transaction.

    Everything flushed through the yielded session is committed together when
    the block exits cleanly and rolled back when it raises.
    """

    async with (factory or SessionFactory)() as session:
        try:
            async with session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.error("Store transaction aborted: %s", exc)
            raise StorageError(str(exc)) from exc


__all__ = [
    "Base",
    "create_engine",
    "engine",
    "SessionFactory",
    "get_session",
    "unit_of_work",
]

"""PostgreSQL access for tax rules and calculation history.

PostgreSQL is optional.  Without it the rule repository keeps the
built-in tables, saving a calculation is skipped with a warning and the
history endpoint returns an empty list.  ``get_session`` yields ``None``
in that case and every caller handles it.
"""

from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chronyx_tax.config import settings

logger = logging.getLogger(__name__)

# Set by init_db(); _db_available stays False when PostgreSQL cannot be reached.
_engine = None
_async_session_factory = None
_db_available: bool = False


async def init_db() -> None:
    """Connect, create the rule and history tables, and seed empty rule tables."""
    global _engine, _async_session_factory, _db_available

    try:
        _engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
        _async_session_factory = async_sessionmaker(
            bind=_engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        async with _engine.begin() as conn:
            from chronyx_tax.models.db_models import Base
            await conn.run_sync(Base.metadata.create_all)

        _db_available = True
        logger.info("PostgreSQL connected; tax rule and history tables ready.")
    except Exception as exc:
        _db_available = False
        logger.warning(
            "PostgreSQL unavailable; tax rules stay built-in and calculations are not saved. Error: %s",
            exc,
        )
        return

    await _seed_rule_tables()


async def _seed_rule_tables() -> None:
    from chronyx_tax.services.rule_repository import seed_default_rules

    async with get_session() as session:
        await seed_default_rules(session)


async def close_db() -> None:
    """Dispose of the connection pool."""
    global _engine, _db_available
    if _engine is not None:
        await _engine.dispose()
        _db_available = False
        logger.info("PostgreSQL connection pool closed.")


def is_db_available() -> bool:
    return _db_available


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession | None, None]:
    """Yield a session committed on exit, or ``None`` without a database.

    Any exception inside the block rolls the session back and propagates.
    """
    if not _db_available or _async_session_factory is None:
        yield None
        return

    session = _async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()

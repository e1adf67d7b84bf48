"""SQLAlchemy 2.0 async database engine and session management.

Strict MySQL 8.0+ dialect. Forces utf8mb4 charset and pool health settings
to prevent connection staleness.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from reelforge.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Forces utf8mb4 charset to prevent Emoji crashes in MySQL.
    """

    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }


def build_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Create the async engine; MySQL pool tuning applies to the default URL only."""
    if url is not None:
        return create_async_engine(url, **kwargs)
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_recycle=3600,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        connect_args={"connect_timeout": 30},
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()
async_session_factory = build_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables defined by Base metadata (dev and tests; prod uses Alembic)."""
    import reelforge.models  # noqa: F401  registers models on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine connection pool.

    Called at application shutdown.
    """
    await engine.dispose()

"""Database plumbing: declarative Base, async engine, sessions.

Production runs on Postgres with Alembic-managed schemas; local development
and the test suite use SQLite through aiosqlite and let
:func:`create_tables` build the schema on startup.
"""


from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from thorbis.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for every ORM model in ``thorbis.domain``."""


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.sql_echo}
    if url.startswith("sqlite"):
        # Background listeners share the file with request sessions
        options["connect_args"] = {"check_same_thread": False, "timeout": 15}
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# expire_on_commit=False: routers read committed rows after commit
async_session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: commit on success, roll back on any error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    import thorbis.domain  # noqa: F401  registers the models on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

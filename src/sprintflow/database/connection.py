"""Engine and session factories for Sprintflow.

Two backends are supported:

- PostgreSQL through asyncpg, pooled per ``DatabaseConfig`` with
  ``pool_pre_ping`` so connections dropped by the server are replaced.
- SQLite through aiosqlite, for local runs and tests. Foreign keys are
  switched on for every connection; an in-memory database shares one
  connection so every session sees the same tables.

Example usage:
    >>> config = DatabaseConfig(url="sqlite+aiosqlite:///:memory:")
    >>> engine = get_engine(config)
    >>> async with get_session_factory(engine)() as session:
    ...     project = await get_project(session, project_id)
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from sprintflow.config import DatabaseConfig


def is_sqlite(url: str | URL) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def _is_memory_database(url: URL) -> bool:
    return url.database in (None, "", ":memory:")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _engine_options(config: DatabaseConfig) -> dict[str, Any]:
    url = make_url(config.url)
    options: dict[str, Any] = {"echo": config.echo}

    if not is_sqlite(url):
        options.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_pre_ping=True,
        )
    elif _is_memory_database(url):
        options.update(
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return options


def get_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async engine for ``config.url``.

    Args:
        config: Database settings (URL, pool sizing, SQL echo).

    Returns:
        AsyncEngine ready for ``get_session_factory``.
    """
    engine = create_async_engine(config.url, **_engine_options(config))
    if is_sqlite(config.url):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit (expire_on_commit=False)."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

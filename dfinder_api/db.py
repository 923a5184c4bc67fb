from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from dfinder_worker.db import create_engine, make_session_factory

from .config import settings

_session_factory: Optional[async_sessionmaker] = None


def get_session_factory() -> async_sessionmaker:
    """Create the SQLAlchemy engine lazily.

    This keeps import-time side effects minimal and allows tests (that override the DB
    dependency) to run without requiring the async DB driver to be installed.
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(create_engine(settings.dfinder_db_dsn))
    return _session_factory


async def get_db():
    async with get_session_factory()() as session:
        yield session

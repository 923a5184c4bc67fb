from __future__ import annotations

from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from .config import settings

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS df_hash (
        picture_id BIGINT NOT NULL PRIMARY KEY,
        hash BIGINT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS df_distance (
        src_picture_id BIGINT NOT NULL,
        dst_picture_id BIGINT NOT NULL,
        distance SMALLINT NOT NULL,
        hide BOOLEAN NOT NULL DEFAULT FALSE,
        PRIMARY KEY (src_picture_id, dst_picture_id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS df_distance_dst_picture_id_idx
        ON df_distance (dst_picture_id)
    """,
)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    return create_async_engine(
        database_url or settings.database_url,
        future=True,
        echo=False,
        pool_pre_ping=True,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, expire_on_commit=False)


def get_engine() -> AsyncEngine:
    """Create the process-wide engine lazily."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def create_schema(engine: AsyncEngine) -> None:
    """Create the fingerprint and distance tables if they do not exist."""
    async with engine.begin() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(text(statement))

"""
Fingerprint store (``df_hash``).

Hashes are unsigned 64-bit values; both PostgreSQL BIGINT and SQLite INTEGER
are signed, so values are stored as their two's-complement equivalent.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator, Iterable, List, Optional, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

_SIGN_BIT = 1 << 63
_UINT64 = 1 << 64

# picture ids live in BIGINT columns
MAX_PICTURE_ID = _SIGN_BIT - 1


def to_signed(value: int) -> int:
    return value - _UINT64 if value & _SIGN_BIT else value


def to_unsigned(value: int) -> int:
    return value + _UINT64 if value < 0 else value


class HashStore:
    """One fingerprint per picture id."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def put(self, picture_id: int, fingerprint: int) -> None:
        """Insert or replace the fingerprint of ``picture_id``."""
        stmt = text(
            """
            INSERT INTO df_hash (picture_id, hash)
            VALUES (:picture_id, :hash)
            ON CONFLICT (picture_id) DO UPDATE SET hash = excluded.hash
            """
        )
        try:
            async with self._session_factory() as session:
                await session.execute(
                    stmt, {"picture_id": picture_id, "hash": to_signed(fingerprint)}
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to store hash of picture {picture_id}: {e}") from e

    async def get(self, picture_id: int) -> Optional[int]:
        stmt = text("SELECT hash FROM df_hash WHERE picture_id = :picture_id")
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt, {"picture_id": picture_id})
                value = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to read hash of picture {picture_id}: {e}") from e

        return None if value is None else to_unsigned(value)

    async def all_except(self, picture_id: int) -> AsyncIterator[Tuple[int, int]]:
        """
        Stream ``(other_id, other_hash)`` for every stored picture but one.

        Rows come from a server-side cursor, so the corpus is never held in
        memory. Each call opens a fresh cursor.
        """
        stmt = text(
            """
            SELECT picture_id, hash
            FROM df_hash
            WHERE picture_id <> :picture_id
            """
        )
        try:
            async with self._session_factory() as session:
                result = await session.stream(stmt, {"picture_id": picture_id})
                async for row in result:
                    yield row.picture_id, to_unsigned(row.hash)
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to scan hashes: {e}") from e

    async def missing(self, picture_ids: Iterable[int]) -> List[int]:
        """Return the ids from ``picture_ids`` that have no stored fingerprint."""
        wanted = list(dict.fromkeys(picture_ids))
        if not wanted:
            return []

        stmt = text(
            "SELECT picture_id FROM df_hash WHERE picture_id IN :ids"
        ).bindparams(bindparam("ids", expanding=True))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt, {"ids": wanted})
                present = set(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to look up hashes: {e}") from e

        return [picture_id for picture_id in wanted if picture_id not in present]

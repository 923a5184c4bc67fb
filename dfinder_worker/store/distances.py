"""Near-duplicate edge store (``df_distance``)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..errors import PersistenceError, ValidationError


@dataclass(frozen=True)
class Edge:
    src_picture_id: int
    dst_picture_id: int
    distance: int

    def reversed(self) -> "Edge":
        return Edge(self.dst_picture_id, self.src_picture_id, self.distance)


class DistanceStore:
    """
    Directed edges keyed on ``(src_picture_id, dst_picture_id)``.

    Writes use insert-ignore semantics: the first distance stored for a key
    wins and concurrent writers never fail on a duplicate key.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def put_edge_if_absent(self, src: int, dst: int, distance: int) -> None:
        await self.put_edges_if_absent([Edge(src, dst, distance)])

    async def put_edges_if_absent(self, edges: Sequence[Edge]) -> None:
        if not edges:
            return

        for edge in edges:
            if edge.src_picture_id == edge.dst_picture_id:
                raise ValidationError(f"self-edge for picture {edge.src_picture_id}")

        stmt = text(
            """
            INSERT INTO df_distance (src_picture_id, dst_picture_id, distance)
            VALUES (:src_picture_id, :dst_picture_id, :distance)
            ON CONFLICT (src_picture_id, dst_picture_id) DO NOTHING
            """
        )
        params = [
            {
                "src_picture_id": edge.src_picture_id,
                "dst_picture_id": edge.dst_picture_id,
                "distance": edge.distance,
            }
            for edge in edges
        ]
        try:
            async with self._session_factory() as session:
                await session.execute(stmt, params)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to store {len(edges)} edges: {e}") from e

    async def edges_of(
        self,
        picture_id: int,
        limit: Optional[int] = None,
        include_hidden: bool = False,
    ) -> List[Edge]:
        """Edges leaving ``picture_id``, closest first."""
        where_clauses = ["src_picture_id = :picture_id"]
        params: dict = {"picture_id": picture_id}
        if not include_hidden:
            where_clauses.append("hide = FALSE")

        limit_sql = ""
        if limit is not None:
            limit_sql = "LIMIT :limit"
            params["limit"] = limit

        stmt = text(
            f"""
            SELECT src_picture_id, dst_picture_id, distance
            FROM df_distance
            WHERE {" AND ".join(where_clauses)}
            ORDER BY distance, dst_picture_id
            {limit_sql}
            """
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt, params)
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to read edges of picture {picture_id}: {e}") from e

        return [
            Edge(row["src_picture_id"], row["dst_picture_id"], row["distance"])
            for row in rows
        ]

    async def hide(self, picture_id: int, other_id: int) -> int:
        """Hide the pair in both directions. Returns the number of rows touched."""
        stmt = text(
            """
            UPDATE df_distance
            SET hide = TRUE
            WHERE (src_picture_id = :a AND dst_picture_id = :b)
               OR (src_picture_id = :b AND dst_picture_id = :a)
            """
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt, {"a": picture_id, "b": other_id})
                touched = result.rowcount
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"failed to hide pair {picture_id}/{other_id}: {e}"
            ) from e

        return touched

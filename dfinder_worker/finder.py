"""
Duplicate finder facade
=======================
The public entry point used by both the queue consumer and upload handlers:

    finder = DuplicateFinder(session_factory)
    result = await finder.index(picture_id, "https://images.example.org/1.jpg")
    similar = await finder.edges_of(picture_id)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from .db import get_session_factory
from .errors import ValidationError
from .images import ImageHasher, SourceFetcher
from .indexer import SimilarityIndexer
from .store import MAX_PICTURE_ID, DistanceStore, Edge, HashStore

logger = logging.getLogger(__name__)


@dataclass
class IndexResult:
    picture_id: int
    hash: int
    neighbours: int


def _check_id(picture_id: int) -> None:
    if not 0 < picture_id <= MAX_PICTURE_ID:
        raise ValidationError(f"invalid picture id {picture_id}")


class DuplicateFinder:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        fetcher: Optional[SourceFetcher] = None,
        hasher: Optional[ImageHasher] = None,
        threshold: Optional[int] = None,
    ):
        self.hashes = HashStore(session_factory)
        self.distances = DistanceStore(session_factory)
        self.indexer = SimilarityIndexer(self.hashes, self.distances, threshold=threshold)
        self.fetcher = fetcher or SourceFetcher()
        self.hasher = hasher or ImageHasher()

    @classmethod
    def from_settings(cls) -> "DuplicateFinder":
        return cls(get_session_factory())

    async def close(self) -> None:
        await self.fetcher.close()

    async def index(self, picture_id: int, location: str) -> IndexResult:
        """Fetch, hash, store and link one picture."""
        _check_id(picture_id)
        logger.info(f"Indexing picture {picture_id}")

        data = await self.fetcher.fetch(location)

        logger.info(f"Calculate hash for {location}")
        return await self.index_bytes(picture_id, data)

    async def index_bytes(self, picture_id: int, data: bytes) -> IndexResult:
        """Index bytes already in hand, e.g. straight from an upload."""
        _check_id(picture_id)

        # decoding is CPU bound
        fingerprint = await asyncio.to_thread(self.hasher.hash, data)

        await self.hashes.put(picture_id, fingerprint)
        neighbours = await self.indexer.reindex(picture_id, fingerprint)

        return IndexResult(picture_id=picture_id, hash=fingerprint, neighbours=neighbours)

    async def edges_of(self, picture_id: int, limit: Optional[int] = None) -> List[Edge]:
        return await self.distances.edges_of(picture_id, limit=limit)

    async def hide_similar(self, picture_id: int, other_id: int) -> int:
        """Hide a reviewed pair from ``edges_of`` in both directions."""
        _check_id(picture_id)
        _check_id(other_id)
        return await self.distances.hide(picture_id, other_id)

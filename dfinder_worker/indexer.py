"""
Similarity indexer
==================
Links a freshly hashed picture to every stored picture whose fingerprint is
within ``threshold`` bits of it.

The scan is linear in corpus size. Matches are buffered while the corpus is
streamed and written afterwards as one batch of directed edge pairs.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from .config import settings
from .errors import ValidationError
from .images.phash import hamming_distance
from .store import MAX_PICTURE_ID, DistanceStore, Edge, HashStore

logger = logging.getLogger(__name__)


class SimilarityIndexer:
    def __init__(
        self,
        hashes: HashStore,
        distances: DistanceStore,
        threshold: Optional[int] = None,
    ):
        self.hashes = hashes
        self.distances = distances
        self.threshold = settings.threshold if threshold is None else threshold

    async def find_neighbours(self, picture_id: int, fingerprint: int) -> List[Edge]:
        """Edges from ``picture_id`` to every stored picture within threshold."""
        neighbours: List[Edge] = []
        scanned = 0
        async for other_id, other_hash in self.hashes.all_except(picture_id):
            scanned += 1
            distance = hamming_distance(fingerprint, other_hash)
            if distance <= self.threshold:
                neighbours.append(Edge(picture_id, other_id, distance))

        logger.debug(
            f"Picture {picture_id}: scanned {scanned} fingerprints, "
            f"{len(neighbours)} within {self.threshold} bits"
        )
        return neighbours

    async def reindex(self, picture_id: int, fingerprint: int) -> int:
        """
        Write both directed edges for every near-duplicate of ``picture_id``.

        Existing edges are left untouched. Returns the number of neighbours.
        """
        if not 0 < picture_id <= MAX_PICTURE_ID:
            raise ValidationError(f"invalid picture id {picture_id}")

        neighbours = await self.find_neighbours(picture_id, fingerprint)
        if not neighbours:
            return 0

        edges: List[Edge] = []
        for edge in neighbours:
            edges.append(edge)
            edges.append(edge.reversed())

        await self.distances.put_edges_if_absent(edges)
        logger.info(f"Picture {picture_id} linked to {len(neighbours)} near-duplicates")
        return len(neighbours)

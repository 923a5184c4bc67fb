"""
Backfill un-indexed pictures
============================
Reads ``{"picture_id": ..., "url": ...}`` JSON lines and queues an index
request for every picture that has no stored fingerprint yet.

Usage:
    python -m dfinder_worker.jobs.backfill --input pictures.jsonl
    cat pictures.jsonl | python -m dfinder_worker.jobs.backfill --input -
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import IO, Iterable, Iterator, List, Optional

from ..config import settings
from ..db import dispose_engine, get_session_factory
from ..errors import ValidationError
from ..queue import IndexMessage, RedisWorkQueue, WorkQueue
from ..store import HashStore

logger = logging.getLogger("dfinder_worker")

BATCH_SIZE = 500


@dataclass
class BackfillStats:
    read: int = 0
    invalid: int = 0
    already_indexed: int = 0
    queued: int = 0


def iter_messages(
    lines: Iterable[str], stats: BackfillStats, require_url: bool = False
) -> Iterator[IndexMessage]:
    for line_no, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        stats.read += 1
        try:
            message = IndexMessage.parse(line)
        except ValidationError as e:
            stats.invalid += 1
            logger.warning(f"Skipping line {line_no}: {e}")
            continue
        if require_url and not message.url:
            stats.invalid += 1
            logger.warning(f"Skipping line {line_no}: no url and no source url template")
            continue
        yield message


async def _flush(batch: List[IndexMessage], hashes: HashStore, queue: WorkQueue, stats: BackfillStats) -> None:
    missing = set(await hashes.missing(m.picture_id for m in batch))
    for message in batch:
        if message.picture_id not in missing:
            stats.already_indexed += 1
            continue
        await queue.publish(message)
        missing.discard(message.picture_id)
        stats.queued += 1


async def backfill(
    source: IO[str],
    hashes: HashStore,
    queue: WorkQueue,
    require_url: Optional[bool] = None,
) -> BackfillStats:
    """
    Queue every message from ``source`` whose picture has no fingerprint.

    Lines without a url are only queued when the listener can resolve them,
    i.e. when a source url template is configured.
    """
    if require_url is None:
        require_url = not settings.source_url_template
    stats = BackfillStats()
    batch: List[IndexMessage] = []
    async with queue:
        for message in iter_messages(source, stats, require_url=require_url):
            batch.append(message)
            if len(batch) >= BATCH_SIZE:
                await _flush(batch, hashes, queue, stats)
                batch = []
        if batch:
            await _flush(batch, hashes, queue, stats)

    logger.info(
        f"Backfill complete: {stats.read} read, {stats.queued} queued, "
        f"{stats.already_indexed} already indexed, {stats.invalid} invalid"
    )
    return stats


async def _run(path: str, queue_name: Optional[str]) -> BackfillStats:
    hashes = HashStore(get_session_factory())
    try:
        if path == "-":
            return await backfill(sys.stdin, hashes, RedisWorkQueue(name=queue_name))
        with open(path, "r", encoding="utf-8") as f:
            return await backfill(f, hashes, RedisWorkQueue(name=queue_name))
    finally:
        await dispose_engine()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Queue pictures without a fingerprint")
    parser.add_argument("--input", required=True, help="JSON lines file, or - for stdin")
    parser.add_argument("--queue", default=None, help=f"Queue name (default: {settings.queue_name})")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    asyncio.run(_run(args.input, args.queue))
    return 0


if __name__ == "__main__":
    sys.exit(main())

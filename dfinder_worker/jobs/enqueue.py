"""
Publish a single index request.

Usage:
    python -m dfinder_worker.jobs.enqueue --picture-id 42 --url https://example.org/42.jpg
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from ..config import settings
from ..queue import IndexMessage, RedisWorkQueue

logger = logging.getLogger("dfinder_worker")


async def enqueue(picture_id: int, url: Optional[str], queue_name: Optional[str] = None) -> None:
    message = IndexMessage(picture_id=picture_id, url=url)
    async with RedisWorkQueue(name=queue_name) as queue:
        await queue.publish(message)
    logger.info(f"Queued picture {picture_id}")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Queue one picture for duplicate indexing")
    parser.add_argument("--picture-id", type=int, required=True)
    parser.add_argument(
        "--url",
        default=None,
        help="Source location of the image (optional with a source url template)",
    )
    parser.add_argument("--queue", default=None, help=f"Queue name (default: {settings.queue_name})")
    args = parser.parse_args(argv)
    if not args.url and not settings.source_url_template:
        parser.error("--url is required unless DFINDER_SOURCE_URL_TEMPLATE is set")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    asyncio.run(enqueue(args.picture_id, args.url, queue_name=args.queue))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Duplicate finder listener
=========================
Runs the queue consumer until SIGINT/SIGTERM.

Usage:
    python -m dfinder_worker.jobs.listen
    python -m dfinder_worker.jobs.listen --init-schema --queue duplicate_finder
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional

from ..config import settings
from ..consumer import QueueConsumer, SourceResolver, template_resolver
from ..db import create_schema, dispose_engine, get_engine, get_session_factory
from ..errors import TransportError
from ..finder import DuplicateFinder
from ..queue import RedisWorkQueue

logger = logging.getLogger("dfinder_worker")


def build_resolver(template: Optional[str] = None) -> Optional[SourceResolver]:
    template = template or settings.source_url_template
    if not template:
        logger.warning("No source url template configured; requests without a url will be dropped")
        return None
    return template_resolver(template)


async def listen(queue_name: Optional[str] = None, init_schema: bool = False) -> None:
    resolver = build_resolver()
    session_factory = get_session_factory()
    if init_schema:
        await create_schema(get_engine())

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop.set))

    finder = DuplicateFinder(session_factory)
    consumer = QueueConsumer(RedisWorkQueue(name=queue_name), finder, resolver=resolver)
    logger.info("DuplicateFinder listener started")
    try:
        await consumer.run(stop)
    finally:
        await finder.close()
        await dispose_engine()
    logger.info("DuplicateFinder listener stopped")


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Duplicate finder queue listener")
    parser.add_argument("--queue", default=None, help=f"Queue name (default: {settings.queue_name})")
    parser.add_argument(
        "--init-schema",
        action="store_true",
        help="Create the df_hash/df_distance tables before listening",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        asyncio.run(listen(queue_name=args.queue, init_schema=args.init_schema))
    except TransportError as e:
        logger.error(f"Queue transport failed: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

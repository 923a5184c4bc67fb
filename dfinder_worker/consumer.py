"""
Queue consumer
==============
Single-loop listener that drives the duplicate finder for each index request.

Delivery is at-most-once: a message is gone from the queue once received and
per-message failures (bad envelope, unreadable image, store outage) are
logged, counted and dropped. Only a lost queue connection ends the loop.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from .config import settings
from .errors import DuplicateFinderError, ValidationError
from .finder import DuplicateFinder
from .queue import IndexMessage, WorkQueue

logger = logging.getLogger(__name__)

# picture id -> source location, for messages that carry no url
SourceResolver = Callable[[int], Awaitable[Optional[str]]]


def template_resolver(template: str) -> SourceResolver:
    """
    Resolve picture ids through a URL template, e.g.
    ``https://cdn.example.org/pictures/{picture_id}.jpg``.
    """
    if "{picture_id}" not in template:
        raise ValueError(f"source url template `{template}` has no {{picture_id}} placeholder")

    async def resolve(picture_id: int) -> Optional[str]:
        return template.replace("{picture_id}", str(picture_id))

    return resolve


class ConsumerState(str, Enum):
    STOPPED = "stopped"
    LISTENING = "listening"
    DRAINING = "draining"


class QueueConsumer:
    def __init__(
        self,
        queue: WorkQueue,
        finder: DuplicateFinder,
        resolver: Optional[SourceResolver] = None,
        poll_timeout: Optional[float] = None,
    ):
        self.queue = queue
        self.finder = finder
        self.resolver = resolver
        self.poll_timeout = settings.poll_timeout if poll_timeout is None else poll_timeout
        self.state = ConsumerState.STOPPED

        self.processed = 0
        self.failed = 0
        self.dropped = 0

    async def run(self, stop: asyncio.Event) -> None:
        """
        Consume until ``stop`` is set.

        The message in flight when ``stop`` is set is processed to completion;
        the consumer is DRAINING from the stop signal until the queue
        connection is released. ``TransportError`` propagates after release.
        """
        watcher = asyncio.create_task(self._watch(stop))
        try:
            async with self.queue:
                if not stop.is_set():
                    self.state = ConsumerState.LISTENING
                logger.info(f"Listening on queue `{self.queue.name}`")

                while not stop.is_set():
                    body = await self.queue.receive(self.poll_timeout)
                    if body is None:
                        continue
                    await self.handle(body)

                logger.info("Consumer got quit signal")
                self.state = ConsumerState.DRAINING
        finally:
            watcher.cancel()
            self.state = ConsumerState.STOPPED
            logger.info(
                f"Consumer stopped: {self.processed} indexed, "
                f"{self.failed} failed, {self.dropped} dropped"
            )

    async def _watch(self, stop: asyncio.Event) -> None:
        await stop.wait()
        if self.state is ConsumerState.LISTENING:
            logger.info("Stop requested, draining")
            self.state = ConsumerState.DRAINING

    async def _resolve(self, message: IndexMessage) -> str:
        if message.url:
            return message.url
        if self.resolver is not None:
            location = await self.resolver(message.picture_id)
            if location:
                return location
        raise ValidationError(f"no source location for picture {message.picture_id}")

    async def handle(self, body: Union[bytes, str]) -> bool:
        """Process one raw message. Returns True when the picture was indexed."""
        try:
            message = IndexMessage.parse(body)
        except ValidationError as e:
            logger.warning(f"Dropping message {body!r}: {e}")
            self.dropped += 1
            return False

        location = message.url
        try:
            location = await self._resolve(message)
            await self.finder.index(message.picture_id, location)
        except ValidationError as e:
            logger.warning(f"Dropping picture {message.picture_id}: {e}")
            self.dropped += 1
            return False
        except DuplicateFinderError as e:
            logger.error(f"Error indexing picture `{message.picture_id}`/`{location}`: {e}")
            self.failed += 1
            return False
        except Exception as e:
            logger.error(
                f"Unexpected error indexing picture `{message.picture_id}`: {e}",
                exc_info=True,
            )
            self.failed += 1
            return False

        self.processed += 1
        return True

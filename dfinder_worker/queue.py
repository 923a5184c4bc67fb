"""
Work queue
==========
Typed index-request envelope and the Redis list transport.

Items are removed with BLPOP, i.e. acknowledged at receipt: a worker that
dies mid-processing loses that request.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Union

import redis.asyncio as aioredis
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from .config import settings
from .errors import TransportError, ValidationError
from .store import MAX_PICTURE_ID

logger = logging.getLogger(__name__)


class IndexMessage(BaseModel):
    """Request to (re)index one picture. Unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    picture_id: int = Field(..., gt=0, le=MAX_PICTURE_ID, description="Picture to index.")
    url: Optional[str] = Field(None, description="Source location of the original image.")

    @classmethod
    def parse(cls, body: Union[bytes, str]) -> "IndexMessage":
        try:
            return cls.model_validate_json(body)
        except PydanticValidationError as e:
            raise ValidationError(f"invalid index message: {e.errors(include_url=False)}") from e

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class WorkQueue(Protocol):
    name: str

    async def __aenter__(self) -> "WorkQueue": ...

    async def __aexit__(self, *exc_info) -> None: ...

    async def receive(self, timeout: float) -> Optional[bytes]: ...

    async def publish(self, message: IndexMessage) -> None: ...


class RedisWorkQueue:
    """A named Redis list used as a FIFO queue."""

    def __init__(self, url: Optional[str] = None, name: Optional[str] = None):
        self.url = url or settings.redis_url
        self.name = name or settings.queue_name
        self._redis: Optional[aioredis.Redis] = None

    async def __aenter__(self) -> "RedisWorkQueue":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def connect(self) -> None:
        self._redis = aioredis.from_url(self.url)
        try:
            await self._redis.ping()
        except RedisError as e:
            await self.close()
            raise TransportError(f"cannot connect to {self.url}: {e}") from e

    async def close(self) -> None:
        if self._redis is not None:
            logger.info("Disconnecting Redis")
            await self._redis.aclose()
            self._redis = None

    def _conn(self) -> aioredis.Redis:
        if self._redis is None:
            raise TransportError("queue is not connected")
        return self._redis

    async def receive(self, timeout: float) -> Optional[bytes]:
        """Pop the next message body, or ``None`` after ``timeout`` seconds."""
        try:
            item = await self._conn().blpop([self.name], timeout=timeout)
        except RedisError as e:
            raise TransportError(f"lost queue `{self.name}`: {e}") from e
        if item is None:
            return None
        _key, body = item
        return body

    async def publish(self, message: IndexMessage) -> None:
        try:
            await self._conn().rpush(self.name, message.to_json())
        except RedisError as e:
            raise TransportError(f"failed to publish to `{self.name}`: {e}") from e

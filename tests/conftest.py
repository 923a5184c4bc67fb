"""
Shared fixtures
===============
- session_factory: per-test SQLite database (aiosqlite) with the schema applied
- MemoryQueue: in-process stand-in for the Redis work queue
- FakeFetcher: location -> bytes map instead of HTTP
- image helpers: deterministic Pillow images in any codec
"""
from __future__ import annotations

import asyncio
import io
import random
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from PIL import Image, ImageDraw
from sqlalchemy import text

from dfinder_worker.db import create_engine, create_schema, make_session_factory
from dfinder_worker.errors import FetchError, TransportError
from dfinder_worker.queue import IndexMessage


def block_image(seed: int, size: int = 256, blocks: int = 8) -> Image.Image:
    """Grid of random grey blocks; different seeds give unrelated fingerprints."""
    rng = random.Random(seed)
    img = Image.new("RGB", (size, size))
    draw = ImageDraw.Draw(img)
    step = size // blocks
    for row in range(blocks):
        for col in range(blocks):
            shade = rng.randint(0, 255)
            draw.rectangle(
                [col * step, row * step, (col + 1) * step - 1, (row + 1) * step - 1],
                fill=(shade, shade, shade),
            )
    return img


def encode(img: Image.Image, fmt: str = "PNG", **params) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **params)
    return buf.getvalue()


def image_bytes(seed: int, fmt: str = "PNG", **params) -> bytes:
    return encode(block_image(seed), fmt, **params)


class FakeFetcher:
    def __init__(self, sources: Optional[Dict[str, bytes]] = None):
        self.sources = dict(sources or {})
        self.requested: List[str] = []
        self.closed = False

    async def fetch(self, location: str) -> bytes:
        self.requested.append(location)
        if location not in self.sources:
            raise FetchError(location, "HTTP 404")
        return self.sources[location]

    async def close(self) -> None:
        self.closed = True


class MemoryQueue:
    """asyncio.Queue behind the WorkQueue interface."""

    def __init__(self, name: str = "duplicate_finder", fail_when_empty: bool = False):
        self.name = name
        self.fail_when_empty = fail_when_empty
        self._items: asyncio.Queue = asyncio.Queue()
        self.published: List[IndexMessage] = []
        self.opened = False
        self.closed = False

    async def __aenter__(self) -> "MemoryQueue":
        self.opened = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True

    def put_raw(self, body) -> None:
        self._items.put_nowait(body)

    async def receive(self, timeout: float):
        if self.fail_when_empty and self._items.empty():
            raise TransportError("connection reset")
        try:
            return await asyncio.wait_for(self._items.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def publish(self, message: IndexMessage) -> None:
        self.published.append(message)
        self._items.put_nowait(message.to_json().encode())


async def drop_tables(session_factory) -> None:
    """Simulate a store outage by removing the schema under a live factory."""
    async with session_factory.kw["bind"].begin() as conn:
        await conn.execute(text("DROP TABLE df_distance"))
        await conn.execute(text("DROP TABLE df_hash"))


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'dfinder.db'}")
    await create_schema(engine)
    try:
        yield make_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def memory_queue():
    return MemoryQueue()

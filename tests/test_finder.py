from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import text

from dfinder_worker.errors import DecodeError, EmptySourceError, FetchError, ValidationError
from dfinder_worker.finder import DuplicateFinder
from dfinder_worker.store import MAX_PICTURE_ID, Edge

from .conftest import FakeFetcher, block_image, encode, image_bytes


@pytest_asyncio.fixture
async def fetcher():
    return FakeFetcher(
        {
            "https://img.example.org/a.png": image_bytes(21, "PNG"),
            "https://img.example.org/a.bmp": image_bytes(21, "BMP"),
            "https://img.example.org/b.png": image_bytes(22, "PNG"),
            "https://img.example.org/broken.jpg": b"<html>not found</html>",
            "https://img.example.org/empty.jpg": b"",
        }
    )


@pytest_asyncio.fixture
async def finder(session_factory, fetcher):
    finder = DuplicateFinder(session_factory, fetcher=fetcher, threshold=3)
    yield finder
    await finder.close()


async def _count(session_factory, table: str) -> int:
    async with session_factory() as session:
        result = await session.execute(text(f"SELECT count(*) FROM {table}"))
        return result.scalar_one()


async def test_index_links_same_picture_in_another_codec(finder):
    first = await finder.index(1, "https://img.example.org/a.png")
    second = await finder.index(2, "https://img.example.org/a.bmp")

    assert first.neighbours == 0
    assert second.neighbours == 1
    assert second.hash == first.hash
    assert await finder.edges_of(1) == [Edge(1, 2, 0)]
    assert await finder.edges_of(2) == [Edge(2, 1, 0)]


async def test_index_does_not_link_unrelated_pictures(finder):
    await finder.index(1, "https://img.example.org/a.png")
    result = await finder.index(2, "https://img.example.org/b.png")

    assert result.neighbours == 0
    assert await finder.edges_of(1) == []


async def test_non_image_writes_nothing(finder, session_factory):
    with pytest.raises(DecodeError):
        await finder.index(1, "https://img.example.org/broken.jpg")

    assert await finder.hashes.get(1) is None
    assert await _count(session_factory, "df_hash") == 0
    assert await _count(session_factory, "df_distance") == 0


async def test_empty_source(finder):
    with pytest.raises(EmptySourceError):
        await finder.index(1, "https://img.example.org/empty.jpg")


async def test_fetch_failure_propagates(finder, session_factory):
    with pytest.raises(FetchError):
        await finder.index(1, "https://img.example.org/missing.jpg")
    assert await _count(session_factory, "df_hash") == 0


async def test_invalid_id_is_rejected_before_fetch(finder, fetcher):
    with pytest.raises(ValidationError):
        await finder.index(0, "https://img.example.org/a.png")
    with pytest.raises(ValidationError):
        await finder.index(MAX_PICTURE_ID + 1, "https://img.example.org/a.png")
    with pytest.raises(ValidationError):
        await finder.index_bytes(MAX_PICTURE_ID + 1, image_bytes(1))
    assert fetcher.requested == []


async def test_reindex_with_new_image_replaces_hash(finder):
    first = await finder.index(1, "https://img.example.org/a.png")
    second = await finder.index(1, "https://img.example.org/b.png")

    assert second.hash != first.hash
    assert await finder.hashes.get(1) == second.hash


async def test_index_bytes(finder):
    data = encode(block_image(23), "JPEG", quality=95)
    first = await finder.index_bytes(7, data)
    second = await finder.index_bytes(8, data)

    assert first.hash == second.hash
    assert await finder.edges_of(8) == [Edge(8, 7, 0)]


async def test_hide_similar(finder):
    await finder.index(1, "https://img.example.org/a.png")
    await finder.index(2, "https://img.example.org/a.bmp")

    assert await finder.hide_similar(1, 2) == 2
    assert await finder.edges_of(1) == []
    assert await finder.edges_of(2) == []


async def test_close_closes_fetcher(session_factory, fetcher):
    finder = DuplicateFinder(session_factory, fetcher=fetcher)
    await finder.close()
    assert fetcher.closed

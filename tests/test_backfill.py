from __future__ import annotations

import io

from dfinder_worker.config import settings
from dfinder_worker.jobs.backfill import backfill
from dfinder_worker.store import HashStore


async def test_backfill_queues_only_unindexed_pictures(session_factory, memory_queue):
    hashes = HashStore(session_factory)
    await hashes.put(2, 0xABCD)

    source = io.StringIO(
        "\n".join(
            [
                '{"picture_id": 1, "url": "https://img.example.org/1.jpg"}',
                '{"picture_id": 2, "url": "https://img.example.org/2.jpg"}',
                "",
                "not json",
                '{"picture_id": 3, "url": "https://img.example.org/3.jpg"}',
                '{"picture_id": 3, "url": "https://img.example.org/3.jpg"}',
            ]
        )
    )

    stats = await backfill(source, hashes, memory_queue)

    assert [m.picture_id for m in memory_queue.published] == [1, 3]
    assert stats.read == 5
    assert stats.invalid == 1
    assert stats.queued == 2
    assert stats.already_indexed == 2
    assert memory_queue.closed


async def test_backfill_skips_lines_without_url_when_unresolvable(session_factory, memory_queue):
    hashes = HashStore(session_factory)
    source = io.StringIO(
        '{"picture_id": 1}\n{"picture_id": 2, "url": "https://img.example.org/2.jpg"}\n'
    )

    stats = await backfill(source, hashes, memory_queue, require_url=True)

    assert [m.picture_id for m in memory_queue.published] == [2]
    assert stats.invalid == 1
    assert stats.queued == 1


async def test_backfill_queues_lines_without_url_with_template(session_factory, memory_queue, monkeypatch):
    monkeypatch.setattr(settings, "source_url_template", "https://cdn.example.org/{picture_id}.jpg")
    hashes = HashStore(session_factory)

    stats = await backfill(io.StringIO('{"picture_id": 1}\n'), hashes, memory_queue)

    assert [m.picture_id for m in memory_queue.published] == [1]
    assert memory_queue.published[0].url is None
    assert stats.invalid == 0

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from mcp_error_watch.core.state import DeduplicationStore


@pytest.mark.asyncio
async def test_record_counts_and_timestamps(backend, clock) -> None:
    store = DeduplicationStore(backend)
    await store.load()
    first = clock.now

    outcomes = []
    for _ in range(4):
        outcomes.append(store.record("sig-1", clock.now, "svc-a", "KeyError"))
        clock.advance(minutes=5)

    assert [o.is_new for o in outcomes] == [True, False, False, False]
    assert [o.occurrence_count for o in outcomes] == [1, 2, 3, 4]

    entry = store.get("sig-1")
    assert entry is not None
    assert entry.first_seen == first
    assert entry.last_seen == first + timedelta(minutes=15)
    assert entry.occurrence_count == 4
    assert entry.service_name == "svc-a"
    assert entry.error_type == "KeyError"


@pytest.mark.asyncio
async def test_store_persists_across_instances(backend, clock) -> None:
    store = DeduplicationStore(backend)
    await store.load()
    store.record("sig-1", clock.now, "svc-a", "KeyError")
    await store.save()

    reloaded = DeduplicationStore(backend)
    await reloaded.load()
    assert reloaded.is_known("sig-1")
    assert not reloaded.is_known("sig-2")
    outcome = reloaded.record("sig-1", clock.advance(minutes=1), "svc-a", "KeyError")
    assert not outcome.is_new
    assert outcome.occurrence_count == 2


@pytest.mark.asyncio
async def test_corrupt_document_loads_as_empty(backend) -> None:
    await backend.write("seen_errors.json", "{not json")
    store = DeduplicationStore(backend)
    await store.load()
    assert len(store) == 0


@pytest.mark.asyncio
async def test_invalid_entries_are_dropped_individually(backend) -> None:
    doc = {
        "good": {
            "first_seen": "2025-12-30T08:00:00Z",
            "last_seen": "2025-12-30T08:05:00Z",
            "occurrence_count": 2,
            "service_name": "svc-a",
            "error_type": "KeyError",
        },
        "bad": {"occurrence_count": "many"},
    }
    await backend.write("seen_errors.json", json.dumps(doc))
    store = DeduplicationStore(backend)
    await store.load()
    assert store.is_known("good")
    assert not store.is_known("bad")


@pytest.mark.asyncio
async def test_evict_older_than(backend, clock) -> None:
    store = DeduplicationStore(backend)
    await store.load()
    store.record("old", clock.now, "svc-a", "KeyError")
    store.record("fresh", clock.advance(days=40), "svc-a", "ValueError")

    evicted = store.evict_older_than(clock.now - timedelta(days=30))
    assert evicted == ["old"]
    assert not store.is_known("old")
    assert store.is_known("fresh")

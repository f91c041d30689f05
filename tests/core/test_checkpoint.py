from __future__ import annotations

from datetime import timedelta

import pytest

from mcp_error_watch.core.checkpoint import CHECKPOINT_FILE, CheckpointStore, compute_window_start
from mcp_error_watch.core.state import PollCheckpoint

INTERVAL = timedelta(minutes=5)


def test_first_run_looks_back_one_interval(clock) -> None:
    assert compute_window_start(None, clock.now, interval=INTERVAL) == clock.now - INTERVAL


@pytest.mark.parametrize("since_last", [timedelta(minutes=5, seconds=2), timedelta(minutes=7)])
def test_late_cycle_reaches_back_to_checkpoint(clock, since_last) -> None:
    last = clock.now - since_last
    checkpoint = PollCheckpoint(last_poll_time=last, errors_found=0)
    start = compute_window_start(
        checkpoint, clock.now, interval=INTERVAL, buffer=timedelta(seconds=60)
    )
    assert start == last - timedelta(seconds=60)
    assert start <= last


def test_early_cycle_still_covers_one_interval(clock) -> None:
    checkpoint = PollCheckpoint(last_poll_time=clock.now - timedelta(minutes=1), errors_found=0)
    assert compute_window_start(checkpoint, clock.now, interval=INTERVAL) == clock.now - INTERVAL


def test_gap_backdates_to_checkpoint_minus_buffer(clock) -> None:
    last = clock.now - timedelta(hours=2)
    checkpoint = PollCheckpoint(last_poll_time=last, errors_found=3)
    start = compute_window_start(
        checkpoint, clock.now, interval=INTERVAL, buffer=timedelta(seconds=60)
    )
    assert start == last - timedelta(seconds=60)


def test_gap_is_capped_by_max_lookback(clock) -> None:
    checkpoint = PollCheckpoint(last_poll_time=clock.now - timedelta(days=30), errors_found=0)
    start = compute_window_start(
        checkpoint, clock.now, interval=INTERVAL, max_lookback=timedelta(hours=168)
    )
    assert start == clock.now - timedelta(hours=168)


def test_non_positive_interval_rejected(clock) -> None:
    with pytest.raises(ValueError):
        compute_window_start(None, clock.now, interval=timedelta(0))


@pytest.mark.asyncio
async def test_store_roundtrip_and_invalid_document(backend, clock) -> None:
    store = CheckpointStore(backend)
    assert await store.load() is None

    await store.save(PollCheckpoint(last_poll_time=clock.now, errors_found=2))
    loaded = await store.load()
    assert loaded.last_poll_time == clock.now
    assert loaded.errors_found == 2

    await backend.write(CHECKPOINT_FILE, '{"errors_found": 1}')
    assert await store.load() is None

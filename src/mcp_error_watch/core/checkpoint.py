"""Poll checkpoint and query window computation."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from pydantic import ValidationError

from .state.backend import StateBackend, load_json, save_json
from .state.models import PollCheckpoint

logger = logging.getLogger(__name__)

CHECKPOINT_FILE = "poll_checkpoint.json"

# A gap longer than interval * GAP_FACTOR means cycles were missed, e.g. the host was suspended.
GAP_FACTOR = 1.5


class CheckpointStore:
    def __init__(self, backend: StateBackend, name: str = CHECKPOINT_FILE) -> None:
        self._backend = backend
        self._name = name

    async def load(self) -> PollCheckpoint | None:
        data = await load_json(self._backend, self._name)
        if data is None:
            return None
        try:
            return PollCheckpoint.model_validate(data)
        except ValidationError as e:
            logger.warning("Invalid poll checkpoint, ignoring: %s", e.errors()[:1])
            return None

    async def save(self, checkpoint: PollCheckpoint) -> None:
        await save_json(self._backend, self._name, checkpoint.model_dump(mode="json"))


def compute_window_start(
    checkpoint: PollCheckpoint | None,
    now: datetime,
    *,
    interval: timedelta,
    buffer: timedelta = timedelta(seconds=60),
    max_lookback: timedelta | None = None,
) -> datetime:
    """Return the start of the next query window.

    The window reaches back one polling interval, or to the last checkpoint
    minus ``buffer`` when that is earlier, so consecutive windows overlap
    and no logs are skipped. Records seen twice are deduplicated.
    """
    if interval <= timedelta(0):
        raise ValueError("interval must be > 0")

    start = now - interval
    if checkpoint is not None:
        start = min(start, checkpoint.last_poll_time - buffer)
        gap = now - checkpoint.last_poll_time
        if gap > interval * GAP_FACTOR:
            logger.info(
                "Last poll was %s ago (interval %s), back-dating window to %s",
                gap,
                interval,
                start.isoformat(),
            )

    if max_lookback is not None and now - start > max_lookback:
        capped = now - max_lookback
        logger.warning(
            "Query window capped at %s; logs between %s and %s are not scanned",
            max_lookback,
            start.isoformat(),
            capped.isoformat(),
        )
        start = capped
    return start

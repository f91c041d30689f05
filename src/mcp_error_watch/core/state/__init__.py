"""Persisted registries: seen errors, status, pending queues."""

from __future__ import annotations

from .backend import (
    FileStateBackend,
    MemoryStateBackend,
    StateBackend,
    StateWriteError,
    load_json,
    save_json,
)
from .models import (
    PendingQueue,
    PendingQueueEntry,
    PollCheckpoint,
    SeenErrorEntry,
    StatusEntry,
    StatusTimestamps,
)
from .queue import PendingQueueWriter, queue_name
from .seen import DeduplicationStore, RecordOutcome
from .status import StatusTracker

__all__ = [
    "DeduplicationStore",
    "FileStateBackend",
    "MemoryStateBackend",
    "PendingQueue",
    "PendingQueueEntry",
    "PendingQueueWriter",
    "PollCheckpoint",
    "RecordOutcome",
    "SeenErrorEntry",
    "StateBackend",
    "StateWriteError",
    "StatusEntry",
    "StatusTimestamps",
    "StatusTracker",
    "load_json",
    "queue_name",
    "save_json",
]

"""Deduplication store: every distinct signature ever observed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from .backend import StateBackend, load_registry, save_registry
from .models import SeenErrorEntry

logger = logging.getLogger(__name__)

SEEN_FILE = "seen_errors.json"


@dataclass(frozen=True, slots=True)
class RecordOutcome:
    is_new: bool
    occurrence_count: int


class DeduplicationStore:
    """Signature registry with occurrence counts.

    ``record`` is the only mutator. Entries are loaded once per cycle and
    written back with ``save``.
    """

    def __init__(self, backend: StateBackend, name: str = SEEN_FILE) -> None:
        self._backend = backend
        self._name = name
        self._entries: dict[str, SeenErrorEntry] = {}

    async def load(self) -> None:
        self._entries = await load_registry(self._backend, self._name, SeenErrorEntry)

    async def save(self) -> None:
        await save_registry(self._backend, self._name, self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def is_known(self, signature: str) -> bool:
        return signature in self._entries

    def get(self, signature: str) -> SeenErrorEntry | None:
        return self._entries.get(signature)

    def record(
        self,
        signature: str,
        now: datetime,
        service_name: str,
        error_type: str,
    ) -> RecordOutcome:
        """Insert a new signature or count a re-occurrence of a known one."""
        entry = self._entries.get(signature)
        if entry is None:
            self._entries[signature] = SeenErrorEntry(
                first_seen=now,
                last_seen=now,
                occurrence_count=1,
                service_name=service_name,
                error_type=error_type,
            )
            return RecordOutcome(is_new=True, occurrence_count=1)

        entry.last_seen = now
        entry.occurrence_count += 1
        return RecordOutcome(is_new=False, occurrence_count=entry.occurrence_count)

    def evict_older_than(self, cutoff: datetime) -> list[str]:
        """Drop entries whose last occurrence is before ``cutoff``."""
        expired = [sig for sig, entry in self._entries.items() if entry.last_seen < cutoff]
        for sig in expired:
            del self._entries[sig]
        if expired:
            logger.info("Evicted %d seen signatures last seen before %s", len(expired), cutoff.isoformat())
        return expired

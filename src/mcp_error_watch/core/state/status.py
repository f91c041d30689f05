"""Status tracker: pending -> in_progress -> done per signature.

Claims are cooperative. An investigator advances a signature to in_progress
and other actors check the status before claiming it again. Saving re-reads
the registry and never writes a status behind the one on disk, so an update
made by another process while this tracker was loaded survives.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from ..models import ErrorStatus
from .backend import StateBackend, load_registry, save_registry
from .models import StatusEntry, StatusTimestamps

logger = logging.getLogger(__name__)

STATUS_FILE = "error_status.json"


class StatusTracker:
    def __init__(self, backend: StateBackend, name: str = STATUS_FILE) -> None:
        self._backend = backend
        self._name = name
        self._entries: dict[str, StatusEntry] = {}
        self._forgotten: set[str] = set()

    async def load(self) -> None:
        self._entries = await load_registry(self._backend, self._name, StatusEntry)
        self._forgotten = set()

    async def save(self) -> None:
        """Merge with the registry on disk, then write it back."""
        on_disk = await load_registry(self._backend, self._name, StatusEntry)
        for sig, theirs in on_disk.items():
            if sig in self._forgotten:
                continue
            ours = self._entries.get(sig)
            if ours is None or theirs.status.rank > ours.status.rank:
                if ours is not None:
                    logger.info(
                        "Status for %s advanced to %s by another actor",
                        sig[:12],
                        theirs.status.value,
                    )
                self._entries[sig] = theirs
        await save_registry(self._backend, self._name, self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, signature: str) -> StatusEntry | None:
        return self._entries.get(signature)

    def initialize(self, signature: str, service: str, error_type: str, now: datetime) -> bool:
        """Create a pending entry. Existing entries, in any state, are left alone."""
        if signature in self._entries:
            logger.debug("Status for %s already exists, not re-initializing", signature[:12])
            return False
        self._entries[signature] = StatusEntry(
            status=ErrorStatus.PENDING,
            service=service,
            error_type=error_type,
            timestamps=StatusTimestamps(created_at=now),
        )
        return True

    def mark_in_progress(self, signature: str, now: datetime) -> bool:
        """Claim a pending signature. Returns True when the status changed."""
        entry = self._entries.get(signature)
        if entry is None:
            logger.warning("Cannot claim unknown signature %s", signature[:12])
            return False
        if entry.status is not ErrorStatus.PENDING:
            logger.debug("Signature %s is %s, claim ignored", signature[:12], entry.status.value)
            return False
        entry.status = ErrorStatus.IN_PROGRESS
        entry.timestamps.started_at = now
        return True

    def mark_done(self, signature: str, now: datetime) -> bool:
        """Complete a signature. Returns True when the status changed."""
        entry = self._entries.get(signature)
        if entry is None:
            logger.warning("Cannot complete unknown signature %s", signature[:12])
            return False
        if entry.status is ErrorStatus.DONE:
            return False

        ts = entry.timestamps
        if ts.started_at is None:
            ts.started_at = now
        # completed_at never precedes started_at, even with a skewed clock.
        ts.completed_at = max(now, ts.started_at)
        entry.status = ErrorStatus.DONE
        return True

    def list_by_status(self, status: ErrorStatus) -> set[str]:
        return {sig for sig, entry in self._entries.items() if entry.status is status}

    def signatures_for_service(
        self, service: str, statuses: Iterable[ErrorStatus] | None = None
    ) -> list[str]:
        wanted = set(statuses) if statuses is not None else set(ErrorStatus)
        return [
            sig
            for sig, entry in self._entries.items()
            if entry.service == service and entry.status in wanted
        ]

    def counts(self) -> dict[str, int]:
        out = {status.value: 0 for status in ErrorStatus}
        for entry in self._entries.values():
            out[entry.status.value] += 1
        return out

    def forget_done(self, signatures: Iterable[str]) -> int:
        """Remove done entries among ``signatures`` (retention hook)."""
        removed = 0
        for sig in signatures:
            entry = self._entries.get(sig)
            if entry is not None and entry.status is ErrorStatus.DONE:
                del self._entries[sig]
                self._forgotten.add(sig)
                removed += 1
        return removed

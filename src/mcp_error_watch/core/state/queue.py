"""Per-service pending queues awaiting investigation.

One JSON document per service under ``pending/``. The investigator reads a
queue and deletes it as a unit once its investigation completes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime, timedelta

from pydantic import ValidationError

from .backend import StateBackend, load_json, save_json
from .models import PendingQueue, PendingQueueEntry

logger = logging.getLogger(__name__)

PENDING_DIR = "pending"
DEFAULT_STALE_AFTER = timedelta(minutes=10)

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]")


def queue_name(service: str) -> str:
    """Return the document name for a service queue."""
    safe = _UNSAFE_NAME_RE.sub("_", service).lstrip(".") or "_"
    return f"{PENDING_DIR}/{safe}.json"


class PendingQueueWriter:
    def __init__(self, backend: StateBackend) -> None:
        self._backend = backend

    async def read(self, service: str) -> PendingQueue | None:
        return await self._read_document(queue_name(service))

    async def _read_document(self, name: str) -> PendingQueue | None:
        data = await load_json(self._backend, name)
        if data is None:
            return None
        try:
            return PendingQueue.model_validate(data)
        except ValidationError as e:
            logger.warning("Invalid pending queue %s, ignoring: %s", name, e.errors()[:1])
            return None

    async def enqueue(
        self,
        service: str,
        entries: Sequence[PendingQueueEntry],
        generated_at: datetime,
    ) -> PendingQueue:
        """Write the service queue in one document.

        An uncleared queue from an earlier cycle is merged: its entries are
        kept and only signatures it does not already hold are appended.
        """
        queue = await self.read(service)
        if queue is None:
            queue = PendingQueue(service=service, generated_at=generated_at, errors=[])

        present = {e.signature for e in queue.errors}
        added = 0
        for entry in entries:
            if entry.signature in present:
                continue
            queue.errors.append(entry)
            present.add(entry.signature)
            added += 1

        queue.generated_at = generated_at
        await save_json(self._backend, queue_name(service), queue.model_dump(mode="json"))
        logger.info("Queued %d new error(s) for %s (%d total)", added, service, len(queue.errors))
        return queue

    async def clear(self, service: str) -> bool:
        removed = await self._backend.delete(queue_name(service))
        if removed:
            logger.info("Cleared pending queue for %s", service)
        return removed

    async def queues(self) -> dict[str, PendingQueue]:
        out: dict[str, PendingQueue] = {}
        for name in await self._backend.list(PENDING_DIR):
            if not name.endswith(".json"):
                continue
            queue = await self._read_document(name)
            if queue is not None:
                out[queue.service] = queue
        return out

    async def list(self) -> dict[str, int]:
        """Map service -> number of queued errors."""
        return {service: len(q.errors) for service, q in (await self.queues()).items()}

    async def stale_services(
        self,
        now: datetime,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> list[str]:
        """Services whose queue has not been written for longer than ``stale_after``."""
        stale: list[str] = []
        for name in await self._backend.list(PENDING_DIR):
            if not name.endswith(".json"):
                continue
            modified = await self._backend.modified_at(name)
            if modified is None or now - modified <= stale_after:
                continue
            queue = await self._read_document(name)
            service = queue.service if queue is not None else name.rsplit("/", 1)[-1][: -len(".json")]
            logger.warning(
                "Pending queue for %s is stale (last written %s)", service, modified.isoformat()
            )
            stale.append(service)
        return stale

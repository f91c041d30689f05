"""Investigation lifecycle for a whole service queue.

These are the mutations the investigation collaborator performs: claiming a
service when its investigation launches and completing it afterwards.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from .models import ErrorStatus
from .state.backend import StateBackend
from .state.queue import PendingQueueWriter
from .state.status import StatusTracker

logger = logging.getLogger(__name__)


async def claim_service(backend: StateBackend, service: str, now: datetime | None = None) -> list[str]:
    """Move the service's pending signatures to in_progress.

    Signatures another actor already claimed are left untouched. Returns the
    signatures claimed by this call.
    """
    now = now or datetime.now(UTC)
    tracker = StatusTracker(backend)
    await tracker.load()

    claimed = [
        sig
        for sig in tracker.signatures_for_service(service, [ErrorStatus.PENDING])
        if tracker.mark_in_progress(sig, now)
    ]
    if claimed:
        await tracker.save()
    logger.info("Claimed %d signature(s) for %s", len(claimed), service)
    return claimed


async def complete_service(
    backend: StateBackend,
    service: str,
    now: datetime | None = None,
) -> list[str]:
    """Mark the service's open signatures done and delete its pending queue."""
    now = now or datetime.now(UTC)
    tracker = StatusTracker(backend)
    await tracker.load()

    completed = [
        sig
        for sig in tracker.signatures_for_service(
            service, [ErrorStatus.PENDING, ErrorStatus.IN_PROGRESS]
        )
        if tracker.mark_done(sig, now)
    ]
    if completed:
        await tracker.save()
    await PendingQueueWriter(backend).clear(service)
    logger.info("Completed %d signature(s) for %s", len(completed), service)
    return completed

"""Poll cycle orchestration.

One cycle: fetch -> extract -> sign -> dedupe -> status -> queue writes ->
stale queue detection -> checkpoint. Records are processed sequentially in
the order received; all registry mutations happen in this single pass.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Set
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from .checkpoint import CheckpointStore, compute_window_start
from .config import MonitorConfig
from .extractor import extract
from .models import ErrorInfo, LogRecord
from .providers.base import LogProvider, ProviderError
from .signature import sign
from .state.backend import StateBackend
from .state.models import PendingQueueEntry, PollCheckpoint
from .state.queue import DEFAULT_STALE_AFTER, PendingQueueWriter
from .state.seen import DeduplicationStore
from .state.status import StatusTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CycleResult:
    """Outcome of one poll cycle."""

    window_start: datetime
    window_end: datetime
    records_seen: int = 0
    records_skipped: int = 0
    new_errors_by_service: dict[str, list[PendingQueueEntry]] = field(default_factory=dict)
    stale_services: list[str] = field(default_factory=list)
    fetch_error: str | None = None
    evicted: int = 0

    @property
    def total_new(self) -> int:
        return sum(len(v) for v in self.new_errors_by_service.values())

    @property
    def launch_services(self) -> list[str]:
        """Services needing an investigation launch: new first, then stale."""
        out = list(self.new_errors_by_service)
        out.extend(s for s in self.stale_services if s not in self.new_errors_by_service)
        return out


def _queue_entry(info: ErrorInfo, signature: str, now: datetime, count: int) -> PendingQueueEntry:
    return PendingQueueEntry(
        signature=signature,
        first_seen=now,
        occurrence_count=count,
        severity=info.severity,
        error_type=info.error_type,
        message=info.message,
        traceback=info.traceback,
        resource_labels={str(k): str(v) for k, v in info.record.resource_labels.items()},
        sample=dict(info.record.raw),
    )


class PollCycle:
    """Runs poll cycles against one state backend."""

    def __init__(
        self,
        backend: StateBackend,
        *,
        poll_interval: timedelta = timedelta(minutes=5),
        stale_after: timedelta = DEFAULT_STALE_AFTER,
        window_buffer: timedelta = timedelta(seconds=60),
        max_lookback: timedelta | None = timedelta(days=7),
        seen_retention: timedelta | None = None,
    ) -> None:
        self.backend = backend
        self.poll_interval = poll_interval
        self.stale_after = stale_after
        self.window_buffer = window_buffer
        self.max_lookback = max_lookback
        self.seen_retention = seen_retention

        self.seen = DeduplicationStore(backend)
        self.status = StatusTracker(backend)
        self.queues = PendingQueueWriter(backend)
        self.checkpoints = CheckpointStore(backend)

    @classmethod
    def from_config(cls, backend: StateBackend, cfg: MonitorConfig) -> PollCycle:
        return cls(
            backend,
            poll_interval=cfg.poll_interval,
            stale_after=cfg.stale_after,
            window_buffer=cfg.window_buffer,
            max_lookback=cfg.max_lookback,
            seen_retention=cfg.seen_retention,
        )

    def process_records(
        self,
        records: Iterable[LogRecord],
        known_services: Set[str],
        now: datetime,
        result: CycleResult,
    ) -> None:
        """Dedupe records into the loaded registries; collect new entries per service."""
        for record in records:
            result.records_seen += 1
            info = extract(record)
            if info.service_name not in known_services:
                result.records_skipped += 1
                continue

            signature = sign(
                info.severity,
                info.error_type,
                info.first_traceback_line,
                info.affected_function,
            )
            outcome = self.seen.record(signature, now, info.service_name, info.error_type)
            if not outcome.is_new:
                continue

            result.new_errors_by_service.setdefault(info.service_name, []).append(
                _queue_entry(info, signature, now, outcome.occurrence_count)
            )
            self.status.initialize(signature, info.service_name, info.error_type, now)
            logger.info(
                "New %s in %s: %s (%s)",
                info.error_type,
                info.service_name,
                signature[:12],
                info.first_traceback_line[:80],
            )

    async def run_cycle(
        self,
        records: Iterable[LogRecord],
        *,
        window_start: datetime,
        window_end: datetime,
        known_services: Set[str],
        now: datetime,
        fetch_error: str | None = None,
    ) -> CycleResult:
        """Process already-fetched records and do the cycle bookkeeping.

        Registry writes raise StateWriteError. When ``fetch_error`` is set
        the checkpoint is left untouched so the window is queried again.
        """
        result = CycleResult(window_start=window_start, window_end=window_end, fetch_error=fetch_error)

        await self.seen.load()
        await self.status.load()

        self.process_records(records, known_services, now, result)

        if self.seen_retention is not None:
            expired = self.seen.evict_older_than(now - self.seen_retention)
            result.evicted = len(expired)
            self.status.forget_done(expired)

        # Write order: queues, then status, then seen.
        for service, entries in result.new_errors_by_service.items():
            await self.queues.enqueue(service, entries, generated_at=now)
        await self.status.save()
        await self.seen.save()

        result.stale_services = [
            s
            for s in await self.queues.stale_services(now, self.stale_after)
            if s in known_services
        ]

        if fetch_error is None:
            await self.checkpoints.save(
                PollCheckpoint(last_poll_time=window_end, errors_found=result.total_new)
            )
        return result

    async def poll(
        self,
        provider: LogProvider,
        known_services: Set[str],
        now: datetime | None = None,
    ) -> CycleResult:
        """Compute the window, fetch from the provider and run one cycle.

        A provider failure is logged and treated as zero records; stale queue
        detection still runs.
        """
        now = now or datetime.now(UTC)
        checkpoint = await self.checkpoints.load()
        window_start = compute_window_start(
            checkpoint,
            now,
            interval=self.poll_interval,
            buffer=self.window_buffer,
            max_lookback=self.max_lookback,
        )

        records: list[LogRecord] = []
        fetch_error: str | None = None
        try:
            records = await provider.fetch(window_start, now)
        except ProviderError as e:
            fetch_error = str(e)
            logger.warning("Log fetch failed, continuing with zero records: %s", e)
        else:
            logger.info(
                "Fetched %d record(s) for %s .. %s",
                len(records),
                window_start.isoformat(),
                now.isoformat(),
            )

        return await self.run_cycle(
            records,
            window_start=window_start,
            window_end=now,
            known_services=known_services,
            now=now,
            fetch_error=fetch_error,
        )

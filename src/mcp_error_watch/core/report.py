"""Human-readable cycle summaries."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from typing import Any

from .orchestrator import CycleResult
from .state.models import PendingQueueEntry


def _type_summary(entries: Sequence[PendingQueueEntry]) -> str:
    counts = Counter(e.error_type for e in entries)
    return ", ".join(f"{t} x{n}" if n > 1 else t for t, n in counts.most_common())


def format_cycle_summary(result: CycleResult) -> str:
    lines = [
        f"Window: {result.window_start.isoformat()} .. {result.window_end.isoformat()}",
        f"Records: {result.records_seen} ({result.records_skipped} from unregistered services)",
    ]
    if result.fetch_error:
        lines.append(f"Fetch failed: {result.fetch_error}")

    lines.append(f"New distinct errors: {result.total_new}")
    for service, entries in result.new_errors_by_service.items():
        lines.append(f"  {service}: {len(entries)} ({_type_summary(entries)})")

    if result.stale_services:
        lines.append(f"Stale queues: {', '.join(result.stale_services)}")
    if result.evicted:
        lines.append(f"Evicted signatures: {result.evicted}")

    launch = result.launch_services
    lines.append(f"Needs investigation: {', '.join(launch) if launch else 'none'}")
    return "\n".join(lines)


def cycle_result_to_dict(result: CycleResult) -> dict[str, Any]:
    """Convert a CycleResult into a JSON-serializable dict."""
    return {
        "window_start": result.window_start.isoformat(),
        "window_end": result.window_end.isoformat(),
        "records_seen": result.records_seen,
        "records_skipped": result.records_skipped,
        "total_new": result.total_new,
        "new_errors_by_service": {
            service: [
                {
                    "signature": e.signature,
                    "error_type": e.error_type,
                    "severity": e.severity,
                    "message": e.message,
                }
                for e in entries
            ]
            for service, entries in result.new_errors_by_service.items()
        },
        "stale_services": list(result.stale_services),
        "launch_services": result.launch_services,
        "fetch_error": result.fetch_error,
        "evicted": result.evicted,
    }

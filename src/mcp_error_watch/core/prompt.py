"""Investigation prompt handed to the IDE chat for one service."""

from __future__ import annotations

from .state.models import PendingQueue, PendingQueueEntry

_MAX_TRACEBACK_CHARS = 1500


def _fmt_entry(index: int, entry: PendingQueueEntry) -> str:
    tb = entry.traceback.strip()
    if len(tb) > _MAX_TRACEBACK_CHARS:
        tb = tb[:_MAX_TRACEBACK_CHARS] + "\n... (truncated)"
    lines = [
        f"{index}. [{entry.severity}] {entry.error_type} (signature {entry.signature[:12]}, "
        f"seen {entry.occurrence_count}x, first {entry.first_seen.isoformat()})",
        f"   Message: {entry.message.strip() or '-'}",
    ]
    if tb and tb != entry.message.strip():
        lines.append("   Traceback:")
        lines.extend(f"     {line}" for line in tb.splitlines())
    return "\n".join(lines)


def build_investigation_prompt(
    queue: PendingQueue,
    *,
    queue_path: str | None = None,
    workflow: str | None = None,
) -> str:
    """Build the investigation prompt for a service's pending queue."""
    header = [
        f"Investigate {len(queue.errors)} new production error(s) in service '{queue.service}'.",
    ]
    if workflow:
        header.append(f"Follow the '{workflow}' workflow.")
    if queue_path:
        header.append(f"Full details, including raw log records, are in {queue_path}.")

    body = "\n".join(_fmt_entry(i, e) for i, e in enumerate(queue.errors, start=1))
    return (
        " ".join(header)
        + "\n\n"
        + "Rules:\n"
        "- Use only evidence from the errors below and the service source code.\n"
        "- For each error, identify the root cause and the affected code path.\n"
        "- If the cause is unclear, say so instead of guessing.\n"
        "- When finished, mark the service complete so its queue is cleared.\n\n"
        f"ERRORS:\n{body}\n"
    )

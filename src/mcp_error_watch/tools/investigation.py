"""MCP tool implementations.

Keep this layer thin: resolve configuration and state, translate inputs into
core calls, and return JSON-serializable data structures.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from mcp_error_watch.core.checkpoint import CheckpointStore
from mcp_error_watch.core.config import load_config, resolve_state_dir
from mcp_error_watch.core.lifecycle import claim_service, complete_service
from mcp_error_watch.core.lock import LOCK_FILE, CycleLock
from mcp_error_watch.core.models import ErrorStatus
from mcp_error_watch.core.report import cycle_result_to_dict
from mcp_error_watch.core.runner import poll_once
from mcp_error_watch.core.state import FileStateBackend, PendingQueueWriter, StatusTracker


def _backend(state_dir: str | None) -> FileStateBackend:
    return FileStateBackend(resolve_state_dir(state_dir))


def _require_service(service: str) -> str:
    name = service.strip()
    if not name:
        raise ValueError("service must be a non-empty string")
    return name


async def poll_errors_impl(
    *,
    config_path: str | None = None,
    state_dir: str | None = None,
    launch: bool = False,
) -> dict[str, Any]:
    """Run one poll cycle and return its result."""
    cfg = load_config(config_path)
    report = await poll_once(cfg, resolve_state_dir(state_dir), launch=launch)
    out = cycle_result_to_dict(report.result)
    if launch:
        out["launches"] = [
            {"service": o.service, "launched": o.launched, "claimed": o.claimed, "detail": o.detail}
            for o in report.launches
        ]
    return out


async def list_pending_impl(*, state_dir: str | None = None) -> dict[str, Any]:
    counts = await PendingQueueWriter(_backend(state_dir)).list()
    return {"count": sum(counts.values()), "services": counts}


async def get_pending_queue_impl(service: str, *, state_dir: str | None = None) -> dict[str, Any]:
    queue = await PendingQueueWriter(_backend(state_dir)).read(_require_service(service))
    if queue is None:
        return {"service": service, "generated_at": None, "errors": []}
    return queue.model_dump(mode="json")


async def claim_service_impl(service: str, *, state_dir: str | None = None) -> dict[str, Any]:
    """Claim a service's pending errors. Raises LockHeldError while a poll cycle runs."""
    name = _require_service(service)
    with CycleLock(resolve_state_dir(state_dir) / LOCK_FILE):
        claimed = await claim_service(_backend(state_dir), name)
    return {"service": service, "claimed": claimed}


async def complete_service_impl(service: str, *, state_dir: str | None = None) -> dict[str, Any]:
    name = _require_service(service)
    with CycleLock(resolve_state_dir(state_dir) / LOCK_FILE):
        completed = await complete_service(_backend(state_dir), name)
    return {"service": service, "completed": completed}


async def clear_queue_impl(service: str, *, state_dir: str | None = None) -> dict[str, Any]:
    name = _require_service(service)
    with CycleLock(resolve_state_dir(state_dir) / LOCK_FILE):
        removed = await PendingQueueWriter(_backend(state_dir)).clear(name)
    return {"service": service, "cleared": removed}


async def error_status_impl(
    *,
    state_dir: str | None = None,
    status: str | None = None,
) -> dict[str, Any]:
    """Status counts, plus signatures for one status when requested."""
    backend = _backend(state_dir)
    tracker = StatusTracker(backend)
    await tracker.load()
    checkpoint = await CheckpointStore(backend).load()

    out: dict[str, Any] = {
        "counts": tracker.counts(),
        "pending_queues": await PendingQueueWriter(backend).list(),
        "checkpoint": checkpoint.model_dump(mode="json") if checkpoint else None,
    }
    if status is not None:
        try:
            wanted = ErrorStatus(status.strip().lower())
        except ValueError as e:
            valid = ", ".join(s.value for s in ErrorStatus)
            raise ValueError(f"Unknown status '{status}'. Valid values: {valid}.") from e
        out["signatures"] = sorted(tracker.list_by_status(wanted))
    return out


def state_dir_path(state_dir: str | None = None) -> Path:
    return resolve_state_dir(state_dir)

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from mcp_error_watch.core.lock import LOCK_FILE, LockHeldError
from mcp_error_watch.tools.investigation import (
    claim_service_impl,
    clear_queue_impl,
    complete_service_impl,
    error_status_impl,
    get_pending_queue_impl,
    list_pending_impl,
    poll_errors_impl,
)


def _recent(seconds: int = 60) -> str:
    return (datetime.now(UTC) - timedelta(seconds=seconds)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _export_entries() -> list[dict]:
    def entry(service: str, text: str) -> dict:
        return {
            "severity": "ERROR",
            "timestamp": _recent(),
            "textPayload": text,
            "resource": {"labels": {"service_name": service, "revision_name": f"{service}-001"}},
        }

    return [
        entry("svc-a", "KeyError: 'user_id'\n  File app.py, line 55 in handler"),
        entry("svc-a", "KeyError: 'user_id'\n  File app.py, line 71 in handler"),
        entry("svc-b", "ValueError: bad amount"),
        entry("other", "RuntimeError: not ours"),
    ]


@pytest.mark.asyncio
async def test_poll_then_inspect_and_complete(tmp_path: Path, write_config, write_export) -> None:
    config = write_config()
    write_export(_export_entries())
    state = str(tmp_path / "state")

    out = await poll_errors_impl(config_path=str(config), state_dir=state)
    assert out["total_new"] == 2
    assert out["records_skipped"] == 1
    assert sorted(out["new_errors_by_service"]) == ["svc-a", "svc-b"]
    assert out["fetch_error"] is None
    assert "launches" not in out

    pending = await list_pending_impl(state_dir=state)
    assert pending == {"count": 2, "services": {"svc-a": 1, "svc-b": 1}}

    queue = await get_pending_queue_impl("svc-a", state_dir=state)
    assert queue["service"] == "svc-a"
    assert len(queue["errors"]) == 1
    assert queue["errors"][0]["error_type"] == "KeyError"
    assert queue["errors"][0]["resource_labels"]["revision_name"] == "svc-a-001"

    claimed = await claim_service_impl("svc-a", state_dir=state)
    assert len(claimed["claimed"]) == 1

    status = await error_status_impl(state_dir=state, status="in_progress")
    assert status["counts"] == {"pending": 1, "in_progress": 1, "done": 0}
    assert status["signatures"] == claimed["claimed"]
    assert status["checkpoint"]["errors_found"] == 2

    done = await complete_service_impl("svc-a", state_dir=state)
    assert done["completed"] == claimed["claimed"]
    assert await list_pending_impl(state_dir=state) == {"count": 1, "services": {"svc-b": 1}}

    again = await poll_errors_impl(config_path=str(config), state_dir=state)
    assert again["total_new"] == 0


@pytest.mark.asyncio
async def test_poll_with_launch_without_command(tmp_path: Path, write_config, write_export) -> None:
    config = write_config()
    write_export(_export_entries())
    out = await poll_errors_impl(
        config_path=str(config), state_dir=str(tmp_path / "state"), launch=True
    )
    assert out["launch_services"] == ["svc-a", "svc-b"]
    assert out["launches"] == []


@pytest.mark.asyncio
async def test_missing_queue_and_bad_inputs(tmp_path: Path) -> None:
    state = str(tmp_path / "state")
    assert await get_pending_queue_impl("svc-a", state_dir=state) == {
        "service": "svc-a",
        "generated_at": None,
        "errors": [],
    }
    with pytest.raises(ValueError):
        await get_pending_queue_impl("  ", state_dir=state)
    with pytest.raises(ValueError, match="Unknown status"):
        await error_status_impl(state_dir=state, status="resolved")

    empty = await error_status_impl(state_dir=state)
    assert empty == {
        "counts": {"pending": 0, "in_progress": 0, "done": 0},
        "pending_queues": {},
        "checkpoint": None,
    }


@pytest.mark.asyncio
async def test_lifecycle_tools_respect_cycle_lock(tmp_path: Path, write_config, write_export) -> None:
    write_export(_export_entries())
    state = tmp_path / "state"
    await poll_errors_impl(config_path=str(write_config()), state_dir=str(state))
    (state / LOCK_FILE).write_text(str(os.getpid()), encoding="utf-8")

    with pytest.raises(LockHeldError):
        await complete_service_impl("svc-a", state_dir=str(state))
    with pytest.raises(LockHeldError):
        await claim_service_impl("svc-a", state_dir=str(state))
    assert (await list_pending_impl(state_dir=str(state)))["services"] == {"svc-a": 1, "svc-b": 1}

    (state / LOCK_FILE).unlink()
    assert await clear_queue_impl("svc-b", state_dir=str(state)) == {"service": "svc-b", "cleared": True}
    assert not (state / LOCK_FILE).exists()

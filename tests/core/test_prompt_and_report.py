from __future__ import annotations

from datetime import timedelta

from mcp_error_watch.core.orchestrator import CycleResult
from mcp_error_watch.core.prompt import build_investigation_prompt
from mcp_error_watch.core.report import cycle_result_to_dict, format_cycle_summary
from mcp_error_watch.core.state import PendingQueue, PendingQueueEntry


def _entry(clock, sig: str, error_type: str, traceback: str = "") -> PendingQueueEntry:
    return PendingQueueEntry(
        signature=sig,
        first_seen=clock.now,
        occurrence_count=1,
        severity="ERROR",
        error_type=error_type,
        message=f"{error_type}: boom",
        traceback=traceback,
    )


def test_prompt_lists_every_error(clock) -> None:
    queue = PendingQueue(
        service="svc-a",
        generated_at=clock.now,
        errors=[
            _entry(clock, "a" * 64, "KeyError", "File app.py, line 3\nKeyError: boom"),
            _entry(clock, "b" * 64, "ValueError"),
        ],
    )
    prompt = build_investigation_prompt(
        queue, queue_path="/state/pending/svc-a.json", workflow="bugfix"
    )
    assert prompt.startswith("Investigate 2 new production error(s) in service 'svc-a'.")
    assert "Follow the 'bugfix' workflow." in prompt
    assert "/state/pending/svc-a.json" in prompt
    assert "1. [ERROR] KeyError (signature aaaaaaaaaaaa" in prompt
    assert "2. [ERROR] ValueError" in prompt
    assert "     File app.py, line 3" in prompt


def test_prompt_truncates_long_tracebacks(clock) -> None:
    queue = PendingQueue(
        service="svc-a",
        generated_at=clock.now,
        errors=[_entry(clock, "c" * 64, "KeyError", "x" * 5000)],
    )
    prompt = build_investigation_prompt(queue)
    assert "... (truncated)" in prompt
    assert "x" * 5000 not in prompt


def test_cycle_summary_and_dict(clock) -> None:
    result = CycleResult(
        window_start=clock.now - timedelta(minutes=5),
        window_end=clock.now,
        records_seen=4,
        records_skipped=1,
        new_errors_by_service={
            "svc-a": [_entry(clock, "a1", "KeyError"), _entry(clock, "a2", "KeyError")]
        },
        stale_services=["svc-b"],
        fetch_error=None,
    )
    summary = format_cycle_summary(result)
    assert "Records: 4 (1 from unregistered services)" in summary
    assert "New distinct errors: 2" in summary
    assert "  svc-a: 2 (KeyError x2)" in summary
    assert "Stale queues: svc-b" in summary
    assert summary.endswith("Needs investigation: svc-a, svc-b")

    data = cycle_result_to_dict(result)
    assert data["total_new"] == 2
    assert data["launch_services"] == ["svc-a", "svc-b"]
    assert [e["signature"] for e in data["new_errors_by_service"]["svc-a"]] == ["a1", "a2"]
    assert data["fetch_error"] is None


def test_summary_reports_fetch_failure(clock) -> None:
    result = CycleResult(window_start=clock.now, window_end=clock.now, fetch_error="quota")
    summary = format_cycle_summary(result)
    assert "Fetch failed: quota" in summary
    assert summary.endswith("Needs investigation: none")

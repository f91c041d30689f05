from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from mcp_error_watch.core.models import FlatText, LogRecord, StructuredPayload
from mcp_error_watch.core.state import MemoryStateBackend

T0 = datetime(2025, 12, 30, 8, 0, 0, tzinfo=UTC)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(T0)


@pytest.fixture
def backend(clock: Clock) -> MemoryStateBackend:
    return MemoryStateBackend(clock=clock)


@pytest.fixture
def make_record() -> Callable[..., LogRecord]:
    def _make(
        *,
        service: str = "svc-a",
        severity: str = "ERROR",
        message: str | None = None,
        traceback: str | None = None,
        text: str | None = None,
        timestamp: str = "2025-12-30T08:00:00Z",
        revision: str = "svc-a-00001",
    ) -> LogRecord:
        if text is not None:
            payload = FlatText(text)
        else:
            fields: dict[str, Any] = {}
            if message is not None:
                fields["message"] = message
            if traceback is not None:
                fields["traceback"] = traceback
            payload = StructuredPayload(fields)
        labels = {"service_name": service, "revision_name": revision}
        raw = {"severity": severity, "timestamp": timestamp, "resource": {"labels": labels}}
        return LogRecord(
            severity=severity,
            timestamp=timestamp,
            payload=payload,
            resource_labels=labels,
            raw=raw,
        )

    return _make


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    def _write(**overrides: Any) -> Path:
        cfg: dict[str, Any] = {
            "services": {
                "svc-a": {"workspace": str(tmp_path / "svc-a")},
                "svc-b": {"workspace": str(tmp_path / "svc-b"), "workflow": "bugfix"},
            },
            "provider": {"kind": "json_file", "path": str(tmp_path / "export.json")},
        }
        cfg.update(overrides)
        path = tmp_path / "error_watch.json"
        path.write_text(json.dumps(cfg), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_export(tmp_path: Path) -> Callable[[list[dict[str, Any]]], Path]:
    def _write(entries: list[dict[str, Any]]) -> Path:
        path = tmp_path / "export.json"
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path

    return _write

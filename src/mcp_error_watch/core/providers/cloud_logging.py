"""Adapter from Cloud Logging style JSON entries to LogRecord.

Payload variants are resolved here once: ``textPayload`` becomes FlatText,
``jsonPayload`` becomes StructuredPayload. Flat exports with top-level
``message``/``service`` keys are accepted too.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from ..models import FlatText, LogRecord, Payload, StructuredPayload
from .base import ProviderError

TIME_KEYS = ("timestamp", "receiveTimestamp", "time", "@timestamp")
SEVERITY_KEYS = ("severity", "level", "log_level")


def parse_iso_timestamp(value: str) -> datetime | None:
    """Parse an ISO8601 timestamp string into a UTC datetime."""
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def _first_str(obj: Mapping[str, Any], keys: tuple[str, ...]) -> str:
    for k in keys:
        val = obj.get(k)
        if isinstance(val, str) and val:
            return val
    return ""


def _payload(entry: Mapping[str, Any]) -> Payload:
    text = entry.get("textPayload")
    if isinstance(text, str):
        return FlatText(text)
    structured = entry.get("jsonPayload")
    if isinstance(structured, Mapping):
        return StructuredPayload(dict(structured))
    message = entry.get("message")
    if isinstance(message, str):
        return FlatText(message)
    return None


def _labels(entry: Mapping[str, Any]) -> dict[str, str]:
    resource = entry.get("resource")
    labels: dict[str, str] = {}
    if isinstance(resource, Mapping) and isinstance(resource.get("labels"), Mapping):
        labels = {str(k): str(v) for k, v in resource["labels"].items() if v is not None}
    elif isinstance(entry.get("service"), str):
        labels = {"service_name": entry["service"]}
        if isinstance(entry.get("revision"), str):
            labels["revision_name"] = entry["revision"]
    return labels


def record_from_entry(entry: Mapping[str, Any]) -> LogRecord:
    """Convert one provider JSON entry to a LogRecord."""
    return LogRecord(
        severity=_first_str(entry, SEVERITY_KEYS).upper() or "DEFAULT",
        timestamp=_first_str(entry, TIME_KEYS),
        payload=_payload(entry),
        resource_labels=_labels(entry),
        raw=dict(entry),
    )


def parse_entries(text: str) -> list[dict[str, Any]]:
    """Decode a JSON array or JSON-lines document of entries."""
    s = text.strip()
    if not s:
        return []
    if s.startswith("["):
        try:
            data = json.loads(s)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Malformed provider output: {e}") from e
        if not isinstance(data, list):
            raise ProviderError("Provider output is not a JSON array")
        return [d for d in data if isinstance(d, dict)]

    out: list[dict[str, Any]] = []
    for line_no, line in enumerate(s.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Malformed provider output at line {line_no}: {e}") from e
        if isinstance(obj, dict):
            out.append(obj)
    return out


def records_from_json(text: str) -> list[LogRecord]:
    return [record_from_entry(e) for e in parse_entries(text)]


def in_window(record: LogRecord, since: datetime, until: datetime) -> bool:
    """True when the record falls in [since, until); undated records are kept."""
    ts = parse_iso_timestamp(record.timestamp) if record.timestamp else None
    if ts is None:
        return True
    return since <= ts < until

"""Turn provider-neutral log records into ErrorInfo.

Classification is table driven: each table is an ordered list of
(pattern, capture group) pairs evaluated first-match-wins.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .models import ErrorInfo, FlatText, LogRecord, StructuredPayload

UNKNOWN_ERROR_TYPE = "Unknown"

TRACEBACK_KEYS: Sequence[str] = ("traceback", "stack_trace", "exception")
SERVICE_LABEL = "service_name"
REVISION_LABEL = "revision_name"


@dataclass(frozen=True, slots=True)
class PatternRule:
    """A compiled pattern and the group holding the extracted token."""

    pattern: re.Pattern[str]
    group: int = 1

    def extract(self, text: str) -> str | None:
        m = self.pattern.search(text)
        if m is None:
            return None
        return m.group(self.group).strip() or None


ERROR_TYPE_RULES: list[PatternRule] = [
    PatternRule(re.compile(r"\b([A-Z]\w*Error)\s*:")),
    PatternRule(re.compile(r"\b([A-Z]\w*Exception)\s*:")),
    PatternRule(re.compile(r"\b([A-Z]\w*Failure)\s*:")),
    PatternRule(re.compile(r"\braise\s+([A-Z][\w.]*)")),
    PatternRule(re.compile(r"\bthrow\s+new\s+([A-Z][\w.]*)")),
]

AFFECTED_FUNCTION_RULES: list[PatternRule] = [
    PatternRule(re.compile(r"(/api/[\w\-./{}]*[\w}])")),
    PatternRule(re.compile(r"\bendpoint\s*[=:]\s*[\"']?([^\s\"',;]+)", re.IGNORECASE)),
    PatternRule(re.compile(r"\bdef\s+([A-Za-z_]\w*)")),
    PatternRule(re.compile(r"\bfunction\s+([A-Za-z_$][\w$]*)")),
]


def first_match(rules: Iterable[PatternRule], texts: Iterable[str]) -> str | None:
    """Search each text in order against every rule; first hit wins."""
    for text in texts:
        if not text:
            continue
        for rule in rules:
            found = rule.extract(text)
            if found is not None:
                return found
    return None


def first_non_blank_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def _resolve_text(record: LogRecord) -> tuple[str, str]:
    """Return (message, traceback) from the record payload."""
    payload = record.payload
    if isinstance(payload, FlatText):
        return payload.text, payload.text
    if isinstance(payload, StructuredPayload):
        message = payload.text("message")
        traceback = next((t for t in (payload.text(k) for k in TRACEBACK_KEYS) if t), "")
        return message, traceback
    return "", ""


def classify_error_type(message: str, traceback: str) -> str:
    """Extract the error class token, or the Unknown sentinel."""
    return first_match(ERROR_TYPE_RULES, (message, traceback)) or UNKNOWN_ERROR_TYPE


def find_affected_function(message: str, traceback: str) -> str:
    """Best-effort endpoint or function name, empty when nothing matches."""
    return first_match(AFFECTED_FUNCTION_RULES, (f"{message}\n{traceback}",)) or ""


def extract(record: LogRecord) -> ErrorInfo:
    """Build ErrorInfo from a record; missing fields degrade to defaults."""
    labels = record.resource_labels or {}
    message, traceback = _resolve_text(record)

    return ErrorInfo(
        severity=record.severity or "",
        error_type=classify_error_type(message, traceback),
        message=message,
        traceback=traceback,
        first_traceback_line=first_non_blank_line(traceback),
        affected_function=find_affected_function(message, traceback),
        service_name=str(labels.get(SERVICE_LABEL) or ""),
        revision_name=str(labels.get(REVISION_LABEL) or ""),
        timestamp=record.timestamp or "",
        record=record,
    )

"""Core data models for error watching."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Cloud log severities, lowest to highest."""

    DEFAULT = "DEFAULT"
    DEBUG = "DEBUG"
    INFO = "INFO"
    NOTICE = "NOTICE"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    ALERT = "ALERT"
    EMERGENCY = "EMERGENCY"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER: tuple[Severity, ...] = tuple(Severity)

_SEVERITY_ALIASES = {
    "WARN": "WARNING",
    "ERR": "ERROR",
    "FATAL": "CRITICAL",
    "CRIT": "CRITICAL",
    "SEVERE": "CRITICAL",
    "EMERG": "EMERGENCY",
    "TRACE": "DEBUG",
}


def parse_severity(value: str | None) -> Severity:
    """Parse a provider severity string; unknown values map to DEFAULT."""
    name = (value or "").strip().upper()
    name = _SEVERITY_ALIASES.get(name, name)
    try:
        return Severity[name]
    except KeyError:
        return Severity.DEFAULT


class ErrorStatus(str, Enum):
    """Investigation lifecycle of a signature."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER: tuple[ErrorStatus, ...] = tuple(ErrorStatus)


@dataclass(frozen=True, slots=True)
class FlatText:
    """Payload carried as a single block of text."""

    text: str


@dataclass(frozen=True, slots=True)
class StructuredPayload:
    """Payload carried as a JSON object."""

    fields: Mapping[str, Any] = field(default_factory=dict)

    def text(self, key: str) -> str:
        """Return a field as text, or an empty string when absent/null."""
        value = self.fields.get(key)
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


Payload = FlatText | StructuredPayload | None


@dataclass(frozen=True, slots=True)
class LogRecord:
    """Provider-neutral log record handed to the core by a provider adapter."""

    severity: str
    timestamp: str
    payload: Payload = None
    resource_labels: Mapping[str, str] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict)  # original envelope, kept for display


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Normalized error attributes derived from one LogRecord."""

    severity: str
    error_type: str
    message: str
    traceback: str
    first_traceback_line: str
    affected_function: str
    service_name: str
    revision_name: str
    timestamp: str
    record: LogRecord

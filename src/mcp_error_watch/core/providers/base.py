"""Log provider interface."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from ..models import LogRecord, Severity, parse_severity


class ProviderError(RuntimeError):
    """Fetching or decoding provider output failed."""


class LogProvider(Protocol):
    """Provider interface: return the error records logged in [since, until)."""

    async def fetch(self, since: datetime, until: datetime) -> list[LogRecord]:
        """Fetch records for the window, normalized to LogRecord."""
        ...


def at_least(records: Iterable[LogRecord], min_severity: Severity) -> list[LogRecord]:
    """Keep records at or above ``min_severity``."""
    return [r for r in records if parse_severity(r.severity).rank >= min_severity.rank]

"""Provider reading a JSON export of log entries from disk."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import aiofiles

from ..models import LogRecord, Severity
from .base import ProviderError, at_least
from .cloud_logging import in_window, records_from_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JsonFileProvider:
    """Read entries from a JSON array or JSON-lines export file."""

    path: Path
    min_severity: Severity = Severity.ERROR

    async def fetch(self, since: datetime, until: datetime) -> list[LogRecord]:
        try:
            async with aiofiles.open(self.path, encoding="utf-8", errors="replace") as f:
                text = await f.read()
        except OSError as e:
            raise ProviderError(f"Cannot read log export {self.path}: {e}") from e

        records = [r for r in records_from_json(text) if in_window(r, since, until)]
        records = at_least(records, self.min_severity)
        logger.debug("Read %d record(s) from %s", len(records), self.path)
        return records

"""Provider running a log CLI and decoding its JSON output.

Typical argv: ``gcloud logging read <filter with {since}> --format=json``.
Query syntax and authentication belong to the configured command.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from ..models import LogRecord, Severity
from .base import ProviderError, at_least
from .cloud_logging import records_from_json

logger = logging.getLogger(__name__)

_STDERR_TAIL = 500


def _iso(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def render_argv(argv: Sequence[str], *, since: datetime, until: datetime) -> list[str]:
    """Substitute {since} and {until} (UTC, ISO8601) into each argument."""
    values = {"since": _iso(since), "until": _iso(until)}
    try:
        return [arg.format(**values) for arg in argv]
    except (KeyError, IndexError, ValueError) as e:
        raise ProviderError(f"Invalid provider command template: {e}") from e


@dataclass(frozen=True, slots=True)
class CommandProvider:
    argv: Sequence[str]
    timeout_seconds: float = 120.0
    min_severity: Severity = Severity.ERROR

    async def fetch(self, since: datetime, until: datetime) -> list[LogRecord]:
        if not self.argv:
            raise ProviderError("No provider command configured")
        argv = render_argv(self.argv, since=since, until=until)
        logger.debug("Running provider command: %s", argv[0])

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProviderError(f"Cannot start provider command {argv[0]!r}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise ProviderError(
                f"Provider command timed out after {self.timeout_seconds:g}s"
            ) from e

        if proc.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace").strip()[-_STDERR_TAIL:]
            raise ProviderError(f"Provider command exited with {proc.returncode}: {tail}")

        records = records_from_json(stdout.decode("utf-8", errors="replace"))
        return at_least(records, self.min_severity)

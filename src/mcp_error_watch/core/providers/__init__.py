"""Log providers.

Providers fetch raw entries from a log backend and normalize them to
LogRecord before they reach the core.
"""

from __future__ import annotations

from pathlib import Path

from ..config import ConfigError, ProviderConfig
from ..models import parse_severity
from .base import LogProvider, ProviderError, at_least
from .cloud_logging import record_from_entry, records_from_json
from .command import CommandProvider
from .jsonfile import JsonFileProvider


def provider_from_config(cfg: ProviderConfig) -> LogProvider:
    """Build the configured provider."""
    min_severity = parse_severity(cfg.min_severity)
    if cfg.kind == "json_file":
        if not cfg.path:
            raise ConfigError("provider.path is required for kind=json_file")
        return JsonFileProvider(path=Path(cfg.path), min_severity=min_severity)
    if not cfg.command:
        raise ConfigError("provider.command is required for kind=command")
    return CommandProvider(
        argv=tuple(cfg.command),
        timeout_seconds=cfg.timeout_seconds,
        min_severity=min_severity,
    )


__all__ = [
    "CommandProvider",
    "JsonFileProvider",
    "LogProvider",
    "ProviderError",
    "at_least",
    "provider_from_config",
    "record_from_entry",
    "records_from_json",
]

"""Monitor configuration.

The configuration file is JSON validated with pydantic. A few numeric
settings can be overridden from the environment.
"""

from __future__ import annotations

import os
import shlex
from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

CONFIG_ENV = "ERROR_WATCH_CONFIG"
STATE_DIR_ENV = "ERROR_WATCH_STATE_DIR"
DEFAULT_CONFIG_PATH = Path("error_watch.json")
DEFAULT_STATE_DIR = Path(".error_watch")

_INT_OVERRIDES = {
    "ERROR_WATCH_POLL_INTERVAL_MINUTES": "poll_interval_minutes",
    "ERROR_WATCH_STALE_AFTER_MINUTES": "stale_after_minutes",
}


class ConfigError(ValueError):
    """Configuration is missing or invalid; nothing can be processed safely."""


class ServiceConfig(BaseModel):
    workspace: str = Field(description="Workspace path opened for the investigation.")
    workflow: str | None = Field(default=None, description="Optional custom investigation workflow id.")


class ProviderConfig(BaseModel):
    kind: Literal["json_file", "command"] = "command"
    path: str | None = Field(default=None, description="Export file for kind=json_file.")
    command: list[str] = Field(
        default_factory=list,
        description="argv for kind=command; {since} and {until} are substituted.",
    )
    min_severity: str = "ERROR"
    timeout_seconds: float = Field(default=120.0, gt=0)

    @field_validator("command", mode="before")
    @classmethod
    def _split_command(cls, value: object) -> object:
        if isinstance(value, str):
            return shlex.split(value)
        return value


class MonitorConfig(BaseModel):
    services: dict[str, ServiceConfig]
    poll_interval_minutes: int = Field(default=5, ge=1)
    stale_after_minutes: int = Field(default=10, ge=1)
    window_buffer_seconds: int = Field(default=60, ge=0)
    max_lookback_hours: int = Field(default=168, ge=1)
    seen_retention_days: int = Field(default=30, ge=0, description="0 disables eviction.")
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    launch_command: list[str] = Field(
        default_factory=list,
        description="argv run per service to start an investigation; "
        "{service}, {workspace}, {workflow} and {queue_path} are substituted.",
    )

    @field_validator("launch_command", mode="before")
    @classmethod
    def _split_launch(cls, value: object) -> object:
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @property
    def known_services(self) -> frozenset[str]:
        return frozenset(self.services)

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(minutes=self.poll_interval_minutes)

    @property
    def stale_after(self) -> timedelta:
        return timedelta(minutes=self.stale_after_minutes)

    @property
    def window_buffer(self) -> timedelta:
        return timedelta(seconds=self.window_buffer_seconds)

    @property
    def max_lookback(self) -> timedelta:
        return timedelta(hours=self.max_lookback_hours)

    @property
    def seen_retention(self) -> timedelta | None:
        if self.seen_retention_days == 0:
            return None
        return timedelta(days=self.seen_retention_days)


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Explicit path, else $ERROR_WATCH_CONFIG, else ./error_watch.json."""
    if path is not None:
        return Path(path)
    env = os.getenv(CONFIG_ENV)
    if env:
        return Path(env)
    return DEFAULT_CONFIG_PATH


def resolve_state_dir(path: str | Path | None = None) -> Path:
    """Explicit path, else $ERROR_WATCH_STATE_DIR, else ./.error_watch."""
    if path is not None:
        return Path(path)
    env = os.getenv(STATE_DIR_ENV)
    if env:
        return Path(env)
    return DEFAULT_STATE_DIR


def _apply_env_overrides(cfg: MonitorConfig) -> MonitorConfig:
    updates: dict[str, int] = {}
    for env_name, field_name in _INT_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            value = int(raw)
        except ValueError as exc:
            raise ValueError(f"{env_name} must be an integer") from exc
        if value < 1:
            raise ValueError(f"{env_name} must be >= 1")
        updates[field_name] = value
    if not updates:
        return cfg
    return cfg.model_copy(update=updates)


def parse_config(text: str) -> MonitorConfig:
    """Validate configuration JSON text."""
    try:
        cfg = MonitorConfig.model_validate_json(text)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
    if not cfg.services:
        raise ConfigError("Configuration must register at least one service.")
    try:
        return _apply_env_overrides(cfg)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def load_config(path: str | Path | None = None) -> MonitorConfig:
    """Load and validate the monitor configuration file."""
    resolved = resolve_config_path(path)
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {resolved}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {resolved}: {e}") from e
    return parse_config(text)

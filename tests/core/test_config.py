from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest

from mcp_error_watch.core.config import (
    ConfigError,
    load_config,
    parse_config,
    resolve_config_path,
    resolve_state_dir,
)


def test_load_config_defaults(write_config) -> None:
    cfg = load_config(write_config())
    assert cfg.known_services == {"svc-a", "svc-b"}
    assert cfg.services["svc-b"].workflow == "bugfix"
    assert cfg.services["svc-a"].workflow is None
    assert cfg.poll_interval == timedelta(minutes=5)
    assert cfg.stale_after == timedelta(minutes=10)
    assert cfg.window_buffer == timedelta(seconds=60)
    assert cfg.max_lookback == timedelta(hours=168)
    assert cfg.seen_retention == timedelta(days=30)
    assert cfg.provider.kind == "json_file"


def test_retention_zero_disables_eviction(write_config) -> None:
    cfg = load_config(write_config(seen_retention_days=0))
    assert cfg.seen_retention is None


def test_command_strings_are_split() -> None:
    cfg = parse_config(
        json.dumps(
            {
                "services": {"svc-a": {"workspace": "/src/a"}},
                "provider": {"kind": "command", "command": "logs read --since '{since}'"},
                "launch_command": "ide chat --workspace {workspace}",
            }
        )
    )
    assert cfg.provider.command == ["logs", "read", "--since", "{since}"]
    assert cfg.launch_command == ["ide", "chat", "--workspace", "{workspace}"]


def test_missing_file_and_invalid_json(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{services:", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(bad)


def test_empty_service_registry_rejected() -> None:
    with pytest.raises(ConfigError, match="at least one service"):
        parse_config('{"services": {}}')


def test_invalid_numbers_rejected(write_config) -> None:
    with pytest.raises(ConfigError):
        load_config(write_config(poll_interval_minutes=0))


def test_env_overrides(write_config, monkeypatch) -> None:
    monkeypatch.setenv("ERROR_WATCH_POLL_INTERVAL_MINUTES", "2")
    monkeypatch.setenv("ERROR_WATCH_STALE_AFTER_MINUTES", "30")
    cfg = load_config(write_config())
    assert cfg.poll_interval == timedelta(minutes=2)
    assert cfg.stale_after == timedelta(minutes=30)


@pytest.mark.parametrize("value", ["soon", "0"])
def test_invalid_env_override(write_config, monkeypatch, value) -> None:
    monkeypatch.setenv("ERROR_WATCH_POLL_INTERVAL_MINUTES", value)
    with pytest.raises(ConfigError, match="ERROR_WATCH_POLL_INTERVAL_MINUTES"):
        load_config(write_config())


def test_path_resolution(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("ERROR_WATCH_CONFIG", raising=False)
    monkeypatch.delenv("ERROR_WATCH_STATE_DIR", raising=False)
    assert resolve_config_path() == Path("error_watch.json")
    assert resolve_state_dir() == Path(".error_watch")

    monkeypatch.setenv("ERROR_WATCH_CONFIG", str(tmp_path / "cfg.json"))
    monkeypatch.setenv("ERROR_WATCH_STATE_DIR", str(tmp_path / "state"))
    assert resolve_config_path() == tmp_path / "cfg.json"
    assert resolve_state_dir() == tmp_path / "state"
    assert resolve_state_dir("explicit") == Path("explicit")

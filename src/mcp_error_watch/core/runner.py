"""Entry point shared by the CLI and the MCP server: one locked poll cycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .config import MonitorConfig
from .launcher import CommandLauncher, LaunchOutcome
from .lock import LOCK_FILE, CycleLock
from .orchestrator import CycleResult, PollCycle
from .providers import LogProvider, provider_from_config
from .state.backend import FileStateBackend

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PollReport:
    result: CycleResult
    launches: list[LaunchOutcome] = field(default_factory=list)


async def poll_once(
    cfg: MonitorConfig,
    state_dir: str | Path,
    *,
    launch: bool = False,
    provider: LogProvider | None = None,
    now: datetime | None = None,
) -> PollReport:
    """Run one poll cycle under the state directory lock.

    Raises ConfigError, LockHeldError and StateWriteError; provider failures
    are absorbed into the cycle result.
    """
    state_dir = Path(state_dir)
    provider = provider or provider_from_config(cfg.provider)
    backend = FileStateBackend(state_dir)

    with CycleLock(state_dir / LOCK_FILE):
        cycle = PollCycle.from_config(backend, cfg)
        result = await cycle.poll(provider, cfg.known_services, now=now)

        launches: list[LaunchOutcome] = []
        if launch and result.launch_services:
            if cfg.launch_command:
                launches = await CommandLauncher(backend, cfg).launch_all(result.launch_services)
            else:
                logger.warning("Launch requested but no launch_command is configured")
    return PollReport(result=result, launches=launches)

"""Start external investigations for services with pending work."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .config import MonitorConfig
from .lifecycle import claim_service
from .prompt import build_investigation_prompt
from .state.backend import FileStateBackend, StateBackend
from .state.queue import PendingQueueWriter, queue_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LaunchOutcome:
    service: str
    launched: bool
    claimed: int = 0
    detail: str = ""


def render_launch_argv(template: Sequence[str], values: dict[str, str]) -> list[str]:
    return [arg.format(**values) for arg in template]


class CommandLauncher:
    """Run ``launch_command`` once per service and claim it on success."""

    def __init__(self, backend: StateBackend, cfg: MonitorConfig, timeout_seconds: float = 60.0) -> None:
        self.backend = backend
        self.cfg = cfg
        self.timeout_seconds = timeout_seconds

    def _queue_path(self, service: str) -> str:
        if isinstance(self.backend, FileStateBackend):
            return str(self.backend.path_for(queue_name(service)))
        return queue_name(service)

    async def launch(self, service: str) -> LaunchOutcome:
        svc = self.cfg.services.get(service)
        if svc is None:
            return LaunchOutcome(service, False, detail="service not registered")

        queue = await PendingQueueWriter(self.backend).read(service)
        if queue is None or not queue.errors:
            return LaunchOutcome(service, False, detail="no pending queue")

        if not self.cfg.launch_command:
            return LaunchOutcome(service, False, detail="no launch_command configured")

        queue_path = self._queue_path(service)
        values = {
            "service": service,
            "workspace": svc.workspace,
            "workflow": svc.workflow or "",
            "queue_path": queue_path,
            "prompt": build_investigation_prompt(queue, queue_path=queue_path, workflow=svc.workflow),
        }
        try:
            argv = render_launch_argv(self.cfg.launch_command, values)
        except (KeyError, IndexError, ValueError) as e:
            return LaunchOutcome(service, False, detail=f"invalid launch_command template: {e}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            return LaunchOutcome(service, False, detail="launch command timed out")
        except OSError as e:
            return LaunchOutcome(service, False, detail=f"cannot start launch command: {e}")

        if proc.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace").strip()[-300:]
            logger.error("Launch for %s failed (exit %s): %s", service, proc.returncode, tail)
            return LaunchOutcome(service, False, detail=f"exit {proc.returncode}")

        claimed = await claim_service(self.backend, service)
        logger.info("Launched investigation for %s", service)
        return LaunchOutcome(service, True, claimed=len(claimed))

    async def launch_all(self, services: Sequence[str]) -> list[LaunchOutcome]:
        """Launch services one after another."""
        outcomes = []
        for service in services:
            outcomes.append(await self.launch(service))
        return outcomes

"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_error_watch.core.config import resolve_state_dir
from mcp_error_watch.core.prompt import build_investigation_prompt
from mcp_error_watch.core.state import FileStateBackend, PendingQueueWriter, queue_name


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    async def investigate_service(service: str, workflow: str | None = None) -> list[dict[str, Any]]:
        """Build the investigation prompt for one service's pending queue."""
        backend = FileStateBackend(resolve_state_dir())
        queue = await PendingQueueWriter(backend).read(service)
        if queue is None or not queue.errors:
            text = (
                f"There are no pending errors for service '{service}'. "
                "Call list_pending to see which services have queued errors."
            )
        else:
            text = build_investigation_prompt(
                queue,
                queue_path=str(backend.path_for(queue_name(service))),
                workflow=workflow,
            )
        return [
            {
                "role": "system",
                "content": (
                    "You are a senior engineer investigating production errors. "
                    "Ground every conclusion in the provided errors and the code. "
                    "Do not invent details; if the evidence is insufficient, say so."
                ),
            },
            {
                "role": "user",
                "content": (
                    f"{text}\n"
                    "Workflow:\n"
                    f"- Call claim_service with service='{service}' before you start.\n"
                    f"- When done, call complete_service with service='{service}'.\n"
                ),
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Raw queue contents:"},
                    {"type": "resource", "uri": f"pending://{service}"},
                ],
            },
        ]

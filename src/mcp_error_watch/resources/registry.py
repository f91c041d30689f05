"""MCP resource registry.

Resources are addressable by URI and can be fetched by the MCP client on demand.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_error_watch.core.config import STATE_DIR_ENV
from mcp_error_watch.core.state import PendingQueue, StatusEntry
from mcp_error_watch.tools.investigation import get_pending_queue_impl, state_dir_path


def register_resources(mcp: FastMCP) -> None:
    """Register resource handlers on the MCP server."""

    @mcp.resource("app://error-watch/help")
    def help_resource() -> str:
        """Return a short list of available resource URIs."""
        return (
            "Resources:\n"
            "- app://error-watch/help\n"
            "- app://error-watch/schemas/pending-queue\n"
            "- app://error-watch/schemas/status-entry\n"
            "- pending://{service} (pending queue for one service)\n"
            f"\nState directory ({STATE_DIR_ENV}): {state_dir_path().resolve()}\n"
        )

    @mcp.resource("app://error-watch/schemas/pending-queue")
    def pending_queue_schema() -> dict[str, Any]:
        """Return the JSON schema of a pending queue file."""
        return PendingQueue.model_json_schema()

    @mcp.resource("app://error-watch/schemas/status-entry")
    def status_entry_schema() -> dict[str, Any]:
        """Return the JSON schema of one status registry entry."""
        return StatusEntry.model_json_schema()

    @mcp.resource("pending://{service}")
    async def pending_queue(service: str) -> dict[str, Any]:
        """Return the pending queue for a service (empty when cleared)."""
        return await get_pending_queue_impl(service)

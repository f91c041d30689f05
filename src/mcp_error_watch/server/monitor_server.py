"""MCP server entrypoint (stdio transport).

This module wires together:
- Tools: poll for new errors, inspect queues, claim and complete services
- Resources: queue contents and registry schemas via URI
- Prompts: the investigation prompt for a service

Run locally (stdio):
    python -m mcp_error_watch serve
"""

from __future__ import annotations

import logging
import os
from typing import Any

from mcp.server.fastmcp import FastMCP

from mcp_error_watch.prompts.registry import register_prompts
from mcp_error_watch.resources.registry import register_resources
from mcp_error_watch.tools.investigation import (
    claim_service_impl,
    complete_service_impl,
    error_status_impl,
    get_pending_queue_impl,
    list_pending_impl,
    poll_errors_impl,
)

LOGGER = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure logging to stderr."""
    level_name = os.getenv("ERROR_WATCH_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("error-watch", json_response=True)

register_resources(mcp)
register_prompts(mcp)


@mcp.tool()
async def poll_errors(config_path: str | None = None, launch: bool = False) -> dict[str, Any]:
    """Run one poll cycle: fetch logs, dedupe errors and queue new ones per service.

    Parameters
    ----------
    config_path:
        Monitor configuration JSON. Defaults to $ERROR_WATCH_CONFIG or ./error_watch.json.
    launch:
        When true, run the configured launch_command for each service needing investigation.

    Returns
    -------
    dict:
        {"total_new": int, "new_errors_by_service": {...}, "stale_services": [...],
         "launch_services": [...], ...}
    """
    return await poll_errors_impl(config_path=config_path, launch=launch)


@mcp.tool()
async def list_pending() -> dict[str, Any]:
    """Return the number of queued errors per service."""
    return await list_pending_impl()


@mcp.tool()
async def get_pending_queue(service: str) -> dict[str, Any]:
    """Return the pending queue for a service: {"service", "generated_at", "errors"}."""
    return await get_pending_queue_impl(service)


@mcp.tool()
async def claim_service(service: str) -> dict[str, Any]:
    """Mark a service's pending errors in_progress before investigating them."""
    return await claim_service_impl(service)


@mcp.tool()
async def complete_service(service: str) -> dict[str, Any]:
    """Mark a service's errors done and clear its pending queue."""
    return await complete_service_impl(service)


@mcp.tool()
async def error_status(status: str | None = None) -> dict[str, Any]:
    """Return status counts, queue sizes and the poll checkpoint.

    status:
        Optional "pending", "in_progress" or "done" to also list signatures.
    """
    return await error_status_impl(status=status)


def main() -> None:
    """Start the MCP server over stdio."""
    configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    mcp.run(transport="stdio")

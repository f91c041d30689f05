from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys

from mcp_error_watch.core.config import ConfigError, load_config, resolve_state_dir
from mcp_error_watch.core.lock import LockHeldError
from mcp_error_watch.core.report import format_cycle_summary
from mcp_error_watch.core.runner import poll_once
from mcp_error_watch.core.state import StateWriteError
from mcp_error_watch.tools.investigation import (
    claim_service_impl,
    clear_queue_impl,
    complete_service_impl,
    error_status_impl,
)

logger = logging.getLogger("mcp_error_watch")


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.getenv("ERROR_WATCH_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _cmd_poll(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    report = asyncio.run(poll_once(cfg, resolve_state_dir(args.state_dir), launch=args.launch))
    print(format_cycle_summary(report.result))
    for outcome in report.launches:
        state = "launched" if outcome.launched else f"not launched ({outcome.detail})"
        print(f"  {outcome.service}: {state}")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    out = asyncio.run(error_status_impl(state_dir=args.state_dir, status=args.status))
    print(json.dumps(out, indent=2))
    return 0


def _cmd_claim(args: argparse.Namespace) -> int:
    claimed = asyncio.run(claim_service_impl(args.service, state_dir=args.state_dir))["claimed"]
    print(f"Claimed {len(claimed)} signature(s) for {args.service}")
    return 0


def _cmd_done(args: argparse.Namespace) -> int:
    completed = asyncio.run(complete_service_impl(args.service, state_dir=args.state_dir))["completed"]
    print(f"Completed {len(completed)} signature(s) for {args.service}; queue cleared")
    return 0


def _cmd_clear(args: argparse.Namespace) -> int:
    removed = asyncio.run(clear_queue_impl(args.service, state_dir=args.state_dir))["cleared"]
    print(f"Queue for {args.service} {'cleared' if removed else 'was already empty'}")
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    from mcp_error_watch.server.monitor_server import main as serve

    serve()
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="error-watch",
        description="Poll cloud logs, dedupe errors by signature and queue new ones for investigation.",
    )
    p.add_argument("--state-dir", default=None, help="State directory (default: $ERROR_WATCH_STATE_DIR or ./.error_watch)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    poll = sub.add_parser("poll", help="Run one poll cycle and print a summary")
    poll.add_argument("--config", default=None, help="Config JSON (default: $ERROR_WATCH_CONFIG or ./error_watch.json)")
    poll.add_argument("--launch", action="store_true", help="Run launch_command for services needing investigation")
    poll.set_defaults(func=_cmd_poll)

    status = sub.add_parser("status", help="Show status counts, pending queues and checkpoint")
    status.add_argument("--status", default=None, choices=["pending", "in_progress", "done"])
    status.set_defaults(func=_cmd_status)

    for name, func, text in (
        ("claim", _cmd_claim, "Mark a service's pending errors in_progress"),
        ("done", _cmd_done, "Mark a service's errors done and clear its queue"),
        ("clear", _cmd_clear, "Delete a service's pending queue"),
    ):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("service")
        cmd.set_defaults(func=func)

    serve = sub.add_parser("serve", help="Run the MCP server over stdio")
    serve.set_defaults(func=_cmd_serve)
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        code = args.func(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        raise SystemExit(2)
    except (ValueError, argparse.ArgumentTypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(2)
    except LockHeldError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(1)
    except StateWriteError as e:
        logger.error("State write failed; errors may be re-detected next cycle: %s", e)
        raise SystemExit(1)
    except OSError as e:
        logger.error("State directory unusable: %s", e)
        raise SystemExit(1)
    raise SystemExit(code)


if __name__ == "__main__":
    main()

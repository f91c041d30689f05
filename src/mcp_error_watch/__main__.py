"""Module entrypoint.

Allows:
    python -m mcp_error_watch poll
"""

from __future__ import annotations

from mcp_error_watch.cli import main

if __name__ == "__main__":
    main()

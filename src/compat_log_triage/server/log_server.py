"""MCP server entrypoint (stdio transport).

Exposes the log analyzer as a single tool: hand it the path of an uploaded
emulator log (plain or archived) and get diagnostic notes back, already laid
out in display units.

Run locally (stdio):
    python -m compat_log_triage.server.log_server
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from typing import Any

from mcp.server.fastmcp import FastMCP

from compat_log_triage.tools.analyze import analyze_log_impl

LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Configure a reasonable default logging setup.

    The MCP client typically captures stderr; keeping logs concise makes them easier to consume.
    """
    level_name = os.getenv("COMPAT_LOG_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


mcp = FastMCP("compat-log-triage", json_response=True)


@mcp.tool()
async def analyze_log(
    log_path: str,
    max_lines_per_field: int | None = None,
    include_facts: bool = False,
) -> dict[str, Any]:
    """Analyze an emulator log and return diagnostic notes.

    Parameters
    ----------
    log_path:
        Path to a local attachment. Supports plain .log/.txt, .gz, .zip, .rar and .7z.
    max_lines_per_field:
        Maximum note lines per display field (default 10, capped at 100).
    include_facts:
        When true, also return the raw facts extracted from the last run.

    Returns
    -------
    dict:
        {"status": str, "message": str | None, "notes": list[dict], "units": list[list[dict]], ...}
    """
    return await analyze_log_impl(
        log_path=log_path,
        max_lines_per_field=max_lines_per_field,
        include_facts=include_facts,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Start the MCP server over stdio."""
    _configure_logging()
    LOGGER.debug("Starting MCP server (transport=stdio)")
    _ = argv or sys.argv[1:]
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

"""MCP stdio server exposing the committee as a ``process_committee`` tool.

stdout carries the protocol; all logging goes to stderr.
"""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from . import config
from .committee import Committee
from .credentials import PROVIDERS
from .errors import CommitteeError
from .formatting import format_error, format_report
from .validation import validate_committee_args

logger = logging.getLogger(__name__)

TOOL_NAME = "process_committee"

server = Server("agent-committee")
_committee: Optional[Committee] = None


def get_committee() -> Committee:
    global _committee
    if _committee is None:
        _committee = Committee()
    return _committee


def tool_definition(presets: List[str]) -> types.Tool:
    return types.Tool(
        name=TOOL_NAME,
        description=(
            "Run a committee of specialist agents in parallel on a request and return every "
            "agent's answer plus a final synthesis."
        ),
        inputSchema={
            "type": "object",
            "required": ["request"],
            "properties": {
                "request": {"type": "string", "description": "The task or question for the committee"},
                "context": {"type": "string", "description": "Optional context from other conversations"},
                "agentPreset": {"type": "string", "enum": presets},
                "provider": {"type": "string", "enum": list(PROVIDERS)},
                "model": {"type": "string"},
                "aggregatorProvider": {"type": "string", "enum": list(PROVIDERS)},
                "aggregatorModel": {"type": "string"},
                "timeoutMs": {"type": "integer", "minimum": 1},
            },
        },
    )


async def handle_call(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
    if name != TOOL_NAME:
        return [types.TextContent(type="text", text=f"Error: Unknown tool: {name}")]
    committee = get_committee()
    try:
        req = validate_committee_args(arguments or {}, presets=committee.catalog.available_presets())
        result = await committee.run(req)
    except CommitteeError as exc:
        logger.warning("process_committee failed code=%s message=%s", exc.code, exc.message)
        return [types.TextContent(type="text", text=format_error(exc))]
    return [types.TextContent(type="text", text=format_report(result))]


@server.list_tools()
async def list_tools() -> List[types.Tool]:
    return [tool_definition(get_committee().catalog.available_presets())]


@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
    return await handle_call(name, arguments)


async def serve() -> None:
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        if _committee is not None:
            await _committee.aclose()


def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT, stream=sys.stderr)
    asyncio.run(serve())


if __name__ == "__main__":
    main()

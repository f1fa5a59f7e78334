from __future__ import annotations

import logging

from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError

from capture_analysis import __version__

logger = logging.getLogger(__name__)

SERVER_NAME = "capture-analysis"
SESSION_SERVER_NAME = "capture-analysis-session"


async def _list_tools(request: types.ListToolsRequest) -> types.ServerResult:
    return types.ServerResult(types.ListToolsResult(tools=[]))


async def _call_tool(request: types.CallToolRequest) -> types.ServerResult:
    name = request.params.name
    logger.info("session_tool_call_rejected tool=%s", name)
    raise McpError(
        types.ErrorData(
            code=types.METHOD_NOT_FOUND,
            message=f"No tools are currently exposed by this server. Unknown tool: {name}",
        )
    )


def create_session_server(name: str = SESSION_SERVER_NAME) -> Server:
    """
    Build a protocol server with an intentionally empty tool surface.

    Tools for operator workflows (re-run analysis, inspect features) will be
    registered here; until then tools/list is empty and tools/call is rejected.
    """
    server: Server = Server(name, version=__version__)
    server.request_handlers[types.ListToolsRequest] = _list_tools
    server.request_handlers[types.CallToolRequest] = _call_tool
    return server

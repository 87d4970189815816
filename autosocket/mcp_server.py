"""MCP Server for AutoSocket.

Tools:
  - scan_prefab_index: Build or refresh the prefab cache
  - resolve_sockets: Resolve a model's sockets to prefabs
  - create_entity_template: Write a test prefab for a model
  - generate_destructibles: Render a destructible preset per model

Resource:
  - autosocket://cache/status: prefab cache status

Usage:
    # Run directly (stdio transport)
    python -m autosocket.mcp_server

    # Add to an MCP client config:
    {
        "mcpServers": {
            "autosocket": {
                "command": "autosocket-mcp"
            }
        }
    }
"""

import asyncio
import json
import logging
import os
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool

from autosocket.core.config import DEBUG
from autosocket.tools import TOOLS, get_prefab_cache_status

logger = logging.getLogger("autosocket.mcp")

CACHE_STATUS_URI = "autosocket://cache/status"

# Create the MCP server
server = Server("autosocket")

_TOOLS_BY_NAME = {tool["name"]: tool for tool in TOOLS}


def _input_schema(parameters: dict) -> dict:
    """JSON schema for a tool from its registry parameter table."""
    properties = {}
    required = []
    for name, spec in parameters.items():
        prop = {k: v for k, v in spec.items() if k != "optional"}
        properties[name] = prop
        if not spec.get("optional") and "default" not in spec:
            required.append(name)
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _dispatch_tool(name: str, arguments: dict) -> dict:
    """Run a registered tool synchronously; failures come back as {"error": ...}."""
    tool = _TOOLS_BY_NAME.get(name)
    if tool is None:
        return {"error": f"Unknown tool: {name}"}

    params = tool["parameters"]
    unknown = sorted(set(arguments or {}) - set(params))
    if unknown:
        return {"error": f"Unknown arguments for {name}: {', '.join(unknown)}"}
    missing = [p for p in _input_schema(params).get("required", []) if p not in (arguments or {})]
    if missing:
        return {"error": f"Missing required arguments for {name}: {', '.join(missing)}"}

    try:
        result = tool["function"](**(arguments or {}))
    except Exception as e:
        logger.debug("Tool %s failed", name, exc_info=True)
        return {"error": str(e)}
    if not isinstance(result, dict):
        result = {"result": result}
    return result


# =============================================================================
# Tools
# =============================================================================


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name=tool["name"],
            description=tool["description"],
            inputSchema=_input_schema(tool["parameters"]),
        )
        for tool in TOOLS
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls off the event loop."""
    result = await asyncio.to_thread(_dispatch_tool, name, arguments or {})
    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


# =============================================================================
# Resources (cache status)
# =============================================================================


@server.list_resources()
async def list_resources() -> list[Resource]:
    return [
        Resource(
            uri=CACHE_STATUS_URI,
            name="Prefab cache status",
            description="Location, root, generation time and size of the prefab cache",
            mimeType="application/json",
        )
    ]


@server.read_resource()
async def read_resource(uri) -> str:
    if str(uri) == CACHE_STATUS_URI:
        status = await asyncio.to_thread(get_prefab_cache_status)
        return json.dumps(status, indent=2)
    return json.dumps({"error": f"Unknown resource: {uri}"})


# =============================================================================
# Main
# =============================================================================


async def main():
    """Run the MCP server."""
    if DEBUG or os.environ.get("AUTOSOCKET_MCP_DEBUG"):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s %(levelname)s: %(message)s",
            stream=sys.stderr,
        )
    else:
        logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    print("AutoSocket MCP Server", file=sys.stderr)
    print(f"Tools: {', '.join(_TOOLS_BY_NAME)}", file=sys.stderr)

    status = get_prefab_cache_status()
    if status["has_cache"]:
        print(f"Prefab cache: {status['cache_path']} ({status['prefab_count']} prefabs)", file=sys.stderr)
    else:
        print("Warning: No prefab cache found. Run 'autosocket scan' first.", file=sys.stderr)

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream, write_stream, server.create_initialization_options()
        )


def cli_main():
    """Entry point for the autosocket-mcp command."""
    asyncio.run(main())


if __name__ == "__main__":
    cli_main()

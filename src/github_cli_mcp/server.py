"""MCP server wiring for github-cli-mcp."""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

try:
    from mcp.server import Server
    from mcp.types import Resource, TextContent, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .catalog import list_operations
from .config import load_config_from_env
from .errors import (
    INTERNAL_ERROR,
    PARTIAL_ORCHESTRATION_FAILURE,
    REMOTE_API_ERROR,
    SUBPROCESS_SPAWN_ERROR,
    SUBPROCESS_TIMEOUT,
    UNKNOWN_OPERATION,
    VALIDATION_ERROR,
    SafeError,
    internal_error,
)
from .runtime import build_runtime
from .tools import Dispatcher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

SERVER_NAME = "github-cli-mcp"
STATUS_URI = "github-cli-mcp://server-status"
CAPABILITIES_URI = "github-cli-mcp://capabilities"

_RESOURCES = [
    (STATUS_URI, "Server Status", "Non-secret server configuration and defaults"),
    (CAPABILITIES_URI, "Capabilities", "Available operations and error codes"),
]


async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = [
        Tool(name=op["name"], description=op["description"], inputSchema=op["inputSchema"])
        for op in list_operations()
    ]
    logger.info("Listed %s tools", len(tools))
    return tools


def render_content(envelope: dict[str, Any]) -> list[TextContent]:
    """Turn a dispatch envelope into MCP TextContent.

    Successful calls become one TextContent per block; a qualified success is
    preceded by a JSON status block with the step ledger. Failures are a single
    JSON error envelope.
    """
    if not envelope.get("ok"):
        return [TextContent(type="text", text=json.dumps(envelope, indent=2, default=str))]

    contents: list[TextContent] = []
    if envelope.get("code") == PARTIAL_ORCHESTRATION_FAILURE:
        status = {k: envelope[k] for k in ("ok", "code", "message", "steps", "correlation_id") if k in envelope}
        contents.append(TextContent(type="text", text=json.dumps(status, indent=2, default=str)))
    for block in envelope.get("blocks", []):
        contents.append(TextContent(type="text", text=f"## {block['label']}\n\n{block['text']}"))
    return contents


async def call_tool(dispatcher: Dispatcher, name: str, arguments: Any) -> list[TextContent]:
    """Execute a tool and return MCP-compliant TextContent."""
    if arguments is None:
        arguments = {}

    logger.info("Tool called: %s", name)

    try:
        envelope = await dispatcher.dispatch(name, arguments)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("Tool %s failed: %s", name, exc)
        envelope = internal_error("Tool execution failed")
    return render_content(envelope)


def list_resource_objects() -> list[Resource]:
    """List available resources."""
    return [Resource(uri=uri, name=name, description=description) for uri, name, description in _RESOURCES]


def read_resource_text(dispatcher: Dispatcher, uri: Any) -> str:
    """Read resource content."""
    uri_s = uri if isinstance(uri, str) else str(uri)
    operations = [op["name"] for op in dispatcher.list_operations()]

    if uri_s == CAPABILITIES_URI:
        caps = {
            "server": SERVER_NAME,
            "version": __version__,
            "operations": operations,
            "error_codes": [
                UNKNOWN_OPERATION,
                VALIDATION_ERROR,
                REMOTE_API_ERROR,
                SUBPROCESS_SPAWN_ERROR,
                SUBPROCESS_TIMEOUT,
                PARTIAL_ORCHESTRATION_FAILURE,
                INTERNAL_ERROR,
            ],
            "safety": {
                "credential_like_arguments_rejected": True,
                "cli_arguments_passed_without_shell": True,
                "github_api_host": "https://api.github.com",
            },
        }
        return json.dumps(caps, indent=2)

    if uri_s == STATUS_URI:
        config = dispatcher.runtime.config
        status = {
            "server": SERVER_NAME,
            "version": __version__,
            "tools_available": len(operations),
            "tool_names": operations,
            "defaults": {
                "repository": config.default_repository,
                "cli_path": config.cli_path,
                "shell": config.default_shell,
                "os": config.default_os,
                "timeout_ms": config.timeout_ms,
            },
            "audit": {"file_sink_enabled": config.audit_log_path is not None},
        }
        return json.dumps(status, indent=2)

    return json.dumps({"ok": False, "code": "NotFound", "message": "Unknown resource"}, indent=2)


def create_server(dispatcher: Dispatcher) -> Server:
    """Build an MCP Server bound to a dispatcher."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def _list_tools() -> list[Tool]:
        return await list_tools()

    # Validation happens in the dispatcher so callers get the full violation list.
    @server.call_tool(validate_input=False)
    async def _call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        return await call_tool(dispatcher, name, arguments)

    @server.list_resources()
    async def _list_resources() -> list[Resource]:
        return list_resource_objects()

    @server.read_resource()
    async def _read_resource(uri: Any) -> str:
        return read_resource_text(dispatcher, uri)

    return server


async def run_server() -> None:
    """Run the server over stdio."""
    # Fail fast on invalid/missing host configuration.
    try:
        config = load_config_from_env()
    except SafeError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise

    dispatcher = Dispatcher(build_runtime(config))
    server = create_server(dispatcher)

    from mcp.server.stdio import stdio_server

    logger.info("%s %s running on stdio", SERVER_NAME, __version__)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Lightweight self-test to ensure tool/resource listing works without configuration."""
    tools = await list_tools()
    resources = list_resource_objects()
    print(f"{len(tools)} tools, {len(resources)} resources", file=sys.stderr)

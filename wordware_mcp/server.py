"""MCP stdio server exposing the tool registry."""

import logging
from typing import Any, Dict, List, Optional

import mcp.types as mcp_types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from wordware_mcp import __version__
from wordware_mcp.adapters.run_client import WordwareRunClient
from wordware_mcp.infra.config import Config
from wordware_mcp.infra.metrics import start_metrics_server
from wordware_mcp.models.content import ContentBlock, HtmlBlock
from wordware_mcp.models.tool import ToolDefinition
from wordware_mcp.services.run_execution_engine import PollingPolicy, StreamSink
from wordware_mcp.services.tool_registry import ToolRegistry, build_tool_registry

logger = logging.getLogger(__name__)

SERVER_NAME = "wordware"


def to_mcp_tool(definition: ToolDefinition) -> mcp_types.Tool:
    """Serialize a definition in the exact shape MCP clients expect."""
    return mcp_types.Tool(
        name=definition.name,
        description=definition.description,
        inputSchema=definition.input_schema.to_json_schema(),
    )


def to_mcp_content(blocks: List[ContentBlock]) -> List[mcp_types.TextContent]:
    """Serialize content blocks. HTML travels as text: MCP has no HTML content type."""
    content = []
    for block in blocks:
        text = block.html if isinstance(block, HtmlBlock) else block.text
        content.append(mcp_types.TextContent(type="text", text=text))
    return content


def create_server(registry: ToolRegistry) -> Server:
    """
    Build the MCP server for an already-populated registry.

    Tool definitions are serialized once here; the registry never changes
    after startup.
    """
    server = Server(SERVER_NAME, version=__version__)
    tools = [to_mcp_tool(definition) for definition in registry.definitions()]

    def _stream_sink(tool_name: str) -> Optional[StreamSink]:
        try:
            ctx = server.request_context
        except LookupError:
            return None

        async def sink(record: Any) -> None:
            await ctx.session.send_log_message(level="info", data=record, logger=tool_name)

        return sink

    @server.list_tools()
    async def handle_list_tools() -> List[mcp_types.Tool]:
        return tools

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[mcp_types.TextContent]:
        logger.info(f"Tool call: {name}")
        blocks = await registry.invoke(name, arguments or {}, sink=_stream_sink(name))
        return to_mcp_content(blocks)

    return server


async def check_service(run_client: WordwareRunClient) -> bool:
    """Probe the service before registration. Only warns on failure."""
    if await run_client.check_health():
        logger.info("Wordware service health check successful")
        return True
    if await run_client.ping():
        logger.info("Wordware service ping successful")
        return True
    logger.warning(
        "Wordware service health check failed. The MCP server will still start, "
        "but tools may not be available."
    )
    return False


async def serve(cfg: Config) -> None:
    """
    Validate configuration, discover tools and serve MCP over stdio.

    Raises:
        ConfigurationError: If the configuration is unusable
    """
    cfg.validate()
    start_metrics_server(cfg.METRICS_PORT)

    run_client = WordwareRunClient.from_config(cfg)
    await check_service(run_client)

    registry = await build_tool_registry(
        run_client,
        policy=PollingPolicy.from_config(cfg),
        app_ids=cfg.APP_IDS,
        default_input_name=cfg.DEFAULT_INPUT_NAME,
    )
    server = create_server(registry)

    logger.info(f"Starting MCP server with {len(registry)} tools")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())

"""MCP server for code-backup.

Exposes the backup verbs as Model Context Protocol tools over stdio, so an
AI coding agent can snapshot a file or folder before a risky edit and roll
it back afterwards. Every tool returns one JSON text block: the verb's
result, or ``{error, error_type, operation_id}`` on failure.
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from code_backup.api.dispatch import ToolDispatcher
from code_backup.config import BackupConfig


def configure_logging(level: int = logging.INFO) -> None:
    """Route the library logger to stderr; stdout carries the protocol."""
    backup_logger = logging.getLogger("code-backup")
    backup_logger.setLevel(level)
    backup_logger.propagate = False
    backup_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    backup_logger.addHandler(handler)


class BackupMCPServer:
    """MCP server exposing file and folder backups to AI agents."""

    def __init__(self, config: Optional[BackupConfig] = None):
        self.config = config or BackupConfig.from_env()
        self.dispatcher = ToolDispatcher.from_config(self.config)
        self.server = Server("code-backup")
        self._register_tools()

    def _register_tools(self):
        """Register all MCP tools with the server."""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            return self.tool_definitions()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            return await self.handle_call(name, arguments)

    def tool_definitions(self) -> List[Tool]:
        return [
            Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in self.dispatcher.list_tools()
        ]

    async def handle_call(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        result = await self.dispatcher.call(name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    async def run(self):
        """Start the MCP server using stdio transport."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options()
            )


def run_server(config: Optional[BackupConfig] = None):
    """Entry point for the ``code-backup-mcp`` console script."""
    configure_logging()
    server = BackupMCPServer(config=config)
    asyncio.run(server.run())


if __name__ == "__main__":
    run_server()

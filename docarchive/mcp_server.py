"""MCP (Model Context Protocol) server for the document archive.

Exposes the archive operations to AI agents over stdio using the mcp
library's JSON-RPC 2.0 transport.
"""

import asyncio
import logging

from mcp import McpError
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.types import ErrorData, TextContent, Tool

from docarchive import __version__
from docarchive.config import configure_logging
from docarchive.mcp.tool_handlers import call_tool_handler
from docarchive.mcp.tool_schemas import get_tool_schemas
from docarchive.storage.database import Database

logger = logging.getLogger(__name__)

SERVER_NAME = "docarchive"


def create_server(database: Database) -> Server:
    """Build an MCP server whose tools run against the given database."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List all available MCP tools."""
        return [Tool(**schema) for schema in get_tool_schemas().values()]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict | None) -> list[TextContent]:
        """Handle tool calls."""
        try:
            return await call_tool_handler(name, arguments or {}, database)
        except McpError:
            raise
        except Exception as e:
            logger.exception("Unexpected error handling tool %s", name)
            raise McpError(
                ErrorData(
                    code=-32603,  # Internal error
                    message=f"Internal error: {str(e)}",
                )
            ) from e

    return server


async def main(database: Database | None = None) -> None:
    """Serve MCP over stdio until the client disconnects."""
    database = database or Database()
    server = create_server(database)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(), experimental_capabilities={}
                    ),
                ),
            )
    finally:
        database.dispose()


def run() -> None:
    """Console entry point."""
    configure_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()

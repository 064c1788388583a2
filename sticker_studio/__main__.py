# sticker_studio/__main__.py
"""
Entry point for the sticker-studio MCP server.

CRITICAL: Server imports configure_logging() first to prevent stdout pollution.
"""

import asyncio
import logging

# Import server (which configures logging before anything else)
from sticker_studio.server import initialize_lifecycle, mcp

logger = logging.getLogger(__name__)


async def main() -> None:
    """Initialize lifecycle (signals) and then run the MCP server on stdio."""
    await initialize_lifecycle()

    logger.info("Starting MCP server on stdio transport")
    await mcp.run_stdio_async()


if __name__ == "__main__":
    asyncio.run(main())

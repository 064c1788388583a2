# sticker_studio/server.py
"""
FastMCP server instance with tool registration.

CRITICAL: configure_logging() is called first to prevent stdout pollution.
All logging goes to stderr as JSON.
"""

# Configure logging FIRST before any other imports
from sticker_studio.logging_config import configure_logging

configure_logging()

import logging

from fastmcp import FastMCP

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.config.loader import load_config
from sticker_studio.config.schema import StickerStudioConfig
from sticker_studio.tools.check_status import cancel_generation as _cancel_generation
from sticker_studio.tools.check_status import check_status as _check_status
from sticker_studio.tools.create_plan import create_plan as _create_plan
from sticker_studio.tools.export_pack import export_pack as _export_pack
from sticker_studio.tools.list_styles import list_styles as _list_styles
from sticker_studio.tools.regenerate_sticker import regenerate_sticker as _regenerate_sticker
from sticker_studio.tools.start_generation import start_generation as _start_generation
from sticker_studio.tools.update_caption import set_caption_mode as _set_caption_mode
from sticker_studio.tools.update_caption import update_caption as _update_caption

logger = logging.getLogger(__name__)

mcp = FastMCP("sticker-studio")

_config = load_config()
configure_logging(_config.output.verbosity)
logger.info(
    f"Loaded configuration: strategy={_config.scheduler.strategy}, "
    f"models={_config.gemini.image_models}"
)

# Lifecycle manager (initialized by __main__.py)
_lifecycle: StudioLifecycle | None = None


def get_lifecycle() -> StudioLifecycle:
    """
    Raises:
        RuntimeError: If lifecycle not initialized (should never happen)
    """
    if _lifecycle is None:
        raise RuntimeError("Server lifecycle not initialized. Call initialize_lifecycle() first.")
    return _lifecycle


async def initialize_lifecycle(config: StickerStudioConfig | None = None) -> None:
    """
    Create the session lifecycle and register signal handlers.

    Must be called before any tool calls. Called by __main__.py on startup.
    """
    global _lifecycle
    _lifecycle = StudioLifecycle(config or _config)
    await _lifecycle.startup()
    logger.info("Lifecycle initialized")


@mcp.tool()
async def list_styles() -> dict:
    """List the available sticker art styles and the default style."""
    return _list_styles(lifecycle=get_lifecycle())


@mcp.tool()
async def create_plan(
    count: int = 8,
    context: str | None = None,
    caption_mode: str | None = None,
) -> dict:
    """Generate a caption plan (8, 16 or 24 stickers) for a theme. Caption mode: local, alt or both."""
    return await _create_plan(count, context, caption_mode, lifecycle=get_lifecycle())


@mcp.tool()
async def update_caption(item_id: int, caption: str) -> dict:
    """Replace the caption of one sticker in the current plan."""
    return _update_caption(item_id, caption, lifecycle=get_lifecycle())


@mcp.tool()
async def set_caption_mode(mode: str) -> dict:
    """Switch all plan captions to local, alt or both languages."""
    return _set_caption_mode(mode, lifecycle=get_lifecycle())


@mcp.tool()
async def start_generation(
    style_id: str | None = None,
    reference_image_path: str | None = None,
    strategy: str | None = None,
) -> dict:
    """Start generating stickers for the current plan in the background."""
    return await _start_generation(
        style_id, reference_image_path, strategy, lifecycle=get_lifecycle()
    )


@mcp.tool()
async def check_status() -> dict:
    """Check generation progress and per-sticker status."""
    return await _check_status(lifecycle=get_lifecycle())


@mcp.tool()
async def cancel_generation() -> dict:
    """Cancel the running generation. Finished stickers are kept."""
    return await _cancel_generation(lifecycle=get_lifecycle())


@mcp.tool()
async def regenerate_sticker(item_id: int, caption: str | None = None) -> dict:
    """Regenerate one sticker of the last run, optionally with a new caption."""
    return await _regenerate_sticker(item_id, caption, lifecycle=get_lifecycle())


@mcp.tool()
async def export_pack(output_dir: str | None = None) -> dict:
    """Write the finished stickers as a zip (stickers plus main.png and tab.png)."""
    return await _export_pack(output_dir, lifecycle=get_lifecycle())


logger.info("MCP server initialized with 9 tools")

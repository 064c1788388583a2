# sticker_studio/tools/start_generation.py
"""
start_generation tool implementation.

Prepares the reference image and launches a background run over the
current plan.
"""

import asyncio
import logging

from fastmcp.exceptions import ToolError

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.generation.errors import StickerStudioError
from sticker_studio.models.images import ImagePayload
from sticker_studio.models.responses import StartGenerationResponse
from sticker_studio.scheduling.scheduler import SchedulerBusyError
from sticker_studio.scheduling.strategies import create_strategy
from sticker_studio.validation.sanitize import sanitize_image_path

logger = logging.getLogger(__name__)


async def load_reference(path: str | None, lifecycle: StudioLifecycle) -> ImagePayload | None:
    """
    Read and downscale a reference photo.

    Raises:
        ToolError: If the file is invalid or cannot be decoded
    """
    if not path:
        return None
    resolved = sanitize_image_path(path)
    try:
        raw = ImagePayload.from_path(resolved)
        return await asyncio.to_thread(lifecycle.compositor.prepare_reference, raw)
    except (OSError, ValueError) as e:
        raise ToolError(f"Could not read reference image {resolved}: {e}")


async def start_generation(
    style_id: str | None,
    reference_image_path: str | None,
    strategy: str | None,
    lifecycle: StudioLifecycle,
) -> dict:
    """
    Start generating stickers for the current plan.

    Args:
        style_id: Catalog style (None = default style)
        reference_image_path: Optional photo of the subject
        strategy: serial, grid or parallel (None = configured default)
        lifecycle: Session state

    Returns:
        StartGenerationResponse as dict

    Raises:
        ToolError: If there is no plan, input is invalid, credentials are
            missing, or a run is already active
    """
    if not lifecycle.plan:
        raise ToolError("No plan yet. Call create_plan first.")
    if style_id and style_id not in lifecycle.catalog:
        raise ToolError(f"Unknown style '{style_id}'. Use list_styles to see available styles.")

    reference = await load_reference(reference_image_path, lifecycle)

    try:
        scheduler = lifecycle.get_scheduler()
    except StickerStudioError as e:
        raise ToolError(e.user_message)

    try:
        if strategy:
            scheduler.set_strategy(create_strategy(lifecycle.config.scheduler, strategy))
        context = await scheduler.start(lifecycle.plan, style_id=style_id, reference_image=reference)
    except SchedulerBusyError as e:
        raise ToolError(f"{e}. Use cancel_generation or wait for check_status to report completion.")
    except ValueError as e:
        raise ToolError(str(e))

    response = StartGenerationResponse(
        run_id=context.run_id,
        state=scheduler.state.value,
        strategy=scheduler.strategy.name,
        style_id=context.style_id,
        total=len(lifecycle.plan),
    )
    return response.model_dump()

# sticker_studio/tools/regenerate_sticker.py
"""regenerate_sticker tool implementation."""

import logging

from fastmcp.exceptions import ToolError

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.generation.errors import StickerStudioError
from sticker_studio.models.responses import StickerStatus
from sticker_studio.planning.plan import edit_caption
from sticker_studio.scheduling.scheduler import SchedulerBusyError
from sticker_studio.validation.sanitize import sanitize_caption, sanitize_item_id

logger = logging.getLogger(__name__)


def _keep_caption(lifecycle: StudioLifecycle, item_id: int, caption: str | None) -> None:
    """Carry a regeneration caption into the editable plan used by the next run."""
    if caption is not None and 0 <= item_id < len(lifecycle.plan):
        lifecycle.plan = edit_caption(lifecycle.plan, item_id, caption)


async def regenerate_sticker(
    item_id: int, caption: str | None, lifecycle: StudioLifecycle
) -> dict:
    """
    Regenerate one sticker of the last run, optionally with a new caption.

    Returns:
        StickerStatus as dict

    Raises:
        ToolError: If no run exists, a run is active, or the id is invalid
    """
    scheduler = lifecycle.scheduler
    if scheduler is None or scheduler.context is None:
        raise ToolError("No generation run yet. Call start_generation first.")

    sanitize_item_id(item_id, len(scheduler.plan))
    cleaned = sanitize_caption(caption) if caption is not None else None

    try:
        result = await scheduler.regenerate(item_id, caption=cleaned)
    except SchedulerBusyError as e:
        raise ToolError(str(e))
    except StickerStudioError as e:
        _keep_caption(lifecycle, item_id, cleaned)
        raise ToolError(e.user_message)

    _keep_caption(lifecycle, item_id, cleaned)
    return StickerStatus(**result.to_summary()).model_dump()

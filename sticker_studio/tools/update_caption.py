# sticker_studio/tools/update_caption.py
"""update_caption and set_caption_mode tool implementations."""

import logging

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.planning.plan import edit_caption, switch_caption_mode
from sticker_studio.tools.create_plan import parse_caption_mode, plan_response
from sticker_studio.validation.sanitize import sanitize_caption, sanitize_item_id

logger = logging.getLogger(__name__)


def update_caption(item_id: int, caption: str, lifecycle: StudioLifecycle) -> dict:
    """
    Replace the caption of one plan item.

    A run already in progress keeps the captions it started with.

    Raises:
        ToolError: If there is no plan, the id is invalid or the caption is empty
    """
    sanitize_item_id(item_id, len(lifecycle.plan))
    cleaned = sanitize_caption(caption)
    lifecycle.plan = edit_caption(lifecycle.plan, item_id, cleaned)
    logger.info(f"Caption {item_id} updated to {cleaned!r}")
    return plan_response(lifecycle.plan, lifecycle.caption_mode)


def set_caption_mode(mode: str, lifecycle: StudioLifecycle) -> dict:
    """
    Switch every caption to local, alt or both languages.

    Manual caption edits are replaced by the re-derived text.

    Raises:
        ToolError: If the mode is invalid
    """
    caption_mode = parse_caption_mode(mode)
    lifecycle.plan = switch_caption_mode(lifecycle.plan, caption_mode)
    lifecycle.caption_mode = caption_mode
    return plan_response(lifecycle.plan, caption_mode)

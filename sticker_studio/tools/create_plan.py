# sticker_studio/tools/create_plan.py
"""
create_plan tool implementation.

Validates inputs, asks the text model for caption pairs, and stores the
resulting plan on the lifecycle.
"""

import logging

from fastmcp.exceptions import ToolError

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.generation.errors import StickerStudioError
from sticker_studio.models.items import PlanItem
from sticker_studio.models.responses import PlanItemInfo, PlanResponse
from sticker_studio.planning.plan import CaptionMode, build_plan, find_duplicate_captions
from sticker_studio.validation.sanitize import sanitize_context, validate_count

logger = logging.getLogger(__name__)


def parse_caption_mode(mode: str) -> CaptionMode:
    """
    Raises:
        ToolError: If mode is not local, alt or both
    """
    try:
        return CaptionMode(mode.strip().lower())
    except ValueError:
        raise ToolError(f"Invalid caption mode '{mode}': use local, alt or both")


def plan_response(plan: list[PlanItem], mode: CaptionMode) -> dict:
    """PlanResponse as dict for the given plan."""
    response = PlanResponse(
        items=[
            PlanItemInfo(
                id=item.id,
                caption=item.caption,
                caption_local=item.caption_local,
                caption_alt=item.caption_alt,
            )
            for item in plan
        ],
        caption_mode=mode.value,
        duplicates=find_duplicate_captions(plan),
    )
    return response.model_dump()


async def create_plan(
    count: int,
    context: str | None,
    caption_mode: str | None,
    lifecycle: StudioLifecycle,
) -> dict:
    """
    Generate a caption plan of `count` stickers.

    Args:
        count: Sticker set size (must be an allowed count)
        context: Theme or usage context for the captions
        caption_mode: local, alt or both (None = configured default)
        lifecycle: Session state

    Returns:
        PlanResponse as dict

    Raises:
        ToolError: On invalid input, missing credentials or an unusable plan
    """
    validate_count(count, lifecycle.config.planning.allowed_counts)
    cleaned_context = sanitize_context(context)
    mode = parse_caption_mode(caption_mode) if caption_mode else lifecycle.caption_mode

    try:
        client = lifecycle.get_client()
        pairs = await client.generate_plan(count, cleaned_context)
    except StickerStudioError as e:
        logger.error(f"Plan generation failed: {e}")
        raise ToolError(e.user_message)

    lifecycle.plan = build_plan(pairs, mode)
    lifecycle.caption_mode = mode
    logger.info(f"Created plan with {len(lifecycle.plan)} captions")
    return plan_response(lifecycle.plan, mode)

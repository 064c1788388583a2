# sticker_studio/planning/plan.py
"""
Plan construction and editing.

Plans are lists of frozen PlanItems; every edit returns a new list with the
same ids.
"""

import dataclasses
import logging
from collections import Counter
from collections.abc import Sequence
from enum import Enum

from sticker_studio.models.items import PlanItem
from sticker_studio.planning.schemas import CaptionPair

logger = logging.getLogger(__name__)


class CaptionMode(Enum):
    """Which caption language is drawn on the sticker."""

    LOCAL = "local"
    ALT = "alt"
    BOTH = "both"


def format_caption(caption_local: str, caption_alt: str, mode: CaptionMode) -> str:
    if mode is CaptionMode.LOCAL:
        return caption_local
    if mode is CaptionMode.ALT:
        return caption_alt
    return f"{caption_local} ({caption_alt})"


def build_plan(
    pairs: Sequence[CaptionPair], mode: CaptionMode = CaptionMode.BOTH
) -> list[PlanItem]:
    """Turn caption pairs into a plan with contiguous ids starting at 0."""
    plan = [
        PlanItem(
            id=index,
            caption=format_caption(pair.caption_local, pair.caption_alt, mode),
            caption_local=pair.caption_local,
            caption_alt=pair.caption_alt,
        )
        for index, pair in enumerate(pairs)
    ]
    logger.info(f"Built plan with {len(plan)} items (mode={mode.value})")
    return plan


def switch_caption_mode(plan: Sequence[PlanItem], mode: CaptionMode) -> list[PlanItem]:
    """Re-derive every caption from its stored language pair."""
    return [
        dataclasses.replace(
            item, caption=format_caption(item.caption_local, item.caption_alt, mode)
        )
        for item in plan
    ]


def edit_caption(plan: Sequence[PlanItem], item_id: int, text: str) -> list[PlanItem]:
    """
    Replace one item's caption.

    Raises:
        ValueError: If item_id is not in the plan
    """
    if not any(item.id == item_id for item in plan):
        raise ValueError(f"Item {item_id} not in plan")
    return [
        dataclasses.replace(item, caption=text) if item.id == item_id else item
        for item in plan
    ]


def find_duplicate_captions(plan: Sequence[PlanItem]) -> list[str]:
    """Captions (trimmed) that appear more than once, in first-seen order."""
    counts = Counter(item.caption.strip() for item in plan)
    seen: list[str] = []
    for item in plan:
        text = item.caption.strip()
        if counts[text] > 1 and text not in seen:
            seen.append(text)
    return seen

# sticker_studio/planning/__init__.py
"""
Caption planning: the response schema and plan editing helpers.
"""

from sticker_studio.planning.plan import (
    CaptionMode,
    build_plan,
    edit_caption,
    find_duplicate_captions,
    format_caption,
    switch_caption_mode,
)
from sticker_studio.planning.schemas import CaptionPair, CaptionPlan

__all__ = [
    "CaptionPair",
    "CaptionPlan",
    "CaptionMode",
    "build_plan",
    "edit_caption",
    "find_duplicate_captions",
    "format_caption",
    "switch_caption_mode",
]

# sticker_studio/validation/__init__.py
"""Input validation and sanitization utilities."""

from .sanitize import (
    sanitize_caption,
    sanitize_context,
    sanitize_image_path,
    sanitize_item_id,
    sanitize_output_dir,
    validate_count,
)

__all__ = [
    "sanitize_caption",
    "sanitize_context",
    "sanitize_image_path",
    "sanitize_item_id",
    "sanitize_output_dir",
    "validate_count",
]

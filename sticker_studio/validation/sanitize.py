# sticker_studio/validation/sanitize.py
"""
Input sanitization and validation utilities.

Shared by the MCP tools and the CLI. Failures raise ToolError so the MCP
layer can return them verbatim; the CLI prints the same message.
"""

import logging
from pathlib import Path

from fastmcp.exceptions import ToolError

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp"}


def sanitize_context(text: str | None, max_length: int = 2000) -> str:
    """
    Clean free-text theme/context for plan generation.

    Empty input is allowed (the configured default context is used).
    Truncates to max_length.
    """
    if text is None:
        return ""
    cleaned = text.strip()
    if len(cleaned) > max_length:
        logger.warning(f"Context truncated from {len(cleaned)} to {max_length} characters")
        cleaned = cleaned[:max_length]
    return cleaned


def validate_count(count: int, allowed: list[int]) -> int:
    """
    Check the requested sticker count against the allowed set sizes.

    Raises:
        ToolError: If count is not one of `allowed`
    """
    if count not in allowed:
        options = ", ".join(str(n) for n in allowed)
        raise ToolError(f"Invalid sticker count {count}: choose one of {options}")
    return count


def sanitize_caption(text: str, max_length: int = 60) -> str:
    """
    Strip and validate a sticker caption.

    Raises:
        ToolError: If the caption is empty or longer than max_length
    """
    cleaned = text.strip()
    if not cleaned:
        raise ToolError("Caption cannot be empty")
    if len(cleaned) > max_length:
        raise ToolError(
            f"Caption is {len(cleaned)} characters; keep it under {max_length} so it fits the sticker"
        )
    return cleaned


def sanitize_item_id(item_id: int, plan_size: int) -> int:
    """
    Raises:
        ToolError: If item_id is outside 0..plan_size-1
    """
    if plan_size == 0:
        raise ToolError("No plan yet. Call create_plan first.")
    if not 0 <= item_id < plan_size:
        raise ToolError(f"Invalid sticker id {item_id}: expected 0..{plan_size - 1}")
    return item_id


def sanitize_image_path(user_path: str) -> Path:
    """
    Resolve and validate a reference image path.

    Raises:
        ToolError: If the path is missing, not a file, or not a supported image type
    """
    try:
        resolved = Path(user_path).expanduser().resolve()
    except (ValueError, OSError) as e:
        raise ToolError(f"Invalid path '{user_path}': {e}")

    if not resolved.exists():
        raise ToolError(f"Image does not exist: {resolved}")
    if not resolved.is_file():
        raise ToolError(f"Image path is not a file: {resolved}")
    if resolved.suffix.lower() not in IMAGE_SUFFIXES:
        raise ToolError(
            f"Unsupported image type '{resolved.suffix}': use {', '.join(sorted(IMAGE_SUFFIXES))}"
        )

    logger.info(f"Sanitized reference image path: {resolved}")
    return resolved


def sanitize_output_dir(user_path: str) -> Path:
    """
    Resolve an output directory (created later if missing).

    Raises:
        ToolError: If the path exists and is not a directory
    """
    try:
        resolved = Path(user_path).expanduser().resolve()
    except (ValueError, OSError) as e:
        raise ToolError(f"Invalid path '{user_path}': {e}")

    if resolved.exists() and not resolved.is_dir():
        raise ToolError(f"Output path is not a directory: {resolved}")
    return resolved

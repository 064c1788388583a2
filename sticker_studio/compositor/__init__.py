# sticker_studio/compositor/__init__.py
"""Local image post-processing: background removal, captions, slicing, resizing."""

from .image_ops import (
    composite_caption,
    decode_image,
    downscale_for_upload,
    encode_png,
    remove_near_white_background,
    resize_to,
    slice_grid,
)
from .processor import StickerCompositor

__all__ = [
    "StickerCompositor",
    "composite_caption",
    "decode_image",
    "downscale_for_upload",
    "encode_png",
    "remove_near_white_background",
    "resize_to",
    "slice_grid",
]

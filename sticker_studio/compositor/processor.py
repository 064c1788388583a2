# sticker_studio/compositor/processor.py
"""Config-bound compositor used by the scheduler and the export step."""

import asyncio
import logging
import random

from sticker_studio.config.schema import CompositorConfig
from sticker_studio.models.images import ImagePayload

from . import image_ops

logger = logging.getLogger(__name__)


class StickerCompositor:
    """
    Applies CompositorConfig to the pure image operations.

    Holds configuration only, so one instance is safe to share between
    concurrent batch members.
    """

    def __init__(self, config: CompositorConfig | None = None, seed: int | None = None) -> None:
        """
        Args:
            config: Compositor settings (defaults if None)
            seed: Seed for caption tilt; None gives a fresh random tilt per sticker
        """
        self._config = config or CompositorConfig()
        self._seed = seed

    @property
    def config(self) -> CompositorConfig:
        return self._config

    def process_sync(self, raw: ImagePayload, caption: str) -> ImagePayload:
        """Background removal + caption overlay, returning a PNG."""
        cfg = self._config
        rng = random.Random(self._seed) if self._seed is not None else None
        sticker = image_ops.composite_caption(
            image_ops.decode_image(raw),
            caption,
            canvas_size=cfg.canvas_size,
            padding=cfg.padding,
            threshold=cfg.luminance_threshold,
            max_font_size=cfg.max_font_size,
            min_font_size=cfg.min_font_size,
            font_step=cfg.font_step,
            max_rotation=cfg.max_rotation,
            font_path=cfg.font_path,
            rng=rng,
        )
        return image_ops.encode_png(sticker)

    async def process(self, raw: ImagePayload, caption: str) -> ImagePayload:
        """process_sync in a worker thread so batch members composite in parallel."""
        return await asyncio.to_thread(self.process_sync, raw, caption)

    def slice(self, grid: ImagePayload, n: int) -> list[ImagePayload]:
        """Split a 2x2 sheet into n PNG tiles in reading order."""
        tiles = image_ops.slice_grid(image_ops.decode_image(grid), n)
        return [image_ops.encode_png(tile) for tile in tiles]

    def variant(self, image: ImagePayload, width: int, height: int) -> ImagePayload:
        """Resized PNG copy (store assets such as main.png / tab.png)."""
        resized = image_ops.resize_to(image_ops.decode_image(image), width, height)
        return image_ops.encode_png(resized)

    def prepare_reference(self, image: ImagePayload) -> ImagePayload:
        """Downscale a user photo before it is sent upstream."""
        return image_ops.downscale_for_upload(
            image_ops.decode_image(image),
            max_dimension=self._config.upload_max_dimension,
            quality=self._config.upload_quality,
        )

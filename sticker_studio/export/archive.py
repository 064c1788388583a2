# sticker_studio/export/archive.py
"""
Sticker pack packaging.

Layout of the produced zip:
    line_stickers/sticker_<id+1>.png   one per SUCCESS item
    line_stickers/main.png             240x240, from the first success
    line_stickers/tab.png              96x74, from the first success
"""

import io
import logging
import zipfile
from collections.abc import Iterable
from pathlib import Path

from sticker_studio.compositor.processor import StickerCompositor
from sticker_studio.config.schema import ExportConfig
from sticker_studio.models.items import GenerationResult, GenerationStatus

logger = logging.getLogger(__name__)


class StickerArchiveBuilder:
    """Builds the downloadable zip from ledger snapshots."""

    def __init__(self, compositor: StickerCompositor, config: ExportConfig | None = None) -> None:
        self._compositor = compositor
        self._config = config or ExportConfig()

    def sticker_name(self, result: GenerationResult) -> str:
        """1-based file name for a result (id 0 -> sticker_1.png)."""
        image = result.processed_image
        extension = image.extension if image is not None else "png"
        return f"sticker_{result.id + 1}.{extension}"

    def build(self, results: Iterable[GenerationResult]) -> bytes:
        """
        Zip bytes containing every successful sticker plus store assets.

        Raises:
            ValueError: If no result is SUCCESS
        """
        successes = sorted(
            (
                r for r in results
                if r.status is GenerationStatus.SUCCESS and r.processed_image is not None
            ),
            key=lambda r: r.id,
        )
        if not successes:
            raise ValueError("No successful stickers to export")

        folder = self._config.folder
        first = successes[0].processed_image
        main = self._compositor.variant(first, *self._config.main_size)
        tab = self._compositor.variant(first, *self._config.tab_size)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for result in successes:
                archive.writestr(f"{folder}/{self.sticker_name(result)}", result.processed_image.data)
            archive.writestr(f"{folder}/main.png", main.data)
            archive.writestr(f"{folder}/tab.png", tab.data)

        logger.info(f"Built archive with {len(successes)} stickers")
        return buffer.getvalue()

    def write(self, results: Iterable[GenerationResult], output_dir: Path) -> Path:
        """Build the archive and write it under output_dir; returns the file path."""
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / self._config.archive_name
        path.write_bytes(self.build(results))
        logger.info(f"Wrote sticker pack to {path}")
        return path

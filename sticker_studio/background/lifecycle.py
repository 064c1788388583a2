# sticker_studio/background/lifecycle.py
"""
Server lifecycle management.

Owns the long-lived session objects shared by the MCP tools: style catalog,
compositor, ledger, the current plan, and the lazily created Gemini client
and scheduler.
"""

import logging

from sticker_studio.background.signals import setup_signal_handlers
from sticker_studio.compositor.processor import StickerCompositor
from sticker_studio.config.schema import StickerStudioConfig
from sticker_studio.export.archive import StickerArchiveBuilder
from sticker_studio.generation.client import GeminiStickerClient
from sticker_studio.generation.factory import create_generation_client
from sticker_studio.models.items import PlanItem
from sticker_studio.models.ledger import ResultLedger
from sticker_studio.planning.plan import CaptionMode
from sticker_studio.scheduling.scheduler import BatchScheduler
from sticker_studio.scheduling.strategies import create_strategy
from sticker_studio.styles import StyleCatalog

logger = logging.getLogger(__name__)


class StudioLifecycle:
    """
    Session coordinator.

    Manages:
        - Catalog, compositor, ledger and archive builder (created eagerly)
        - Gemini client and scheduler (created on first use, so a missing
          API key surfaces as a tool error instead of a startup crash)
        - The editable caption plan
        - Signal handler registration and shutdown
    """

    def __init__(self, config: StickerStudioConfig | None = None) -> None:
        self._config = config or StickerStudioConfig()
        self._catalog = StyleCatalog.from_config(self._config)
        self._compositor = StickerCompositor(self._config.compositor)
        self._ledger = ResultLedger()
        self._archive_builder = StickerArchiveBuilder(self._compositor, self._config.export)
        self._client: GeminiStickerClient | None = None
        self._scheduler: BatchScheduler | None = None

        self.plan: list[PlanItem] = []
        self.caption_mode = CaptionMode(self._config.planning.caption_mode)
        logger.info(f"Created StudioLifecycle with {len(self._catalog)} styles")

    @property
    def config(self) -> StickerStudioConfig:
        return self._config

    @property
    def catalog(self) -> StyleCatalog:
        return self._catalog

    @property
    def compositor(self) -> StickerCompositor:
        return self._compositor

    @property
    def ledger(self) -> ResultLedger:
        return self._ledger

    @property
    def archive_builder(self) -> StickerArchiveBuilder:
        return self._archive_builder

    @property
    def scheduler(self) -> BatchScheduler | None:
        """Scheduler if one has been created (None before the first run)."""
        return self._scheduler

    def get_client(self) -> GeminiStickerClient:
        """
        Raises:
            InvalidCredential: If the API key is missing or malformed
        """
        if self._client is None:
            self._client = create_generation_client(self._config)
        return self._client

    def get_scheduler(self) -> BatchScheduler:
        """
        Raises:
            InvalidCredential: If the API key is missing or malformed
        """
        if self._scheduler is None:
            self._scheduler = BatchScheduler(
                self.get_client(),
                self._compositor,
                self._ledger,
                create_strategy(self._config.scheduler),
                self._catalog,
                archive_builder=self._archive_builder,
            )
        return self._scheduler

    async def startup(self) -> None:
        """Register signal handlers."""
        logger.info("Starting server lifecycle...")
        setup_signal_handlers(self)
        logger.info("Server lifecycle started: signals registered")

    async def shutdown(self) -> None:
        """Cancel the active run, if any."""
        logger.info("Shutting down server lifecycle...")
        if self._scheduler is not None:
            await self._scheduler.cancel()
        logger.info("Server lifecycle shutdown complete")

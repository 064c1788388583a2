# sticker_studio/scheduling/scheduler.py
"""
Batch scheduler: owns the run state machine and the background run task.

States:
    idle -> running -> complete | cancelled | failed
    any terminal state -> running (new run) or idle (reset)
"""

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from sticker_studio.cancellation import CancellationToken, RunCancelled
from sticker_studio.generation.errors import InvalidCredential, describe_error
from sticker_studio.models.images import ImagePayload
from sticker_studio.models.items import GenerationResult, PlanItem
from sticker_studio.models.ledger import ResultLedger
from sticker_studio.scheduling.context import RunContext, RunRuntime, generate_run_id
from sticker_studio.scheduling.strategies import BatchStrategy
from sticker_studio.styles import StyleCatalog

if TYPE_CHECKING:
    from sticker_studio.compositor.processor import StickerCompositor
    from sticker_studio.export.archive import StickerArchiveBuilder
    from sticker_studio.generation.client import GeminiStickerClient

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Lifecycle of the scheduler's current run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


class SchedulerBusyError(RuntimeError):
    """Raised when an operation needs the scheduler to be idle or finished."""


class BatchScheduler:
    """
    Drives one plan at a time through a BatchStrategy.

    start() launches the run as an asyncio task and returns immediately;
    progress is observed through the ledger. Only one run is active at a
    time, and each run gets its own RunContext and CancellationToken.
    """

    def __init__(
        self,
        client: "GeminiStickerClient",
        compositor: "StickerCompositor",
        ledger: ResultLedger | None,
        strategy: BatchStrategy,
        catalog: StyleCatalog,
        archive_builder: "StickerArchiveBuilder | None" = None,
    ) -> None:
        self._client = client
        self._compositor = compositor
        self._strategy = strategy
        self._catalog = catalog
        self._ledger = ledger if ledger is not None else ResultLedger()
        self._archive_builder = archive_builder

        self._state = RunState.IDLE
        self._error: str | None = None
        self._context: RunContext | None = None
        self._plan: list[PlanItem] = []
        self._task: asyncio.Task | None = None

    @property
    def ledger(self) -> ResultLedger:
        return self._ledger

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def error(self) -> str | None:
        """Run-level failure message (credential errors and crashes)."""
        return self._error

    @property
    def context(self) -> RunContext | None:
        return self._context

    @property
    def plan(self) -> list[PlanItem]:
        return list(self._plan)

    @property
    def strategy(self) -> BatchStrategy:
        return self._strategy

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_strategy(self, strategy: BatchStrategy) -> None:
        if self.is_running:
            raise SchedulerBusyError("Cannot change strategy while a run is active")
        self._strategy = strategy

    def progress(self) -> float:
        """Fraction of ledger entries in a terminal state."""
        total = len(self._ledger)
        if total == 0:
            return 0.0
        counts = self._ledger.counts()
        return (counts["success"] + counts["error"]) / total

    def _runtime(self) -> RunRuntime:
        return RunRuntime(client=self._client, compositor=self._compositor, ledger=self._ledger)

    async def start(
        self,
        plan: Sequence[PlanItem],
        style_id: str | None = None,
        reference_image: ImagePayload | None = None,
    ) -> RunContext:
        """
        Start a run in the background.

        Args:
            plan: Items to generate (unique ids)
            style_id: Catalog style id (None = catalog default)
            reference_image: Optional subject photo, already prepared for upload

        Returns:
            The new run's context

        Raises:
            SchedulerBusyError: If a run is already active
            ValueError: If the plan is empty or has duplicate ids
            UnknownStyleError: If style_id is not in the catalog
        """
        if self.is_running:
            raise SchedulerBusyError("A generation run is already in progress")
        if not plan:
            raise ValueError("Plan is empty")
        ids = [item.id for item in plan]
        if len(set(ids)) != len(ids):
            raise ValueError("Plan item ids must be unique")

        style_prompt = self._catalog.resolve_prompt(style_id)
        context = RunContext(
            run_id=generate_run_id(),
            token=CancellationToken(),
            style_prompt=style_prompt,
            style_id=style_id or self._catalog.default_style,
            reference_image=reference_image,
        )

        self._plan = list(plan)
        self._context = context
        self._error = None
        await self._ledger.reset(self._plan)
        self._state = RunState.RUNNING

        logger.info(
            f"Run {context.run_id} started: {len(self._plan)} items, "
            f"strategy={self._strategy.name}, style={context.style_id}"
        )
        self._task = asyncio.create_task(self._execute(context, self._plan))
        return context

    async def _execute(self, context: RunContext, plan: list[PlanItem]) -> None:
        try:
            await self._strategy.run(plan, context, self._runtime())
        except RunCancelled:
            logger.warning(f"Run {context.run_id} cancelled")
            self._finish(context, RunState.CANCELLED)
            return
        except asyncio.CancelledError:
            logger.warning(f"Run {context.run_id} task cancelled")
            self._finish(context, RunState.CANCELLED)
            raise
        except InvalidCredential as e:
            logger.error(f"Run {context.run_id} failed: {e}")
            self._finish(context, RunState.FAILED, e.user_message)
            return
        except Exception as e:
            logger.error(f"Run {context.run_id} crashed: {e}", exc_info=True)
            self._finish(context, RunState.FAILED, f"{type(e).__name__}: {e}")
            return

        if context.token.cancelled:
            self._finish(context, RunState.CANCELLED)
        else:
            self._finish(context, RunState.COMPLETE)

    def _finish(self, context: RunContext, state: RunState, error: str | None = None) -> None:
        # A stale run must not overwrite a newer run's state
        if self._context is None or self._context.run_id != context.run_id:
            return
        self._state = state
        self._error = error
        counts = self._ledger.counts()
        logger.info(
            f"Run {context.run_id} -> {state.value} "
            f"(success={counts['success']}, error={counts['error']})"
        )

    async def wait(self) -> RunState:
        """Wait for the active run (if any) and return the resulting state."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        return self._state

    async def run(
        self,
        plan: Sequence[PlanItem],
        style_id: str | None = None,
        reference_image: ImagePayload | None = None,
    ) -> RunState:
        """start() and wait() in one call."""
        await self.start(plan, style_id=style_id, reference_image=reference_image)
        return await self.wait()

    async def cancel(self) -> RunState:
        """
        Signal cancellation and wait for the run to wind down.

        Idempotent; a no-op when nothing is running. Items already resolved
        keep their status.
        """
        if self._context is not None:
            self._context.token.cancel()
        if self.is_running:
            await self.wait()
        return self._state

    async def reset(self) -> None:
        """Cancel any active run and return to idle with an empty ledger."""
        await self.cancel()
        self._context = None
        self._plan = []
        self._task = None
        self._error = None
        await self._ledger.clear()
        self._state = RunState.IDLE
        logger.info("Scheduler reset to idle")

    async def regenerate(self, item_id: int, caption: str | None = None) -> GenerationResult:
        """
        Re-run a single item of the current run, replacing even a SUCCESS entry.

        Args:
            item_id: Plan item id
            caption: Optional new caption for the item

        Returns:
            The item's ledger entry after the attempt

        Raises:
            SchedulerBusyError: If a run is active or there is no run to regenerate from
            ValueError: If item_id is not in the current plan
            InvalidCredential: If the API key is rejected
        """
        if self.is_running:
            raise SchedulerBusyError("Wait for the current run to finish before regenerating")
        if self._context is None:
            raise SchedulerBusyError("No generation run to regenerate from")

        index = next((i for i, item in enumerate(self._plan) if item.id == item_id), None)
        if index is None:
            raise ValueError(f"Item {item_id} is not part of the current plan")

        item = self._plan[index]
        if caption is not None and caption != item.caption:
            item = dataclasses.replace(item, caption=caption)
            self._plan[index] = item

        # Fresh token: the previous run's token may already be cancelled
        context = dataclasses.replace(self._context, token=CancellationToken())
        self._context = context

        # Held as the active task: start() and export() refuse, cancel() waits
        self._task = asyncio.create_task(self._regenerate_item(context, item))
        credential_error = await self._task
        if credential_error is not None:
            raise credential_error
        return self._ledger.get(item_id)

    def _owns(self, context: RunContext) -> bool:
        return self._context is context

    async def _regenerate_item(
        self, context: RunContext, item: PlanItem
    ) -> InvalidCredential | None:
        """Ledger writes are skipped once `context` is no longer current."""
        previous = self._ledger.get(item.id)
        await self._ledger.mark_generating(item, force=True)
        logger.info(f"Regenerating item {item.id} in run {context.run_id}")
        try:
            raw = await self._client.generate_single(
                item.caption,
                context.style_prompt,
                context.reference_image,
                token=context.token,
            )
            context.token.raise_if_cancelled()
            processed = await self._compositor.process(raw, item.caption)
            if self._owns(context):
                await self._ledger.record_success(item, raw, processed, force=True)
        except (RunCancelled, asyncio.CancelledError) as e:
            if previous is not None and self._owns(context):
                await self._ledger.replace(previous, force=True)
            logger.warning(f"Regeneration of item {item.id} cancelled")
            if isinstance(e, asyncio.CancelledError):
                raise
        except InvalidCredential as e:
            if self._owns(context):
                await self._ledger.record_error(item, e.user_message, force=True)
                self._error = e.user_message
            return e
        except Exception as e:
            logger.error(f"Regeneration of item {item.id} failed: {e}")
            if self._owns(context):
                await self._ledger.record_error(item, describe_error(e), force=True)
        return None

    async def preview(
        self, style_id: str | None = None, reference_image: ImagePayload | None = None
    ) -> ImagePayload:
        """Single uncaptioned sample in the given style; does not touch the ledger."""
        style_prompt = self._catalog.resolve_prompt(style_id)
        return await self._client.generate_preview(style_prompt, reference_image)

    def export(self) -> bytes:
        """
        Zip archive of the current run's successful stickers.

        Raises:
            SchedulerBusyError: If a run is active or no builder is configured
            ValueError: If there is nothing to export
        """
        if self.is_running:
            raise SchedulerBusyError("Cannot export while a run is active")
        if self._archive_builder is None:
            raise SchedulerBusyError("No archive builder configured")
        if not self._ledger.is_complete():
            raise SchedulerBusyError("Every sticker must finish (success or error) before export")
        return self._archive_builder.build(self._ledger.snapshot())

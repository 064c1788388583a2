# sticker_studio/scheduling/strategies.py
"""
Batching strategies for driving a plan through the generation client.

All strategies share one contract: items are attempted in plan order,
cancellation is checked at every suspension point, SUCCESS entries are never
regressed, and every item is SUCCESS or ERROR when a run ends normally.
Only RunCancelled and InvalidCredential escape a strategy.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from sticker_studio.cancellation import RunCancelled
from sticker_studio.config.schema import (
    GridConfig,
    ParallelConfig,
    SchedulerConfig,
    SerialConfig,
)
from sticker_studio.generation.errors import (
    InvalidCredential,
    describe_error,
    is_quota_error,
    is_retryable,
)
from sticker_studio.generation.retry import RetryPolicy, constant_backoff
from sticker_studio.models.items import PlanItem
from sticker_studio.scheduling.context import RunContext, RunRuntime

logger = logging.getLogger(__name__)


def chunked(plan: Sequence[PlanItem], size: int) -> list[list[PlanItem]]:
    """Contiguous batches of at most `size` items, in plan order."""
    return [list(plan[i:i + size]) for i in range(0, len(plan), size)]


class BatchStrategy(ABC):
    """
    Abstract batching strategy.

    Subclasses implement run(); the shared helpers keep ledger writes
    identical across strategies.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy identifier used in config and logs."""

    @abstractmethod
    async def run(
        self, plan: Sequence[PlanItem], context: RunContext, runtime: RunRuntime
    ) -> None:
        """
        Drive `plan` to completion.

        Raises:
            RunCancelled: When the run's token is cancelled
            InvalidCredential: When the API key is rejected (fatal to the run)
        """

    async def _produce_single(
        self, item: PlanItem, context: RunContext, runtime: RunRuntime
    ) -> None:
        """Generate, composite and record one item; no-op if already SUCCESS."""
        if runtime.ledger.is_success(item.id):
            return

        raw = await runtime.client.generate_single(
            item.caption,
            context.style_prompt,
            context.reference_image,
            token=context.token,
        )
        context.token.raise_if_cancelled()
        processed = await runtime.compositor.process(raw, item.caption)
        await runtime.ledger.record_success(item, raw, processed)

    async def _fail_items(
        self, items: Sequence[PlanItem], runtime: RunRuntime, detail: str
    ) -> None:
        for item in items:
            await runtime.ledger.record_error(item, detail)


class SerialStrategy(BatchStrategy):
    """
    One item at a time.

    A retryable failure waits `cooldown` seconds and retries the item, up to
    `max_retries` times, before marking it ERROR. Items are separated by
    `item_delay` seconds.
    """

    def __init__(self, config: SerialConfig | None = None) -> None:
        self._config = config or SerialConfig()
        self._policy = RetryPolicy(
            max_attempts=self._config.max_retries + 1,
            backoff=constant_backoff(self._config.cooldown),
            retryable=is_retryable,
        )

    @property
    def name(self) -> str:
        return "serial"

    async def run(
        self, plan: Sequence[PlanItem], context: RunContext, runtime: RunRuntime
    ) -> None:
        token = context.token
        ledger = runtime.ledger

        for index, item in enumerate(plan):
            token.raise_if_cancelled()
            if ledger.is_success(item.id):
                continue

            await ledger.mark_generating(item)
            try:
                await self._policy.call(
                    self._produce_single, item, context, runtime, token=token
                )
            except RunCancelled:
                raise
            except InvalidCredential as e:
                await ledger.record_error(item, e.user_message)
                raise
            except Exception as e:
                logger.error(f"Item {item.id} failed: {e}")
                await ledger.record_error(item, describe_error(e))

            if index < len(plan) - 1:
                await token.sleep(self._config.item_delay)


class GridStrategy(BatchStrategy):
    """
    One 2x2 grid request per batch of up to four captions.

    The returned sheet is sliced into one tile per pending member and the
    tiles are composited concurrently. A failed grid request marks every
    pending member ERROR with the same detail.
    """

    def __init__(self, config: GridConfig | None = None) -> None:
        self._config = config or GridConfig()

    @property
    def name(self) -> str:
        return "grid"

    async def run(
        self, plan: Sequence[PlanItem], context: RunContext, runtime: RunRuntime
    ) -> None:
        token = context.token
        batches = chunked(plan, self._config.batch_size)

        for index, batch in enumerate(batches):
            token.raise_if_cancelled()
            pending = [item for item in batch if not runtime.ledger.is_success(item.id)]
            if not pending:
                continue

            quota_failure = await self._run_batch(pending, context, runtime)
            if quota_failure:
                logger.warning(f"Quota hit on batch {index}, pausing {self._config.quota_pause}s")
                await token.sleep(self._config.quota_pause)

            if index < len(batches) - 1:
                await token.sleep(self._config.batch_delay)

    async def _run_batch(
        self, pending: list[PlanItem], context: RunContext, runtime: RunRuntime
    ) -> bool:
        """
        Generate and record one batch.

        Returns:
            True if the batch failed for quota reasons
        """
        ledger = runtime.ledger
        for item in pending:
            await ledger.mark_generating(item)

        try:
            sheet = await runtime.client.generate_grid(
                [item.caption for item in pending],
                context.style_prompt,
                context.reference_image,
                token=context.token,
            )
            context.token.raise_if_cancelled()
            tiles = await asyncio.to_thread(runtime.compositor.slice, sheet, len(pending))
        except RunCancelled:
            raise
        except InvalidCredential as e:
            await self._fail_items(pending, runtime, e.user_message)
            raise
        except Exception as e:
            logger.error(f"Grid batch {[i.id for i in pending]} failed: {e}")
            await self._fail_items(pending, runtime, describe_error(e))
            return is_quota_error(e)

        results = await asyncio.gather(
            *(runtime.compositor.process(tile, item.caption) for tile, item in zip(tiles, pending)),
            return_exceptions=True,
        )
        for item, tile, result in zip(pending, tiles, results):
            if isinstance(result, BaseException):
                logger.error(f"Compositing item {item.id} failed: {result}")
                await ledger.record_error(item, f"Image processing failed: {result}")
            else:
                await ledger.record_success(item, tile, result)
        return False


class _BatchFailure(Exception):
    """Members of a parallel batch failed; carries each member's error."""

    def __init__(self, errors: dict[int, BaseException], retryable: bool) -> None:
        self.errors = errors
        self.retryable = retryable
        self.cause = next(iter(errors.values()))
        super().__init__(str(self.cause))


class ParallelBatchStrategy(BatchStrategy):
    """
    Small batches of concurrent single-image requests.

    Any retryable member failure backs off and retries the whole batch;
    members already SUCCESS are skipped on the retry. A non-retryable failure
    (or an exhausted retry budget) marks every unresolved member ERROR.
    """

    def __init__(self, config: ParallelConfig | None = None) -> None:
        self._config = config or ParallelConfig()
        self._policy = RetryPolicy(
            max_attempts=self._config.max_retries + 1,
            backoff=constant_backoff(self._config.backoff),
            retryable=lambda e: isinstance(e, _BatchFailure) and e.retryable,
        )

    @property
    def name(self) -> str:
        return "parallel"

    def batch_delay(self, plan_size: int) -> float:
        """Pacing between batches; larger plans wait longer."""
        if plan_size > self._config.large_plan_threshold:
            return self._config.large_plan_batch_delay
        return self._config.batch_delay

    async def run(
        self, plan: Sequence[PlanItem], context: RunContext, runtime: RunRuntime
    ) -> None:
        token = context.token
        batches = chunked(plan, self._config.batch_size)
        delay = self.batch_delay(len(plan))

        for index, batch in enumerate(batches):
            token.raise_if_cancelled()
            if all(runtime.ledger.is_success(item.id) for item in batch):
                continue

            try:
                await self._policy.call(
                    self._attempt_batch, batch, context, runtime, token=token
                )
            except _BatchFailure as failure:
                logger.error(f"Batch {[i.id for i in batch]} failed: {failure}")
                for item in batch:
                    if runtime.ledger.is_success(item.id):
                        continue
                    cause = failure.errors.get(item.id, failure.cause)
                    await runtime.ledger.record_error(item, describe_error(cause))

            if index < len(batches) - 1:
                await token.sleep(delay)

    async def _attempt_batch(
        self, batch: list[PlanItem], context: RunContext, runtime: RunRuntime
    ) -> None:
        unresolved = [item for item in batch if not runtime.ledger.is_success(item.id)]
        if not unresolved:
            return

        for item in unresolved:
            await runtime.ledger.mark_generating(item)

        results = await asyncio.gather(
            *(self._produce_single(item, context, runtime) for item in unresolved),
            return_exceptions=True,
        )
        errors = {
            item.id: result
            for item, result in zip(unresolved, results)
            if isinstance(result, BaseException)
        }
        if not errors:
            return

        for error in errors.values():
            if isinstance(error, RunCancelled):
                raise error
        for error in errors.values():
            if isinstance(error, InvalidCredential):
                await self._fail_items(
                    [i for i in unresolved if not runtime.ledger.is_success(i.id)],
                    runtime,
                    error.user_message,
                )
                raise error

        retryable = all(is_retryable(e) for e in errors.values())
        raise _BatchFailure(errors, retryable=retryable)


def create_strategy(config: SchedulerConfig, name: str | None = None) -> BatchStrategy:
    """
    Build the strategy named `name` (default: config.strategy).

    Raises:
        ValueError: If the name is unknown
    """
    name = name or config.strategy
    if name == "serial":
        return SerialStrategy(config.serial)
    if name == "grid":
        return GridStrategy(config.grid)
    if name == "parallel":
        return ParallelBatchStrategy(config.parallel)
    raise ValueError(f"Unknown strategy '{name}'. Use serial, grid or parallel.")

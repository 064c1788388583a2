# sticker_studio/tools/check_status.py
"""
check_status and cancel_generation tool implementations.

Report run state and per-sticker status from the ledger.
"""

import logging

from fastmcp.exceptions import ToolError

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.models.responses import RunStatusResponse, StickerStatus
from sticker_studio.scheduling.scheduler import BatchScheduler, RunState

logger = logging.getLogger(__name__)


def _status_message(scheduler: BatchScheduler, counts: dict[str, int]) -> str:
    state = scheduler.state
    if state is RunState.IDLE:
        return "No generation run. Call start_generation to begin."
    if state is RunState.RUNNING:
        done = counts["success"] + counts["error"]
        return f"Generating: {done}/{len(scheduler.ledger)} finished"
    if state is RunState.COMPLETE:
        if counts["error"]:
            return (
                f"Run complete with {counts['error']} failed sticker(s). "
                "Use regenerate_sticker to retry them, or export_pack."
            )
        return "Run complete. Use export_pack to write the sticker pack."
    if state is RunState.CANCELLED:
        return "Run cancelled. Finished stickers are kept."
    return f"Run failed: {scheduler.error or 'Unknown error'}"


def run_status(scheduler: BatchScheduler | None) -> dict:
    """RunStatusResponse as dict for the scheduler (idle when None)."""
    if scheduler is None:
        return RunStatusResponse(
            state=RunState.IDLE.value,
            progress=0.0,
            message="No generation run. Call start_generation to begin.",
        ).model_dump()

    counts = scheduler.ledger.counts()
    context = scheduler.context
    response = RunStatusResponse(
        run_id=context.run_id if context else None,
        state=scheduler.state.value,
        progress=scheduler.progress(),
        counts=counts,
        error=scheduler.error,
        message=_status_message(scheduler, counts),
        stickers=[StickerStatus(**r.to_summary()) for r in scheduler.ledger.snapshot()],
    )
    return response.model_dump()


async def check_status(lifecycle: StudioLifecycle) -> dict:
    """
    Current run state, progress and per-sticker status.

    Returns:
        RunStatusResponse as dict
    """
    return run_status(lifecycle.scheduler)


async def cancel_generation(lifecycle: StudioLifecycle) -> dict:
    """
    Cancel the active run and wait for it to stop.

    Raises:
        ToolError: If no run has been started
    """
    scheduler = lifecycle.scheduler
    if scheduler is None or scheduler.context is None:
        raise ToolError("No generation run to cancel.")
    state = await scheduler.cancel()
    logger.info(f"cancel_generation -> {state.value}")
    return run_status(scheduler)

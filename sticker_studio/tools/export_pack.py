# sticker_studio/tools/export_pack.py
"""export_pack tool implementation."""

import logging

from fastmcp.exceptions import ToolError

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.models.responses import ExportResponse
from sticker_studio.scheduling.scheduler import SchedulerBusyError
from sticker_studio.validation.sanitize import sanitize_output_dir

logger = logging.getLogger(__name__)


async def export_pack(output_dir: str | None, lifecycle: StudioLifecycle) -> dict:
    """
    Write the sticker pack zip for the finished run.

    Args:
        output_dir: Target directory (None = configured output dir)
        lifecycle: Session state

    Returns:
        ExportResponse as dict

    Raises:
        ToolError: If no run finished or nothing succeeded
    """
    scheduler = lifecycle.scheduler
    if scheduler is None or scheduler.context is None:
        raise ToolError("No generation run to export.")

    target = sanitize_output_dir(output_dir or lifecycle.config.output.output_dir)
    try:
        data = scheduler.export()
    except (SchedulerBusyError, ValueError) as e:
        raise ToolError(str(e))

    try:
        target.mkdir(parents=True, exist_ok=True)
        path = target / lifecycle.config.export.archive_name
        path.write_bytes(data)
    except OSError as e:
        raise ToolError(f"Could not write sticker pack to {target}: {e}")

    logger.info(f"Exported sticker pack to {path}")
    response = ExportResponse(
        path=str(path),
        sticker_count=len(scheduler.ledger.successes()),
        size_bytes=len(data),
    )
    return response.model_dump()

# sticker_studio/scheduling/__init__.py
"""Run scheduling: strategies, run context and the batch scheduler."""

from .context import RunContext, RunRuntime, generate_run_id
from .scheduler import BatchScheduler, RunState, SchedulerBusyError
from .strategies import (
    BatchStrategy,
    GridStrategy,
    ParallelBatchStrategy,
    SerialStrategy,
    chunked,
    create_strategy,
)

__all__ = [
    "BatchScheduler",
    "BatchStrategy",
    "GridStrategy",
    "ParallelBatchStrategy",
    "RunContext",
    "RunRuntime",
    "RunState",
    "SchedulerBusyError",
    "SerialStrategy",
    "chunked",
    "create_strategy",
    "generate_run_id",
]

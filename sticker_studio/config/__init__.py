# sticker_studio/config/__init__.py
"""Configuration system for sticker-studio."""

from .loader import get_config_path, load_config
from .schema import (
    CompositorConfig,
    ExportConfig,
    GeminiConfig,
    GridConfig,
    OutputConfig,
    ParallelConfig,
    PlanningConfig,
    SchedulerConfig,
    SerialConfig,
    StickerStudioConfig,
    StickerStyle,
)

__all__ = [
    "StickerStudioConfig",
    "GeminiConfig",
    "SchedulerConfig",
    "SerialConfig",
    "GridConfig",
    "ParallelConfig",
    "CompositorConfig",
    "PlanningConfig",
    "ExportConfig",
    "OutputConfig",
    "StickerStyle",
    "load_config",
    "get_config_path",
]

# sticker_studio/models/__init__.py
"""
Data models for sticker-studio.

Frozen plan/result records, the result ledger, and Pydantic tool responses.
"""

from sticker_studio.models.images import ImagePayload
from sticker_studio.models.items import GenerationResult, GenerationStatus, PlanItem
from sticker_studio.models.ledger import ResultLedger
from sticker_studio.models.responses import (
    ExportResponse,
    PlanItemInfo,
    PlanResponse,
    RunStatusResponse,
    StartGenerationResponse,
    StickerStatus,
    StyleInfo,
    StylesResponse,
)

__all__ = [
    # Records
    "ImagePayload",
    "PlanItem",
    "GenerationStatus",
    "GenerationResult",
    "ResultLedger",
    # Response models
    "StyleInfo",
    "StylesResponse",
    "PlanItemInfo",
    "PlanResponse",
    "StartGenerationResponse",
    "StickerStatus",
    "RunStatusResponse",
    "ExportResponse",
]

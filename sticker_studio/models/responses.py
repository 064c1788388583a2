# sticker_studio/models/responses.py
"""
Pydantic response models for MCP tool outputs.

All tools return structured responses using these models for consistency.
"""

from pydantic import BaseModel, Field


class StyleInfo(BaseModel):
    """One entry of the style catalog."""

    id: str = Field(description="Style identifier to pass to start_generation")
    name: str = Field(description="Display name")
    prompt_modifier: str = Field(description="Style text appended to prompts")


class StylesResponse(BaseModel):
    """Response from list_styles tool."""

    styles: list[StyleInfo] = Field(default_factory=list, description="Available styles")
    default_style: str | None = Field(default=None, description="Style used when none is given")


class PlanItemInfo(BaseModel):
    """One caption of the current plan."""

    id: int = Field(ge=0, description="Contiguous plan index")
    caption: str = Field(description="Caption drawn on the sticker")
    caption_local: str = Field(default="", description="Primary-language caption")
    caption_alt: str = Field(default="", description="Alternate-language caption")


class PlanResponse(BaseModel):
    """Response from create_plan, update_caption and set_caption_mode tools."""

    items: list[PlanItemInfo] = Field(default_factory=list, description="Plan in order")
    caption_mode: str = Field(description="Caption language mode (local/alt/both)")
    duplicates: list[str] = Field(
        default_factory=list, description="Captions that appear more than once"
    )
    next_steps: str = Field(
        default="Edit captions with update_caption, then call start_generation",
        description="What to do next",
    )


class StartGenerationResponse(BaseModel):
    """Response from start_generation tool."""

    run_id: str = Field(description="Identifier of the new run")
    state: str = Field(description="Run state (always 'running' for a new run)")
    strategy: str = Field(description="Batching strategy in use")
    style_id: str | None = Field(default=None, description="Style applied to the run")
    total: int = Field(ge=0, description="Number of stickers requested")
    next_steps: str = Field(
        default="Use check_status to monitor progress",
        description="Instructions for monitoring the run",
    )


class StickerStatus(BaseModel):
    """Status of one sticker in the ledger."""

    id: int = Field(ge=0, description="Plan item id")
    caption: str = Field(description="Caption the attempt was made with")
    status: str = Field(description="pending/generating/success/error")
    error: str | None = Field(default=None, description="Failure detail for error items")
    has_image: bool = Field(default=False, description="Processed image available")


class RunStatusResponse(BaseModel):
    """Response from check_status and cancel_generation tools."""

    run_id: str | None = Field(default=None, description="Current run identifier")
    state: str = Field(description="idle/running/complete/cancelled/failed")
    progress: float = Field(
        ge=0.0, le=1.0, description="Finished stickers as fraction (0.0-1.0)"
    )
    counts: dict[str, int] = Field(default_factory=dict, description="Stickers per status")
    error: str | None = Field(default=None, description="Run-level failure message")
    message: str | None = Field(default=None, description="Human-readable status message")
    stickers: list[StickerStatus] = Field(default_factory=list, description="Per-sticker status")


class ExportResponse(BaseModel):
    """Response from export_pack tool."""

    path: str = Field(description="Path of the written zip file")
    sticker_count: int = Field(ge=0, description="Stickers included in the pack")
    size_bytes: int = Field(ge=0, description="Archive size")

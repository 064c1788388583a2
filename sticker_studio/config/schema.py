# sticker_studio/config/schema.py
"""
Pydantic configuration models for sticker-studio.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GeminiConfig(BaseModel):
    """Gemini API configuration."""

    model_config = ConfigDict(extra="ignore")

    api_key: str | None = Field(
        default=None,
        description="Gemini API key (None = read from api_key_env)",
    )
    api_key_env: str = Field(
        default="GEMINI_API_KEY",
        description="Environment variable holding the API key",
    )
    text_model: str = Field(
        default="gemini-2.5-flash", description="Model used for caption planning"
    )
    image_models: list[str] = Field(
        default_factory=lambda: ["gemini-2.5-flash-image", "gemini-2.0-flash-exp"],
        min_length=1,
        description="Image models in fallback order (separate quota pools)",
    )
    attempts_per_model: int = Field(
        default=3, ge=1, le=10, description="Attempts on each model before falling back"
    )
    backoff_step: float = Field(
        default=5.0, ge=0.0, description="Seconds added per failed attempt"
    )
    backoff_offset: float = Field(
        default=2.0, ge=0.0, description="Constant seconds added to every backoff"
    )
    timeout: int = Field(
        default=120, ge=1, description="Request timeout in seconds"
    )


class SerialConfig(BaseModel):
    """One-at-a-time strategy settings."""

    model_config = ConfigDict(extra="ignore")

    cooldown: float = Field(
        default=20.0, ge=0.0, description="Seconds to wait after a rate-limited item"
    )
    max_retries: int = Field(
        default=2, ge=0, le=10, description="Retries per item after the first attempt"
    )
    item_delay: float = Field(
        default=5.0, ge=0.0, description="Pause between consecutive items"
    )


class GridConfig(BaseModel):
    """2x2 grid strategy settings."""

    model_config = ConfigDict(extra="ignore")

    batch_size: int = Field(
        default=4, ge=1, le=4, description="Captions per grid request"
    )
    batch_delay: float = Field(
        default=10.0, ge=0.0, description="Pause between grid requests"
    )
    quota_pause: float = Field(
        default=10.0, ge=0.0, description="Extra pause after a quota-related batch failure"
    )


class ParallelConfig(BaseModel):
    """Small concurrent batch strategy settings."""

    model_config = ConfigDict(extra="ignore")

    batch_size: int = Field(
        default=3, ge=1, le=8, description="Concurrent single-image requests per batch"
    )
    backoff: float = Field(
        default=15.0, ge=0.0, description="Seconds to wait before retrying a batch"
    )
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Whole-batch retries after the first attempt"
    )
    batch_delay: float = Field(
        default=5.0, ge=0.0, description="Pause between batches for small plans"
    )
    large_plan_threshold: int = Field(
        default=8, ge=1, description="Plans larger than this use large_plan_batch_delay"
    )
    large_plan_batch_delay: float = Field(
        default=10.0, ge=0.0, description="Pause between batches for large plans"
    )


class SchedulerConfig(BaseModel):
    """Batch scheduler configuration."""

    model_config = ConfigDict(extra="ignore")

    strategy: Literal["serial", "grid", "parallel"] = Field(
        default="grid", description="Batching strategy used for runs"
    )
    serial: SerialConfig = Field(default_factory=SerialConfig)
    grid: GridConfig = Field(default_factory=GridConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)


class CompositorConfig(BaseModel):
    """Local image post-processing settings."""

    model_config = ConfigDict(extra="ignore")

    canvas_size: int = Field(default=320, ge=32, description="Square sticker size in px")
    padding: int = Field(default=20, ge=0, description="Padding around the artwork")
    luminance_threshold: int = Field(
        default=240,
        ge=0,
        le=255,
        description="Pixels with R, G and B above this become transparent",
    )
    max_font_size: int = Field(default=34, ge=1, description="Starting caption size")
    min_font_size: int = Field(default=20, ge=1, description="Smallest caption size")
    font_step: int = Field(default=2, ge=1, description="Shrink step while text is too wide")
    max_rotation: float = Field(
        default=4.0, ge=0.0, le=45.0, description="Caption rotation range in degrees (+/-)"
    )
    font_path: str | None = Field(
        default=None,
        description="TrueType/OpenType font for captions (None = Pillow default font)",
    )
    upload_max_dimension: int = Field(
        default=800, ge=64, description="Longest side of reference images sent upstream"
    )
    upload_quality: int = Field(
        default=85, ge=1, le=95, description="JPEG quality for reference uploads"
    )


class PlanningConfig(BaseModel):
    """Caption planning configuration."""

    model_config = ConfigDict(extra="ignore")

    primary_language: str = Field(
        default="Traditional Chinese (繁體中文)", description="Language of caption_local"
    )
    alternate_language: str = Field(
        default="English", description="Language of caption_alt"
    )
    default_context: str = Field(
        default="General daily conversation",
        description="Usage context when none is given",
    )
    allowed_counts: list[int] = Field(
        default_factory=lambda: [8, 16, 24], description="Sticker set sizes offered"
    )
    caption_mode: Literal["local", "alt", "both"] = Field(
        default="both", description="Which caption language is drawn on stickers"
    )
    preview_caption: str = Field(
        default="開心 (Happy)", description="Caption used for style previews"
    )


class ExportConfig(BaseModel):
    """Archive layout for finished sticker packs."""

    model_config = ConfigDict(extra="ignore")

    folder: str = Field(default="line_stickers", description="Folder inside the archive")
    archive_name: str = Field(
        default="line_stickers_pack.zip", description="Default archive file name"
    )
    main_size: tuple[int, int] = Field(default=(240, 240), description="main.png size")
    tab_size: tuple[int, int] = Field(default=(96, 74), description="tab.png size")


class OutputConfig(BaseModel):
    """Output and logging configuration."""

    model_config = ConfigDict(extra="ignore")

    output_dir: str = Field(
        default="stickers", description="Directory for exported packs and previews"
    )
    verbosity: Literal["quiet", "normal", "verbose"] = Field(
        default="normal", description="Logging verbosity level"
    )


class StickerStyle(BaseModel):
    """One entry of the style catalog."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Stable style identifier")
    name: str = Field(..., description="Display name")
    prompt_modifier: str = Field(default="", description="Free-text style prompt")


DEFAULT_STYLES: list[dict[str, str]] = [
    {
        "id": "shojo_manga",
        "name": "少女漫畫",
        "prompt_modifier": "shojo manga style, sparkling big eyes, flowery background elements, delicate lines, romantic atmosphere, pastel colors, very detailed, white background",
    },
    {
        "id": "american_3d",
        "name": "美式 3D",
        "prompt_modifier": "pixar style 3d render, cute character design, expressive big eyes, soft lighting, vibrant colors, 3d animation style, high quality, white background",
    },
    {
        "id": "hand_drawn_sketch",
        "name": "手繪素描",
        "prompt_modifier": "hand-drawn pencil sketch style, artistic, rough textured lines, black and white with subtle colors, sketchbook aesthetic, white background",
    },
    {
        "id": "chibi_cute",
        "name": "Q版可愛",
        "prompt_modifier": "chibi style, super cute, big head small body, kawaii, simple flat colors, vector illustration, sticker art, clean lines, white background",
    },
    {
        "id": "ukiyo_e",
        "name": "浮世繪",
        "prompt_modifier": "traditional japanese ukiyo-e style, woodblock print aesthetic, bold outlines, flat colors, textured paper, historical art style, white background",
    },
    {
        "id": "marker_doodle",
        "name": "馬克筆",
        "prompt_modifier": "marker pen doodle style, bold vibrant colors, hand drawn marker texture, white border, pop art feel, casual and cute, white background",
    },
    {
        "id": "retro_pop",
        "name": "美式復古",
        "prompt_modifier": "retro pop art style, halftone patterns, comic book aesthetic, 1950s style, bold colors, white background",
    },
    {
        "id": "crayon",
        "name": "蠟筆塗鴉",
        "prompt_modifier": "children crayon drawing style, rough texture, waxy finish, naive and cute, playful, white background",
    },
]


class StickerStudioConfig(BaseModel):
    """Root configuration for sticker-studio."""

    model_config = ConfigDict(extra="ignore")

    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    compositor: CompositorConfig = Field(default_factory=CompositorConfig)
    planning: PlanningConfig = Field(default_factory=PlanningConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    default_style: str = Field(
        default="shojo_manga", description="Style used when none is selected"
    )
    styles: list[StickerStyle] = Field(
        default_factory=lambda: [StickerStyle(**s) for s in DEFAULT_STYLES],
        description="Style catalog (id -> prompt modifier)",
    )

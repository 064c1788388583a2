# sticker_studio/planning/schemas.py
"""Schema for the caption planning response."""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class CaptionPair(BaseModel):
    """One planned sticker caption in two languages."""

    model_config = ConfigDict(extra="ignore")

    caption_local: str = Field(
        ..., min_length=1, description="Caption in the primary language"
    )
    caption_alt: str = Field(
        ..., min_length=1, description="Caption in the alternate language"
    )


CaptionPlan = TypeAdapter(list[CaptionPair])

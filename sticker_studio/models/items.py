# sticker_studio/models/items.py
"""
Plan and result records.

PlanItem and GenerationResult are frozen: the ledger replaces whole
records instead of patching fields.
"""

from dataclasses import dataclass
from enum import Enum

from sticker_studio.models.images import ImagePayload


class GenerationStatus(Enum):
    """Per-item generation states."""

    PENDING = "pending"
    GENERATING = "generating"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationStatus.SUCCESS, GenerationStatus.ERROR)


@dataclass(frozen=True)
class PlanItem:
    """One caption to illustrate. `id` is the contiguous plan index."""

    id: int
    caption: str
    caption_local: str = ""
    caption_alt: str = ""


@dataclass(frozen=True)
class GenerationResult:
    """
    Generation outcome for one PlanItem.

    error_detail is only set when status is ERROR.
    """

    id: int
    caption_snapshot: str
    status: GenerationStatus = GenerationStatus.PENDING
    raw_image: ImagePayload | None = None
    processed_image: ImagePayload | None = None
    error_detail: str | None = None

    @classmethod
    def pending(cls, item: PlanItem) -> "GenerationResult":
        return cls(id=item.id, caption_snapshot=item.caption)

    def to_summary(self) -> dict:
        """Lightweight dict without image bytes (for status responses)."""
        return {
            "id": self.id,
            "caption": self.caption_snapshot,
            "status": self.status.value,
            "error": self.error_detail,
            "has_image": self.processed_image is not None,
        }

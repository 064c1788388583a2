# sticker_studio/scheduling/context.py
"""Per-run context shared read-only by every request of a run."""

from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import uuid4

from sticker_studio.cancellation import CancellationToken
from sticker_studio.models.images import ImagePayload
from sticker_studio.models.ledger import ResultLedger

if TYPE_CHECKING:
    from sticker_studio.compositor.processor import StickerCompositor
    from sticker_studio.generation.client import GeminiStickerClient


@dataclass(frozen=True)
class RunContext:
    """
    Scope of one generation run.

    Attributes:
        run_id: 12-char hex identifier
        token: Cancellation signal for this run only
        style_prompt: Resolved style modifier ("" for none)
        style_id: Catalog id the prompt came from
        reference_image: Optional subject photo sent with every request
    """

    run_id: str
    token: CancellationToken
    style_prompt: str = ""
    style_id: str | None = None
    reference_image: ImagePayload | None = None


@dataclass(frozen=True)
class RunRuntime:
    """Collaborators a strategy drives: client, compositor and ledger."""

    client: "GeminiStickerClient"
    compositor: "StickerCompositor"
    ledger: ResultLedger


def generate_run_id() -> str:
    """12-character hex string (UUID4 truncated)."""
    return uuid4().hex[:12]

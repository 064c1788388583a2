# sticker_studio/models/ledger.py
"""
Result ledger: the authoritative per-item status record of a run.

Single-writer discipline: every mutation goes through replace(), which swaps
one frozen GenerationResult for another under an asyncio.Lock. Readers get
tuples of frozen records and never observe a half-applied update.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Iterable

from sticker_studio.models.images import ImagePayload
from sticker_studio.models.items import GenerationResult, GenerationStatus, PlanItem

logger = logging.getLogger(__name__)


class ResultLedger:
    """
    In-memory ledger keyed by plan item id.

    A SUCCESS entry is never replaced by a non-forced update, which makes
    re-running a batch or retry loop harmless.
    """

    def __init__(self) -> None:
        self._entries: dict[int, GenerationResult] = {}
        self._lock = asyncio.Lock()
        self._version = 0

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every applied update."""
        return self._version

    async def reset(self, plan: Iterable[PlanItem]) -> None:
        """Replace the whole collection with PENDING entries for `plan`."""
        entries = {item.id: GenerationResult.pending(item) for item in plan}
        async with self._lock:
            self._entries = entries
            self._version += 1
        logger.info(f"Ledger reset with {len(entries)} pending entries")

    async def clear(self) -> None:
        async with self._lock:
            self._entries = {}
            self._version += 1

    async def replace(self, result: GenerationResult, force: bool = False) -> bool:
        """
        Replace the entry for result.id.

        Args:
            result: Full replacement record
            force: Allow replacing a SUCCESS entry (explicit regenerate)

        Returns:
            True if applied, False if skipped to protect a SUCCESS entry

        Raises:
            ValueError: If the id is not part of the current run
        """
        async with self._lock:
            current = self._entries.get(result.id)
            if current is None:
                raise ValueError(f"Item {result.id} not in ledger")

            if current.status is GenerationStatus.SUCCESS and not force:
                logger.debug(f"Kept success entry {result.id}, ignored {result.status.value}")
                return False

            self._entries[result.id] = result
            self._version += 1

        logger.info(f"Item {result.id} -> {result.status.value}")
        return True

    async def mark_generating(
        self, item: PlanItem, force: bool = False
    ) -> bool:
        """Mark an item GENERATING with its current caption."""
        current = self.get(item.id)
        if current is None:
            raise ValueError(f"Item {item.id} not in ledger")
        return await self.replace(
            dataclasses.replace(
                current,
                caption_snapshot=item.caption,
                status=GenerationStatus.GENERATING,
                error_detail=None,
            ),
            force=force,
        )

    async def record_success(
        self,
        item: PlanItem,
        raw_image: ImagePayload,
        processed_image: ImagePayload,
        force: bool = False,
    ) -> bool:
        return await self.replace(
            GenerationResult(
                id=item.id,
                caption_snapshot=item.caption,
                status=GenerationStatus.SUCCESS,
                raw_image=raw_image,
                processed_image=processed_image,
            ),
            force=force,
        )

    async def record_error(
        self, item: PlanItem, detail: str, force: bool = False
    ) -> bool:
        return await self.replace(
            GenerationResult(
                id=item.id,
                caption_snapshot=item.caption,
                status=GenerationStatus.ERROR,
                error_detail=detail,
            ),
            force=force,
        )

    def get(self, item_id: int) -> GenerationResult | None:
        return self._entries.get(item_id)

    def is_success(self, item_id: int) -> bool:
        entry = self._entries.get(item_id)
        return entry is not None and entry.status is GenerationStatus.SUCCESS

    def snapshot(self) -> tuple[GenerationResult, ...]:
        """Read-only view ordered by id."""
        return tuple(self._entries[k] for k in sorted(self._entries))

    def successes(self) -> list[GenerationResult]:
        return [r for r in self.snapshot() if r.status is GenerationStatus.SUCCESS]

    def counts(self) -> dict[str, int]:
        """Number of entries per status value."""
        counts = {status.value: 0 for status in GenerationStatus}
        for entry in self._entries.values():
            counts[entry.status.value] += 1
        return counts

    def is_complete(self) -> bool:
        """True when every entry is SUCCESS or ERROR."""
        return bool(self._entries) and all(
            e.status.is_terminal for e in self._entries.values()
        )

    def __len__(self) -> int:
        return len(self._entries)

# sticker_studio/cancellation.py
"""
Cooperative cancellation for generation runs.

One token per run. Every suspension point (external call, backoff wait,
pacing wait) either sleeps through the token or checks it right after
resuming.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class RunCancelled(Exception):
    """Control signal: the run was cancelled. Not a generation failure."""


class CancellationToken:
    """Single-flight cancellation signal backed by an asyncio.Event."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation. Calling it again is a no-op."""
        if not self._event.is_set():
            logger.info("Cancellation requested")
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled("Run cancelled")

    async def sleep(self, seconds: float) -> None:
        """
        Wait `seconds` unless cancelled first.

        Raises:
            RunCancelled: If the token is (or becomes) cancelled
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise RunCancelled("Run cancelled during wait")

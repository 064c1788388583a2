# sticker_studio/background/signals.py
"""
SIGINT/SIGTERM handling for the MCP server.

Either signal cancels the active generation run through the lifecycle. A
second signal while shutdown is in progress is ignored.
"""

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sticker_studio.background.lifecycle import StudioLifecycle

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def setup_signal_handlers(lifecycle: "StudioLifecycle") -> None:
    """
    Route shutdown signals to lifecycle.shutdown().

    ProactorEventLoop (Windows) has no add_signal_handler, so there the
    process-level signal.signal() hook schedules shutdown on the loop.
    """
    loop = asyncio.get_event_loop()
    pending: list[asyncio.Future] = []

    def _request_shutdown(sig: signal.Signals) -> None:
        if pending and not pending[0].done():
            logger.info(f"{sig.name} ignored: shutdown already in progress")
            return
        logger.info(f"Received {sig.name}, cancelling active run")
        pending[:] = [asyncio.ensure_future(lifecycle.shutdown())]

    def _process_handler(sig_num, frame) -> None:
        loop.call_soon_threadsafe(_request_shutdown, signal.Signals(sig_num))

    try:
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, _request_shutdown, sig)
        mode = "event loop"
    except NotImplementedError:
        for sig in SHUTDOWN_SIGNALS:
            signal.signal(sig, _process_handler)
        mode = "signal.signal fallback"

    logger.info(f"Signal handlers registered ({mode})")

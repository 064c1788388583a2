# sticker_studio/background/__init__.py
"""Session lifecycle and signal handling."""

from .lifecycle import StudioLifecycle
from .signals import setup_signal_handlers

__all__ = ["StudioLifecycle", "setup_signal_handlers"]
